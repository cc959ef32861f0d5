"""Hue bridge discovery and authentication."""

from pathlib import Path
from typing import Optional
import logging
import socket
import time

import requests
import urllib3
from zeroconf import ServiceBrowser, ServiceListener, Zeroconf

from ..config import DaylightConfig, HueConfig, load_config, save_config

# Suppress SSL warnings for Hue bridge (uses self-signed cert)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

logger = logging.getLogger(__name__)

DISCOVERY_URL = "https://discovery.meethue.com/"
MDNS_WAIT_SECONDS = 3


class _HueListener(ServiceListener):
    def __init__(self):
        self.bridges: list[dict] = []

    def add_service(self, zc, type_, name):
        info = zc.get_service_info(type_, name)
        if info and info.addresses:
            ip = socket.inet_ntoa(info.addresses[0])
            bridge_id = name.split(".")[0].replace("Philips Hue - ", "")
            self.bridges.append({"id": bridge_id, "ip": ip, "name": f"Philips Hue ({ip})"})

    def remove_service(self, zc, type_, name):
        pass

    def update_service(self, zc, type_, name):
        pass


class HueSetup:
    """Handle Hue bridge discovery and authentication."""

    def __init__(self, session: Optional[requests.Session] = None):
        self._session = session or requests.Session()

    def discover_bridges(self) -> list[dict]:
        """
        Discover Hue bridges on the network.

        Tries mDNS first and falls back to the meethue.com discovery service.

        Returns list of dicts with 'id', 'ip', 'name' keys.
        """
        bridges_found: list[dict] = []

        try:
            zc = Zeroconf()
            try:
                listener = _HueListener()
                ServiceBrowser(zc, "_hue._tcp.local.", listener)
                time.sleep(MDNS_WAIT_SECONDS)
                bridges_found = listener.bridges
            finally:
                zc.close()
        except OSError as e:
            logger.warning("mDNS discovery failed: %s", e)

        if not bridges_found:
            bridges_found = self._discover_via_cloud()

        return bridges_found

    def _discover_via_cloud(self) -> list[dict]:
        try:
            response = self._session.get(DISCOVERY_URL, timeout=5)
            response.raise_for_status()
            return [
                {
                    "id": bridge.get("id", "unknown"),
                    "ip": bridge.get("internalipaddress", ""),
                    "name": f"Philips Hue ({bridge.get('internalipaddress', '')})",
                }
                for bridge in response.json()
            ]
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("Cloud discovery failed: %s", e)
            return []

    def authenticate(
        self,
        bridge_ip: str,
        app_name: str = "hue_daylight",
        timeout: int = 30,
    ) -> HueConfig:
        """
        Authenticate with a Hue bridge.

        User must press the bridge button within timeout seconds.

        Args:
            bridge_ip: IP address of the bridge
            app_name: Application name for registration
            timeout: Seconds to wait for button press

        Returns:
            HueConfig with the new username

        Raises:
            TimeoutError: If button not pressed in time
            RuntimeError: If the bridge rejects the registration
        """
        url = f"https://{bridge_ip}/api"
        payload = {"devicetype": f"{app_name}#daemon"}

        print("Please press the button on your Hue bridge...")
        print(f"Waiting up to {timeout} seconds...")

        start_time = time.time()
        while time.time() - start_time < timeout:
            try:
                # Hue bridge uses self-signed cert
                response = self._session.post(url, json=payload, verify=False, timeout=5)
                result = response.json()
            except (requests.exceptions.RequestException, ValueError) as e:
                logger.warning("Connection error: %s", e)
                time.sleep(1)
                continue

            if isinstance(result, list) and result:
                if "success" in result[0]:
                    return HueConfig(bridge_ip=bridge_ip, username=result[0]["success"]["username"])
                error = result[0].get("error", {})
                if error.get("type") != 101:
                    raise RuntimeError(f"Auth error: {error.get('description')}")
            # Link button not pressed yet
            time.sleep(1)

        raise TimeoutError("Bridge button was not pressed in time")


def run_setup_wizard(config_path: Path, setup: Optional[HueSetup] = None) -> Optional[HueConfig]:
    """
    Interactive setup wizard for the Hue bridge.

    Writes the bridge credentials into the configuration at config_path,
    creating it with defaults when it does not exist.

    Returns credentials if setup successful.
    """
    setup = setup or HueSetup()

    if config_path.exists():
        config, _ = load_config(config_path)
    else:
        config = DaylightConfig.with_defaults()

    if config.hue:
        print(f"Found existing credentials for bridge at {config.hue.bridge_ip}")
        response = input("Use existing credentials? [Y/n]: ").strip().lower()
        if response != "n":
            return config.hue

    print("\nSearching for Hue bridges...")
    bridges = setup.discover_bridges()

    if not bridges:
        print("No bridges found. Enter IP manually:")
        bridge_ip = input("Bridge IP: ").strip()
        if not bridge_ip:
            print("No IP provided, aborting.")
            return None
        bridge_id = ""
    elif len(bridges) == 1:
        bridge_ip, bridge_id = bridges[0]["ip"], bridges[0]["id"]
        print(f"Found bridge: {bridges[0]['name']}")
    else:
        print("\nFound multiple bridges:")
        for i, bridge in enumerate(bridges):
            print(f"  {i + 1}. {bridge['name']}")
        choice = input(f"Select bridge [1-{len(bridges)}]: ").strip()
        try:
            selected = bridges[int(choice) - 1]
        except (ValueError, IndexError):
            print("Invalid selection, using first bridge")
            selected = bridges[0]
        bridge_ip, bridge_id = selected["ip"], selected["id"]

    try:
        hue = setup.authenticate(bridge_ip)
    except TimeoutError:
        print("\nSetup timed out. Please try again and press the bridge button.")
        return None
    except RuntimeError as e:
        print(f"\nSetup failed: {e}")
        return None

    hue.bridge_id = bridge_id
    config.hue = hue
    save_config(config, config_path)
    print(f"Credentials saved to {config_path}")
    return hue
