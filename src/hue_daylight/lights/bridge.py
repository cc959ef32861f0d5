"""Hue bridge REST client (CLIP v2)."""

from datetime import datetime, timezone
from typing import Any, Optional
import logging

import requests
import urllib3

from ..errors import BridgeError
from .state import LightInfo, LightState, kelvin_to_mirek, mirek_to_kelvin

# Suppress SSL warnings for Hue bridge (uses self-signed cert)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5  # seconds


class HueBridge:
    """
    Read and write light state on a Hue bridge.

    Every request is bounded by REQUEST_TIMEOUT. Failures raise BridgeError;
    retrying is left to the caller's next tick.
    """

    def __init__(
        self,
        bridge_ip: str,
        username: str,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.bridge_ip = bridge_ip
        self.username = username
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"hue-application-key": username})
        # Hue bridge uses self-signed cert
        self._session.verify = False

    def _url(self, path: str) -> str:
        return f"https://{self.bridge_ip}/clip/v2/resource/{path}"

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise BridgeError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise BridgeError(f"{method} {url} returned invalid JSON") from e

        if isinstance(data, dict) and data.get("errors"):
            descriptions = ", ".join(err.get("description", "unknown") for err in data["errors"])
            raise BridgeError(f"{method} {url} failed: {descriptions}")
        return data

    def _get_resource(self, path: str) -> list[dict]:
        return self._request("GET", self._url(path)).get("data", [])

    def lights(self) -> list[LightInfo]:
        """Get all lights on the bridge."""
        return [parse_light_info(item) for item in self._get_resource("light")]

    def _connectivity(self) -> dict[str, bool]:
        """Map device id to whether the device is reachable over zigbee."""
        try:
            items = self._get_resource("zigbee_connectivity")
        except BridgeError as e:
            logger.warning("Could not read light connectivity, assuming reachable: %s", e)
            return {}
        return {
            item.get("owner", {}).get("rid", ""): item.get("status") == "connected"
            for item in items
        }

    def light_states(self) -> dict[str, LightState]:
        """
        Read the state of all lights in one batch.

        Lights whose entry cannot be parsed are left out of the result.

        Raises:
            BridgeError: If the bridge cannot be read at all
        """
        items = self._get_resource("light")
        connectivity = self._connectivity()

        states: dict[str, LightState] = {}
        for item in items:
            try:
                light_id = item["id"]
                reachable = connectivity.get(item.get("owner", {}).get("rid", ""), True)
                states[light_id] = parse_light_state(item, reachable)
            except (KeyError, TypeError, ValueError, ZeroDivisionError) as e:
                logger.warning("Ignoring unreadable state of light %s: %r", item.get("id"), e)
        return states

    def set_light_state(self, light_id: str, color_temperature: Optional[int], brightness: Optional[int]) -> None:
        """
        Set color temperature (Kelvin) and brightness (percent) of a light.

        color_temperature and brightness are None for lights without color
        temperature or dimming; those fields are left out of the request.
        """
        body: dict[str, Any] = {}
        if brightness is not None:
            body["dimming"] = {"brightness": float(brightness)}
        if color_temperature is not None:
            body["color_temperature"] = {"mirek": kelvin_to_mirek(color_temperature)}
        if not body:
            return
        self._request("PUT", self._url(f"light/{light_id}"), json=body)

    def bridge_time(self) -> datetime:
        """Current UTC time according to the bridge."""
        url = f"https://{self.bridge_ip}/api/{self.username}/config"
        data = self._request("GET", url)
        try:
            return datetime.strptime(data["UTC"], "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
        except (KeyError, TypeError, ValueError) as e:
            raise BridgeError(f"Bridge did not report its time: {e!r}") from e


def parse_light_info(item: dict) -> LightInfo:
    """Build LightInfo from a CLIP v2 light resource."""
    info = LightInfo(
        id=item["id"],
        name=item.get("metadata", {}).get("name", "Unknown"),
        supports_brightness="dimming" in item,
    )
    schema = item.get("color_temperature", {}).get("mirek_schema")
    if schema:
        # Higher mirek means warmer, so the bounds swap
        info.min_color_temperature = mirek_to_kelvin(schema["mirek_maximum"])
        info.max_color_temperature = mirek_to_kelvin(schema["mirek_minimum"])
    return info


def parse_light_state(item: dict, reachable: bool = True) -> LightState:
    """Build LightState from a CLIP v2 light resource."""
    color_temperature = None
    ct = item.get("color_temperature") or {}
    if ct.get("mirek_valid", True) and ct.get("mirek"):
        color_temperature = mirek_to_kelvin(ct["mirek"])

    return LightState(
        on=bool(item["on"]["on"]),
        brightness=round(item.get("dimming", {}).get("brightness", 100.0)),
        color_temperature=color_temperature,
        reachable=reachable,
    )


class MockBridge:
    """Mock bridge for running without actual Hue hardware."""

    def __init__(self, lights: Optional[list[LightInfo]] = None):
        if lights is None:
            lights = [
                LightInfo(id=f"mock-{i}", name=f"Mock Light {i}", min_color_temperature=2000, max_color_temperature=6500)
                for i in range(1, 4)
            ]
        self._lights = {light.id: light for light in lights}
        self._states: dict[str, LightState] = {
            light.id: LightState(on=True, brightness=100, color_temperature=4000)
            for light in lights
        }
        self.pushed: list[tuple[str, Optional[int], int]] = []

    def lights(self) -> list[LightInfo]:
        return list(self._lights.values())

    def light_states(self) -> dict[str, LightState]:
        return dict(self._states)

    def set_light_state(self, light_id: str, color_temperature: Optional[int], brightness: Optional[int]) -> None:
        if light_id not in self._lights:
            raise BridgeError(f"Unknown light {light_id}")
        current = self._states[light_id]
        if color_temperature is None:
            color_temperature = current.color_temperature
        if brightness is None:
            brightness = current.brightness
        self._states[light_id] = LightState(
            on=current.on,
            brightness=brightness,
            color_temperature=color_temperature,
            reachable=current.reachable,
        )
        self.pushed.append((light_id, color_temperature, brightness))
        logger.debug("Mock light %s -> %sK, %d%%", light_id, color_temperature, brightness)

    def set_observed_state(self, light_id: str, state: LightState) -> None:
        """Change a light as if someone used a switch or an app."""
        self._states[light_id] = state

    def add_light(self, light: LightInfo, state: LightState) -> None:
        self._lights[light.id] = light
        self._states[light.id] = state

    def bridge_time(self) -> datetime:
        return datetime.now(timezone.utc)
