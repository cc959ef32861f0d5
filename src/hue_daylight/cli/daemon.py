"""hue-daylight daemon entry point.

Loads the configuration, connects to the bridge and runs the control loop
until interrupted. SIGHUP reloads the configuration.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from hue_daylight import __version__
from hue_daylight.config import DaylightConfig, load_config, save_config
from hue_daylight.control import ControlContext, ControlLoop, validate_system_time
from hue_daylight.control.server import StatusServer
from hue_daylight.errors import ConfigurationError, ScheduleInvariantError
from hue_daylight.lights import HueBridge, MockBridge

logger = logging.getLogger("hue_daylight")

DEFAULT_CONFIG = Path("config.yaml")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hue-daylight",
        description="Drive Hue lights along a daily color temperature and brightness schedule",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Configuration file to load")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log", type=Path, default=None, help="Redirect log output to this file")
    parser.add_argument("--setup", action="store_true", help="Discover and pair with a Hue bridge, then exit")
    parser.add_argument("--mock", action="store_true", help="Use simulated lights instead of a bridge")
    parser.add_argument("--enable-web-interface", action="store_true", help="Start the status web interface")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def configure_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """Set up the root logger for the daemon."""
    handler: logging.Handler = logging.StreamHandler()
    if log_file is not None:
        try:
            handler = logging.FileHandler(log_file)
        except OSError as e:
            print(f"Failed to log to {log_file} ({e}), using stderr", file=sys.stderr)

    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)


def load_or_create_config(config_path: Path) -> DaylightConfig:
    """Load the configuration, writing it back when migrated or new."""
    if not config_path.exists():
        logger.info("No configuration at %s, creating one with defaults", config_path)
        config = DaylightConfig.with_defaults()
        save_config(config, config_path)
        return config

    config, migrated = load_config(config_path)
    if migrated:
        logger.info("Configuration migrated to version %d", config.version)
        save_config(config, config_path)
    return config


def install_signal_handlers(control_loop: ControlLoop) -> None:
    """SIGHUP reloads, SIGINT/SIGTERM stop. Handlers only post requests."""
    def handle_sighup(signum, frame):
        logger.info("Received signal SIGHUP. Reloading...")
        control_loop.request_reload()

    def handle_stop(signum, frame):
        logger.info("Received signal %s. Shutting down...", signal.Signals(signum).name)
        control_loop.stop()

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, handle_sighup)
    signal.signal(signal.SIGINT, handle_stop)
    signal.signal(signal.SIGTERM, handle_stop)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.debug, args.log)
    logger.info("hue-daylight %s starting up...", __version__)

    if args.setup:
        from hue_daylight.lights.discovery import run_setup_wizard
        return 0 if run_setup_wizard(args.config) else 1

    try:
        config = load_or_create_config(args.config)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1

    if args.mock:
        bridge = MockBridge()
        mock_config = config.schedules[0] if config.schedules else None
        if mock_config is not None:
            mock_config.associated_devices.extend(light.id for light in bridge.lights())
    elif config.hue is None:
        logger.error("No Hue bridge configured. Run 'hue-daylight --setup' first.")
        return 1
    else:
        bridge = HueBridge(config.hue.bridge_ip, config.hue.username)

    threading.Thread(target=validate_system_time, args=(bridge,), daemon=True, name="ClockCheck").start()

    context = ControlContext(config=config, bridge=bridge)

    def reload_config() -> DaylightConfig:
        return load_config(args.config)[0]

    control_loop = ControlLoop(context, config_loader=reload_config)
    install_signal_handlers(control_loop)

    server = None
    if args.enable_web_interface or config.web.enabled:
        server = StatusServer(control_loop, host=config.web.host, port=config.web.port)
        server.start_in_thread()

    try:
        control_loop.run()
    except ScheduleInvariantError:
        logger.critical("Schedule construction is broken, stopping", exc_info=True)
        return 2
    finally:
        if server is not None:
            server.stop()

    logger.info("Stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
