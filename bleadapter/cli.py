"""
Command-line interface for the BLE adapter.

    bleadapter --systemKey KEY --systemSecret SECRET --deviceName NAME --password PW
               [--platformURL URL] [--messagingURL HOST:PORT] [--scanInterval SECONDS]
               [--logLevel debug|warn|error] [--logFile PATH] [--adapter hciN]
               [--config DEFAULTS.yaml]

Exit codes: 0 on a clean shutdown, 1 for invalid flags, an unreadable defaults
file, a malformed messaging URL or a host bus that cannot be opened.
"""

import argparse
import signal
import sys
import threading

from . import __version__
from bleadapter.bridge.broker import BrokerAdapter, parse_messaging_url
from bleadapter.bridge.commands import CommandProcessor
from bleadapter.bridge.dispatcher import Dispatcher
from bleadapter.bridge.platform import PlatformClient
from bleadapter.bridge.publisher import Publisher
from bleadapter.bridge.supervisor import Supervisor
from bleadapter.core import config
from bleadapter.core.config import AdapterConfig, load_defaults_file
from bleadapter.core.errors import BrokerError, ConfigError, HostBusError
from bleadapter.core.log import configure_logging, get_logger
from bleadapter.dbuslayer.discovery import DiscoveryEngine
from bleadapter.dbuslayer.manager import ObjectCache

_log = get_logger(__name__)


def _non_negative_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return number


def build_parser():
    parser = argparse.ArgumentParser(
        prog="bleadapter",
        description="Bridge BlueZ BLE peripherals to a platform MQTT broker",
    )
    parser.add_argument("--version", action="version", version=f"bleadapter {__version__}")
    parser.add_argument("--systemKey", required=True, help="system key")
    parser.add_argument("--systemSecret", required=True, help="system secret")
    parser.add_argument("--deviceName", required=True, help="name of device to authenticate as")
    parser.add_argument("--password", required=True, help="password (active key) for device authentication")
    parser.add_argument("--platformURL", default=config.DEFAULT_PLATFORM_URL, help="platform url")
    parser.add_argument("--messagingURL", default=config.DEFAULT_MESSAGING_URL, help="messaging URL (host:port)")
    parser.add_argument(
        "--scanInterval",
        type=_non_negative_int,
        default=config.DEFAULT_SCAN_INTERVAL,
        help="seconds each discovery window lasts (0 = until stopped)",
    )
    parser.add_argument(
        "--logLevel",
        choices=sorted(config.LOG_LEVELS),
        default=config.DEFAULT_LOG_LEVEL,
        help="the level of logging to use",
    )
    parser.add_argument("--logFile", default=config.LOG_FILE, help="rotating log file path")
    parser.add_argument("--adapter", default=None, help="BlueZ adapter to use (e.g. hci0)")
    parser.add_argument("--config", default=None, help="YAML file with adapter defaults")
    return parser


def parse_args(args=None):
    """Parse *args*; argparse's exit code 2 becomes 1 for bad flags."""
    try:
        return build_parser().parse_args(args)
    except SystemExit as exc:
        if exc.code in (0, None):
            raise
        raise SystemExit(1) from None


def _install_signal_handlers(shutdown):
    def _handler(signum, frame):
        _log.warning("[*] Received signal %d, shutting down", signum)
        shutdown.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _handler)


def main(args=None):
    """Main entry point for the BLE adapter."""
    args = parse_args(args)
    configure_logging(args.logLevel, args.logFile)
    _log.debug("[DEBUG] Validating command line options")

    defaults = AdapterConfig(scan_interval=args.scanInterval)
    try:
        if args.config:
            defaults = load_defaults_file(args.config, defaults)
        host, port = parse_messaging_url(args.messagingURL)
    except ConfigError as exc:
        _log.error("[-] %s", exc)
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    shutdown = threading.Event()
    _install_signal_handlers(shutdown)

    try:
        cache = ObjectCache.open(adapter_name=args.adapter)
    except HostBusError as exc:
        _log.critical("[-] Unable to open the BlueZ object cache: %s", exc)
        print(f"[ERROR] Unable to open the BlueZ object cache: {exc}", file=sys.stderr)
        return 1

    platform = PlatformClient(args.platformURL, args.systemKey, args.systemSecret)
    broker = None
    supervisor = None
    try:
        _log.debug("[DEBUG] Authenticating device %s with %s", args.deviceName, args.platformURL)
        token = platform.authenticate_forever(args.deviceName, args.password, shutdown)
        if token is None:
            return 0

        broker = BrokerAdapter(args.deviceName)
        engine = DiscoveryEngine(cache)
        dispatcher = Dispatcher(Publisher(cache, broker, args.deviceName))
        supervisor = Supervisor(
            cache,
            engine,
            dispatcher,
            config_source=lambda: platform.load_adapter_config(defaults),
            is_connected=broker.is_connected,
            defaults=defaults,
        )
        processor = CommandProcessor(
            cache, broker, args.deviceName, config_source=lambda: supervisor.current_config
        )
        broker.bind(processor, supervisor)

        # The device token is the MQTT username, the system key its password
        broker.connect(host, port, token, args.systemKey)
        _log.info("[+] Starting BLE adapter")
        supervisor.start()
        shutdown.wait()
    except BrokerError as exc:
        _log.critical("[-] %s", exc)
        return 1
    finally:
        if supervisor is not None:
            supervisor.stop()
        if broker is not None:
            broker.disconnect()
        cache.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
