"""Command-line entry point for the BLE beacon tool.

Usage:
    ble-beacon [advertise] [--uuid UUID] [--major N] [--minor N] [--power DBM] [-v]
    ble-beacon scan [--uuid UUID] [--duration SECONDS] [-v]
    ble-beacon status

    python -m ble_beacon_tool ...
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Awaitable

from .bluez import DEFAULT_ADAPTER, BlueZAdapter, BlueZPeripheral
from .capabilities import StrategyKind, SystemCapabilityDetector, detect_restrictions, platform_version
from .configuration import (
    DEFAULT_MAJOR,
    DEFAULT_MINOR,
    DEFAULT_TX_POWER,
    DEFAULT_UUID,
    BeaconConfiguration,
    BeaconProfile,
)
from .errors import AdvertisingRestrictedError, BeaconError
from .scanner import DEFAULT_SCAN_DURATION, BeaconScanner, BeaconSighting
from .status import SystemStatusChecker, format_status
from .strategies import create_strategy

logger = logging.getLogger(__name__)

COMMANDS = ("advertise", "scan", "status")
DEFAULT_COMMAND = "advertise"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, set log level to DEBUG; otherwise INFO
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ble-beacon",
        description="BLE iBeacon Broadcasting and Scanning Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Broadcast the default beacon (advertise is the default command)
    ble-beacon

    # Broadcast a specific beacon with details
    ble-beacon advertise --uuid 92821D61-9FEE-4003-87F1-31799E12017A --major 100 --minor 1 -v

    # Force the GATT fallback
    ble-beacon advertise --strategy fallback

    # Scan for one UUID for 10 seconds
    ble-beacon scan --uuid 92821D61-9FEE-4003-87F1-31799E12017A --duration 10
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Advertise command
    advertise_parser = subparsers.add_parser("advertise", help="Broadcast iBeacon signals")
    advertise_parser.add_argument(
        "-u", "--uuid",
        default=None,
        help=f"UUID for the beacon (default: {DEFAULT_UUID})",
    )
    advertise_parser.add_argument(
        "--major",
        type=int,
        default=None,
        help=f"Major value, 0-65535 (default: {DEFAULT_MAJOR})",
    )
    advertise_parser.add_argument(
        "--minor",
        type=int,
        default=None,
        help=f"Minor value, 0-65535 (default: {DEFAULT_MINOR})",
    )
    advertise_parser.add_argument(
        "-p", "--power",
        type=int,
        default=None,
        help=f"Calibrated TX power at 1m in dBm (default: {DEFAULT_TX_POWER})",
    )
    advertise_parser.add_argument(
        "--profile",
        choices=[profile.value for profile in BeaconProfile],
        help="Start from a preset configuration; explicit flags override it",
    )
    advertise_parser.add_argument(
        "--strategy",
        choices=["auto"] + [kind.value for kind in StrategyKind],
        default="auto",
        help="Emission strategy (default: auto, chosen from system capabilities)",
    )
    advertise_parser.add_argument(
        "--adapter",
        default=DEFAULT_ADAPTER,
        help=f"Bluetooth adapter to use (default: {DEFAULT_ADAPTER})",
    )
    advertise_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="Scan for nearby iBeacon signals")
    scan_parser.add_argument(
        "-u", "--uuid",
        default=None,
        help="UUID to scan for (default: all iBeacons)",
    )
    scan_parser.add_argument(
        "-d", "--duration",
        type=int,
        default=DEFAULT_SCAN_DURATION,
        help=f"Scan duration in seconds (default: {DEFAULT_SCAN_DURATION})",
    )
    scan_parser.add_argument(
        "--adapter",
        default=None,
        help="Bluetooth adapter to use (default: system default)",
    )
    scan_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Report repeat sightings with raw data",
    )

    # Status command
    status_parser = subparsers.add_parser("status", help="Show Bluetooth status and system information")
    status_parser.add_argument(
        "--adapter",
        default=DEFAULT_ADAPTER,
        help=f"Bluetooth adapter to inspect (default: {DEFAULT_ADAPTER})",
    )
    status_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments, defaulting to the advertise command."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ("-h", "--help")):
        argv.insert(0, DEFAULT_COMMAND)
    return build_parser().parse_args(argv)


def build_configuration(args: argparse.Namespace) -> BeaconConfiguration:
    """Merge profile defaults and explicit flags into a configuration.

    Raises:
        ConfigurationError: If the values cannot form a configuration
    """
    base = BeaconProfile(args.profile).configuration if args.profile else BeaconConfiguration()
    return BeaconConfiguration(
        uuid=args.uuid if args.uuid is not None else base.uuid,
        major=args.major if args.major is not None else base.major,
        minor=args.minor if args.minor is not None else base.minor,
        tx_power=args.power if args.power is not None else base.tx_power,
        verbose=args.verbose or base.verbose,
    )


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info(f"[MAIN] Received signal {sig.name}, initiating shutdown...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler, sig)
        except NotImplementedError:
            # Not available on this platform's event loop; KeyboardInterrupt still applies
            pass


def _report_error(error: BeaconError) -> None:
    logger.error(f"[MAIN] {error}")
    logger.error(f"[MAIN] Suggestion: {error.recovery_suggestion}")


async def _until_stopped(coro: Awaitable[Any], stop_event: asyncio.Event) -> tuple[bool, Any]:
    """Await coro unless stop_event is set first.

    Returns:
        (True, result) if coro finished, (False, None) if it was cancelled
    """
    task = asyncio.ensure_future(coro)
    stopper = asyncio.ensure_future(stop_event.wait())
    done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)

    if task in done:
        stopper.cancel()
        return True, task.result()

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    return False, None


async def cmd_advertise(args: argparse.Namespace, stop_event: asyncio.Event | None = None) -> int:
    """Broadcast a beacon until interrupted."""
    try:
        config = build_configuration(args)
    except BeaconError as e:
        logger.error(f"[MAIN] Configuration Error: {e}")
        return 1

    for line in config.describe().splitlines():
        logger.info(f"[MAIN] {line}")

    result = config.validate()
    for warning in result.warnings:
        logger.warning(f"[MAIN] Warning: {warning}")
    if not result.is_valid:
        for issue in result.issues:
            logger.error(f"[MAIN] Configuration Error: {issue}")
        return 1

    if args.strategy == "auto":
        detector = SystemCapabilityDetector(BlueZAdapter(args.adapter), BlueZPeripheral(args.adapter))
        kind = await detector.recommend_strategy()
    else:
        kind = StrategyKind(args.strategy)

    if kind is StrategyKind.PRIMARY and detect_restrictions(platform_version()):
        restricted = AdvertisingRestrictedError()
        logger.warning(f"[MAIN] {restricted}")
        logger.warning(f"[MAIN] Suggestion: {restricted.recovery_suggestion}")

    strategy = create_strategy(kind, adapter=args.adapter)
    logger.info(f"[MAIN] Strategy: {strategy.name}")

    if stop_event is None:
        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)

    try:
        finished, can_emit = await _until_stopped(strategy.can_emit(), stop_event)
        if not finished:
            logger.info("[MAIN] Stopped before the radio was ready")
            return 0
        if not can_emit:
            logger.error("[MAIN] System cannot emit beacons (hardware/permissions)")
            return 1
        logger.info("[MAIN] System can emit beacons")

        try:
            finished, _ = await _until_stopped(strategy.start(config), stop_event)
        except BeaconError as e:
            _report_error(e)
            return 1
        if not finished:
            logger.info("[MAIN] Stopped before broadcasting started")
            return 0

        logger.info("[MAIN] Broadcasting... Press Ctrl+C to stop.")
        logger.info(f"[MAIN] Status updates every {strategy.status_interval:g} seconds...")
        await stop_event.wait()
    finally:
        await strategy.close()
        logger.info("[MAIN] Shutdown complete")

    return 0


def print_sighting(sighting: BeaconSighting, verbose: bool = False) -> None:
    print(f"[{sighting.timestamp:%H:%M:%S}] Found: {sighting.uuid}")
    print(f"           Major: {sighting.major}, Minor: {sighting.minor}")
    print(f"           RSSI: {sighting.rssi} dBm, Proximity: {sighting.proximity}")
    if verbose:
        print(f"           Raw Data: {sighting.raw_hex}")
        print(f"           Peripheral ID: {sighting.peer}")
    print()


async def cmd_scan(args: argparse.Namespace, stop_event: asyncio.Event | None = None) -> int:
    """Scan for iBeacons for the requested duration."""
    try:
        scanner = BeaconScanner(
            filter_uuid=args.uuid,
            verbose=args.verbose,
            on_discovery=lambda sighting: print_sighting(sighting, verbose=args.verbose),
            adapter=args.adapter,
        )
    except BeaconError as e:
        logger.error(f"[MAIN] Configuration Error: {e}")
        return 1

    if stop_event is None:
        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)

    logger.info(f"[MAIN] Scanning for {args.duration} seconds...")
    print("-" * 50)
    try:
        count = await scanner.scan(args.duration, stop_event=stop_event)
    except BeaconError as e:
        _report_error(e)
        return 1

    print(f"Summary: Found {count} unique beacons")
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Print Bluetooth status and diagnostics."""
    detector = SystemCapabilityDetector(BlueZAdapter(args.adapter), BlueZPeripheral(args.adapter))
    checker = SystemStatusChecker(detector)
    try:
        status = await checker.collect()
    except asyncio.TimeoutError:
        print("Status check timed out")
        print("This may indicate Bluetooth system issues or insufficient permissions")
        return 1

    print("System Status")
    print("=" * 50)
    print(format_status(status))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point; returns the process exit code."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    if args.command == "advertise":
        command = cmd_advertise(args)
    elif args.command == "scan":
        command = cmd_scan(args)
    else:
        command = cmd_status(args)

    try:
        return asyncio.run(command)
    except KeyboardInterrupt:
        logger.info("[MAIN] Interrupted")
        return 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())
