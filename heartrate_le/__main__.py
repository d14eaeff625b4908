"""Command-line front-end: scan for heart rate monitors or stream readings from one."""

import argparse
import logging
import sys
import threading
from typing import List, Optional

from tabulate import tabulate

from heartrate_le.ble import (
    ConnectionStatus,
    DeviceInfo,
    HeartRateMonitor,
    HeartRateReading,
)

logger = logging.getLogger(__name__)


def format_reading(reading: HeartRateReading) -> str:
    """Render a reading as a single console line."""
    parts = [f"{reading.beats_per_minute} bpm"]
    if reading.sensor_contact is False:
        parts.append("no skin contact")
    if reading.energy_expended is not None:
        parts.append(f"{reading.energy_expended} kJ")
    if reading.rr_intervals_ms:
        parts.append(
            "RR " + ", ".join(f"{interval:.0f}" for interval in reading.rr_intervals_ms) + " ms"
        )
    return " | ".join(parts)


def show_device_info(info: DeviceInfo, file=sys.stdout) -> str:
    """
    Print device metadata as a table and return the rendered table.

    Empty fields are shown as N/A.
    """
    rows = [
        {"Field": "Device Id", "Value": info.device_id or None},
        {"Field": "Name", "Value": info.name or None},
        {"Field": "Manufacturer", "Value": info.manufacturer or None},
        {"Field": "Model Number", "Value": info.model_number or None},
        {"Field": "Serial Number", "Value": info.serial_number or None},
        {"Field": "Hardware Revision", "Value": info.hardware or None},
        {"Field": "Firmware Revision", "Value": info.firmware or None},
        {"Field": "Battery", "Value": f"{info.battery_percent}%"},
    ]
    table = tabulate(rows, headers="keys", missingval="N/A", tablefmt="fancy_grid")
    print(table, file=file)
    return table


def show_devices(devices, file=sys.stdout) -> str:
    """Print scanned devices as a table and return the rendered table."""
    rows = [
        {"Address": device.address, "Name": getattr(device, "name", None)}
        for device in devices
    ]
    table = tabulate(rows, headers="keys", missingval="N/A", tablefmt="fancy_grid")
    print(table, file=file)
    return table


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heartrate-le",
        description="Read a Bluetooth LE heart rate monitor.",
    )
    parser.add_argument(
        "--scan",
        action="store_true",
        help="List nearby devices advertising the Heart Rate service and exit.",
    )
    parser.add_argument(
        "--address",
        metavar="ID",
        help="Identifier of the paired heart rate device to connect to.",
    )
    parser.add_argument(
        "--info",
        action="store_true",
        help="Print device information before streaming readings.",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Show debug log output."
    )
    return parser


def main(argv: Optional[List[str]] = None, monitor_factory=HeartRateMonitor) -> int:
    """
    Run the command-line front-end.

    Returns:
        int: Process exit status; non-zero when the connect attempt fails.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.scan:
        devices = monitor_factory.scan()
        if not devices:
            print("No heart rate devices found")
            return 0
        show_devices(devices)
        return 0

    if not args.address:
        parser.error("one of --scan or --address is required")

    disconnected_event = threading.Event()

    def on_status(status: ConnectionStatus):
        print("Connected" if status.is_connected else "Disconnected")
        if not status.is_connected:
            # Signal the main loop that the session has ended
            disconnected_event.set()

    def on_reading(reading: HeartRateReading):
        print(format_reading(reading))

    monitor = monitor_factory()
    try:
        monitor.status_events.subscribe(on_status)
        monitor.reading_events.subscribe(on_reading)
        result = monitor.connect(args.address)
        if not result.is_connected:
            print(result.error_message, file=sys.stderr)
            return 1
        logger.info("Connected to %s", result.name)

        if args.info:
            show_device_info(monitor.get_device_info())

        try:
            disconnected_event.wait()
        except KeyboardInterrupt:
            logger.info("Exiting...")
        return 0
    finally:
        monitor.close()


if __name__ == "__main__":
    sys.exit(main())
