"""
Example showing a long-running heart rate logger built on HeartRateMonitor.

The library never reconnects on its own. This example shows the **instance reuse
pattern**: a single HeartRateMonitor is kept for the whole run, and when the
connection-status topic reports a disconnect, connect() is called again on the
same instance.

Readings and status changes are received through pubsub topics
(``heartrate.reading`` and ``heartrate.connection.status``).
"""
import argparse
import logging
import threading
import time

from pubsub import pub

import heartrate_le

# Retry delay in seconds when connection fails
RETRY_DELAY_SECONDS = 5

logger = logging.getLogger(__name__)

# A thread-safe flag to signal disconnection
disconnected_event = threading.Event()


def on_connection_change(monitor, connected, name):
    """
    Handle a monitor's connection status change and notify the main loop on disconnect.

    Parameters:
        monitor: The HeartRateMonitor whose connection status changed.
        connected (bool): `True` when the monitor is connected, `False` when disconnected.
        name (Optional[str]): Device name, when the platform reports one.
    """
    logger.info(
        "Connection changed for %s: %s",
        name or monitor,
        "Connected" if connected else "Disconnected",
    )
    if not connected:
        disconnected_event.set()


def on_reading(monitor, reading):
    logger.info("%d bpm", reading.beats_per_minute)


def main():
    """
    Connect to a heart rate monitor and log readings, reconnecting after each disconnect.
    """
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Heart rate logger with manual reconnection (instance reuse pattern)."
    )
    parser.add_argument("address", help="The identifier of your paired heart rate device.")
    args = parser.parse_args()
    address = args.address

    pub.subscribe(on_connection_change, "heartrate.connection.status")
    pub.subscribe(on_reading, "heartrate.reading")

    monitor = heartrate_le.HeartRateMonitor()

    try:
        while True:
            try:
                disconnected_event.clear()

                logger.info("Attempting to connect to %s...", address)
                result = monitor.connect(address)
                if result.is_connected:
                    logger.info("Connection successful. Waiting for disconnection event...")
                    disconnected_event.wait()
                    logger.info("Disconnected. Will attempt to reconnect...")
                else:
                    logger.error("Connection failed: %s", result.error_message)

            except KeyboardInterrupt:
                logger.info("Exiting...")
                break
            except Exception:
                logger.exception("An unexpected error occurred")

            logger.info("Retrying in %d seconds...", RETRY_DELAY_SECONDS)
            time.sleep(RETRY_DELAY_SECONDS)

    finally:
        logger.info("Closing heart rate monitor...")
        monitor.close()


if __name__ == "__main__":
    main()
