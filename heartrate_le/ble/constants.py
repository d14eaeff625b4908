"""BLE constants and configuration."""

import logging
from typing import Dict, Optional

logger = logging.getLogger("heartrate_le.ble")

# Standard 16-bit assigned numbers, expanded onto the Bluetooth base UUID
BLUETOOTH_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"
HEART_RATE_SERVICE_UUID = "0000180d" + BLUETOOTH_BASE_UUID_SUFFIX
HEART_RATE_MEASUREMENT_UUID = "00002a37" + BLUETOOTH_BASE_UUID_SUFFIX
CLIENT_CHARACTERISTIC_CONFIG_UUID = "00002902" + BLUETOOTH_BASE_UUID_SUFFIX

# Names the session and device-info reader look attributes up by
HEART_RATE_SERVICE = "HeartRate"
HEART_RATE_MEASUREMENT = "HeartRateMeasurement"
DEVICE_INFORMATION_SERVICE = "DeviceInformation"
BATTERY_SERVICE = "Battery"
FIRMWARE_REVISION = "FirmwareRevisionString"
HARDWARE_REVISION = "HardwareRevisionString"
MANUFACTURER_NAME = "ManufacturerNameString"
SERIAL_NUMBER = "SerialNumberString"
MODEL_NUMBER = "ModelNumberString"
BATTERY_LEVEL = "BatteryLevel"

SERVICE_NAMES: Dict[int, str] = {
    0x1800: "GenericAccess",
    0x1801: "GenericAttribute",
    0x180A: DEVICE_INFORMATION_SERVICE,
    0x180D: HEART_RATE_SERVICE,
    0x180F: BATTERY_SERVICE,
}

CHARACTERISTIC_NAMES: Dict[int, str] = {
    0x2A00: "DeviceName",
    0x2A01: "Appearance",
    0x2A19: BATTERY_LEVEL,
    0x2A23: "SystemId",
    0x2A24: MODEL_NUMBER,
    0x2A25: SERIAL_NUMBER,
    0x2A26: FIRMWARE_REVISION,
    0x2A27: HARDWARE_REVISION,
    0x2A28: "SoftwareRevisionString",
    0x2A29: MANUFACTURER_NAME,
    0x2A37: HEART_RATE_MEASUREMENT,
    0x2A38: "BodySensorLocation",
    0x2A39: "HeartRateControlPoint",
}

MALFORMED_NOTIFICATION_THRESHOLD = 10

# Timeout constants
DISCONNECT_TIMEOUT_SECONDS = 5.0


class BLEConfig:
    """Configuration constants for BLE operations."""

    BLE_SCAN_TIMEOUT = 10.0
    CONNECTION_TIMEOUT: Optional[float] = 30.0
    GATT_IO_TIMEOUT: Optional[float] = 10.0
    NOTIFICATION_START_TIMEOUT: Optional[float] = 10.0
    CLIENT_EVENT_THREAD_JOIN_TIMEOUT = 2.0
    PUBLISH_FLUSH_TIMEOUT = 2.0
    ASSUME_PAIRED_WHEN_UNKNOWN = True


# Module-level aliases for the most commonly used values
BLE_SCAN_TIMEOUT = BLEConfig.BLE_SCAN_TIMEOUT
CONNECTION_TIMEOUT = BLEConfig.CONNECTION_TIMEOUT
GATT_IO_TIMEOUT = BLEConfig.GATT_IO_TIMEOUT
NOTIFICATION_START_TIMEOUT = BLEConfig.NOTIFICATION_START_TIMEOUT
CLIENT_EVENT_THREAD_JOIN_TIMEOUT = BLEConfig.CLIENT_EVENT_THREAD_JOIN_TIMEOUT

# Error message constants
ERROR_DEVICE_NOT_FOUND = "Could not find specified heart rate device"
ERROR_NOT_PAIRED = "Heart rate device is not paired"
ERROR_DEVICE_UNREACHABLE = (
    "Heart rate device is unreachable (i.e. out of range or shutoff)"
)
ERROR_SERVICE_NOT_FOUND = "Cannot find HeartRate service"
ERROR_CHARACTERISTIC_NOT_FOUND = "Cannot find HeartRateMeasurement characteristic"
ERROR_NOTIFY_UNSUPPORTED = "HeartRateMeasurement characteristic does not support notify"
ERROR_CLIENT_NOT_BOUND = "Cannot {0}: BLE client not bound to a device"
CLIENT_ERROR_ASYNC_TIMEOUT = "Async operation timed out"
