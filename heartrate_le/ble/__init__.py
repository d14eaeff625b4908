"""BLE GATT client package for heart rate monitors."""

# Explicit imports define the public surface of the package.
from heartrate_le.ble.constants import (
    BLEConfig,
    BLE_SCAN_TIMEOUT,
    CONNECTION_TIMEOUT,
    DISCONNECT_TIMEOUT_SECONDS,
    GATT_IO_TIMEOUT,
    HEART_RATE_MEASUREMENT,
    HEART_RATE_MEASUREMENT_UUID,
    HEART_RATE_SERVICE,
    HEART_RATE_SERVICE_UUID,
    MALFORMED_NOTIFICATION_THRESHOLD,
    NOTIFICATION_START_TIMEOUT,
    logger,
)
from heartrate_le.ble.errors import (
    BLEError,
    BLEErrorHandler,
    ErrorKind,
    HeartRateError,
    InvalidFrameError,
)
from heartrate_le.ble.state import SessionState, SessionStateManager
from heartrate_le.ble.gatt import (
    AttributeDescriptor,
    AttributeKind,
    ClientConfigValue,
    GattAttributeCache,
    GattResult,
    GattStatus,
    attribute_name,
)
from heartrate_le.ble.decoder import HeartRateReading, decode_heart_rate_measurement
from heartrate_le.ble.events import ConnectionStatus, EventChannel, SubscriptionToken
from heartrate_le.ble.client import BLEClient
from heartrate_le.ble.discovery import parse_scan_response, results_or_empty
from heartrate_le.ble.device_info import DeviceInfo, DeviceInfoReader
from heartrate_le.ble.results import (
    ConnectionFailure,
    ConnectionResult,
    ConnectionSuccess,
)
from heartrate_le.ble.session import READING_TOPIC, STATUS_TOPIC, HeartRateMonitor

__all__ = [
    # Core classes
    "HeartRateMonitor",
    "BLEClient",
    "BLEConfig",
    "SessionState",
    "SessionStateManager",
    "BLEErrorHandler",
    "GattAttributeCache",
    "EventChannel",
    "DeviceInfoReader",
    # Results and events
    "ConnectionFailure",
    "ConnectionResult",
    "ConnectionStatus",
    "ConnectionSuccess",
    "DeviceInfo",
    "HeartRateReading",
    "SubscriptionToken",
    # GATT model
    "AttributeDescriptor",
    "AttributeKind",
    "ClientConfigValue",
    "GattResult",
    "GattStatus",
    "attribute_name",
    # Errors
    "BLEError",
    "ErrorKind",
    "HeartRateError",
    "InvalidFrameError",
    # Functions
    "decode_heart_rate_measurement",
    "parse_scan_response",
    "results_or_empty",
    # Constants
    "BLE_SCAN_TIMEOUT",
    "CONNECTION_TIMEOUT",
    "DISCONNECT_TIMEOUT_SECONDS",
    "GATT_IO_TIMEOUT",
    "HEART_RATE_MEASUREMENT",
    "HEART_RATE_MEASUREMENT_UUID",
    "HEART_RATE_SERVICE",
    "HEART_RATE_SERVICE_UUID",
    "MALFORMED_NOTIFICATION_THRESHOLD",
    "NOTIFICATION_START_TIMEOUT",
    "READING_TOPIC",
    "STATUS_TOPIC",
    "logger",
]
