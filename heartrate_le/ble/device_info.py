"""Best-effort reading of device information and battery characteristics."""

from dataclasses import dataclass
from typing import Any, List, Optional

from heartrate_le.ble.constants import (
    BATTERY_LEVEL,
    BATTERY_SERVICE,
    DEVICE_INFORMATION_SERVICE,
    FIRMWARE_REVISION,
    HARDWARE_REVISION,
    MANUFACTURER_NAME,
    MODEL_NUMBER,
    SERIAL_NUMBER,
    logger,
)
from heartrate_le.ble.discovery import characteristics_or_empty
from heartrate_le.ble.errors import BLEErrorHandler
from heartrate_le.ble.gatt import AttributeDescriptor, GattAttributeCache

__all__ = ["DeviceInfo", "DeviceInfoReader"]


@dataclass(frozen=True)
class DeviceInfo:
    """Device metadata; every field keeps its default when it could not be read."""

    device_id: str = ""
    name: str = ""
    firmware: str = ""
    hardware: str = ""
    manufacturer: str = ""
    serial_number: str = ""
    model_number: str = ""
    battery_percent: int = 0


def _find(characteristics: List[AttributeDescriptor], name: str):
    return next((c for c in characteristics if c.name == name), None)


class DeviceInfoReader:
    """Read the Device Information and Battery services of a connected peripheral."""

    def __init__(self, cache: GattAttributeCache, client: Any):
        """
        Parameters:
            cache (GattAttributeCache): Services discovered by the session.
            client: Platform client bound to the connected peripheral.
        """
        self.cache = cache
        self.client = client

    def read(self, device_id: str = "", name: str = "") -> DeviceInfo:
        """
        Read every metadata field independently.

        A missing service, a missing characteristic, or a failed read leaves only that field at
        its default.
        """
        info_characteristics = characteristics_or_empty(
            self.client, self.cache.find_by_name(DEVICE_INFORMATION_SERVICE)
        )
        battery_characteristics = characteristics_or_empty(
            self.client, self.cache.find_by_name(BATTERY_SERVICE)
        )
        return DeviceInfo(
            device_id=device_id or "",
            name=name or "",
            firmware=self._read_string(info_characteristics, FIRMWARE_REVISION),
            hardware=self._read_string(info_characteristics, HARDWARE_REVISION),
            manufacturer=self._read_string(info_characteristics, MANUFACTURER_NAME),
            serial_number=self._read_string(info_characteristics, SERIAL_NUMBER),
            model_number=self._read_string(info_characteristics, MODEL_NUMBER),
            battery_percent=self._read_battery(battery_characteristics),
        )

    def _read_raw(
        self, characteristics: List[AttributeDescriptor], name: str
    ) -> Optional[bytes]:
        characteristic = _find(characteristics, name)
        if characteristic is None:
            logger.debug("Characteristic %s not present; leaving default", name)
            return None
        result = BLEErrorHandler.safe_execute(
            lambda: self.client.read_value(characteristic.native_handle),
            error_msg=f"Error reading {name}",
        )
        if result is None:
            return None
        if not result.is_success:
            logger.debug("Reading %s failed with %s", name, result.status)
            return None
        return result.value

    def _read_string(self, characteristics: List[AttributeDescriptor], name: str) -> str:
        raw = self._read_raw(characteristics, name)
        if not raw:
            return ""
        return raw.decode("utf-8", errors="replace").rstrip("\x00").strip()

    def _read_battery(self, characteristics: List[AttributeDescriptor]) -> int:
        raw = self._read_raw(characteristics, BATTERY_LEVEL)
        if not raw:
            return 0
        return int(raw[0])
