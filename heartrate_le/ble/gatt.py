"""GATT attribute naming, the discovered-attribute cache, and platform result types."""

from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any, Generic, List, Optional, TypeVar

from heartrate_le.ble.constants import (
    BLUETOOTH_BASE_UUID_SUFFIX,
    CHARACTERISTIC_NAMES,
    SERVICE_NAMES,
    logger,
)

__all__ = [
    "AttributeDescriptor",
    "AttributeKind",
    "ClientConfigValue",
    "GattAttributeCache",
    "GattResult",
    "GattStatus",
    "attribute_name",
    "short_uuid",
]

T = TypeVar("T")


class AttributeKind(Enum):
    """Kinds of GATT object the cache indexes."""

    SERVICE = "service"
    CHARACTERISTIC = "characteristic"


class GattStatus(Enum):
    """Communication status reported for a platform GATT operation."""

    SUCCESS = "Success"
    UNREACHABLE = "Unreachable"
    PROTOCOL_ERROR = "ProtocolError"
    ACCESS_DENIED = "AccessDenied"

    def __str__(self) -> str:
        return self.value


class ClientConfigValue(Enum):
    """Values written to the client characteristic configuration descriptor."""

    NONE = 0x0000
    NOTIFY = 0x0001


@dataclass(frozen=True)
class GattResult(Generic[T]):
    """Outcome of a platform GATT operation: a status plus the value on success."""

    status: GattStatus
    value: Optional[T] = None
    detail: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == GattStatus.SUCCESS

    @classmethod
    def success(cls, value: T) -> "GattResult[T]":
        return cls(GattStatus.SUCCESS, value)

    @classmethod
    def failure(cls, status: GattStatus, detail: str = "") -> "GattResult[T]":
        return cls(status, None, detail)


@dataclass(frozen=True)
class AttributeDescriptor:
    """One discovered GATT service or characteristic."""

    name: str
    kind: AttributeKind
    uuid: str
    native_handle: Any = field(default=None, compare=False, repr=False)


def short_uuid(uuid: Optional[str]) -> Optional[int]:
    """
    Return the 16-bit assigned number of a UUID built on the Bluetooth base UUID.

    Parameters:
        uuid (Optional[str]): A 16-bit ("180d") or 128-bit UUID string.

    Returns:
        Optional[int]: The assigned number, or None for vendor-specific or malformed UUIDs.
    """
    if not uuid:
        return None
    normalized = uuid.strip().lower()
    try:
        if len(normalized) == 4:
            return int(normalized, 16)
        if (
            len(normalized) == 36
            and normalized.startswith("0000")
            and normalized.endswith(BLUETOOTH_BASE_UUID_SUFFIX)
        ):
            return int(normalized[4:8], 16)
    except ValueError:
        return None
    return None


def attribute_name(
    uuid: str, kind: AttributeKind, description: Optional[str] = None
) -> str:
    """
    Resolve the human-readable cache key for a GATT attribute.

    Assigned numbers map to fixed names ("HeartRate", "HeartRateMeasurement", ...). Other
    attributes fall back to the platform description with whitespace removed, and finally to
    the UUID itself.
    """
    table = SERVICE_NAMES if kind == AttributeKind.SERVICE else CHARACTERISTIC_NAMES
    assigned = short_uuid(uuid)
    if assigned is not None and assigned in table:
        return table[assigned]
    if description and description.strip().lower() not in ("unknown", ""):
        return "".join(description.split())
    return uuid


class GattAttributeCache:
    """
    In-memory index of discovered GATT attributes keyed by name.

    Lookups return the first attribute inserted under a name; peripherals may expose duplicate
    names and the earliest discovered wins.
    """

    def __init__(self):
        self._attributes: List[AttributeDescriptor] = []
        self._lock = RLock()

    def insert(self, attribute: AttributeDescriptor) -> None:
        with self._lock:
            self._attributes.append(attribute)

    def find_by_name(self, name: str) -> Optional[AttributeDescriptor]:
        with self._lock:
            for attribute in self._attributes:
                if attribute.name == name:
                    return attribute
        return None

    def clear(self) -> None:
        with self._lock:
            if self._attributes:
                logger.debug("Clearing %d cached GATT attributes", len(self._attributes))
            self._attributes.clear()

    def names(self) -> List[str]:
        """Names of all cached attributes in discovery order."""
        with self._lock:
            return [attribute.name for attribute in self._attributes]

    def __len__(self) -> int:
        with self._lock:
            return len(self._attributes)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.find_by_name(name) is not None
