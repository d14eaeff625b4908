"""GATT discovery boundary and heart rate device scanning."""

from typing import Any, List, Optional

from bleak.backends.device import BLEDevice

from heartrate_le.ble.constants import HEART_RATE_SERVICE_UUID, logger
from heartrate_le.ble.gatt import (
    AttributeDescriptor,
    AttributeKind,
    GattResult,
    attribute_name,
)

__all__ = [
    "characteristics_or_empty",
    "describe_characteristic",
    "describe_service",
    "parse_scan_response",
    "results_or_empty",
]


def results_or_empty(result: GattResult[List[Any]], label: str) -> List[Any]:
    """
    Convert a failed discovery result into an empty collection.

    This is the one place where discovery failures stop being failures: callers see "no
    attributes found" and the state machine reports a missing service or characteristic
    instead of a transport error.

    Parameters:
        result (GattResult[List[Any]]): Outcome of a platform enumeration.
        label (str): What was being enumerated, for the log message.

    Returns:
        List[Any]: The enumerated items, or an empty list if enumeration failed.
    """
    if result.is_success:
        return list(result.value or [])
    logger.debug(
        "Enumerating %s failed with %s%s; treating as empty",
        label,
        result.status,
        f" ({result.detail})" if result.detail else "",
    )
    return []


def describe_service(service: Any) -> AttributeDescriptor:
    uuid = str(getattr(service, "uuid", ""))
    return AttributeDescriptor(
        name=attribute_name(
            uuid, AttributeKind.SERVICE, getattr(service, "description", None)
        ),
        kind=AttributeKind.SERVICE,
        uuid=uuid,
        native_handle=service,
    )


def describe_characteristic(characteristic: Any) -> AttributeDescriptor:
    uuid = str(getattr(characteristic, "uuid", ""))
    return AttributeDescriptor(
        name=attribute_name(
            uuid,
            AttributeKind.CHARACTERISTIC,
            getattr(characteristic, "description", None),
        ),
        kind=AttributeKind.CHARACTERISTIC,
        uuid=uuid,
        native_handle=characteristic,
    )


def characteristics_or_empty(
    client: Any, service: Optional[AttributeDescriptor]
) -> List[AttributeDescriptor]:
    """
    Enumerate a cached service's characteristics, uncached, as attribute descriptors.

    A missing service or a failed enumeration yields an empty list.
    """
    if service is None:
        return []
    characteristics = results_or_empty(
        client.discover_characteristics(service.native_handle),
        f"characteristics of {service.name}",
    )
    return [describe_characteristic(c) for c in characteristics]


def parse_scan_response(response: Any) -> List[BLEDevice]:
    """
    Convert a BleakScanner.discover(return_adv=True) response into the devices advertising the Heart Rate service.
    """
    devices: List[BLEDevice] = []
    if response is None:
        logger.warning("BleakScanner.discover returned None")
        return devices
    if not isinstance(response, dict):
        logger.warning(
            "BleakScanner.discover returned unexpected type: %s",
            type(response),
        )
        return devices
    for _, value in response.items():
        if isinstance(value, tuple):
            device, adv = value
        else:
            logger.warning(
                "Unexpected return type from BleakScanner.discover: %s",
                type(value),
            )
            continue
        suuids = [str(uuid).lower() for uuid in getattr(adv, "service_uuids", None) or []]
        if HEART_RATE_SERVICE_UUID in suuids:
            devices.append(device)
    return devices
