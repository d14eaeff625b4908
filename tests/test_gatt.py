"""Tests for GATT attribute naming, results and the attribute cache."""

import logging

import pytest

from heartrate_le.ble.gatt import (
    AttributeDescriptor,
    AttributeKind,
    GattAttributeCache,
    GattResult,
    GattStatus,
    attribute_name,
    short_uuid,
)


def _service(name, uuid="0000180d-0000-1000-8000-00805f9b34fb", handle=None):
    return AttributeDescriptor(name, AttributeKind.SERVICE, uuid, handle)


class TestAttributeNames:
    """Resolution of cache keys from UUIDs."""

    @pytest.mark.parametrize(
        "uuid, expected",
        [
            ("0000180d-0000-1000-8000-00805f9b34fb", 0x180D),
            ("0000180D-0000-1000-8000-00805F9B34FB", 0x180D),
            ("2a37", 0x2A37),
            ("6e400001-b5a3-f393-e0a9-e50e24dcca9e", None),
            ("", None),
            ("zzzz", None),
        ],
    )
    def test_short_uuid(self, uuid, expected):
        assert short_uuid(uuid) == expected

    def test_assigned_service_names(self):
        """Test that standard services resolve to their fixed names."""
        assert attribute_name("0000180d-0000-1000-8000-00805f9b34fb", AttributeKind.SERVICE) == "HeartRate"
        assert attribute_name("0000180a-0000-1000-8000-00805f9b34fb", AttributeKind.SERVICE) == "DeviceInformation"
        assert attribute_name("0000180f-0000-1000-8000-00805f9b34fb", AttributeKind.SERVICE) == "Battery"

    def test_assigned_characteristic_names(self):
        assert (
            attribute_name("00002a37-0000-1000-8000-00805f9b34fb", AttributeKind.CHARACTERISTIC)
            == "HeartRateMeasurement"
        )
        assert (
            attribute_name("00002a26-0000-1000-8000-00805f9b34fb", AttributeKind.CHARACTERISTIC)
            == "FirmwareRevisionString"
        )

    def test_kind_selects_table(self):
        """Test that a characteristic number is not looked up in the service table."""
        uuid = "00002a37-0000-1000-8000-00805f9b34fb"
        assert attribute_name(uuid, AttributeKind.SERVICE) == uuid

    def test_description_fallback(self):
        """Test that unknown attributes fall back to the platform description, then the UUID."""
        uuid = "6e400001-b5a3-f393-e0a9-e50e24dcca9e"
        assert attribute_name(uuid, AttributeKind.SERVICE, "Nordic UART Service") == "NordicUARTService"
        assert attribute_name(uuid, AttributeKind.SERVICE, "Unknown") == uuid
        assert attribute_name(uuid, AttributeKind.SERVICE) == uuid


class TestGattResult:
    """GattResult constructors."""

    def test_success(self):
        result = GattResult.success([1, 2])
        assert result.is_success
        assert result.value == [1, 2]

    def test_failure(self):
        result = GattResult.failure(GattStatus.UNREACHABLE, "gone")
        assert not result.is_success
        assert result.value is None
        assert result.detail == "gone"

    def test_status_string(self):
        """Test that statuses render as their platform names."""
        assert str(GattStatus.PROTOCOL_ERROR) == "ProtocolError"
        assert str(GattStatus.ACCESS_DENIED) == "AccessDenied"


class TestGattAttributeCache:
    """Test cases for GattAttributeCache."""

    def test_find_by_name(self):
        cache = GattAttributeCache()
        service = _service("HeartRate")
        cache.insert(service)

        assert cache.find_by_name("HeartRate") is service
        assert "HeartRate" in cache
        assert cache.find_by_name("Battery") is None

    def test_duplicate_names_resolve_to_first(self):
        """Test that the earliest inserted attribute wins on duplicate names."""
        cache = GattAttributeCache()
        first = _service("HeartRate", handle=object())
        second = _service("HeartRate", handle=object())
        cache.insert(first)
        cache.insert(second)

        assert cache.find_by_name("HeartRate").native_handle is first.native_handle
        assert len(cache) == 2

    def test_exact_match_only(self):
        cache = GattAttributeCache()
        cache.insert(_service("HeartRate"))

        assert cache.find_by_name("heartrate") is None
        assert cache.find_by_name("Heart") is None

    def test_clear(self, caplog):
        """Test that clear empties the cache and logs the count."""
        cache = GattAttributeCache()
        cache.insert(_service("HeartRate"))
        cache.insert(_service("Battery"))

        with caplog.at_level(logging.DEBUG, logger="heartrate_le.ble"):
            cache.clear()

        assert len(cache) == 0
        assert cache.names() == []
        assert "Clearing 2 cached GATT attributes" in caplog.text

    def test_names_in_discovery_order(self):
        cache = GattAttributeCache()
        for name in ("GenericAccess", "HeartRate", "Battery"):
            cache.insert(_service(name))
        assert cache.names() == ["GenericAccess", "HeartRate", "Battery"]

    def test_native_handle_not_compared(self):
        """Test that descriptors compare on name, kind and UUID only."""
        assert _service("HeartRate", handle=object()) == _service("HeartRate", handle=object())
