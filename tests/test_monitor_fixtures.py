"""Common fakes and helpers for heart rate monitor tests."""

import threading
import time
from types import SimpleNamespace
from typing import Dict, List, Optional, Union

from heartrate_le.ble.constants import (
    BLUETOOTH_BASE_UUID_SUFFIX,
    CLIENT_CHARACTERISTIC_CONFIG_UUID,
)
from heartrate_le.ble.gatt import ClientConfigValue, GattResult, GattStatus


def full_uuid(short: int) -> str:
    """Expand a 16-bit assigned number onto the Bluetooth base UUID."""
    return f"{short:08x}{BLUETOOTH_BASE_UUID_SUFFIX}"


def make_characteristic(
    short: int,
    properties=("read",),
    descriptors: Optional[List[SimpleNamespace]] = None,
    description: Optional[str] = None,
) -> SimpleNamespace:
    """Build a fake bleak characteristic with the given assigned number."""
    if descriptors is None:
        descriptors = [SimpleNamespace(uuid=CLIENT_CHARACTERISTIC_CONFIG_UUID)]
    return SimpleNamespace(
        uuid=full_uuid(short),
        description=description or "Unknown",
        properties=list(properties),
        descriptors=descriptors,
    )


def make_service(
    short: int, characteristics: List[SimpleNamespace], description: Optional[str] = None
) -> SimpleNamespace:
    """Build a fake bleak service holding the given characteristics."""
    return SimpleNamespace(
        uuid=full_uuid(short),
        description=description or "Unknown",
        characteristics=characteristics,
    )


def heart_rate_services(measurement_properties=("notify",)) -> List[SimpleNamespace]:
    """
    Services of a typical chest strap: Generic Access, Heart Rate, Device Information and Battery.
    """
    return [
        make_service(0x1800, [make_characteristic(0x2A00)]),
        make_service(
            0x180D,
            [
                make_characteristic(0x2A37, properties=measurement_properties),
                make_characteristic(0x2A38),
            ],
        ),
        make_service(
            0x180A,
            [
                make_characteristic(0x2A29),
                make_characteristic(0x2A24),
                make_characteristic(0x2A25),
                make_characteristic(0x2A26),
                make_characteristic(0x2A27),
            ],
        ),
        make_service(0x180F, [make_characteristic(0x2A19)]),
    ]


class SyncExecutor:
    """Executor whose queueWork runs each callable immediately on the calling thread."""

    def __init__(self):
        self.queued = 0

    def queueWork(self, runnable):
        self.queued += 1
        runnable()


class FakePlatformClient:
    """
    In-memory stand-in for BLEClient.

    Each GATT primitive records a call and returns the status configured on the instance, so
    tests can steer the connect sequence into every failure branch.
    """

    def __init__(self, services=None, device=None, paired=True, **kwargs):
        self.kwargs = kwargs
        self.services = heart_rate_services() if services is None else services
        self.device = (
            SimpleNamespace(address="AA:BB", name="Polar H10")
            if device is None
            else device
        )
        self.paired = paired
        self.connected = False
        self.service_status = GattStatus.SUCCESS
        self.characteristic_status = GattStatus.SUCCESS
        self.descriptor_status = GattStatus.SUCCESS
        self.subscribe_status = GattStatus.SUCCESS
        self.unsubscribe_status = GattStatus.SUCCESS
        self.read_values: Dict[str, Union[bytes, GattStatus, Exception]] = {}
        self.watchers: List = []
        self.callback = None
        self.calls: List[tuple] = []
        self.released = False
        self.closed = False
        # Set discovery_gate to hold discover_services until the test releases it
        self.discovery_gate: Optional[threading.Event] = None
        self.discovery_started = threading.Event()

    @property
    def name(self):
        return getattr(self.device, "name", None)

    def resolve_device(self, identifier):
        self.calls.append(("resolve_device", identifier))
        return self.device or None

    def is_paired(self, device):
        self.calls.append(("is_paired", device))
        return self.paired

    def add_connection_watcher(self, watcher):
        if watcher not in self.watchers:
            self.watchers.append(watcher)

    def remove_connection_watcher(self, watcher):
        if watcher in self.watchers:
            self.watchers.remove(watcher)

    def discover_services(self):
        self.calls.append(("discover_services",))
        self.discovery_started.set()
        if self.discovery_gate is not None:
            self.discovery_gate.wait(5.0)
        if self.service_status != GattStatus.SUCCESS:
            return GattResult.failure(self.service_status)
        self.connected = True
        return GattResult.success(list(self.services))

    def discover_characteristics(self, service):
        self.calls.append(("discover_characteristics", service.uuid))
        if not self.connected:
            return GattResult.failure(GattStatus.UNREACHABLE)
        if self.characteristic_status != GattStatus.SUCCESS:
            return GattResult.failure(self.characteristic_status)
        return GattResult.success(list(service.characteristics))

    def discover_descriptors(self, characteristic):
        self.calls.append(("discover_descriptors", characteristic.uuid))
        if self.descriptor_status != GattStatus.SUCCESS:
            return GattResult.failure(self.descriptor_status)
        return GattResult.success(list(characteristic.descriptors))

    def write_client_config(self, characteristic, value, callback=None):
        self.calls.append(("write_client_config", value))
        if value == ClientConfigValue.NOTIFY:
            if self.subscribe_status == GattStatus.SUCCESS:
                self.callback = callback
            return self.subscribe_status
        if self.unsubscribe_status == GattStatus.SUCCESS:
            self.callback = None
        return self.unsubscribe_status

    def read_value(self, characteristic):
        self.calls.append(("read_value", characteristic.uuid))
        value = self.read_values.get(characteristic.uuid)
        if value is None:
            return GattResult.failure(GattStatus.PROTOCOL_ERROR)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, GattStatus):
            return GattResult.failure(value)
        return GattResult.success(value)

    def is_connected(self):
        return self.connected

    def disconnect(self, *, await_timeout=None):
        self.calls.append(("disconnect", await_timeout))
        self.connected = False

    def release(self):
        self.calls.append(("release",))
        self.released = True
        self.watchers.clear()

    def close(self):
        self.calls.append(("close",))
        self.closed = True

    def notify(self, data):
        """Deliver a notification the way bleak does: (sender, bytearray)."""
        self.callback(None, bytearray(data))

    def drop_connection(self):
        """Simulate the peripheral going out of range."""
        self.connected = False
        for watcher in list(self.watchers):
            watcher(self)

    def call_names(self):
        return [call[0] for call in self.calls]


def wait_for(predicate, timeout: float = 2.0) -> bool:
    """Poll a predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()

