"""Heart rate monitor session: connection state machine, subscription and teardown."""

from threading import Event, RLock, Thread, current_thread
from typing import Any, Callable, List, Optional

from bleak.backends.device import BLEDevice
from bleak.exc import BleakDBusError, BleakError
from pubsub import pub

from heartrate_le.ble.client import BLEClient
from heartrate_le.ble.constants import (
    BLEConfig,
    DISCONNECT_TIMEOUT_SECONDS,
    ERROR_CHARACTERISTIC_NOT_FOUND,
    ERROR_DEVICE_NOT_FOUND,
    ERROR_DEVICE_UNREACHABLE,
    ERROR_NOT_PAIRED,
    ERROR_NOTIFY_UNSUPPORTED,
    ERROR_SERVICE_NOT_FOUND,
    HEART_RATE_MEASUREMENT,
    HEART_RATE_SERVICE,
    HEART_RATE_SERVICE_UUID,
    MALFORMED_NOTIFICATION_THRESHOLD,
    logger,
)
from heartrate_le.ble.decoder import HeartRateReading, decode_heart_rate_measurement
from heartrate_le.ble.device_info import DeviceInfo, DeviceInfoReader
from heartrate_le.ble.discovery import (
    characteristics_or_empty,
    describe_service,
    parse_scan_response,
)
from heartrate_le.ble.errors import BLEError, BLEErrorHandler, ErrorKind, InvalidFrameError
from heartrate_le.ble.events import ConnectionStatus, EventChannel
from heartrate_le.ble.gatt import (
    AttributeDescriptor,
    ClientConfigValue,
    GattAttributeCache,
    GattStatus,
)
from heartrate_le.ble.results import ConnectionFailure, ConnectionResult, ConnectionSuccess
from heartrate_le.ble.state import SessionState, SessionStateManager

__all__ = ["HeartRateMonitor", "STATUS_TOPIC", "READING_TOPIC"]

STATUS_TOPIC = "heartrate.connection.status"
READING_TOPIC = "heartrate.reading"


class HeartRateMonitor:
    """
    GATT client for a single paired heart rate peripheral.

    Drives a connect attempt through device acquisition, uncached service and characteristic
    discovery, and notification setup on the Heart Rate Measurement characteristic, then emits
    decoded readings and connection-status changes until the session is torn down.

    Architecture:
        - SessionStateManager: state machine with the lock guarding every handle mutation
        - GattAttributeCache: services and characteristics discovered on this connection
        - BLEClient: platform GATT primitives on a dedicated asyncio loop thread
        - EventChannel: status and reading observers, delivered on the publishing thread
        - DeviceInfoReader: best-effort device metadata

    Connect and disconnect are serialized; connect-sequence failures come back as a
    ConnectionFailure rather than an exception.
    """

    BLEError = BLEError

    def __init__(
        self,
        *,
        client_factory: Optional[Callable[..., Any]] = None,
        executor: Optional[Any] = None,
        connect_timeout: Optional[float] = BLEConfig.CONNECTION_TIMEOUT,
        gatt_timeout: Optional[float] = BLEConfig.GATT_IO_TIMEOUT,
    ) -> None:
        """
        Create an idle monitor.

        Parameters:
            client_factory (Optional[Callable[..., Any]]): Builds the platform client for each connect
                attempt; called with the timeout keyword arguments. Defaults to BLEClient.
            executor (Optional[Any]): Object exposing ``queueWork(callable)`` used to deliver events;
                defaults to the package publishing thread.
            connect_timeout (Optional[float]): Seconds allowed for connect plus service discovery.
            gatt_timeout (Optional[float]): Seconds allowed for each characteristic read or disconnect.
        """
        self._state_manager = SessionStateManager()
        self._state_lock = self._state_manager.lock
        # Serializes whole connect/disconnect operations; never taken on the BLE loop thread
        self._operation_lock = RLock()
        self.error_handler = BLEErrorHandler()
        self._client_factory = client_factory or BLEClient
        self.connect_timeout = connect_timeout
        self.gatt_timeout = gatt_timeout

        self.cache = GattAttributeCache()
        self.status_events: EventChannel[ConnectionStatus] = EventChannel(
            "connection-status", executor
        )
        self.reading_events: EventChannel[HeartRateReading] = EventChannel(
            "rate-reading", executor
        )

        self.client: Optional[Any] = None
        self.identifier: Optional[str] = None
        self.device_name: Optional[str] = None
        self._heart_rate_service: Optional[AttributeDescriptor] = None
        self._measurement: Optional[AttributeDescriptor] = None
        self._subscribed = False
        self._notifications_armed = False
        self._disconnect_notified = True
        self._malformed_notification_count = 0
        self._closed = False

    def __repr__(self):
        return f"HeartRateMonitor(identifier={self.identifier!r}, state={self.state.value})"

    @property
    def state(self) -> SessionState:
        return self._state_manager.state

    @property
    def is_connected(self) -> bool:
        """
        Report whether the session is subscribed and the peripheral is connected.

        Returns:
            bool: True only while subscribed to a peripheral the platform reports as connected.
        """
        with self._state_lock:
            client = self.client
            subscribed = self._state_manager.is_subscribed
        return subscribed and client is not None and client.is_connected()

    @staticmethod
    def scan(client_factory: Optional[Callable[..., Any]] = None) -> List[BLEDevice]:
        """
        Scan for BLE devices advertising the Heart Rate service.

        Returns:
            List[BLEDevice]: Matching devices; empty if none are found or the scan fails.
        """
        factory = client_factory or BLEClient
        with factory() as client:
            logger.debug(
                "Scanning for BLE devices (takes %.0f seconds)...",
                BLEConfig.BLE_SCAN_TIMEOUT,
            )
            try:
                response = client.discover(
                    timeout=BLEConfig.BLE_SCAN_TIMEOUT,
                    return_adv=True,
                    service_uuids=[HEART_RATE_SERVICE_UUID],
                )
                return parse_scan_response(response)
            except (BleakError, BleakDBusError, BLEError, RuntimeError) as e:
                logger.warning("Device scan failed: %s", e, exc_info=True)
                return []

    def connect(self, identifier: str) -> ConnectionResult:
        """
        Connect to a paired heart rate peripheral and subscribe to its measurements.

        An active session is torn down first, so at most one peripheral is ever held.

        Parameters:
            identifier (str): Device identifier produced by the pairing/discovery step.

        Returns:
            ConnectionResult: ConnectionSuccess with the device name, or ConnectionFailure with
            the reason. On failure the monitor is idle and the attribute cache is empty.
        """
        with self._operation_lock:
            if not self._is_torn_down():
                logger.debug("connect called with an active session; tearing it down first")
                self._teardown(notify=True)

            logger.info("Attempting to connect to %s", identifier)
            try:
                failure = self._establish(identifier)
            except Exception:
                # Release partial state before propagating
                self._teardown(notify=False)
                raise
            if failure is not None:
                logger.info(
                    "Connection to %s failed (%s): %s",
                    identifier,
                    failure.kind.value,
                    failure.error_message,
                )
                self._teardown(notify=False)
                return failure

            name = self.device_name or identifier
            logger.info("Connection successful to %s", name)
            return ConnectionSuccess(name=name)

    def disconnect(self) -> None:
        """
        Unsubscribe, release the peripheral and emit a disconnected status event.

        Calling this while already idle does nothing.
        """
        with self._operation_lock:
            if self._is_torn_down():
                logger.debug("disconnect called on idle monitor; ignoring")
                return
            logger.info("Disconnecting from %s", self.identifier)
            self._teardown(notify=True)

    def get_device_info(self) -> DeviceInfo:
        """
        Read device information and battery level from the connected peripheral.

        Returns:
            DeviceInfo: Fields that could be read; a default DeviceInfo without any platform
            I/O when not connected.
        """
        with self._state_lock:
            client = self.client
            subscribed = self._state_manager.is_subscribed
            identifier = self.identifier
            name = self.device_name
        if not subscribed or client is None or not client.is_connected():
            return DeviceInfo()
        return DeviceInfoReader(self.cache, client).read(
            device_id=identifier or "", name=name or ""
        )

    def close(self) -> None:
        """
        Disconnect if needed, wait briefly for queued events to be delivered, then drop all observers.

        Calling close() more than once is a no-op.
        """
        with self._state_lock:
            if self._closed:
                logger.debug("HeartRateMonitor.close called on closed monitor; ignoring")
                return
            self._closed = True
        self.disconnect()
        self._wait_for_pending_events()
        self.status_events.clear()
        self.reading_events.clear()

    def __enter__(self):
        return self

    def __exit__(self, _type, _value, _traceback):
        self.close()

    def _establish(self, identifier: str) -> Optional[ConnectionFailure]:
        client = self._client_factory(
            connect_timeout=self.connect_timeout,
            gatt_timeout=self.gatt_timeout,
            notify_timeout=BLEConfig.NOTIFICATION_START_TIMEOUT,
        )
        with self._state_lock:
            self.client = client
            self.identifier = identifier
            self._closed = False

        device = client.resolve_device(identifier)
        if device is None:
            return ConnectionFailure(ErrorKind.DEVICE_NOT_FOUND, ERROR_DEVICE_NOT_FOUND)
        if not client.is_paired(device):
            return ConnectionFailure(ErrorKind.NOT_PAIRED, ERROR_NOT_PAIRED)
        with self._state_lock:
            self.device_name = getattr(device, "name", None)
            self._state_manager.transition_to(SessionState.DEVICE_ACQUIRED)

        # Watch the link before any GATT I/O so drops during discovery are seen
        client.add_connection_watcher(self._on_connection_lost)
        with self._state_lock:
            self._disconnect_notified = False

        services = client.discover_services()
        if not services.is_success:
            return ConnectionFailure(
                ErrorKind.DEVICE_UNREACHABLE, ERROR_DEVICE_UNREACHABLE
            )
        with self._state_lock:
            self.cache.clear()
            for service in services.value or []:
                self.cache.insert(describe_service(service))
            self._state_manager.transition_to(SessionState.SERVICES_DISCOVERED)
        logger.debug("Discovered services: %s", ", ".join(self.cache.names()))

        heart_rate_service = self.cache.find_by_name(HEART_RATE_SERVICE)
        if heart_rate_service is None:
            return ConnectionFailure(ErrorKind.SERVICE_NOT_FOUND, ERROR_SERVICE_NOT_FOUND)
        characteristics = characteristics_or_empty(client, heart_rate_service)
        measurement = next(
            (c for c in characteristics if c.name == HEART_RATE_MEASUREMENT), None
        )
        if measurement is None:
            return ConnectionFailure(
                ErrorKind.CHARACTERISTIC_NOT_FOUND, ERROR_CHARACTERISTIC_NOT_FOUND
            )
        with self._state_lock:
            for characteristic in characteristics:
                self.cache.insert(characteristic)
            self._heart_rate_service = heart_rate_service
            self._measurement = measurement
            self._state_manager.transition_to(SessionState.CHARACTERISTIC_READY)

        return self._enable_notifications(client, measurement)

    def _enable_notifications(
        self, client: Any, measurement: AttributeDescriptor
    ) -> Optional[ConnectionFailure]:
        descriptors = client.discover_descriptors(measurement.native_handle)
        if not descriptors.is_success:
            return ConnectionFailure(
                ErrorKind.SUBSCRIPTION_FAILED, str(descriptors.status)
            )

        properties = getattr(measurement.native_handle, "properties", None) or []
        if "notify" not in properties:
            return ConnectionFailure(
                ErrorKind.NOTIFY_UNSUPPORTED, ERROR_NOTIFY_UNSUPPORTED
            )

        status = client.write_client_config(
            measurement.native_handle,
            ClientConfigValue.NOTIFY,
            self._on_measurement_notification,
        )
        if status != GattStatus.SUCCESS:
            return ConnectionFailure(ErrorKind.SUBSCRIPTION_FAILED, str(status))

        with self._state_lock:
            if self._disconnect_notified:
                # The link dropped while the subscription was being written
                return ConnectionFailure(
                    ErrorKind.DEVICE_UNREACHABLE, ERROR_DEVICE_UNREACHABLE
                )
            self._subscribed = True
            self._malformed_notification_count = 0
            self._state_manager.transition_to(SessionState.SUBSCRIBED)
            # The initial status is queued before readings are armed so it is always delivered first
            self._emit_status(ConnectionStatus(client.is_connected(), self.device_name))
            self._notifications_armed = True
        return None

    def _teardown(self, notify: bool) -> None:
        """
        Release every resource held by the current session and return to IDLE.

        The unsubscribe write is best effort; release order is characteristic, service, device.
        Must be called with the operation lock held.
        """
        with self._state_lock:
            client = self.client
            subscribed = self._subscribed
            measurement = self._measurement
            name = self.device_name
            self._notifications_armed = False
            if self._state_manager.state != SessionState.IDLE:
                self._state_manager.transition_to(SessionState.DISCONNECTING)

        if client is not None:
            if subscribed and measurement is not None:
                status = self.error_handler.safe_execute(
                    lambda: client.write_client_config(
                        measurement.native_handle, ClientConfigValue.NONE
                    ),
                    default_return=GattStatus.PROTOCOL_ERROR,
                    error_msg="Error disabling heart rate notifications",
                )
                if status != GattStatus.SUCCESS:
                    logger.warning(
                        "Disabling notifications on %s failed (%s); continuing teardown",
                        measurement.name,
                        status,
                    )

            with self._state_lock:
                self._subscribed = False
                self._measurement = None
                self._heart_rate_service = None

            client.remove_connection_watcher(self._on_connection_lost)
            if client.is_connected():
                self.error_handler.safe_cleanup(
                    lambda: client.disconnect(await_timeout=DISCONNECT_TIMEOUT_SECONDS),
                    "device disconnect",
                )
            self.error_handler.safe_cleanup(client.release, "client release")
            self.error_handler.safe_cleanup(client.close, "client close")

        with self._state_lock:
            self.cache.clear()
            self.client = None
            self.identifier = None
            self.device_name = None
            if self._state_manager.state != SessionState.IDLE:
                self._state_manager.transition_to(SessionState.IDLE)
            emit = notify and not self._disconnect_notified
            self._disconnect_notified = True
        if emit:
            self._emit_status(ConnectionStatus(False, name))

    def _is_torn_down(self) -> bool:
        with self._state_lock:
            return self._state_manager.is_idle and self.client is None

    def _on_connection_lost(self, client: Any) -> None:
        """
        Handle a platform-reported disconnect; runs on the BLE event loop thread.

        Emits one disconnected status event and schedules teardown on a separate thread,
        since teardown stops the very loop this callback runs on.
        """
        with self._state_lock:
            if client is not self.client:
                logger.debug("Ignoring disconnect from stale client")
                return
            if self._state_manager.state in (SessionState.IDLE, SessionState.DISCONNECTING):
                logger.debug("Ignoring disconnect during teardown")
                return
            self._notifications_armed = False
            notify = not self._disconnect_notified
            self._disconnect_notified = True
            name = self.device_name
            identifier = self.identifier

        logger.warning("Connection to %s lost", name or identifier)
        if notify:
            self._emit_status(ConnectionStatus(False, name))
        Thread(
            target=self._teardown_after_loss,
            args=(client,),
            name="HeartRateTeardown",
            daemon=True,
        ).start()

    def _teardown_after_loss(self, client: Any) -> None:
        with self._operation_lock:
            if self.client is not client:
                return
            self._teardown(notify=True)

    def _on_measurement_notification(self, _sender: Any, data: bytearray) -> None:
        """
        Decode a Heart Rate Measurement notification and emit the reading.

        Malformed frames are dropped and counted; they never end the subscription.
        """
        with self._state_lock:
            if not self._notifications_armed:
                logger.debug("Dropping notification received outside an active subscription")
                return
        try:
            reading = decode_heart_rate_measurement(data)
        except InvalidFrameError as e:
            self._handle_malformed_frame(f"Dropping malformed heart rate frame: {e}")
            return
        self._malformed_notification_count = 0
        self._emit_reading(reading)

    def _handle_malformed_frame(self, reason: str) -> None:
        self._malformed_notification_count += 1
        logger.debug("%s", reason)
        if self._malformed_notification_count >= MALFORMED_NOTIFICATION_THRESHOLD:
            logger.warning(
                "Received %d malformed heart rate notifications. Check BLE connection stability.",
                self._malformed_notification_count,
            )
            self._malformed_notification_count = 0

    def _emit_status(self, status: ConnectionStatus) -> None:
        logger.debug("Connection status: connected=%s", status.is_connected)
        self.status_events.emit(status)
        self.status_events.executor.queueWork(
            lambda: self.error_handler.safe_execute(
                lambda: pub.sendMessage(
                    STATUS_TOPIC,
                    monitor=self,
                    connected=status.is_connected,
                    name=status.name,
                ),
                error_msg=f"Error publishing {STATUS_TOPIC}",
            )
        )

    def _emit_reading(self, reading: HeartRateReading) -> None:
        self.reading_events.emit(reading)
        self.reading_events.executor.queueWork(
            lambda: self.error_handler.safe_execute(
                lambda: pub.sendMessage(READING_TOPIC, monitor=self, reading=reading),
                error_msg=f"Error publishing {READING_TOPIC}",
            )
        )

    def _wait_for_pending_events(self, timeout: Optional[float] = None) -> None:
        if timeout is None:
            timeout = BLEConfig.PUBLISH_FLUSH_TIMEOUT
        executor = self.status_events.executor
        if current_thread() is getattr(executor, "thread", None):
            # The flush would be queued behind the handler that is running now
            logger.debug("Event flush requested from the publishing thread; not waiting")
            return
        flush_event = Event()
        self.error_handler.safe_execute(
            lambda: executor.queueWork(flush_event.set),
            error_msg="Error queueing event flush",
        )
        if not flush_event.wait(timeout=timeout):
            logger.debug("Timed out waiting for event queue flush")
