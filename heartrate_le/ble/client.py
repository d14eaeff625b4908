"""BLE client management and async operations."""

import asyncio
from concurrent.futures import TimeoutError as FutureTimeoutError
from threading import RLock, Thread
from typing import Any, Callable, List, Optional, Type

from bleak import BleakClient as BleakRootClient
from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from heartrate_le.ble.constants import (
    BLEConfig,
    CLIENT_ERROR_ASYNC_TIMEOUT,
    ERROR_CLIENT_NOT_BOUND,
    logger,
)
from heartrate_le.ble.errors import BLEError, BLEErrorHandler
from heartrate_le.ble.gatt import ClientConfigValue, GattResult, GattStatus

__all__ = ["BLEClient"]

# BlueZ exposes the device's pairing relationship through these properties
_PAIRING_PROPERTIES = ("Paired", "Bonded", "Trusted")


class BLEClient:
    """
    Client wrapper exposing the GATT primitives a heart rate session needs.

    This class provides a synchronous interface to Bleak's async operations by running
    an internal event loop in a dedicated thread. Every GATT primitive reports its outcome
    as a GattStatus or GattResult instead of raising transport exceptions, so callers
    decide explicitly how each failure is handled.
    """

    BLEError: Type[BLEError] = BLEError

    def __init__(
        self,
        *,
        scan_timeout: float = BLEConfig.BLE_SCAN_TIMEOUT,
        connect_timeout: Optional[float] = BLEConfig.CONNECTION_TIMEOUT,
        gatt_timeout: Optional[float] = BLEConfig.GATT_IO_TIMEOUT,
        notify_timeout: Optional[float] = BLEConfig.NOTIFICATION_START_TIMEOUT,
        **kwargs,
    ) -> None:
        """
        Initialize the BLEClient and start its background event loop thread.

        Parameters:
            scan_timeout (float): Seconds allowed for scanning and device resolution.
            connect_timeout (Optional[float]): Seconds allowed for connect plus service discovery; None waits indefinitely.
            gatt_timeout (Optional[float]): Seconds allowed for each characteristic read or disconnect.
            notify_timeout (Optional[float]): Seconds allowed for each client characteristic configuration write.
            **kwargs: Forwarded to the underlying Bleak client constructor once a device is bound.
        """
        self.error_handler = BLEErrorHandler()
        self.scan_timeout = scan_timeout
        self.connect_timeout = connect_timeout
        self.gatt_timeout = gatt_timeout
        self.notify_timeout = notify_timeout

        self.device: Optional[BLEDevice] = None
        self.bleak_client: Optional[BleakRootClient] = None
        self._bleak_kwargs = kwargs
        self._watchers: List[Callable[["BLEClient"], None]] = []
        self._watcher_lock = RLock()

        # Create dedicated event loop for this client instance
        self._eventLoop = asyncio.new_event_loop()
        self._eventThread = Thread(
            target=self._run_event_loop, name="BLEClient", daemon=True
        )
        try:
            self._eventThread.start()
        except RuntimeError:
            self._eventLoop.close()
            raise

    @property
    def address(self) -> Optional[str]:
        return getattr(self.device, "address", None)

    @property
    def name(self) -> Optional[str]:
        return getattr(self.device, "name", None)

    def discover(self, **kwargs):
        """
        Discover nearby BLE devices.

        Keyword arguments are forwarded to BleakScanner.discover (for example, `timeout`,
        `return_adv` or `service_uuids`).
        """
        return self.async_await(BleakScanner.discover(**kwargs))

    def resolve_device(self, identifier: str) -> Optional[BLEDevice]:
        """
        Resolve a device identifier to a platform device and bind this client to it.

        Parameters:
            identifier (str): Address (or platform UUID on macOS) of the peripheral.

        Returns:
            Optional[BLEDevice]: The resolved device, or None if the platform cannot find it.
        """
        try:
            device = self.async_await(
                BleakScanner.find_device_by_address(
                    identifier, timeout=self.scan_timeout
                )
            )
        except (BleakError, BLEError, OSError) as e:
            logger.debug("Resolving %s failed: %s", identifier, e)
            return None
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error resolving %s", identifier)
            return None
        if device is None:
            return None
        self._bind(device)
        return device

    @staticmethod
    def pairing_state(device: Any) -> Optional[bool]:
        """
        Read the pairing relationship the platform reports for a device.

        Returns:
            Optional[bool]: True or False when the backend reports it, None when it does not.
        """
        details = getattr(device, "details", None)
        if not isinstance(details, dict):
            return None
        props = details.get("props", details)
        if not isinstance(props, dict):
            return None
        reported = [props[key] for key in _PAIRING_PROPERTIES if key in props]
        if not reported:
            return None
        return any(bool(value) for value in reported)

    def is_paired(self, device: Any) -> bool:
        """
        Determine whether a resolved device has a pairing/trust relationship with this host.

        Backends that do not report pairing state fall back to BLEConfig.ASSUME_PAIRED_WHEN_UNKNOWN.
        """
        state = self.pairing_state(device)
        if state is None:
            logger.debug(
                "Backend does not report pairing state for %s; assuming %s",
                getattr(device, "address", device),
                "paired" if BLEConfig.ASSUME_PAIRED_WHEN_UNKNOWN else "not paired",
            )
            return BLEConfig.ASSUME_PAIRED_WHEN_UNKNOWN
        return state

    def add_connection_watcher(self, watcher: Callable[["BLEClient"], None]) -> None:
        """
        Register a callback invoked (on the event loop thread) when the peripheral disconnects.

        Registering a watcher that is already registered has no effect.
        """
        with self._watcher_lock:
            if watcher in self._watchers:
                self._watchers.remove(watcher)
            self._watchers.append(watcher)

    def remove_connection_watcher(self, watcher: Callable[["BLEClient"], None]) -> None:
        with self._watcher_lock:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

    def discover_services(self) -> GattResult[List[Any]]:
        """
        Connect to the bound device and enumerate its GATT services without using cached data.

        Returns:
            GattResult[List[Any]]: The discovered Bleak service objects, or a failure status when
            the device cannot be reached.
        """
        if self.bleak_client is None:
            return GattResult.failure(
                GattStatus.UNREACHABLE, ERROR_CLIENT_NOT_BOUND.format("discover services")
            )
        try:
            self.async_await(self.bleak_client.connect(), timeout=self.connect_timeout)
            return GattResult.success(list(self.bleak_client.services))
        except (BleakError, BLEError, OSError) as e:
            logger.debug("Service discovery on %s failed: %s", self.address, e)
            return GattResult.failure(GattStatus.UNREACHABLE, str(e))
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error during service discovery on %s", self.address)
            return GattResult.failure(GattStatus.UNREACHABLE, str(e))

    def discover_characteristics(self, service: Any) -> GattResult[List[Any]]:
        """Enumerate the characteristics of a service discovered on the current connection."""
        if not self.is_connected():
            return GattResult.failure(GattStatus.UNREACHABLE)
        try:
            return GattResult.success(list(service.characteristics))
        except (AttributeError, TypeError, BleakError) as e:
            return GattResult.failure(GattStatus.PROTOCOL_ERROR, str(e))

    def discover_descriptors(self, characteristic: Any) -> GattResult[List[Any]]:
        """Enumerate the descriptors of a characteristic discovered on the current connection."""
        if not self.is_connected():
            return GattResult.failure(GattStatus.UNREACHABLE)
        try:
            return GattResult.success(list(characteristic.descriptors))
        except (AttributeError, TypeError, BleakError) as e:
            return GattResult.failure(GattStatus.PROTOCOL_ERROR, str(e))

    def write_client_config(
        self,
        characteristic: Any,
        value: ClientConfigValue,
        callback: Optional[Callable[[Any, bytearray], None]] = None,
    ) -> GattStatus:
        """
        Write the client characteristic configuration descriptor of a characteristic.

        Writing NOTIFY registers `callback` for value-changed notifications; writing NONE
        stops them.

        Returns:
            GattStatus: SUCCESS when the platform confirmed the write.
        """
        if self.bleak_client is None or not self.is_connected():
            return GattStatus.UNREACHABLE
        if value == ClientConfigValue.NOTIFY:
            if callback is None:
                raise ValueError("A notification callback is required to enable notify")
            coro = self.bleak_client.start_notify(characteristic, callback)
        else:
            coro = self.bleak_client.stop_notify(characteristic)
        try:
            self.async_await(coro, timeout=self.notify_timeout)
        except BLEError as e:
            logger.debug("Client configuration write %s timed out: %s", value.name, e)
            return GattStatus.UNREACHABLE
        except BleakError as e:
            logger.debug("Client configuration write %s failed: %s", value.name, e)
            if "not permitted" in str(e).lower() or "not authorized" in str(e).lower():
                return GattStatus.ACCESS_DENIED
            return GattStatus.PROTOCOL_ERROR
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error writing client configuration %s", value.name)
            return GattStatus.PROTOCOL_ERROR
        return GattStatus.SUCCESS

    def read_value(self, characteristic: Any) -> GattResult[bytes]:
        """Read the current value of a characteristic."""
        if self.bleak_client is None or not self.is_connected():
            return GattResult.failure(GattStatus.UNREACHABLE)
        try:
            value = self.async_await(
                self.bleak_client.read_gatt_char(characteristic),
                timeout=self.gatt_timeout,
            )
        except BLEError as e:
            return GattResult.failure(GattStatus.UNREACHABLE, str(e))
        except BleakError as e:
            return GattResult.failure(GattStatus.PROTOCOL_ERROR, str(e))
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error reading characteristic on %s", self.address)
            return GattResult.failure(GattStatus.PROTOCOL_ERROR, str(e))
        return GattResult.success(bytes(value))

    def is_connected(self) -> bool:
        """
        Determine whether the underlying Bleak client is currently connected.

        Returns:
            `True` if the underlying Bleak client reports it is connected; `False` otherwise (also `False`
            when no Bleak client exists or the connection state cannot be read).
        """
        bleak_client = getattr(self, "bleak_client", None)
        if bleak_client is None:
            return False

        def _check_connection():
            connected = getattr(bleak_client, "is_connected", False)
            if callable(connected):
                connected = connected()
            return bool(connected)

        return self.error_handler.safe_execute(
            _check_connection,
            default_return=False,
            error_msg="Unable to read bleak connection state",
        )

    def disconnect(self, *, await_timeout: Optional[float] = None) -> None:
        """Disconnect from the remote BLE device and wait for completion."""
        if self.bleak_client is None:
            raise self.BLEError(ERROR_CLIENT_NOT_BOUND.format("disconnect"))
        self.async_await(self.bleak_client.disconnect(), timeout=await_timeout)

    def release(self) -> None:
        """Drop the device binding and every registered watcher."""
        with self._watcher_lock:
            self._watchers.clear()
        self.bleak_client = None
        self.device = None

    def close(self) -> None:
        """
        Shut down the client's asyncio event loop and its background thread.

        Signals the internal event loop to stop, waits up to CLIENT_EVENT_THREAD_JOIN_TIMEOUT for
        the thread to exit, and logs a warning if the thread does not terminate within that timeout.
        """
        if self._eventLoop.is_closed() or not self._eventThread.is_alive():
            return
        self.async_run(self._stop_event_loop())
        self._eventThread.join(timeout=BLEConfig.CLIENT_EVENT_THREAD_JOIN_TIMEOUT)
        if self._eventThread.is_alive():
            logger.warning(
                "BLE event thread did not exit within %.1fs",
                BLEConfig.CLIENT_EVENT_THREAD_JOIN_TIMEOUT,
            )

    def __enter__(self):
        return self

    def __exit__(self, _type, _value, _traceback):
        self.close()

    def async_await(self, coro, timeout=None):
        """
        Wait for the given coroutine to complete on the client's event loop and return its result.

        If the coroutine does not finish within `timeout` seconds the pending task is cancelled
        and a BLEError is raised. Bleak exceptions propagate unchanged.
        """
        future = self.async_run(coro)
        try:
            return future.result(timeout)
        except (FutureTimeoutError, RuntimeError) as e:
            future.cancel()
            # Consume any late exceptions to avoid "Task exception was never retrieved"
            future.add_done_callback(
                lambda f: f.exception() if not f.cancelled() else None
            )
            raise self.BLEError(CLIENT_ERROR_ASYNC_TIMEOUT) from e

    def async_run(self, coro):
        """Schedule a coroutine on the client's internal asyncio event loop."""
        return asyncio.run_coroutine_threadsafe(coro, self._eventLoop)

    def _bind(self, device: BLEDevice) -> None:
        # Disabling the WinRT service cache forces a fresh GATT discovery on connect;
        # other backends ignore the option.
        self.device = device
        self.bleak_client = BleakRootClient(
            device,
            disconnected_callback=self._on_bleak_disconnect,
            winrt={"use_cached_services": False},
            **self._bleak_kwargs,
        )

    def _on_bleak_disconnect(self, _bleak_client: BleakRootClient) -> None:
        with self._watcher_lock:
            watchers = list(self._watchers)
        for watcher in watchers:
            self.error_handler.safe_execute(
                lambda watcher=watcher: watcher(self),
                error_msg="Error in connection watcher",
            )

    def _run_event_loop(self):
        self.error_handler.safe_execute(
            self._eventLoop.run_forever, error_msg="Error in event loop"
        )
        self._eventLoop.close()  # Clean up resources when loop stops

    async def _stop_event_loop(self):
        self._eventLoop.stop()
