"""Error kinds, exception types and error handling utilities for BLE operations."""

from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum

from bleak.exc import BleakDBusError, BleakError

from heartrate_le.ble.constants import logger

__all__ = [
    "BLEError",
    "BLEErrorHandler",
    "ErrorKind",
    "HeartRateError",
    "InvalidFrameError",
]


class ErrorKind(Enum):
    """Reasons a connect attempt or a frame decode can fail."""

    DEVICE_NOT_FOUND = "DeviceNotFound"
    NOT_PAIRED = "NotPaired"
    DEVICE_UNREACHABLE = "DeviceUnreachable"
    SERVICE_NOT_FOUND = "ServiceNotFound"
    CHARACTERISTIC_NOT_FOUND = "CharacteristicNotFound"
    NOTIFY_UNSUPPORTED = "NotifyUnsupported"
    SUBSCRIPTION_FAILED = "SubscriptionFailed"
    INVALID_FRAME = "InvalidFrame"


class HeartRateError(Exception):
    """Base class for errors raised by the heart rate package."""

    kind: ErrorKind


class InvalidFrameError(HeartRateError, ValueError):
    """A heart rate measurement payload was empty or too short to decode."""

    kind = ErrorKind.INVALID_FRAME


class BLEError(HeartRateError):
    """An exception class for BLE errors in the platform client."""


class BLEErrorHandler:
    """Helper class for consistent error handling in BLE operations.

    This class provides static methods for standardized error handling patterns
    throughout the BLE package. It centralizes error logging and recovery strategies.

    Features:
        - Safe execution with fallback return values
        - Consistent error logging and classification
        - Cleanup operations that never raise exceptions
    """

    @staticmethod
    def safe_execute(
        func,
        default_return=None,
        log_error: bool = True,
        error_msg: str = "Error in operation",
        reraise: bool = False,
    ):
        """
        Execute a zero-argument callable and return its result, falling back to a provided default on failure.

        Expected BLE failures (BleakError, BleakDBusError, BLEError, InvalidFrameError and
        FutureTimeoutError) are logged at debug level; anything else is logged with its traceback.

        Parameters:
            func (callable): A zero-argument callable to execute.
            default_return: Value to return if execution fails.
            log_error (bool): If True, log caught exceptions.
            error_msg (str): Message prefix used when logging errors.
            reraise (bool): If True, re-raise any caught exception instead of returning default_return.

        Returns:
            The value returned by `func()` on success, or `default_return` if execution failed.
        """
        try:
            return func()
        except (
            BleakError,
            BleakDBusError,
            BLEError,
            InvalidFrameError,
            FutureTimeoutError,
        ) as e:
            if log_error:
                logger.debug("%s: %s", error_msg, e)
            if reraise:
                raise
            return default_return
        except Exception:
            if log_error:
                logger.exception("%s", error_msg)
            if reraise:
                raise
            return default_return

    @staticmethod
    def safe_cleanup(func, cleanup_name: str = "cleanup operation"):
        """
        Execute a cleanup callable and suppress any exceptions raised during its execution.

        Parameters:
            func (Callable[[], Any]): Zero-argument cleanup function to execute.
            cleanup_name (str): Human-readable name for the cleanup operation used in the log message.
        """
        try:
            func()
        except Exception as e:  # noqa: BLE001 - cleanup paths must not raise
            logger.debug("Error during %s: %s", cleanup_name, e)
