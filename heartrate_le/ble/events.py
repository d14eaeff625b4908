"""Observer registries for connection-status and heart rate reading events."""

from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, Generic, Optional, TypeVar, Union

from heartrate_le.ble.constants import logger
from heartrate_le.ble.errors import BLEErrorHandler

__all__ = ["ConnectionStatus", "EventChannel", "SubscriptionToken"]

E = TypeVar("E")


@dataclass(frozen=True)
class ConnectionStatus:
    """Connection-status event payload."""

    is_connected: bool
    name: Optional[str] = None


@dataclass(frozen=True)
class SubscriptionToken:
    """Handle returned by EventChannel.subscribe; pass it back to unsubscribe."""

    channel: str
    token_id: int
    channel_id: int = 0  # id() of the issuing EventChannel


def _default_executor():
    from heartrate_le import publishingThread

    return publishingThread


class EventChannel(Generic[E]):
    """
    Registry of handlers for one event stream.

    Subscribing is idempotent per handler: registering a handler that is already registered
    returns its existing token and it still receives each event once. Events are handed to the
    executor's ``queueWork`` so emitters on the BLE event loop never block on observers.
    """

    def __init__(self, name: str, executor: Optional[Any] = None):
        """
        Create an empty channel.

        Parameters:
            name (str): Stream name used in tokens and log messages.
            executor (Optional[Any]): Object exposing ``queueWork(callable)``; defaults to the
                package-wide publishing thread.
        """
        self.name = name
        self._executor = executor
        self._handlers: Dict[int, Callable[[E], None]] = {}
        self._counter = 0
        self._lock = RLock()
        self.error_handler = BLEErrorHandler()

    @property
    def executor(self):
        return self._executor if self._executor is not None else _default_executor()

    def subscribe(self, handler: Callable[[E], None]) -> SubscriptionToken:
        """
        Register a handler for this stream.

        Parameters:
            handler (Callable[[E], None]): Called with each emitted event.

        Returns:
            SubscriptionToken: Token identifying the registration; the same token is returned
            when the handler is already registered.
        """
        if not callable(handler):
            raise TypeError(f"{self.name} handler must be callable, got {handler!r}")
        with self._lock:
            existing = self._find_token_id(handler)
            if existing is not None:
                logger.debug("Handler already subscribed to %s; ignoring", self.name)
                return SubscriptionToken(self.name, existing, id(self))
            token_id = self._counter
            self._counter += 1
            self._handlers[token_id] = handler
            return SubscriptionToken(self.name, token_id, id(self))

    def unsubscribe(
        self, token_or_handler: Union[SubscriptionToken, Callable[[E], None]]
    ) -> bool:
        """
        Remove a registration by token or by the handler that was registered.

        Returns:
            bool: True if a registration was removed, False if none matched.
        """
        with self._lock:
            if isinstance(token_or_handler, SubscriptionToken):
                if token_or_handler.channel_id != id(self):
                    return False
                token_id: Optional[int] = token_or_handler.token_id
            else:
                token_id = self._find_token_id(token_or_handler)
            if token_id is None:
                return False
            return self._handlers.pop(token_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def emit(self, event: E) -> None:
        """Queue delivery of an event to every handler registered at the time of the call."""
        with self._lock:
            handlers = list(self._handlers.values())
        if not handlers:
            return
        self.executor.queueWork(lambda: self._deliver(handlers, event))

    def _deliver(self, handlers, event: E) -> None:
        for handler in handlers:
            # One failing observer must not starve the others
            self.error_handler.safe_execute(
                lambda handler=handler: handler(event),
                error_msg=f"Error in {self.name} handler",
            )

    def _find_token_id(self, handler) -> Optional[int]:
        for token_id, registered in self._handlers.items():
            if registered == handler:
                return token_id
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
