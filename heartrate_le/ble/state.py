"""Heart rate session state management."""

from enum import Enum
from threading import RLock

from heartrate_le.ble.constants import logger


class SessionState(Enum):
    """States of a heart rate monitor session."""

    IDLE = "idle"
    DEVICE_ACQUIRED = "device_acquired"
    SERVICES_DISCOVERED = "services_discovered"
    CHARACTERISTIC_READY = "characteristic_ready"
    SUBSCRIBED = "subscribed"
    DISCONNECTING = "disconnecting"


# Every non-idle state may fall back to IDLE on failure or drop to DISCONNECTING for teardown
_VALID_TRANSITIONS = {
    SessionState.IDLE: {SessionState.DEVICE_ACQUIRED},
    SessionState.DEVICE_ACQUIRED: {
        SessionState.SERVICES_DISCOVERED,
        SessionState.DISCONNECTING,
        SessionState.IDLE,
    },
    SessionState.SERVICES_DISCOVERED: {
        SessionState.CHARACTERISTIC_READY,
        SessionState.DISCONNECTING,
        SessionState.IDLE,
    },
    SessionState.CHARACTERISTIC_READY: {
        SessionState.SUBSCRIBED,
        SessionState.DISCONNECTING,
        SessionState.IDLE,
    },
    SessionState.SUBSCRIBED: {
        SessionState.DISCONNECTING,
        SessionState.IDLE,
    },
    SessionState.DISCONNECTING: {SessionState.IDLE},
}


class SessionStateManager:
    """Thread-safe state tracking for a heart rate session.

    A single state machine replaces ad hoc handle checks; the same reentrant lock
    guards every handle mutation the session performs.
    """

    def __init__(self):
        """Initialize state manager in the idle state."""
        self._state_lock = RLock()
        self._state = SessionState.IDLE

    @property
    def lock(self) -> RLock:
        """Expose the reentrant lock controlling state transitions."""
        return self._state_lock

    @property
    def state(self) -> SessionState:
        """Get current session state."""
        with self._state_lock:
            return self._state

    @property
    def is_idle(self) -> bool:
        return self.state == SessionState.IDLE

    @property
    def is_subscribed(self) -> bool:
        return self.state == SessionState.SUBSCRIBED

    @property
    def is_closing(self) -> bool:
        """Check if a teardown is in progress."""
        return self.state == SessionState.DISCONNECTING

    def transition_to(self, new_state: SessionState) -> bool:
        """Thread-safe state transition with validation.

        Args:
        ----
            new_state: Target state to transition to

        Returns:
        -------
            True if transition was valid and applied, False otherwise

        """
        with self._state_lock:
            if new_state in _VALID_TRANSITIONS.get(self._state, set()):
                old_state = self._state
                self._state = new_state
                logger.debug("State transition: %s → %s", old_state.value, new_state.value)
                return True
            logger.warning(
                "Invalid state transition: %s → %s", self._state.value, new_state.value
            )
            return False
