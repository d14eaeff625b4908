"""Tests for SessionStateManager state machine functionality."""

import threading
import time

from heartrate_le.ble.state import SessionState, SessionStateManager


class TestSessionStateManager:
    """Test cases for SessionStateManager class."""

    def test_initial_state(self):
        """Test that state manager starts in IDLE state."""
        manager = SessionStateManager()
        assert manager.state == SessionState.IDLE
        assert manager.is_idle
        assert not manager.is_subscribed
        assert not manager.is_closing

    def test_state_properties(self):
        """Test state-based property methods."""
        manager = SessionStateManager()

        manager._state = SessionState.SUBSCRIBED
        assert manager.is_subscribed
        assert not manager.is_idle
        assert not manager.is_closing

        manager._state = SessionState.DISCONNECTING
        assert manager.is_closing
        assert not manager.is_subscribed

    def test_connect_sequence(self):
        """Test the full connect path followed by teardown."""
        manager = SessionStateManager()

        for state in (
            SessionState.DEVICE_ACQUIRED,
            SessionState.SERVICES_DISCOVERED,
            SessionState.CHARACTERISTIC_READY,
            SessionState.SUBSCRIBED,
            SessionState.DISCONNECTING,
            SessionState.IDLE,
        ):
            assert manager.transition_to(state)
            assert manager.state == state

    def test_failure_exits(self):
        """Test that every intermediate state can fall back to IDLE."""
        for intermediate in (
            SessionState.DEVICE_ACQUIRED,
            SessionState.SERVICES_DISCOVERED,
            SessionState.CHARACTERISTIC_READY,
        ):
            manager = SessionStateManager()
            manager._state = intermediate
            assert manager.transition_to(SessionState.IDLE)

    def test_invalid_transitions(self):
        """Test that invalid transitions are rejected."""
        manager = SessionStateManager()

        # Same state
        assert not manager.transition_to(SessionState.IDLE)
        # Skipping discovery
        assert not manager.transition_to(SessionState.SUBSCRIBED)
        assert manager.state == SessionState.IDLE

        manager._state = SessionState.DISCONNECTING
        assert not manager.transition_to(SessionState.SUBSCRIBED)
        assert manager.state == SessionState.DISCONNECTING

    def test_thread_safety(self):
        """Test concurrent state access is thread-safe."""
        manager = SessionStateManager()
        results = []
        errors = []

        def worker(worker_id):
            """
            Repeatedly acquire and release the device state, recording each outcome.

            Parameters:
                worker_id (int): Identifier used when recording results and errors.
            """
            try:
                for i in range(100):
                    if i % 2 == 0:
                        success = manager.transition_to(SessionState.DEVICE_ACQUIRED)
                    else:
                        success = manager.transition_to(SessionState.IDLE)
                    results.append((worker_id, i, success, manager.state.value))
                    time.sleep(0.001)
            except Exception as e:  # noqa: BLE001 - errors collected for assertion
                errors.append((worker_id, str(e)))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(errors) == 0, f"Errors occurred: {errors}"
        assert manager.state in (SessionState.IDLE, SessionState.DEVICE_ACQUIRED)
        assert len(results) == 500

    def test_lock_is_reentrant(self):
        """Test that transitions can be made while the exposed lock is held."""
        manager = SessionStateManager()
        with manager.lock:
            assert manager.transition_to(SessionState.DEVICE_ACQUIRED)
            assert manager.state == SessionState.DEVICE_ACQUIRED

    def test_state_transition_logging(self, caplog):
        """Test that state transitions are properly logged."""
        manager = SessionStateManager()

        with caplog.at_level("DEBUG"):
            manager.transition_to(SessionState.DEVICE_ACQUIRED)
            manager.transition_to(SessionState.SERVICES_DISCOVERED)

        assert "State transition: idle → device_acquired" in caplog.text
        assert "State transition: device_acquired → services_discovered" in caplog.text

    def test_invalid_transition_logging(self, caplog):
        """Verify that an invalid transition emits a warning log."""
        manager = SessionStateManager()

        with caplog.at_level("WARNING"):
            manager.transition_to(SessionState.SUBSCRIBED)

        assert "Invalid state transition: idle → subscribed" in caplog.text
