"""
Shared pytest fixtures for heart rate monitor tests.
"""

import threading
from unittest.mock import MagicMock

import pytest  # type: ignore[import-untyped]  # pylint: disable=E0401

# Import common fakes
from test_monitor_fixtures import FakePlatformClient, SyncExecutor

from heartrate_le.ble import session as session_mod
from heartrate_le.ble.session import HeartRateMonitor


@pytest.fixture(autouse=True)
def mock_pub(monkeypatch):
    """
    Replace the pubsub module used by the session with a MagicMock.

    Returns:
        MagicMock: Stand-in for `pubsub.pub`; inspect `sendMessage.call_args_list`.
    """
    pub = MagicMock()
    monkeypatch.setattr(session_mod, "pub", pub)
    return pub


@pytest.fixture
def sync_executor():
    return SyncExecutor()


@pytest.fixture
def fake_client():
    return FakePlatformClient()


@pytest.fixture
def monitor_factory(sync_executor):
    """
    Build HeartRateMonitor instances wired to a given fake client and the synchronous executor.

    Returns:
        Callable[[FakePlatformClient], HeartRateMonitor]: Factory; the fake client receives the
        timeout keyword arguments the monitor passes to its client factory.
    """
    created = []

    def _factory(client):
        def _client_factory(**kwargs):
            client.kwargs = kwargs
            return client

        monitor = HeartRateMonitor(client_factory=_client_factory, executor=sync_executor)
        created.append(monitor)
        return monitor

    yield _factory

    for monitor in created:
        with monitor._operation_lock:
            if monitor.client is not None:
                monitor._teardown(notify=False)


@pytest.fixture
def monitor(monitor_factory, fake_client):
    return monitor_factory(fake_client)


@pytest.fixture
def recorder():
    """Collect events from any channel in arrival order, with a lock for cross-thread delivery."""

    class _Recorder:
        def __init__(self):
            self.events = []
            self._lock = threading.Lock()

        def __call__(self, event):
            with self._lock:
                self.events.append(event)

    return _Recorder()
