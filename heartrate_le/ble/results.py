"""Outcomes of a connect attempt."""

from dataclasses import dataclass
from typing import Optional, Union

from heartrate_le.ble.errors import ErrorKind

__all__ = ["ConnectionFailure", "ConnectionResult", "ConnectionSuccess"]


@dataclass(frozen=True)
class ConnectionSuccess:
    """The session is subscribed to heart rate notifications."""

    name: Optional[str]

    @property
    def is_connected(self) -> bool:
        return True


@dataclass(frozen=True)
class ConnectionFailure:
    """The connect attempt ended without a subscription; the session is idle."""

    kind: ErrorKind
    error_message: str

    @property
    def is_connected(self) -> bool:
        return False


ConnectionResult = Union[ConnectionSuccess, ConnectionFailure]
