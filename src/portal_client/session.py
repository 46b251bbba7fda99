"""Portal sessions.

A session is created by a successful request and lives in the portal. The
client only keeps its handle; no session state is mirrored locally.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import MalformedMessageError
from .protocol.names import DESKTOP_BUS_NAME, SESSION_INTERFACE
from .protocol.paths import InvalidObjectPathError, ObjectPath
from .transport.base import BusConnection


@dataclass(frozen=True)
class SessionHandle:
    """Object path of a portal session."""

    path: ObjectPath

    @classmethod
    def parse(cls, value: str) -> SessionHandle:
        """Build a handle from the session_handle string of a response.

        Raises:
            MalformedMessageError: If value is not a valid object path
        """
        try:
            return cls(ObjectPath(value))
        except InvalidObjectPathError as e:
            raise MalformedMessageError(f"Invalid session handle: {e}") from e

    def __str__(self) -> str:
        return str(self.path)


class Session:
    """Proxy for an org.freedesktop.portal.Session object."""

    interface = SESSION_INTERFACE

    def __init__(
        self,
        connection: BusConnection,
        handle: SessionHandle,
        destination: str = DESKTOP_BUS_NAME,
    ) -> None:
        self._connection = connection
        self.handle = handle
        self.destination = destination

    @property
    def path(self) -> ObjectPath:
        return self.handle.path

    def __repr__(self) -> str:
        return f"Session(path={str(self.path)!r}, destination={self.destination!r})"
