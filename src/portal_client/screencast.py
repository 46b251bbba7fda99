"""ScreenCast portal.

Creating a screen cast session takes two round trips:

1. CreateSession returns the object path of a pending request
2. The portal later emits Response on that path, carrying session_handle

State machine for one create_session() call:
    STARTED -> AWAITING_REQUEST_HANDLE -> AWAITING_RESPONSE
        -> SESSION_READY | CANCELLED_FAILURE | OTHER_FAILURE | TRANSPORT_FAILURE

Every failure is terminal; nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .bus import SignalDispatcher
from .errors import PortalError, PortalResponseError
from .protocol.names import (
    CREATE_SESSION_METHOD,
    DESKTOP_BUS_NAME,
    DESKTOP_OBJECT_PATH,
    SCREENCAST_INTERFACE,
    VARDICT_SIGNATURE,
)
from .protocol.variant import to_vardict
from .request import Request, RequestHandle
from .session import Session, SessionHandle
from .transport.base import BusConnection, MethodCall

logger = logging.getLogger(__name__)


class CreateSessionState(str, Enum):
    """States of a create_session() call."""

    STARTED = "started"
    AWAITING_REQUEST_HANDLE = "awaiting_request_handle"
    AWAITING_RESPONSE = "awaiting_response"

    # Terminal states
    SESSION_READY = "session_ready"
    CANCELLED_FAILURE = "cancelled_failure"
    OTHER_FAILURE = "other_failure"
    TRANSPORT_FAILURE = "transport_failure"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {
        CreateSessionState.SESSION_READY,
        CreateSessionState.CANCELLED_FAILURE,
        CreateSessionState.OTHER_FAILURE,
        CreateSessionState.TRANSPORT_FAILURE,
    }
)


class CreateSessionResults(BaseModel):
    """Results of a successful CreateSession request."""

    # The portal sends a string here, not an object path
    session_handle: str


class ScreenCastPortal:
    """Proxy for org.freedesktop.portal.ScreenCast.

    The connection and dispatcher are shared with every other proxy of the
    same client; each call holds its own subscription and its own state.
    """

    def __init__(
        self,
        connection: BusConnection,
        dispatcher: SignalDispatcher,
        destination: str = DESKTOP_BUS_NAME,
    ) -> None:
        self._connection = connection
        self._dispatcher = dispatcher
        self.destination = destination

    async def create_session(
        self,
        options: Mapping[str, Any] | None = None,
        on_state: Callable[[CreateSessionState], None] | None = None,
    ) -> Session:
        """Create a screen cast session.

        Args:
            options: CreateSession options, passed through as an a{sv}
                dictionary (e.g. handle_token, session_handle_token)
            on_state: Called with each state this call enters, ending with
                a terminal state unless the caller cancels

        Returns:
            Session proxy bound to the new session's object path

        Raises:
            TypeError: If an option value has no D-Bus representation
            PortalResponseError: If the user cancelled or the portal failed
            MalformedMessageError: If a reply or the response has the wrong shape
            NoResponseError: If the signal stream ended before the response
            TransportError: If the bus call failed
        """
        options = dict(options or {})
        to_vardict(options)

        def enter(state: CreateSessionState) -> None:
            logger.debug(f"create_session: {state.value}")
            if on_state is not None:
                on_state(state)

        enter(CreateSessionState.STARTED)
        try:
            enter(CreateSessionState.AWAITING_REQUEST_HANDLE)
            reply = await self._connection.call_method(
                MethodCall(
                    destination=self.destination,
                    path=DESKTOP_OBJECT_PATH,
                    interface=SCREENCAST_INTERFACE,
                    member=CREATE_SESSION_METHOD,
                    signature=VARDICT_SIGNATURE,
                    body=(options,),
                )
            )
            request = Request(
                self._connection,
                self._dispatcher,
                RequestHandle.from_reply(reply),
                self.destination,
            )

            enter(CreateSessionState.AWAITING_RESPONSE)
            try:
                results = await request.receive_response(CreateSessionResults)
            except asyncio.CancelledError:
                await self._close_abandoned(request)
                raise

            handle = SessionHandle.parse(results.session_handle)
        except PortalResponseError as e:
            enter(CreateSessionState.CANCELLED_FAILURE if e.cancelled else CreateSessionState.OTHER_FAILURE)
            raise
        except PortalError:
            enter(CreateSessionState.TRANSPORT_FAILURE)
            raise

        enter(CreateSessionState.SESSION_READY)
        logger.info(f"Created screen cast session {handle}")
        return Session(self._connection, handle, self.destination)

    async def _close_abandoned(self, request: Request) -> None:
        """Close a request whose caller stopped waiting for it."""
        try:
            await request.close()
        except PortalError as e:
            logger.warning(f"Failed to close abandoned request {request.path}: {e}")
