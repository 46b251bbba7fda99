"""In-memory bus connection for testing."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import TransportError
from .base import BaseBusConnection, MatchRule, MethodCall, SignalMessage

logger = logging.getLogger(__name__)


class MockBusConnection(BaseBusConnection):
    """Mock connection for testing.

    Allows injecting canned replies and signals and records method calls.
    No actual I/O - everything is in-memory.

    Usage:
        connection = MockBusConnection()
        connection.set_reply(SCREENCAST_INTERFACE, "CreateSession", ("/r/1",))
        connection.schedule_signal(
            SignalMessage("/r/1", REQUEST_INTERFACE, "Response", (0, {"session_handle": "/s/1"}))
        )

        async with PortalClient(connection) as client:
            session = await client.screencast.create_session()

        assert connection.recorded_calls[0].member == "CreateSession"
    """

    def __init__(self) -> None:
        super().__init__()
        self._replies: dict[tuple[str, str], tuple[Any, ...] | Exception] = {}
        self._recorded_calls: list[MethodCall] = []
        self._scheduled: list[SignalMessage] = []
        self._matches: list[MatchRule] = []
        self.connect_error: Exception | None = None

    @property
    def recorded_calls(self) -> list[MethodCall]:
        """Get all method calls sent through this connection."""
        return self._recorded_calls.copy()

    @property
    def active_matches(self) -> list[MatchRule]:
        """Match rules currently registered."""
        return self._matches.copy()

    def set_reply(self, interface: str, member: str, reply: tuple[Any, ...] | Exception) -> None:
        """Set the canned reply body (or error to raise) for a method."""
        self._replies[(interface, member)] = reply

    def inject_signal(self, message: SignalMessage) -> None:
        """Emit a signal immediately, whether or not anyone listens for it."""
        self._emit_signal(message)

    def schedule_signal(self, message: SignalMessage) -> None:
        """Emit a signal as soon as a match rule selecting it is registered.

        Simulates a portal that answers only once the client is listening.
        """
        if any(rule.matches(message) for rule in self._matches):
            self._emit_signal(message)
        else:
            self._scheduled.append(message)

    def close_signals(self) -> None:
        """End the signal stream while leaving the connection open."""
        self._end_signals()

    async def _do_connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error

    async def _do_disconnect(self) -> None:
        self._matches.clear()

    async def _do_call(self, call: MethodCall) -> tuple[Any, ...]:
        """Record the call and return the canned reply."""
        self._recorded_calls.append(call)

        reply = self._replies.get((call.interface, call.member))
        if reply is None:
            raise TransportError(f"No reply configured for {call.interface}.{call.member}")
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def _do_add_match(self, rule: MatchRule) -> None:
        self._matches.append(rule)

        pending = [message for message in self._scheduled if rule.matches(message)]
        for message in pending:
            self._scheduled.remove(message)
            self._emit_signal(message)

    async def _do_remove_match(self, rule: MatchRule) -> None:
        if rule in self._matches:
            self._matches.remove(rule)
