"""Pending portal requests.

A portal method that needs user interaction returns the object path of an
org.freedesktop.portal.Request right away. The outcome arrives later as a
single Response signal on that path. Request listens for exactly that
signal, once, and decodes it.

Cancelling the coroutine waiting on a Request (for example through
asyncio.wait_for) drops its subscription; there is no built-in timeout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel

from .bus import SignalDispatcher
from .errors import MalformedMessageError, NoResponseError
from .protocol.names import CLOSE_METHOD, DESKTOP_BUS_NAME, REQUEST_INTERFACE, RESPONSE_SIGNAL
from .protocol.paths import ObjectPath, is_object_path
from .protocol.response import ResponseEnvelope, decode_response, unwrap_response
from .transport.base import BusConnection, MatchRule, MethodCall

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class RequestHandle:
    """Object path of a pending request."""

    path: ObjectPath

    @classmethod
    def from_reply(cls, reply: Any) -> RequestHandle:
        """Extract the handle from the reply of a method that starts a request.

        Raises:
            MalformedMessageError: If the reply is not a single object path
        """
        if not isinstance(reply, tuple) or len(reply) != 1 or not is_object_path(reply[0]):
            raise MalformedMessageError(
                f"Expected a request object path (o) as the method reply, got {reply!r}"
            )
        return cls(ObjectPath(reply[0]))

    @property
    def response_rule(self) -> MatchRule:
        """Match rule selecting the Response signal of this request only."""
        return MatchRule(path=self.path, interface=REQUEST_INTERFACE, member=RESPONSE_SIGNAL)


class Request:
    """Proxy for one org.freedesktop.portal.Request object."""

    def __init__(
        self,
        connection: BusConnection,
        dispatcher: SignalDispatcher,
        handle: RequestHandle,
        destination: str = DESKTOP_BUS_NAME,
    ) -> None:
        self._connection = connection
        self._dispatcher = dispatcher
        self.handle = handle
        self.destination = destination

    @property
    def path(self) -> ObjectPath:
        return self.handle.path

    async def receive_envelope(self, results_model: type[T]) -> ResponseEnvelope[T]:
        """Wait for the Response signal and decode it.

        Args:
            results_model: Model the results must match on success

        Returns:
            Success, Cancelled or Other

        Raises:
            NoResponseError: If the signal stream ends first
            MalformedMessageError: If the signal body cannot be decoded
            TransportError: If the connection fails while waiting
        """
        async with self._dispatcher.listen(self.handle.response_rule) as subscription:
            logger.debug(f"Waiting for response on {self.path}")
            message = await subscription.next()

        if message is None:
            raise NoResponseError(f"portal error: no response for request {self.path}")

        envelope = decode_response(message.body, results_model)
        logger.debug(f"Request {self.path} finished with status {envelope.status.name}")
        return envelope

    async def receive_response(self, results_model: type[T]) -> T:
        """Wait for the Response signal and return the results on success.

        Raises:
            PortalResponseError: If the user cancelled or the request failed
            NoResponseError: If the signal stream ends first
            MalformedMessageError: If the signal body cannot be decoded
            TransportError: If the connection fails while waiting
        """
        return unwrap_response(await self.receive_envelope(results_model))

    async def close(self) -> None:
        """Ask the portal to close the request and dismiss its dialog."""
        await self._connection.call_method(
            MethodCall(
                destination=self.destination,
                path=self.path,
                interface=REQUEST_INTERFACE,
                member=CLOSE_METHOD,
            )
        )
        logger.info(f"Closed request {self.path}")
