"""Bus connection abstraction.

Lets the portal proxies work over a real D-Bus connection (sdbus) or an
in-memory mock without changing client code.

Architecture:
- BusConnection is the PROTOCOL (interface) for all connections
- BaseBusConnection provides the state machine, the signal stream and
  error wrapping; subclasses implement the _do_* hooks
- The SignalDispatcher (bus.py) is the single consumer of signals()

Everything crossing this boundary is already unwrapped into plain Python
values: variants never leak above the transport.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ..errors import PortalError, TransportError

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass(frozen=True)
class MethodCall:
    """A method call to send over the bus."""

    destination: str
    path: str
    interface: str
    member: str
    signature: str = ""
    body: tuple[Any, ...] = ()


@dataclass(frozen=True)
class SignalMessage:
    """A signal received from the bus."""

    path: str
    interface: str
    member: str
    body: tuple[Any, ...] = ()
    sender: str | None = None


@dataclass(frozen=True)
class MatchRule:
    """Selects the signals a subscription wants: one member on one object."""

    path: str
    interface: str
    member: str

    def matches(self, message: SignalMessage) -> bool:
        return (
            message.path == self.path
            and message.interface == self.interface
            and message.member == self.member
        )


@runtime_checkable
class BusConnection(Protocol):
    """Protocol for bus connections.

    All connections must implement:
    - connect/disconnect: Lifecycle management
    - call_method: Send a method call and return the reply body
    - add_match/remove_match: Start or stop receiving signals for a rule
    - signals: The stream of received signals (single consumer)
    """

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        ...

    async def connect(self) -> None:
        """Open the connection.

        Raises:
            TransportError: If the bus cannot be reached
        """
        ...

    async def disconnect(self) -> None:
        """Close the connection and end the signal stream."""
        ...

    async def call_method(self, call: MethodCall) -> tuple[Any, ...]:
        """Send a method call and return its reply body.

        Raises:
            TransportError: If the call fails
            MalformedMessageError: If the reply cannot be decoded
        """
        ...

    async def add_match(self, rule: MatchRule) -> None:
        """Start delivering signals matching rule to signals()."""
        ...

    async def remove_match(self, rule: MatchRule) -> None:
        """Stop delivering signals matching rule."""
        ...

    def signals(self) -> AsyncIterator[SignalMessage]:
        """Yield received signals until the connection closes."""
        ...


class BaseBusConnection(ABC):
    """Base class for bus connections with common functionality.

    Provides:
    - State management
    - A signal queue fed by subclasses through _emit_signal()
    - Wrapping of unexpected errors into TransportError
    """

    def __init__(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        self._signal_queue: asyncio.Queue[SignalMessage | Exception | None] = asyncio.Queue()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return self._state == ConnectionState.CONNECTED

    async def connect(self) -> None:
        """Open the connection."""
        async with self._lock:
            if self._state == ConnectionState.CONNECTED:
                return

            self._state = ConnectionState.CONNECTING
            try:
                await self._do_connect()
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                raise TransportError(f"Failed to connect: {e}") from e

            self._state = ConnectionState.CONNECTED
            logger.info(f"{self.__class__.__name__} connected")

    async def disconnect(self) -> None:
        """Close the connection and end the signal stream."""
        async with self._lock:
            if self._state in (ConnectionState.DISCONNECTED, ConnectionState.CLOSED):
                return

            self._state = ConnectionState.CLOSED
            try:
                await self._do_disconnect()
            finally:
                # End of stream for the dispatcher
                self._signal_queue.put_nowait(None)
                self._state = ConnectionState.DISCONNECTED
                logger.info(f"{self.__class__.__name__} disconnected")

    async def call_method(self, call: MethodCall) -> tuple[Any, ...]:
        """Send a method call and return its reply body."""
        if not self.is_connected:
            raise TransportError("Bus connection not connected")

        logger.debug(f"Calling {call.interface}.{call.member} on {call.path}")
        try:
            return await self._do_call(call)
        except PortalError:
            raise
        except Exception as e:
            raise TransportError(f"{call.interface}.{call.member} failed: {e}") from e

    async def add_match(self, rule: MatchRule) -> None:
        """Start delivering signals matching rule."""
        if not self.is_connected:
            raise TransportError("Bus connection not connected")
        try:
            await self._do_add_match(rule)
        except PortalError:
            raise
        except Exception as e:
            raise TransportError(f"Failed to add match for {rule.member} on {rule.path}: {e}") from e

    async def remove_match(self, rule: MatchRule) -> None:
        """Stop delivering signals matching rule."""
        if not self.is_connected:
            return
        try:
            await self._do_remove_match(rule)
        except PortalError:
            raise
        except Exception as e:
            raise TransportError(
                f"Failed to remove match for {rule.member} on {rule.path}: {e}"
            ) from e

    async def signals(self) -> AsyncIterator[SignalMessage]:
        """Yield received signals until the connection closes."""
        while True:
            item = await self._signal_queue.get()
            if item is None:
                break
            if isinstance(item, Exception):
                raise item
            yield item

    def _emit_signal(self, message: SignalMessage) -> None:
        """Queue a received signal for the consumer of signals()."""
        if self._state != ConnectionState.CONNECTED:
            logger.debug(f"Dropping {message.member} on {message.path}: connection not open")
            return
        self._signal_queue.put_nowait(message)

    def _end_signals(self) -> None:
        """End the signal stream without closing the connection."""
        self._signal_queue.put_nowait(None)

    def _fail_signals(self, error: Exception) -> None:
        """Make the consumer of signals() raise error."""
        self._signal_queue.put_nowait(error)

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    async def _do_call(self, call: MethodCall) -> tuple[Any, ...]:
        """Implementation-specific method call logic."""
        ...

    @abstractmethod
    async def _do_add_match(self, rule: MatchRule) -> None:
        """Implementation-specific match registration."""
        ...

    @abstractmethod
    async def _do_remove_match(self, rule: MatchRule) -> None:
        """Implementation-specific match removal."""
        ...

    async def __aenter__(self) -> BaseBusConnection:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()
