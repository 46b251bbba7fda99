"""Signal Dispatcher - routes bus signals to the subscriptions waiting for them.

One dispatcher owns a connection's signal stream. A single reader task
consumes signals() and hands each signal to every open subscription whose
match rule selects it. Subscriptions are keyed by (path, interface, member),
so a request only ever sees signals emitted on its own object path.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

from .errors import TransportError
from .transport.base import BusConnection, MatchRule, SignalMessage

logger = logging.getLogger(__name__)

# Queue item marking the end of a subscription
_CLOSED = object()


class Subscription:
    """A scoped subscription to the signals selected by one match rule.

    Usage:
        async with dispatcher.listen(rule) as subscription:
            message = await subscription.next()
            if message is None:
                ...  # stream ended
    """

    def __init__(self, dispatcher: SignalDispatcher, rule: MatchRule) -> None:
        self.rule = rule
        self._dispatcher = dispatcher
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, item: Any) -> None:
        self._queue.put_nowait(item)

    async def next(self) -> SignalMessage | None:
        """Wait for the next matching signal.

        Returns:
            The signal, or None once the signal stream has ended

        Raises:
            TransportError: If the connection failed while waiting
        """
        item = await self._queue.get()
        if item is _CLOSED or isinstance(item, Exception):
            # Terminal items stay queued for later callers
            self._queue.put_nowait(item)
        if item is _CLOSED:
            return None
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        """Unregister from the dispatcher. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._dispatcher._unsubscribe(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> SignalMessage:
        message = await self.next()
        if message is None:
            raise StopAsyncIteration
        return message

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class SignalDispatcher:
    """Demultiplexes a connection's signals onto per-rule subscriptions.

    Created once per connection and injected wherever signals are awaited.
    Registration is guarded by an asyncio.Lock; delivery happens only in
    the reader task.
    """

    def __init__(self, connection: BusConnection) -> None:
        self._connection = connection
        self._subscriptions: dict[MatchRule, list[Subscription]] = {}
        self._lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        # _CLOSED or the TransportError that ended the stream
        self._terminal: Any = None

    @property
    def is_running(self) -> bool:
        return self._reader_task is not None and not self._reader_task.done()

    @property
    def subscription_count(self) -> int:
        """Number of open subscriptions across all rules."""
        return sum(len(subs) for subs in self._subscriptions.values())

    def start(self) -> None:
        """Start the reader task."""
        if self._reader_task is not None:
            return
        self._terminal = None
        self._reader_task = asyncio.create_task(self._read_loop())

    async def stop(self) -> None:
        """Stop the reader task and close every open subscription."""
        if self._reader_task is not None:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None
        self._end_all(_CLOSED)

    async def subscribe(self, rule: MatchRule) -> Subscription:
        """Open a subscription for the signals selected by rule.

        The connection is asked for the match rule when this is the first
        subscription for it.

        Raises:
            TransportError: If the match rule cannot be added
        """
        subscription = Subscription(self, rule)

        async with self._lock:
            if self._terminal is not None:
                subscription._deliver(self._terminal)
                return subscription

            subscribers = self._subscriptions.setdefault(rule, [])
            subscribers.append(subscription)
            if len(subscribers) == 1:
                try:
                    await self._connection.add_match(rule)
                except Exception:
                    subscribers.remove(subscription)
                    if not subscribers:
                        del self._subscriptions[rule]
                    raise

        logger.debug(f"Subscribed to {rule.interface}.{rule.member} on {rule.path}")
        return subscription

    @contextlib.asynccontextmanager
    async def listen(self, rule: MatchRule) -> AsyncIterator[Subscription]:
        """Subscribe for the duration of an async with block."""
        subscription = await self.subscribe(rule)
        try:
            yield subscription
        finally:
            await subscription.close()

    async def _unsubscribe(self, subscription: Subscription) -> None:
        rule = subscription.rule
        async with self._lock:
            subscribers = self._subscriptions.get(rule)
            if not subscribers or subscription not in subscribers:
                return
            subscribers.remove(subscription)
            if subscribers:
                return
            del self._subscriptions[rule]
            await self._connection.remove_match(rule)

        logger.debug(f"Unsubscribed from {rule.interface}.{rule.member} on {rule.path}")

    def dispatch(self, message: SignalMessage) -> int:
        """Hand a signal to every subscription whose rule selects it.

        Returns:
            Number of subscriptions the signal was delivered to
        """
        delivered = 0
        for rule, subscribers in self._subscriptions.items():
            if not rule.matches(message):
                continue
            for subscription in subscribers:
                subscription._deliver(message)
                delivered += 1

        if not delivered:
            logger.debug(f"No subscriber for {message.interface}.{message.member} on {message.path}")
        return delivered

    def _end_all(self, item: Any) -> None:
        if self._terminal is not None:
            return
        self._terminal = item
        for subscribers in self._subscriptions.values():
            for subscription in subscribers:
                subscription._deliver(item)

    async def _read_loop(self) -> None:
        """Background task reading signals and routing them."""
        try:
            async for message in self._connection.signals():
                self.dispatch(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Signal reader error: {e}")
            error = e if isinstance(e, TransportError) else TransportError(f"Signal stream failed: {e}")
            self._end_all(error)
            return

        logger.debug("Signal stream ended")
        self._end_all(_CLOSED)
