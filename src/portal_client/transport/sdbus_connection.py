"""Bus connection over sd-bus, via the sdbus package.

Method calls go through typed DbusInterfaceCommonAsync proxy classes, one
per portal interface. A match rule is registered with the bus daemon
before add_match returns; a task then feeds its messages into the
connection's signal stream.

Variants are unwrapped here, so callers only ever see plain values.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sdbus import (
    DbusInterfaceCommonAsync,
    SdBus,
    dbus_method_async,
    sd_bus_open_system,
    sd_bus_open_user,
)

from ..config import PortalClientConfig
from ..errors import MalformedMessageError, TransportError
from ..protocol.names import (
    CLOSE_METHOD,
    CREATE_SESSION_METHOD,
    OBJECT_PATH_SIGNATURE,
    REQUEST_INTERFACE,
    RESPONSE_SIGNAL,
    RESPONSE_SIGNATURE,
    SCREENCAST_INTERFACE,
    VARDICT_SIGNATURE,
)
from ..protocol.variant import split_signature, to_vardict, to_variant, unwrap_body
from .base import BaseBusConnection, MatchRule, MethodCall, SignalMessage

if TYPE_CHECKING:
    from sdbus.sd_bus_internals import SdBusMessage, SdBusSlot

logger = logging.getLogger(__name__)


class ScreenCastInterface(DbusInterfaceCommonAsync, interface_name=SCREENCAST_INTERFACE):
    """Proxy definition for org.freedesktop.portal.ScreenCast."""

    @dbus_method_async(
        input_signature=VARDICT_SIGNATURE,
        result_signature=OBJECT_PATH_SIGNATURE,
        method_name=CREATE_SESSION_METHOD,
    )
    async def create_session(self, options: dict[str, tuple[str, Any]]) -> str:
        raise NotImplementedError


class RequestInterface(DbusInterfaceCommonAsync, interface_name=REQUEST_INTERFACE):
    """Proxy definition for org.freedesktop.portal.Request."""

    @dbus_method_async(method_name=CLOSE_METHOD)
    async def close(self) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class _MethodSpec:
    interface: type[DbusInterfaceCommonAsync]
    attribute: str
    result_signature: str


@dataclass
class _Watcher:
    slot: SdBusSlot
    task: asyncio.Task[None]


_METHODS: dict[tuple[str, str], _MethodSpec] = {
    (SCREENCAST_INTERFACE, CREATE_SESSION_METHOD): _MethodSpec(
        ScreenCastInterface, "create_session", OBJECT_PATH_SIGNATURE
    ),
    (REQUEST_INTERFACE, CLOSE_METHOD): _MethodSpec(RequestInterface, "close", ""),
}

# Body signature of each signal a match rule may select
_SIGNALS: dict[tuple[str, str], str] = {
    (REQUEST_INTERFACE, RESPONSE_SIGNAL): RESPONSE_SIGNATURE,
}


def _wrap_args(signature: str, body: tuple[Any, ...]) -> list[Any]:
    """Wrap plain arguments into the variant form sdbus expects."""
    types = split_signature(signature)
    if len(types) != len(body):
        raise TypeError(f"Signature {signature} expects {len(types)} arguments, got {len(body)}")

    args: list[Any] = []
    for arg_signature, arg in zip(types, body):
        if arg_signature == VARDICT_SIGNATURE:
            args.append(to_vardict(arg))
        elif arg_signature == "v":
            args.append(to_variant(arg))
        else:
            args.append(arg)
    return args


class SdBusConnection(BaseBusConnection):
    """Connection to the session or system bus through sd-bus."""

    def __init__(self, config: PortalClientConfig | None = None) -> None:
        super().__init__()
        self.config = config or PortalClientConfig()
        self._bus: SdBus | None = None
        self._watchers: dict[MatchRule, _Watcher] = {}

    async def _do_connect(self) -> None:
        """Open the configured bus."""
        self._bus = sd_bus_open_system() if self.config.bus == "system" else sd_bus_open_user()
        logger.info(f"Opened {self.config.bus} bus for {self.config.destination}")

    async def _do_disconnect(self) -> None:
        """Stop signal watchers and close the bus."""
        watchers = list(self._watchers.values())
        self._watchers.clear()
        for watcher in watchers:
            await self._stop_watcher(watcher)

        if self._bus is not None:
            self._bus.close()
            self._bus = None

    async def _do_call(self, call: MethodCall) -> tuple[Any, ...]:
        spec = _METHODS.get((call.interface, call.member))
        if spec is None:
            raise TransportError(f"Unsupported method {call.interface}.{call.member}")

        proxy = spec.interface.new_proxy(call.destination, call.path, bus=self._bus)
        result = await getattr(proxy, spec.attribute)(*_wrap_args(call.signature, call.body))
        return unwrap_body(spec.result_signature, result)

    async def _do_add_match(self, rule: MatchRule) -> None:
        """Register the match with the bus daemon, then start forwarding.

        The match is live when this returns, so a signal emitted right after
        is queued rather than lost.
        """
        signature = _SIGNALS.get((rule.interface, rule.member))
        if signature is None:
            raise TransportError(f"Unsupported signal {rule.interface}.{rule.member}")
        if rule in self._watchers:
            return
        if self._bus is None:
            raise TransportError("Bus is not open")

        queue: asyncio.Queue[SdBusMessage] = asyncio.Queue()
        slot = await self._bus.match_signal_async(
            self.config.destination,
            rule.path,
            rule.interface,
            rule.member,
            queue.put_nowait,
        )
        task = asyncio.create_task(self._watch(rule, signature, queue))
        self._watchers[rule] = _Watcher(slot, task)

    async def _do_remove_match(self, rule: MatchRule) -> None:
        watcher = self._watchers.pop(rule, None)
        if watcher is not None:
            await self._stop_watcher(watcher)

    async def _stop_watcher(self, watcher: _Watcher) -> None:
        watcher.slot.close()
        watcher.task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher.task

    async def _watch(
        self, rule: MatchRule, signature: str, queue: asyncio.Queue[SdBusMessage]
    ) -> None:
        """Forward every signal received for rule into the signal stream."""
        try:
            while True:
                message = await queue.get()
                data = message.get_contents()
                try:
                    body = unwrap_body(signature, data)
                except MalformedMessageError as e:
                    # Forward as received; the decoder reports the bad shape
                    logger.warning(f"Could not unwrap {rule.member} on {rule.path}: {e}")
                    body = data if isinstance(data, tuple) else (data,)

                logger.debug(f"Received {rule.interface}.{rule.member} on {rule.path}")
                self._emit_signal(
                    SignalMessage(
                        path=rule.path,
                        interface=rule.interface,
                        member=rule.member,
                        body=body,
                        sender=message.sender,
                    )
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Signal watcher for {rule.member} on {rule.path} failed: {e}")
            self._fail_signals(TransportError(f"Signal watcher failed: {e}"))


def create_sdbus_connection(config: PortalClientConfig | None = None) -> SdBusConnection:
    """Create a connection to the configured session or system bus."""
    return SdBusConnection(config)
