"""Portal client.

Owns one bus connection and one signal dispatcher and hands both to every
portal proxy it creates. Works with the sdbus connection or the mock.

Usage:
    async with create_client() as client:
        session = await client.screencast.create_session()
"""

from __future__ import annotations

import logging
from typing import Any

from .bus import SignalDispatcher
from .config import PortalClientConfig
from .screencast import ScreenCastPortal
from .transport.base import BusConnection
from .transport.mock import MockBusConnection

logger = logging.getLogger(__name__)


class PortalClient:
    """Client for the desktop portal over an injected bus connection."""

    def __init__(
        self,
        connection: BusConnection,
        config: PortalClientConfig | None = None,
    ) -> None:
        self.config = config or PortalClientConfig()
        self._connection = connection
        self._dispatcher = SignalDispatcher(connection)
        self.screencast = ScreenCastPortal(connection, self._dispatcher, self.config.destination)

    @property
    def connection(self) -> BusConnection:
        return self._connection

    @property
    def dispatcher(self) -> SignalDispatcher:
        return self._dispatcher

    async def start(self) -> None:
        """Connect and start routing signals."""
        await self._connection.connect()
        self._dispatcher.start()
        logger.debug(f"Portal client started for {self.config.destination}")

    async def close(self) -> None:
        """Stop routing signals and disconnect."""
        await self._dispatcher.stop()
        await self._connection.disconnect()

    async def __aenter__(self) -> PortalClient:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


# Factory functions


def create_client(config: PortalClientConfig | None = None) -> PortalClient:
    """Create a client on the session or system bus through sd-bus.

    Args:
        config: Client configuration (default: from PORTAL_CLIENT_* env vars)
    """
    from .transport.sdbus_connection import create_sdbus_connection

    config = config or PortalClientConfig.from_env()
    return PortalClient(create_sdbus_connection(config), config)


def create_test_client(connection: MockBusConnection | None = None) -> PortalClient:
    """Create a client over an in-memory mock connection for testing."""
    return PortalClient(connection or MockBusConnection())
