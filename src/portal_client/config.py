"""Client configuration.

Defaults target the desktop portal on the user's session bus. Environment
variables override them:

- PORTAL_CLIENT_BUS: "session" (default) or "system"
- PORTAL_CLIENT_DESTINATION: bus name of the portal service
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .protocol.names import DESKTOP_BUS_NAME

BUS_KINDS = ("session", "system")


@dataclass
class PortalClientConfig:
    """Configuration for portal clients."""

    # Which bus to open: "session" | "system"
    bus: str = "session"

    # Well-known name of the portal service
    destination: str = DESKTOP_BUS_NAME

    def __post_init__(self) -> None:
        if self.bus not in BUS_KINDS:
            raise ValueError(f"Unknown bus kind {self.bus!r}, expected one of {BUS_KINDS}")

    @classmethod
    def from_env(cls) -> PortalClientConfig:
        """Build a configuration from PORTAL_CLIENT_* environment variables."""
        return cls(
            bus=os.environ.get("PORTAL_CLIENT_BUS", "session").strip().lower(),
            destination=os.environ.get("PORTAL_CLIENT_DESTINATION", DESKTOP_BUS_NAME),
        )
