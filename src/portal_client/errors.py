"""Error taxonomy for portal requests.

Every failure raised by this package derives from PortalError and carries
an ErrorKind. The set of kinds is closed:

- TRANSPORT: the bus connection or a method call failed
- MALFORMED_MESSAGE: a reply or signal did not have the expected shape
- PROTOCOL_OUTCOME: the portal answered, but the user cancelled or the
  interaction ended some other way
- NO_RESPONSE: the signal stream ended before the Response arrived
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    TRANSPORT = "transport"
    MALFORMED_MESSAGE = "malformed_message"
    PROTOCOL_OUTCOME = "protocol_outcome"
    NO_RESPONSE = "no_response"


class ResponseOutcome(str, Enum):
    """Non-success outcomes reported by the portal."""

    CANCELLED = "cancelled"  # The user cancelled the interaction
    OTHER = "other"  # The interaction ended some other way


class PortalError(Exception):
    """Base class for all portal client errors."""

    kind: ClassVar[ErrorKind]


class TransportError(PortalError):
    """Raised when the bus connection or a method call fails."""

    kind = ErrorKind.TRANSPORT


class MalformedMessageError(PortalError):
    """Raised when a reply or signal body does not match the expected shape."""

    kind = ErrorKind.MALFORMED_MESSAGE


class PortalResponseError(PortalError):
    """Raised when the portal reports a cancelled or failed request."""

    kind = ErrorKind.PROTOCOL_OUTCOME

    def __init__(self, outcome: ResponseOutcome) -> None:
        super().__init__(f"Portal response error: {outcome.value}")
        self.outcome = outcome

    @property
    def cancelled(self) -> bool:
        return self.outcome is ResponseOutcome.CANCELLED


class NoResponseError(PortalError):
    """Raised when the signal stream closes before a Response arrives."""

    kind = ErrorKind.NO_RESPONSE

    def __init__(self, message: str = "portal error: no response") -> None:
        super().__init__(message)
