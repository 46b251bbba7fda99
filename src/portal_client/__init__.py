"""Portal Client - request/response negotiation with the XDG desktop portal.

A portal method starts a request and returns its object path; the outcome
arrives later as a Response signal on that path. This package correlates
the two, decodes the outcome into a typed envelope, and builds session
handles from successful responses.

Connection modes:
- sdbus: Session or system bus through sd-bus
- mock: In-memory connection for testing
"""

from .bus import SignalDispatcher, Subscription
from .client import PortalClient, create_client, create_test_client
from .config import PortalClientConfig
from .errors import (
    ErrorKind,
    MalformedMessageError,
    NoResponseError,
    PortalError,
    PortalResponseError,
    ResponseOutcome,
    TransportError,
)
from .protocol.paths import ObjectPath
from .protocol.response import (
    Cancelled,
    Other,
    ResponseEnvelope,
    ResponseStatus,
    Success,
    decode_response,
    unwrap_response,
)
from .request import Request, RequestHandle
from .screencast import CreateSessionResults, CreateSessionState, ScreenCastPortal
from .session import Session, SessionHandle

__all__ = [
    # Client
    "PortalClient",
    "PortalClientConfig",
    "create_client",
    "create_test_client",
    # Portals
    "ScreenCastPortal",
    "CreateSessionResults",
    "CreateSessionState",
    "Request",
    "RequestHandle",
    "Session",
    "SessionHandle",
    # Signals
    "SignalDispatcher",
    "Subscription",
    # Responses
    "ResponseStatus",
    "ResponseEnvelope",
    "Success",
    "Cancelled",
    "Other",
    "decode_response",
    "unwrap_response",
    "ObjectPath",
    # Errors
    "ErrorKind",
    "ResponseOutcome",
    "PortalError",
    "TransportError",
    "MalformedMessageError",
    "PortalResponseError",
    "NoResponseError",
]
