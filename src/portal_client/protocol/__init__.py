"""Wire-level pieces of the desktop portal protocol."""

from .names import (
    CLOSE_METHOD,
    CREATE_SESSION_METHOD,
    DESKTOP_BUS_NAME,
    DESKTOP_OBJECT_PATH,
    REQUEST_INTERFACE,
    RESPONSE_SIGNAL,
    SCREENCAST_INTERFACE,
    SESSION_INTERFACE,
)
from .paths import InvalidObjectPathError, ObjectPath, is_object_path
from .response import (
    Cancelled,
    Other,
    ResponseEnvelope,
    ResponseStatus,
    Success,
    decode_response,
    unwrap_response,
)
from .variant import split_signature, to_vardict, to_variant, unwrap, unwrap_body

__all__ = [
    # Names
    "DESKTOP_BUS_NAME",
    "DESKTOP_OBJECT_PATH",
    "SCREENCAST_INTERFACE",
    "REQUEST_INTERFACE",
    "SESSION_INTERFACE",
    "CREATE_SESSION_METHOD",
    "CLOSE_METHOD",
    "RESPONSE_SIGNAL",
    # Paths
    "ObjectPath",
    "InvalidObjectPathError",
    "is_object_path",
    # Responses
    "ResponseStatus",
    "ResponseEnvelope",
    "Success",
    "Cancelled",
    "Other",
    "decode_response",
    "unwrap_response",
    # Variants
    "split_signature",
    "to_variant",
    "to_vardict",
    "unwrap",
    "unwrap_body",
]
