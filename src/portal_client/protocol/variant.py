"""D-Bus type signatures and variant values.

sdbus represents a variant as a ``(signature, value)`` pair. Portal
results arrive as ``a{sv}`` dictionaries of such pairs. This module turns
those pairs into plain Python values at the transport edge, and builds
variant dictionaries from plain option mappings for outgoing calls.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..errors import MalformedMessageError
from .paths import ObjectPath

BASIC_TYPE_CODES = "ybnqiuxtdsogh"
VARIANT_TYPE_CODE = "v"


class InvalidSignatureError(ValueError):
    """Raised when a string is not a valid D-Bus type signature."""

    pass


def _complete_type_end(signature: str, start: int) -> int:
    """Return the index just past the complete type starting at start."""
    if start >= len(signature):
        raise InvalidSignatureError(f"Truncated signature: {signature!r}")

    code = signature[start]
    if code in BASIC_TYPE_CODES or code == VARIANT_TYPE_CODE:
        return start + 1
    if code == "a":
        return _complete_type_end(signature, start + 1)
    if code in "({":
        closing = ")" if code == "(" else "}"
        index = start + 1
        while index < len(signature) and signature[index] != closing:
            index = _complete_type_end(signature, index)
        if index >= len(signature) or index == start + 1:
            raise InvalidSignatureError(f"Unbalanced container in signature: {signature!r}")
        return index + 1

    raise InvalidSignatureError(f"Unknown type code {code!r} in signature: {signature!r}")


def split_signature(signature: str) -> list[str]:
    """Split a signature into its complete types.

    Example:
        split_signature("ua{sv}") == ["u", "a{sv}"]
    """
    types: list[str] = []
    index = 0
    while index < len(signature):
        end = _complete_type_end(signature, index)
        types.append(signature[index:end])
        index = end
    return types


def is_single_complete_type(signature: object) -> bool:
    if not isinstance(signature, str) or not signature:
        return False
    try:
        return len(split_signature(signature)) == 1
    except InvalidSignatureError:
        return False


def unwrap(signature: str, value: Any) -> Any:
    """Convert a value received with the given signature into plain Python values.

    Variants are replaced by their contents, dictionaries and arrays are
    converted recursively, structs become tuples.

    Raises:
        MalformedMessageError: If value does not fit the signature
    """
    try:
        if signature == VARIANT_TYPE_CODE:
            if not (isinstance(value, tuple) and len(value) == 2):
                raise MalformedMessageError(f"Expected a variant pair, got {value!r}")
            inner_signature, inner = value
            if not is_single_complete_type(inner_signature):
                raise MalformedMessageError(f"Invalid variant signature: {inner_signature!r}")
            return unwrap(inner_signature, inner)

        if signature.startswith("a{"):
            key_signature, value_signature = split_signature(signature[2:-1])
            if not isinstance(value, Mapping):
                raise MalformedMessageError(f"Expected a dictionary for {signature}, got {value!r}")
            return {
                unwrap(key_signature, key): unwrap(value_signature, item)
                for key, item in value.items()
            }

        if signature.startswith("a"):
            element_signature = signature[1:]
            if element_signature == "y" and isinstance(value, (bytes, bytearray)):
                return bytes(value)
            if isinstance(value, (str, bytes, Mapping)):
                raise MalformedMessageError(f"Expected an array for {signature}, got {value!r}")
            return [unwrap(element_signature, item) for item in value]

        if signature.startswith("("):
            members = split_signature(signature[1:-1])
            return tuple(unwrap(s, v) for s, v in zip(members, value, strict=True))
    except InvalidSignatureError as e:
        raise MalformedMessageError(str(e)) from e
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"Value {value!r} does not match signature {signature}") from e

    return value


def unwrap_body(signature: str, body: Any) -> tuple[Any, ...]:
    """Convert a method reply or signal payload into a tuple of plain values.

    sdbus hands back a bare value for single-argument bodies and a tuple
    otherwise; the result here is always a tuple.
    """
    try:
        types = split_signature(signature)
    except InvalidSignatureError as e:
        raise MalformedMessageError(str(e)) from e

    if not types:
        return ()
    if len(types) == 1:
        return (unwrap(types[0], body),)
    if not isinstance(body, (tuple, list)) or len(body) != len(types):
        raise MalformedMessageError(
            f"Expected {len(types)} arguments for signature {signature}, got {body!r}"
        )
    return tuple(unwrap(t, v) for t, v in zip(types, body))


def to_variant(value: Any) -> tuple[str, Any]:
    """Wrap a plain Python value as a ``(signature, value)`` pair.

    Pairs that already carry a valid signature are passed through unchanged.

    Raises:
        TypeError: If no signature can be inferred for the value
    """
    if isinstance(value, tuple) and len(value) == 2 and is_single_complete_type(value[0]):
        return value
    if isinstance(value, bool):
        return ("b", value)
    if isinstance(value, int):
        return ("u", value) if value >= 0 else ("i", value)
    if isinstance(value, float):
        return ("d", value)
    if isinstance(value, ObjectPath):
        return ("o", str(value))
    if isinstance(value, str):
        return ("s", value)
    if isinstance(value, (bytes, bytearray)):
        return ("ay", bytes(value))
    if isinstance(value, Mapping):
        return ("a{sv}", to_vardict(value))
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return ("as", list(value))
    raise TypeError(f"Cannot infer a D-Bus signature for {value!r}")


def to_vardict(options: Mapping[str, Any]) -> dict[str, tuple[str, Any]]:
    """Wrap a string-keyed option mapping as an ``a{sv}`` dictionary."""
    vardict: dict[str, tuple[str, Any]] = {}
    for key, value in options.items():
        if not isinstance(key, str):
            raise TypeError(f"Option keys must be strings, got {key!r}")
        vardict[key] = to_variant(value)
    return vardict
