"""D-Bus object paths.

An object path is either "/" or a sequence of "/"-prefixed elements, each
made of [A-Za-z0-9_] characters. No empty elements, no trailing slash.
"""

from __future__ import annotations

import re

_ELEMENT = re.compile(r"[A-Za-z0-9_]+")


class InvalidObjectPathError(ValueError):
    """Raised when a string is not a valid D-Bus object path."""

    pass


def is_object_path(value: object) -> bool:
    """Check whether value is a string following the object path grammar."""
    if not isinstance(value, str) or not value.startswith("/"):
        return False
    if value == "/":
        return True
    return all(_ELEMENT.fullmatch(element) for element in value[1:].split("/"))


class ObjectPath(str):
    """A validated D-Bus object path.

    Usage:
        path = ObjectPath("/org/freedesktop/portal/session/1")
        ObjectPath("not a path")  # raises InvalidObjectPathError
    """

    __slots__ = ()

    def __new__(cls, value: str) -> ObjectPath:
        if not is_object_path(value):
            raise InvalidObjectPathError(f"Invalid object path: {value!r}")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"ObjectPath({str(self)!r})"

    @property
    def elements(self) -> list[str]:
        """Path elements without separators (empty for the root path)."""
        if self == "/":
            return []
        return self[1:].split("/")
