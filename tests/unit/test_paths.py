"""Unit tests for object path validation."""

import pytest

from portal_client.errors import MalformedMessageError
from portal_client.protocol.paths import InvalidObjectPathError, ObjectPath, is_object_path
from portal_client.session import SessionHandle


class TestObjectPath:
    @pytest.mark.parametrize(
        "value",
        [
            "/",
            "/s/1",
            "/org/freedesktop/portal/desktop",
            "/org/freedesktop/portal/desktop/request/1_42/t0k3n",
        ],
    )
    def test_valid(self, value):
        path = ObjectPath(value)

        assert path == value
        assert is_object_path(value) is True

    @pytest.mark.parametrize(
        "value",
        ["", "s/1", "/s/", "//s", "/s//1", "/s-1", "/s/1.0", "/ s"],
    )
    def test_invalid(self, value):
        assert is_object_path(value) is False
        with pytest.raises(InvalidObjectPathError):
            ObjectPath(value)

    def test_non_string_is_not_a_path(self):
        assert is_object_path(42) is False
        assert is_object_path(None) is False

    def test_elements(self):
        assert ObjectPath("/org/freedesktop/portal").elements == ["org", "freedesktop", "portal"]
        assert ObjectPath("/").elements == []

    def test_is_a_string(self):
        path = ObjectPath("/s/1")

        assert isinstance(path, str)
        assert repr(path) == "ObjectPath('/s/1')"


class TestSessionHandleParse:
    def test_parse(self):
        handle = SessionHandle.parse("/org/freedesktop/portal/session/1")

        assert handle.path == "/org/freedesktop/portal/session/1"
        assert str(handle) == "/org/freedesktop/portal/session/1"

    def test_parse_invalid_wraps_path_error(self):
        with pytest.raises(MalformedMessageError) as exc_info:
            SessionHandle.parse("session-1")

        assert isinstance(exc_info.value.__cause__, InvalidObjectPathError)

    def test_handles_compare_by_path(self):
        assert SessionHandle.parse("/s/1") == SessionHandle.parse("/s/1")
        assert SessionHandle.parse("/s/1") != SessionHandle.parse("/s/2")
