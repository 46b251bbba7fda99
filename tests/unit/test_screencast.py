"""Unit tests for ScreenCastPortal.create_session and PortalClient.

Uses the mock connection: CreateSession replies are canned and Response
signals are released once the client subscribes, like the real portal.
"""

from __future__ import annotations

import asyncio

import pytest

from portal_client import PortalClient, create_test_client
from portal_client.errors import (
    MalformedMessageError,
    NoResponseError,
    PortalResponseError,
    TransportError,
)
from portal_client.protocol.names import (
    DESKTOP_BUS_NAME,
    DESKTOP_OBJECT_PATH,
    REQUEST_INTERFACE,
    SCREENCAST_INTERFACE,
    SESSION_INTERFACE,
)
from portal_client.screencast import CreateSessionState
from portal_client.session import Session, SessionHandle
from portal_client.transport import ConnectionState, MockBusConnection


class TestCreateSession:
    """End-to-end create_session flow."""

    @pytest.mark.asyncio
    async def test_success_yields_session_handle(self, connection, response_signal) -> None:
        connection.schedule_signal(response_signal("/r/1", 0, {"session_handle": "/s/1"}))

        states: list[CreateSessionState] = []

        async with create_test_client(connection) as client:
            session = await asyncio.wait_for(
                client.screencast.create_session(on_state=states.append), timeout=1.0
            )

        assert isinstance(session, Session)
        assert session.handle == SessionHandle.parse("/s/1")
        assert session.path == "/s/1"
        assert session.interface == SESSION_INTERFACE
        assert session.destination == DESKTOP_BUS_NAME
        assert states == [
            CreateSessionState.STARTED,
            CreateSessionState.AWAITING_REQUEST_HANDLE,
            CreateSessionState.AWAITING_RESPONSE,
            CreateSessionState.SESSION_READY,
        ]

    @pytest.mark.asyncio
    async def test_create_session_call_on_the_wire(self, connection, response_signal) -> None:
        connection.schedule_signal(response_signal("/r/1", 0, {"session_handle": "/s/1"}))

        async with create_test_client(connection) as client:
            await asyncio.wait_for(
                client.screencast.create_session({"session_handle_token": "t1"}), timeout=1.0
            )

        call = connection.recorded_calls[0]
        assert call.destination == DESKTOP_BUS_NAME
        assert call.path == DESKTOP_OBJECT_PATH
        assert call.interface == SCREENCAST_INTERFACE
        assert call.member == "CreateSession"
        assert call.signature == "a{sv}"
        assert call.body == ({"session_handle_token": "t1"},)

    @pytest.mark.asyncio
    async def test_default_options_are_empty(self, connection, response_signal) -> None:
        connection.schedule_signal(response_signal("/r/1", 0, {"session_handle": "/s/1"}))

        async with create_test_client(connection) as client:
            await asyncio.wait_for(client.screencast.create_session(), timeout=1.0)

        assert connection.recorded_calls[0].body == ({},)

    @pytest.mark.asyncio
    async def test_full_portal_paths(self, response_signal) -> None:
        connection = MockBusConnection()
        connection.set_reply(
            SCREENCAST_INTERFACE,
            "CreateSession",
            ("/org/freedesktop/portal/desktop/request/1_42/t1",),
        )
        connection.schedule_signal(
            response_signal(
                "/org/freedesktop/portal/desktop/request/1_42/t1",
                0,
                {"session_handle": "/org/freedesktop/portal/desktop/session/1_42/s1"},
            )
        )

        async with create_test_client(connection) as client:
            session = await asyncio.wait_for(client.screencast.create_session(), timeout=1.0)

        assert session.path == "/org/freedesktop/portal/desktop/session/1_42/s1"


class TestCreateSessionFailures:
    @pytest.mark.asyncio
    async def test_user_cancelled(self, connection, response_signal) -> None:
        connection.schedule_signal(response_signal("/r/1", 1, {}))

        states: list[CreateSessionState] = []

        async with create_test_client(connection) as client:
            with pytest.raises(PortalResponseError) as exc_info:
                await asyncio.wait_for(
                    client.screencast.create_session(on_state=states.append), timeout=1.0
                )

        assert exc_info.value.cancelled is True
        assert states[-1] is CreateSessionState.CANCELLED_FAILURE

    @pytest.mark.asyncio
    async def test_other_failure(self, connection, response_signal) -> None:
        connection.schedule_signal(response_signal("/r/1", 2, {"unused": 1}))

        states: list[CreateSessionState] = []

        async with create_test_client(connection) as client:
            with pytest.raises(PortalResponseError) as exc_info:
                await asyncio.wait_for(
                    client.screencast.create_session(on_state=states.append), timeout=1.0
                )

        assert exc_info.value.cancelled is False
        assert states[-1] is CreateSessionState.OTHER_FAILURE

    @pytest.mark.asyncio
    async def test_call_failure_is_transport_error(self) -> None:
        connection = MockBusConnection()
        connection.set_reply(SCREENCAST_INTERFACE, "CreateSession", RuntimeError("no portal"))

        states: list[CreateSessionState] = []

        async with create_test_client(connection) as client:
            with pytest.raises(TransportError, match="no portal"):
                await client.screencast.create_session(on_state=states.append)

        assert states[-1] is CreateSessionState.TRANSPORT_FAILURE

    @pytest.mark.asyncio
    async def test_unrepresentable_option_is_rejected_before_the_call(self, connection) -> None:
        states: list[CreateSessionState] = []

        async with create_test_client(connection) as client:
            with pytest.raises(TypeError, match="Cannot infer a D-Bus signature"):
                await client.screencast.create_session({"types": object()}, on_state=states.append)

        assert connection.recorded_calls == []
        assert states == []

    @pytest.mark.asyncio
    async def test_malformed_reply(self) -> None:
        connection = MockBusConnection()
        connection.set_reply(SCREENCAST_INTERFACE, "CreateSession", ("not/a/path",))

        async with create_test_client(connection) as client:
            with pytest.raises(MalformedMessageError):
                await client.screencast.create_session()

        assert connection.active_matches == []

    @pytest.mark.asyncio
    async def test_unparsable_session_handle(self, connection, response_signal) -> None:
        connection.schedule_signal(response_signal("/r/1", 0, {"session_handle": "session 1"}))

        async with create_test_client(connection) as client:
            with pytest.raises(MalformedMessageError) as exc_info:
                await asyncio.wait_for(client.screencast.create_session(), timeout=1.0)

        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_missing_session_handle(self, connection, response_signal) -> None:
        connection.schedule_signal(response_signal("/r/1", 0, {}))

        async with create_test_client(connection) as client:
            with pytest.raises(MalformedMessageError):
                await asyncio.wait_for(client.screencast.create_session(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_no_response_before_disconnect(self, connection) -> None:
        client = create_test_client(connection)
        await client.start()

        states: list[CreateSessionState] = []
        task = asyncio.create_task(client.screencast.create_session(on_state=states.append))
        await asyncio.sleep(0.01)
        await connection.disconnect()

        with pytest.raises(NoResponseError):
            await asyncio.wait_for(task, timeout=1.0)

        assert states[-1] is CreateSessionState.TRANSPORT_FAILURE
        await client.close()

    @pytest.mark.asyncio
    async def test_timeout_closes_pending_request(self, connection) -> None:
        async with create_test_client(connection) as client:
            with pytest.raises(TimeoutError):
                await asyncio.wait_for(client.screencast.create_session(), timeout=0.05)

            assert client.dispatcher.subscription_count == 0

        close_calls = [c for c in connection.recorded_calls if c.member == "Close"]
        assert len(close_calls) == 1
        assert close_calls[0].path == "/r/1"
        assert close_calls[0].interface == REQUEST_INTERFACE


class TestConcurrentSessions:
    """Concurrent calls never see each other's responses."""

    @pytest.mark.asyncio
    async def test_each_call_gets_its_own_response(self, response_signal) -> None:
        connection = MockBusConnection()
        replies = iter([("/r/1",), ("/r/2",), ("/r/3",)])

        original_do_call = connection._do_call

        async def next_request_path(call):
            if call.member == "CreateSession":
                connection.set_reply(SCREENCAST_INTERFACE, "CreateSession", next(replies))
            return await original_do_call(call)

        connection._do_call = next_request_path  # type: ignore[method-assign]

        # Released in the reverse order of the calls
        connection.schedule_signal(response_signal("/r/3", 0, {"session_handle": "/s/3"}))
        connection.schedule_signal(response_signal("/r/2", 1, {}))
        connection.schedule_signal(response_signal("/r/1", 0, {"session_handle": "/s/1"}))

        async with create_test_client(connection) as client:
            results = await asyncio.wait_for(
                asyncio.gather(
                    client.screencast.create_session(),
                    client.screencast.create_session(),
                    client.screencast.create_session(),
                    return_exceptions=True,
                ),
                timeout=1.0,
            )

        paths = sorted(str(r.path) for r in results if isinstance(r, Session))
        errors = [r for r in results if isinstance(r, PortalResponseError)]
        assert paths == ["/s/1", "/s/3"]
        assert len(errors) == 1 and errors[0].cancelled

    @pytest.mark.asyncio
    async def test_each_call_tracks_its_own_state(self, response_signal) -> None:
        connection = MockBusConnection()
        replies = iter([("/r/1",), ("/r/2",)])
        original_do_call = connection._do_call

        async def next_request_path(call):
            if call.member == "CreateSession":
                connection.set_reply(SCREENCAST_INTERFACE, "CreateSession", next(replies))
            return await original_do_call(call)

        connection._do_call = next_request_path  # type: ignore[method-assign]
        connection.schedule_signal(response_signal("/r/1", 1, {}))
        connection.schedule_signal(response_signal("/r/2", 0, {"session_handle": "/s/2"}))

        first: list[CreateSessionState] = []
        second: list[CreateSessionState] = []
        async with create_test_client(connection) as client:
            cancelled, session = await asyncio.wait_for(
                asyncio.gather(
                    client.screencast.create_session(on_state=first.append),
                    client.screencast.create_session(on_state=second.append),
                    return_exceptions=True,
                ),
                timeout=1.0,
            )

        assert isinstance(cancelled, PortalResponseError)
        assert session.path == "/s/2"
        assert first[-1] is CreateSessionState.CANCELLED_FAILURE
        assert second[-1] is CreateSessionState.SESSION_READY


class TestPortalClient:
    @pytest.mark.asyncio
    async def test_lifecycle(self) -> None:
        connection = MockBusConnection()
        client = PortalClient(connection)

        async with client:
            assert connection.state is ConnectionState.CONNECTED
            assert client.dispatcher.is_running is True

        assert connection.state is ConnectionState.DISCONNECTED
        assert client.dispatcher.is_running is False

    @pytest.mark.asyncio
    async def test_connect_failure(self) -> None:
        connection = MockBusConnection()
        connection.connect_error = OSError("no bus")

        with pytest.raises(TransportError, match="no bus"):
            async with PortalClient(connection):
                pass

        assert connection.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_call_without_connection(self) -> None:
        client = create_test_client()

        with pytest.raises(TransportError):
            await client.screencast.create_session()


class TestCreateSessionState:
    def test_terminal_states(self) -> None:
        terminal = {s for s in CreateSessionState if s.is_terminal}

        assert terminal == {
            CreateSessionState.SESSION_READY,
            CreateSessionState.CANCELLED_FAILURE,
            CreateSessionState.OTHER_FAILURE,
            CreateSessionState.TRANSPORT_FAILURE,
        }
