from __future__ import annotations

import asyncio

import pytest

from miaw.constants import LABEL_COLLECTIONS
from miaw.exceptions import ReconnectLimitError
from miaw.transport.base import ConnectionUpdate, DisconnectReason


@pytest.mark.asyncio
async def test_connect_open_reaches_connected(client, factory, record) -> None:
    rec = record("connection", "ready")

    await client.connect()
    assert client.get_connection_state() == "connecting"
    assert factory.last.called("connect") == [()]
    assert factory.contexts[0].instance_id == "test"
    assert factory.contexts[0].session_dir.is_dir()

    await factory.last.open()
    assert client.is_connected()
    assert rec["connection"] == ["connecting", "connected"]
    assert rec["ready"] == [None]


@pytest.mark.asyncio
async def test_connect_is_noop_while_connected(client, factory, connected) -> None:
    await connected()
    await client.connect()
    assert factory.calls == 1


@pytest.mark.asyncio
async def test_qr_moves_to_qr_required(client, factory, record) -> None:
    rec = record("qr")
    await client.connect()
    await factory.last.events.emit("connection.update", ConnectionUpdate(qr="2@abc,def"))

    assert client.get_connection_state() == "qr_required"
    assert rec["qr"] == ["2@abc,def"]


@pytest.mark.asyncio
async def test_labels_resync_after_open(client, factory, connected) -> None:
    t = await connected()
    await asyncio.wait_for(t.resynced.wait(), timeout=1)
    assert t.called("resync_app_state") == [(list(LABEL_COLLECTIONS),)]


@pytest.mark.asyncio
async def test_logout_close_purges_session_and_never_retries(
    client, factory, connected, record
) -> None:
    rec = record("disconnected", "reconnecting")
    t = await connected()
    session_dir = client.session.path
    (session_dir / "creds.json").write_text("{}")

    await t.drop(DisconnectReason.LOGGED_OUT)

    assert client.get_connection_state() == "disconnected"
    assert rec["disconnected"] == ["loggedOut"]
    assert rec["reconnecting"] == []
    assert not client._controller.reconnect_pending
    assert not session_dir.exists()
    assert t.closed

    # The next connect pairs against an empty session folder.
    await client.connect()
    assert factory.calls == 2
    assert not any(client.session.path.iterdir())


@pytest.mark.asyncio
async def test_non_logout_close_schedules_one_timer(client, factory, connected, record) -> None:
    rec = record("disconnected", "reconnecting")
    t = await connected()

    await t.drop(DisconnectReason.CONNECTION_LOST)

    ctl = client._controller
    assert client.get_connection_state() == "reconnecting"
    assert rec["disconnected"] == ["connectionLost"]
    assert rec["reconnecting"] == [1]
    assert ctl.reconnect_pending
    first = ctl._reconnect_task

    await ctl.schedule_reconnect()
    assert first.cancelled()
    assert ctl.reconnect_pending
    assert ctl._reconnect_task is not first
    assert ctl.reconnect_attempts == 2

    await client.disconnect()
    assert not ctl.reconnect_pending


@pytest.mark.asyncio
async def test_reconnect_timer_builds_a_new_transport(make_client, factory) -> None:
    client = make_client(reconnect_delay_ms=0)
    await client.connect()
    first = factory.last
    await first.open()

    await first.drop(DisconnectReason.CONNECTION_CLOSED)
    await client.wait_for_state("connecting", timeout_s=1)

    assert factory.calls == 2
    second = factory.last
    assert second is not first
    await second.open()
    assert client.is_connected()
    assert client._controller.reconnect_attempts == 0
    await client.dispose()


@pytest.mark.asyncio
async def test_reconnect_cap_emits_error_on_sixth_failure(make_client, factory) -> None:
    client = make_client(reconnect_delay_ms=0, max_reconnect_attempts=5)
    errors: list[Exception] = []
    attempts: list[int] = []
    gave_up = asyncio.Event()

    def on_error(err: Exception) -> None:
        errors.append(err)
        if isinstance(err, ReconnectLimitError):
            gave_up.set()

    client.on("error", on_error)
    client.on("reconnecting", attempts.append)
    factory.fail = ConnectionRefusedError("no route")

    await client.connect()
    await asyncio.wait_for(gave_up.wait(), timeout=2)

    assert attempts == [1, 2, 3, 4, 5]
    assert factory.calls == 6
    limit = errors[-1]
    assert isinstance(limit, ReconnectLimitError)
    assert limit.attempts == 5
    assert sum(isinstance(e, ConnectionRefusedError) for e in errors) == 6
    assert client.get_connection_state() == "disconnected"


@pytest.mark.asyncio
async def test_no_reconnect_when_disabled(make_client, factory) -> None:
    client = make_client(auto_reconnect=False)
    await client.connect()
    await factory.last.open()

    await factory.last.drop(DisconnectReason.CONNECTION_CLOSED)

    assert client.get_connection_state() == "disconnected"
    assert not client._controller.reconnect_pending


@pytest.mark.asyncio
async def test_disconnect_cancels_reconnect_inside_factory(make_client, factory) -> None:
    client = make_client(reconnect_delay_ms=0)
    await client.connect()
    await factory.last.open()

    factory.gate = asyncio.Event()
    factory.entered.clear()
    await factory.last.drop(DisconnectReason.CONNECTION_LOST)
    await asyncio.wait_for(factory.entered.wait(), timeout=1)

    await client.disconnect()
    factory.gate.set()
    await asyncio.sleep(0.05)

    ctl = client._controller
    assert len(factory.created) == 1
    assert ctl.transport is None
    assert not ctl.reconnect_pending
    assert client.get_connection_state() == "disconnected"


@pytest.mark.asyncio
async def test_connect_finishing_after_disconnect_is_dropped(make_client, factory) -> None:
    client = make_client(reconnect_delay_ms=0)
    factory.gate = asyncio.Event()
    pending = asyncio.create_task(client.connect())
    await asyncio.wait_for(factory.entered.wait(), timeout=1)

    await client.disconnect()
    factory.gate.set()
    await pending

    late = factory.last
    assert late.closed
    assert client._controller.transport is None
    await late.open()
    assert client.get_connection_state() == "disconnected"


@pytest.mark.asyncio
async def test_connect_failing_after_disconnect_never_retries(make_client, factory) -> None:
    client = make_client(reconnect_delay_ms=0)
    errors: list[Exception] = []
    attempts: list[int] = []
    client.on("error", errors.append)
    client.on("reconnecting", attempts.append)

    factory.gate = asyncio.Event()
    pending = asyncio.create_task(client.connect())
    await asyncio.wait_for(factory.entered.wait(), timeout=1)

    await client.disconnect()
    factory.fail = ConnectionRefusedError("no route")
    factory.gate.set()
    await pending
    await asyncio.sleep(0.05)

    assert factory.calls == 1
    assert attempts == []
    assert errors == []
    assert not client._controller.reconnect_pending
    assert client.get_connection_state() == "disconnected"


@pytest.mark.asyncio
async def test_events_from_replaced_transport_are_ignored(
    client, factory, connected, record
) -> None:
    rec = record("message")
    old = await connected()
    await old.drop(DisconnectReason.CONNECTION_REPLACED)
    assert client.get_connection_state() == "reconnecting"

    await old.open()
    await old.events.emit(
        "messages.upsert",
        {
            "type": "notify",
            "messages": [
                {"key": {"remoteJid": "6281200000000@s.whatsapp.net", "id": "X"}, "message": {}}
            ],
        },
    )

    assert client.get_connection_state() == "reconnecting"
    assert rec["message"] == []
    await client.disconnect()


@pytest.mark.asyncio
async def test_creds_update_saves_and_notifies(client, factory, connected, record) -> None:
    rec = record("session_saved", "error")
    t = await connected()

    await t.events.emit("creds.update", {})
    assert t.called("save_credentials") == [()]
    assert rec["session_saved"] == [None]

    t.fail_save = True
    await t.events.emit("creds.update", {})
    assert len(rec["session_saved"]) == 1
    assert isinstance(rec["error"][0], OSError)


@pytest.mark.asyncio
async def test_disconnect_keeps_session(client, factory, connected) -> None:
    t = await connected()
    (client.session.path / "creds.json").write_text("{}")

    await client.disconnect()

    assert t.closed
    assert client.get_connection_state() == "disconnected"
    assert client.session.exists()


@pytest.mark.asyncio
async def test_explicit_logout_unlinks_and_purges(client, factory, connected) -> None:
    t = await connected()
    (client.session.path / "creds.json").write_text("{}")

    await client.logout()

    assert t.logged_out
    assert not client.session.path.exists()
    assert client.get_connection_state() == "disconnected"
