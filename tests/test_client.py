from __future__ import annotations

import logging

import pytest

from miaw import ClientOptions, MiawClient
from miaw.constants import TIMEOUTS
from miaw.exceptions import ValidationError


def test_options_validation(tmp_path) -> None:
    with pytest.raises(ValidationError):
        ClientOptions(instance_id="")
    with pytest.raises(ValidationError):
        ClientOptions(instance_id="../escape")
    with pytest.raises(ValidationError):
        ClientOptions(instance_id="a", reconnect_delay_ms=-1)
    with pytest.raises(ValidationError):
        ClientOptions(instance_id="a", lid_cache_size=0)

    opts = ClientOptions(instance_id="a", session_path=str(tmp_path))
    assert opts.reconnect_delay_s == 3.0
    assert opts.max_reconnect_attempts is None


def test_instances_are_isolated(make_client) -> None:
    a = make_client(instance_id="a")
    b = make_client(instance_id="b")
    a.register_lid_mapping("123", "6281100000000")

    assert a.get_lid_cache_size() == 1
    assert b.get_lid_cache_size() == 0
    assert a.session.path != b.session.path
    assert a.get_instance_id() == "a"


@pytest.mark.asyncio
async def test_commands_fail_fast_when_not_connected(client, factory) -> None:
    res = await client.send_text("6281200000000", "hello")
    assert res.success is False
    assert res.error == "Not connected (connection state: disconnected)"

    contacts = await client.fetch_all_contacts()
    assert contacts.success is False
    assert contacts.contacts == []
    assert factory.calls == 0


@pytest.mark.asyncio
async def test_queries_read_projected_stores(client, connected) -> None:
    t = await connected()
    await t.events.emit(
        "contacts.upsert",
        [{"id": "111@lid", "jid": "6281200000000@s.whatsapp.net", "notify": "Budi"}],
    )
    await t.events.emit("chats.upsert", [{"id": "6281200000000@s.whatsapp.net", "unreadCount": 2}])
    await t.events.emit(
        "messages.upsert",
        {
            "type": "notify",
            "messages": [
                {
                    "key": {"remoteJid": "6281200000000@s.whatsapp.net", "id": f"M{i}"},
                    "message": {"conversation": f"hi {i}"},
                    "messageTimestamp": 1_700_000_000 + i,
                }
                for i in range(3)
            ],
        },
    )

    contacts = await client.fetch_all_contacts()
    assert [c.jid for c in contacts.contacts] == ["6281200000000@s.whatsapp.net"]
    chats = await client.fetch_all_chats()
    assert chats.chats[0].unread_count == 2

    msgs = await client.get_chat_messages("6281200000000")
    assert [m.text for m in msgs.messages] == ["hi 0", "hi 1", "hi 2"]
    latest = await client.get_chat_messages("6281200000000@s.whatsapp.net", limit=1)
    assert [m.id for m in latest.messages] == ["M2"]

    assert client.resolve_lid_to_jid("111@lid") == "6281200000000@s.whatsapp.net"
    assert client.get_phone_from_jid("111@lid") == "6281200000000"


@pytest.mark.asyncio
async def test_fetch_all_groups_is_live(client, connected) -> None:
    await connected()
    res = await client.fetch_all_groups()
    assert res.success
    assert res.groups[0].name == "Team"


@pytest.mark.asyncio
async def test_fetch_all_labels_force_sync_waits_for_resync(client, connected) -> None:
    t = await connected()
    t.resync_labels = [{"id": "1", "name": "New customer", "color": 1}]

    cached = await client.fetch_all_labels()
    assert cached.labels == []

    synced = await client.fetch_all_labels(force_sync=True)
    assert synced.success
    assert [(lbl.id, lbl.name) for lbl in synced.labels] == [("1", "New customer")]


@pytest.mark.asyncio
async def test_fetch_all_labels_force_sync_is_bounded(
    make_client, factory, monkeypatch
) -> None:
    monkeypatch.setattr(TIMEOUTS, "LABEL_SYNC_WAIT", 20)
    factory.transport_kwargs["hang_resync"] = True
    client = make_client()
    await client.connect()
    await factory.last.open()

    res = await client.fetch_all_labels(force_sync=True)

    assert res.success
    assert res.labels == []
    await client.dispose()


@pytest.mark.asyncio
async def test_unsupported_operation_is_a_failed_result(client, connected) -> None:
    await connected()
    res = await client.get_catalog()
    assert res.success is False
    assert "not supported" in (res.error or "")


def test_lid_helpers(client: MiawClient) -> None:
    client.register_lid_mapping("555", "6281300000000")
    assert client.get_lid_mappings() == {"555@lid": "6281300000000@s.whatsapp.net"}
    assert client.resolve_lid_to_jid("999@lid") == "999@lid"
    assert client.resolve_lid_to_jid("6281300000000@s.whatsapp.net") == (
        "6281300000000@s.whatsapp.net"
    )

    client.clear_lid_cache()
    assert client.get_lid_cache_size() == 0


@pytest.mark.asyncio
async def test_dispose_clears_everything(client, connected) -> None:
    t = await connected()
    await t.events.emit("contacts.upsert", [{"id": "6281200000000@s.whatsapp.net", "lid": "42"}])
    seen: list[str] = []
    client.on("connection", seen.append)

    await client.dispose()

    assert len(client.contacts) == 0
    assert client.get_lid_cache_size() == 0
    assert client.get_connection_state() == "disconnected"
    assert seen == ["disconnected"]
    assert client._events.listener_count("connection") == 0


def test_debug_toggle(make_client) -> None:
    client = make_client(instance_id="dbg")
    assert client.logger.name == "miaw.dbg"
    assert not client.is_debug_enabled()
    assert client.logger.level == logging.WARNING

    client.enable_debug()
    assert client.is_debug_enabled()
    assert client.logger.level == logging.DEBUG

    client.disable_debug()
    assert client.logger.level == logging.WARNING


def test_injected_logger_is_used(make_client) -> None:
    log = logging.getLogger("app.whatsapp")
    client = make_client(logger=log)
    assert client.logger is log
