from __future__ import annotations

from typing import Any

import pytest

from miaw.lid_cache import LidMapping
from miaw.projector import EventProjector
from miaw.store import ChatStore, ContactStore, LabelStore, MessageStore
from miaw.types import MessageDelete, MessageEdit, MessageReaction, MiawMessage
from miaw.util.events import AsyncEventEmitter

CHAT = "6281200000000@s.whatsapp.net"


class Harness:
    def __init__(self) -> None:
        self.notify = AsyncEventEmitter()
        self.seen: list[tuple[str, Any]] = []
        for event in ("message", "message_edit", "message_delete", "message_reaction", "presence"):
            self.notify.on(event, self._collect(event))
        self.projector = EventProjector(
            contacts=ContactStore(),
            chats=ChatStore(),
            messages=MessageStore(),
            labels=LabelStore(),
            lid_mapping=LidMapping(),
            notify=self.notify,
        )
        self.transport_events = AsyncEventEmitter()
        self.projector.bind(self.transport_events)

    def _collect(self, event: str) -> Any:
        def collect(payload: Any) -> None:
            self.seen.append((event, payload))

        return collect

    def of(self, event: str) -> list[Any]:
        return [p for e, p in self.seen if e == event]


def envelope(msg_id: str, message: dict[str, Any], **key: Any) -> dict[str, Any]:
    return {
        "key": {"remoteJid": CHAT, "fromMe": False, "id": msg_id, **key},
        "message": message,
        "messageTimestamp": "1700000000",
        "pushName": "Budi",
    }


@pytest.fixture
def h() -> Harness:
    return Harness()


@pytest.mark.asyncio
async def test_upserts_for_one_chat_keep_arrival_order(h: Harness) -> None:
    batch = [envelope(f"M{i}", {"conversation": f"text {i}"}) for i in range(5)]
    await h.transport_events.emit("messages.upsert", {"type": "notify", "messages": batch})

    stored = h.projector.messages.get(CHAT)
    assert [m.id for m in stored] == ["M0", "M1", "M2", "M3", "M4"]
    assert [m.text for m in stored] == [f"text {i}" for i in range(5)]
    assert stored[0].raw is batch[0]
    assert [m.id for m in h.of("message")] == ["M0", "M1", "M2", "M3", "M4"]


@pytest.mark.asyncio
async def test_history_append_batches_are_not_projected(h: Harness) -> None:
    await h.transport_events.emit(
        "messages.upsert",
        {"type": "append", "messages": [envelope("OLD", {"conversation": "old"})]},
    )
    assert len(h.projector.messages) == 0
    assert h.seen == []


@pytest.mark.asyncio
async def test_revoke_is_a_delete_notification_only(h: Harness) -> None:
    await h.projector.project_message(envelope("M1", {"conversation": "oops"}))
    revoke = envelope(
        "P1",
        {"protocolMessage": {"type": "REVOKE", "key": {"remoteJid": CHAT, "id": "M1"}}},
    )

    assert await h.projector.project_message(revoke) is None

    assert [m.id for m in h.projector.messages.get(CHAT)] == ["M1"]
    deletes = h.of("message_delete")
    assert len(deletes) == 1
    assert isinstance(deletes[0], MessageDelete)
    assert deletes[0].message_id == "M1"
    assert deletes[0].chat_id == CHAT


@pytest.mark.asyncio
async def test_revoke_without_explicit_type(h: Harness) -> None:
    # protobuf JSON drops the enum when it is REVOKE (0).
    revoke = envelope("P1", {"protocolMessage": {"key": {"remoteJid": CHAT, "id": "M9"}}})
    await h.projector.project_message(revoke)
    assert [d.message_id for d in h.of("message_delete")] == ["M9"]
    assert len(h.projector.messages) == 0


@pytest.mark.asyncio
async def test_edit_is_notified_and_never_rewrites(h: Harness) -> None:
    await h.projector.project_message(envelope("M1", {"conversation": "helo"}))
    edit = envelope(
        "P2",
        {
            "protocolMessage": {
                "type": "MESSAGE_EDIT",
                "key": {"remoteJid": CHAT, "id": "M1"},
                "editedMessage": {"conversation": "hello"},
                "timestampMs": "1700000000500",
            }
        },
    )
    await h.projector.project_message(edit)

    edits = h.of("message_edit")
    assert len(edits) == 1
    assert isinstance(edits[0], MessageEdit)
    assert edits[0].new_text == "hello"
    assert edits[0].edit_timestamp == 1700000000500
    assert h.projector.messages.get(CHAT)[0].text == "helo"


@pytest.mark.asyncio
async def test_other_protocol_messages_are_dropped(h: Harness) -> None:
    await h.projector.project_message(
        envelope("P3", {"protocolMessage": {"type": "EPHEMERAL_SETTING", "ephemeralExpiration": 0}})
    )
    assert h.seen == []
    assert len(h.projector.messages) == 0


@pytest.mark.asyncio
async def test_reaction_inside_upsert(h: Harness) -> None:
    await h.projector.project_message(
        envelope(
            "R1", {"reactionMessage": {"key": {"remoteJid": CHAT, "id": "M1"}, "text": "👍"}}
        )
    )
    reactions = h.of("message_reaction")
    assert len(reactions) == 1
    assert isinstance(reactions[0], MessageReaction)
    assert reactions[0].emoji == "👍"
    assert not reactions[0].is_removal
    assert len(h.projector.messages) == 0


@pytest.mark.asyncio
async def test_reaction_events(h: Harness) -> None:
    await h.transport_events.emit(
        "messages.reaction",
        [
            {
                "key": {"remoteJid": CHAT, "id": "M1"},
                "reaction": {"key": {"remoteJid": CHAT, "participant": CHAT}, "text": ""},
            }
        ],
    )
    (reaction,) = h.of("message_reaction")
    assert reaction.is_removal
    assert reaction.reactor_id == CHAT


@pytest.mark.asyncio
async def test_contact_upsert_teaches_lid_mapping(h: Harness) -> None:
    await h.transport_events.emit(
        "contacts.upsert", [{"id": "111@lid", "jid": "62811@s.whatsapp.net", "name": "Budi"}]
    )

    assert h.projector.lid_mapping.resolve("111@lid") == "62811@s.whatsapp.net"
    contact = h.projector.contacts.get("62811@s.whatsapp.net")
    assert contact is not None
    assert contact.name == "Budi"
    assert contact.phone == "62811"


@pytest.mark.asyncio
async def test_chat_upsert_with_lid_field(h: Harness) -> None:
    await h.transport_events.emit(
        "chats.upsert",
        [{"id": CHAT, "lidJid": "222@lid", "pinned": "1700000000", "archived": True}],
    )
    chat = h.projector.chats.get(CHAT)
    assert chat is not None
    assert chat.pinned
    assert chat.archived
    assert h.projector.lid_mapping.resolve("222@lid") == CHAT


@pytest.mark.asyncio
async def test_message_fills_sender_phone_from_mapping(h: Harness) -> None:
    h.projector.lid_mapping.register("333", "6281999999999")
    msg = await h.projector.project_message(
        {
            "key": {"remoteJid": "333@lid", "fromMe": False, "id": "L1"},
            "message": {"conversation": "from a lid chat"},
        }
    )
    assert isinstance(msg, MiawMessage)
    assert msg.sender_phone == "6281999999999"


@pytest.mark.asyncio
async def test_message_teaches_mapping_from_sender_pn(h: Harness) -> None:
    await h.projector.project_message(
        {
            "key": {"remoteJid": "444@lid", "id": "L2", "senderPn": "6281888888888@s.whatsapp.net"},
            "message": {"conversation": "hi"},
        }
    )
    assert h.projector.lid_mapping.resolve("444@lid") == "6281888888888@s.whatsapp.net"
    assert h.projector.messages.get("444@lid")[0].sender_phone == "6281888888888"


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped(h: Harness) -> None:
    await h.transport_events.emit(
        "contacts.upsert", [{"name": "no id"}, {"id": "62855@s.whatsapp.net"}]
    )
    await h.transport_events.emit(
        "messages.upsert", {"type": "notify", "messages": [{"message": {}}, envelope("OK", {})]}
    )

    assert [c.jid for c in h.projector.contacts.values()] == ["62855@s.whatsapp.net"]
    assert [m.id for m in h.projector.messages.get(CHAT)] == ["OK"]
    assert h.projector.messages.get(CHAT)[0].type == "unknown"


@pytest.mark.asyncio
async def test_labels_edit_and_delete(h: Harness) -> None:
    await h.transport_events.emit("labels.edit", {"id": "5", "name": "VIP", "color": 3})
    assert h.projector.labels.get("5") is not None

    await h.transport_events.emit("labels.edit", {"id": "5", "name": "VIP", "deleted": True})
    assert h.projector.labels.get("5") is None


@pytest.mark.asyncio
async def test_presence_splits_participants(h: Harness) -> None:
    await h.transport_events.emit(
        "presence.update",
        {
            "id": CHAT,
            "presences": {
                CHAT: {"lastKnownPresence": "composing"},
                "x@s.whatsapp.net": {"lastKnownPresence": "bogus"},
            },
        },
    )
    (update,) = h.of("presence")
    assert update.jid == CHAT
    assert update.status == "composing"


def test_clear_empties_everything(h: Harness) -> None:
    h.projector.lid_mapping.register("1", "6281100000000")
    h.projector.clear()
    assert len(h.projector.lid_mapping) == 0


@pytest.mark.asyncio
async def test_group_participant_device_lid_maps_to_user(h: Harness) -> None:
    await h.projector.project_message(
        {
            "key": {
                "remoteJid": "120363000000000001@g.us",
                "id": "G1",
                "participant": "555:12@lid",
                "participantPn": "6281777777777@s.whatsapp.net",
            },
            "message": {"conversation": "hi group"},
        }
    )
    assert h.projector.lid_mapping.resolve("555@lid") == "6281777777777@s.whatsapp.net"
