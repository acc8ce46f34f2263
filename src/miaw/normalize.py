"""
Normalization of raw transport payloads into miaw records.

Transport payloads follow the Baileys JSON shape (camelCase keys, as produced
by protobuf's JSON mapping). Message content is a tagged union: exactly one of
a known set of fields carries the payload, and the variants are matched in a
fixed order rather than by probing for whatever fields happen to exist.

The functions here raise `MalformedPayloadError` on structurally invalid
input; callers that fold event batches decide whether to skip or propagate.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any, Final

from .exceptions import MiawError
from .jid import (
    digits_only,
    ensure_lid,
    is_group_jid,
    is_lid_user,
    is_phone_user,
    jid_normalized_user,
    phone_from_jid,
)
from .types import (
    Chat,
    Contact,
    Label,
    MediaInfo,
    MessageDelete,
    MessageEdit,
    MessageReaction,
    MessageType,
    MiawMessage,
    PresenceStatus,
    PresenceUpdate,
)

Payload = Mapping[str, Any]
LidPair = tuple[str, str]


class MalformedPayloadError(MiawError):
    """A transport payload is missing the fields needed to normalize it."""


# protocolMessage.type codes (WAProto Message.ProtocolMessage.Type).
PROTOCOL_REVOKE: Final = 0
PROTOCOL_MESSAGE_EDIT: Final = 14
_PROTOCOL_TYPE_NAMES: Final = {"REVOKE": PROTOCOL_REVOKE, "MESSAGE_EDIT": PROTOCOL_MESSAGE_EDIT}

_VIEW_ONCE_WRAPPERS: Final = ("viewOnceMessage", "viewOnceMessageV2", "viewOnceMessageV2Extension")

_PRESENCE_STATUSES: Final[frozenset[str]] = frozenset(
    {"available", "unavailable", "composing", "recording", "paused"}
)


def as_int(value: Any) -> int | None:
    """
    Coerce the numeric encodings transports use.

    Accepts ints, floats, numeric strings (protobuf JSON renders int64 as
    strings) and `{"low", "high", "unsigned"}` long objects.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        if s.lstrip("-").isdigit():
            return int(s)
        return None
    if isinstance(value, Mapping) and "low" in value and "high" in value:
        low = as_int(value.get("low")) or 0
        high = as_int(value.get("high")) or 0
        return (high << 32) | (low & 0xFFFFFFFF)
    return None


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _as_mapping(value: Any) -> Payload | None:
    return value if isinstance(value, Mapping) else None


def _first_int(payload: Payload, *names: str) -> int | None:
    for name in names:
        v = as_int(payload.get(name))
        if v is not None:
            return v
    return None


def _key_of(web_msg: Payload) -> Payload:
    key = _as_mapping(web_msg.get("key"))
    if key is None:
        raise MalformedPayloadError("message has no key")
    return key


def unwrap_view_once(content: Payload) -> tuple[Payload, bool]:
    """Unwrap at most one level of view-once wrapping."""

    for wrapper in _VIEW_ONCE_WRAPPERS:
        inner = _as_mapping(content.get(wrapper))
        if inner is None:
            continue
        message = _as_mapping(inner.get("message"))
        if message is not None:
            return message, True
    return content, False


# ---- message variants ----

_VariantResult = tuple[MessageType, str | None, MediaInfo | None]


def _conversation(v: Any) -> _VariantResult:
    return "text", _as_str(v), None


def _extended_text(v: Payload) -> _VariantResult:
    return "text", _as_str(v.get("text")), None


def _image(v: Payload) -> _VariantResult:
    media = MediaInfo(
        mimetype=_as_str(v.get("mimetype")),
        file_size=_first_int(v, "fileLength", "fileSize"),
        width=as_int(v.get("width")),
        height=as_int(v.get("height")),
        view_once=True if v.get("viewOnce") is True else None,
    )
    return "image", _as_str(v.get("caption")), media


def _video(v: Payload) -> _VariantResult:
    media = MediaInfo(
        mimetype=_as_str(v.get("mimetype")),
        file_size=_first_int(v, "fileLength", "fileSize"),
        width=as_int(v.get("width")),
        height=as_int(v.get("height")),
        duration=_first_int(v, "seconds", "duration"),
        gif_playback=True if v.get("gifPlayback") is True else None,
        view_once=True if v.get("viewOnce") is True else None,
    )
    return "video", _as_str(v.get("caption")), media


def _document(v: Payload) -> _VariantResult:
    media = MediaInfo(
        mimetype=_as_str(v.get("mimetype")),
        file_size=_first_int(v, "fileLength", "fileSize"),
        file_name=_as_str(v.get("fileName")),
    )
    return "document", _as_str(v.get("caption")), media


def _audio(v: Payload) -> _VariantResult:
    media = MediaInfo(
        mimetype=_as_str(v.get("mimetype")),
        file_size=_first_int(v, "fileLength", "fileSize"),
        duration=_first_int(v, "seconds", "duration"),
        ptt=bool(v.get("ptt")),
        view_once=True if v.get("viewOnce") is True else None,
    )
    return "audio", None, media


def _sticker(v: Payload) -> _VariantResult:
    media = MediaInfo(
        mimetype=_as_str(v.get("mimetype")),
        file_size=_first_int(v, "fileLength", "fileSize"),
        width=as_int(v.get("width")),
        height=as_int(v.get("height")),
    )
    return "sticker", None, media


# Match order matters: the first present variant wins.
_VARIANTS: Final[tuple[tuple[str, Callable[[Any], _VariantResult]], ...]] = (
    ("conversation", _conversation),
    ("extendedTextMessage", _extended_text),
    ("imageMessage", _image),
    ("videoMessage", _video),
    ("documentMessage", _document),
    ("audioMessage", _audio),
    ("stickerMessage", _sticker),
)


def match_content(content: Payload | None) -> _VariantResult:
    if not content:
        return "unknown", None, None

    inner, view_once = unwrap_view_once(content)
    for field_name, handler in _VARIANTS:
        value = inner.get(field_name)
        if field_name == "conversation":
            if not isinstance(value, str) or not value:
                continue
            return handler(value)
        if not isinstance(value, Mapping):
            continue
        msg_type, text, media = handler(value)
        if media is not None and view_once:
            media.view_once = True
        return msg_type, text, media
    return "unknown", None, None


def normalize_message(web_msg: Payload, *, now: Callable[[], float] = time.time) -> MiawMessage:
    """
    Convert one message envelope (`{key, message, messageTimestamp, pushName}`).

    Raises `MalformedPayloadError` when the envelope has no usable key.
    """

    key = _key_of(web_msg)
    remote_jid = _as_str(key.get("remoteJid"))
    if remote_jid is None:
        raise MalformedPayloadError("message key has no remoteJid")

    is_group = is_group_jid(remote_jid)
    participant = _as_str(key.get("participant")) if is_group else None

    if is_group:
        sender_phone = digits_only(_as_str(key.get("participantPn")))
        if sender_phone is None and participant and is_phone_user(participant):
            sender_phone = phone_from_jid(participant)
    else:
        sender_phone = digits_only(_as_str(key.get("senderPn")))
        if sender_phone is None and not key.get("fromMe"):
            sender_phone = phone_from_jid(remote_jid)

    content = _as_mapping(web_msg.get("message"))
    msg_type, text, media = match_content(content)

    ts = as_int(web_msg.get("messageTimestamp"))
    return MiawMessage(
        id=_as_str(key.get("id")) or "",
        from_jid=remote_jid,
        sender_phone=sender_phone,
        sender_name=_as_str(web_msg.get("pushName")),
        text=text,
        timestamp=ts if ts is not None else int(now()),
        is_group=is_group,
        participant=participant,
        from_me=bool(key.get("fromMe")),
        type=msg_type,
        media=media,
        raw=web_msg,
    )


# ---- protocol control messages ----


def _protocol_message(content: Payload | None) -> Payload | None:
    if not content:
        return None
    pm = _as_mapping(content.get("protocolMessage"))
    if pm is not None:
        return pm
    # Older edit envelopes: {"editedMessage": {"message": {"protocolMessage": ...}}}
    edited = _as_mapping(content.get("editedMessage"))
    inner = _as_mapping(edited.get("message")) if edited else None
    return _as_mapping(inner.get("protocolMessage")) if inner else None


def _protocol_type(pm: Payload) -> int | None:
    raw = pm.get("type")
    if isinstance(raw, str) and raw in _PROTOCOL_TYPE_NAMES:
        return _PROTOCOL_TYPE_NAMES[raw]
    # protobuf JSON omits enum fields left at their default (REVOKE == 0).
    if raw is None and _as_mapping(pm.get("key")) is not None and "editedMessage" not in pm:
        return PROTOCOL_REVOKE
    return as_int(raw)


def _edited_text(edited: Payload | None) -> str | None:
    if not edited:
        return None
    _, text, _ = match_content(edited)
    return text


def extract_protocol_event(
    web_msg: Payload, *, now: Callable[[], float] = time.time
) -> MessageEdit | MessageDelete | None:
    """
    Detect an embedded edit/revoke control message.

    Returns the notification record, or None when the envelope carries an
    ordinary message (or a control type that is not an edit/revoke).
    """

    key = _key_of(web_msg)
    pm = _protocol_message(_as_mapping(web_msg.get("message")))
    if pm is None:
        return None

    code = _protocol_type(pm)
    target = _as_mapping(pm.get("key")) or {}
    chat_id = _as_str(target.get("remoteJid")) or _as_str(key.get("remoteJid")) or ""
    message_id = _as_str(target.get("id")) or ""

    if code == PROTOCOL_REVOKE:
        return MessageDelete(
            message_id=message_id,
            chat_id=chat_id,
            from_me=bool(key.get("fromMe")),
            participant=_as_str(key.get("participant")),
            raw=web_msg,
        )
    if code == PROTOCOL_MESSAGE_EDIT:
        ts_ms = as_int(pm.get("timestampMs"))
        return MessageEdit(
            message_id=message_id,
            chat_id=chat_id,
            new_text=_edited_text(_as_mapping(pm.get("editedMessage"))),
            edit_timestamp=ts_ms if ts_ms is not None else int(now() * 1000),
            raw=web_msg,
        )
    return None


def is_protocol_message(web_msg: Payload) -> bool:
    return _protocol_message(_as_mapping(web_msg.get("message"))) is not None


# ---- reactions / presence ----


def _reaction(
    *, message_id: str, chat_id: str, reactor_id: str, emoji: str | None, raw: Any
) -> MessageReaction:
    text = emoji or ""
    return MessageReaction(
        message_id=message_id,
        chat_id=chat_id,
        reactor_id=reactor_id,
        emoji=text,
        is_removal=text == "",
        raw=raw,
    )


def normalize_reaction(event: Payload) -> MessageReaction:
    """
    Convert a `messages.reaction` entry: `{key: <reacted msg key>, reaction: {key, text}}`.
    """

    target = _key_of(event)
    reaction = _as_mapping(event.get("reaction"))
    if reaction is None:
        raise MalformedPayloadError("reaction event has no reaction")
    reactor_key = _as_mapping(reaction.get("key")) or {}
    chat_id = _as_str(target.get("remoteJid")) or _as_str(reactor_key.get("remoteJid")) or ""
    reactor = (
        _as_str(reactor_key.get("participant"))
        or _as_str(reactor_key.get("remoteJid"))
        or chat_id
    )
    return _reaction(
        message_id=_as_str(target.get("id")) or "",
        chat_id=chat_id,
        reactor_id=reactor,
        emoji=_as_str(reaction.get("text")),
        raw=event,
    )


def extract_reaction_message(web_msg: Payload) -> MessageReaction | None:
    """Reaction carried inside a message upsert (`message.reactionMessage`)."""

    content = _as_mapping(web_msg.get("message"))
    rm = _as_mapping(content.get("reactionMessage")) if content else None
    if rm is None:
        return None
    key = _key_of(web_msg)
    target = _as_mapping(rm.get("key")) or {}
    chat_id = _as_str(key.get("remoteJid")) or _as_str(target.get("remoteJid")) or ""
    reactor = _as_str(key.get("participant")) or chat_id
    return _reaction(
        message_id=_as_str(target.get("id")) or "",
        chat_id=chat_id,
        reactor_id=reactor,
        emoji=_as_str(rm.get("text")),
        raw=web_msg,
    )


def normalize_presence(event: Payload) -> list[PresenceUpdate]:
    """Split `{id, presences: {participant: {lastKnownPresence, lastSeen}}}` per participant."""

    presences = _as_mapping(event.get("presences"))
    if presences is None:
        raise MalformedPayloadError("presence event has no presences")

    out: list[PresenceUpdate] = []
    for participant, data in presences.items():
        data = _as_mapping(data) or {}
        status = data.get("lastKnownPresence")
        if status not in _PRESENCE_STATUSES:
            continue
        status_value: PresenceStatus = status
        out.append(
            PresenceUpdate(
                jid=str(participant),
                status=status_value,
                last_seen=as_int(data.get("lastSeen")),
            )
        )
    return out


# ---- contacts / chats / labels ----


def _pick_phone(payload: Payload, *names: str) -> str | None:
    for name in names:
        v = _as_str(payload.get(name))
        if v and is_phone_user(v):
            return jid_normalized_user(v) or v
    return None


def normalize_contact(payload: Payload) -> tuple[Contact, list[LidPair]]:
    """
    Convert a contact upsert/update entry.

    The canonical JID prefers the phone form when the payload carries both a
    privacy id and a phone id. Also returns any `(lid, phone_jid)` pairs seen.
    """

    cid = _as_str(payload.get("id"))
    if cid is None:
        raise MalformedPayloadError("contact has no id")

    pairs: list[LidPair] = []
    canonical = cid
    if is_lid_user(cid):
        pn = _pick_phone(payload, "jid", "phoneNumber")
        if pn:
            pairs.append((cid, pn))
            canonical = pn
    else:
        lid = _as_str(payload.get("lid"))
        if lid:
            pairs.append((ensure_lid(lid), cid))

    name = (
        _as_str(payload.get("name"))
        or _as_str(payload.get("notify"))
        or _as_str(payload.get("verifiedName"))
    )
    contact = Contact(jid=canonical, phone=phone_from_jid(canonical), name=name)
    return contact, pairs


def normalize_chat(payload: Payload) -> tuple[Chat, list[LidPair]]:
    cid = _as_str(payload.get("id"))
    if cid is None:
        raise MalformedPayloadError("chat has no id")

    pairs: list[LidPair] = []
    canonical = cid
    if is_lid_user(cid):
        pn = _pick_phone(payload, "jid", "pnJid")
        if pn:
            pairs.append((cid, pn))
            canonical = pn
    elif not is_group_jid(cid):
        lid = _as_str(payload.get("lidJid"))
        if lid:
            pairs.append((ensure_lid(lid), cid))

    pinned = payload.get("pinned")
    chat = Chat(
        jid=canonical,
        phone=phone_from_jid(canonical),
        name=_as_str(payload.get("name")) or _as_str(payload.get("displayName")),
        is_group=is_group_jid(canonical),
        last_message_time=as_int(payload.get("conversationTimestamp")),
        unread_count=as_int(payload.get("unreadCount")),
        archived=bool(payload.get("archived")),
        # Baileys reports `pinned` as the pin timestamp (or null).
        pinned=bool(pinned) and pinned != "0",
    )
    return chat, pairs


def normalize_label(payload: Payload) -> Label:
    lid = payload.get("id")
    if lid is None or lid == "":
        raise MalformedPayloadError("label has no id")
    return Label(
        id=str(lid),
        name=_as_str(payload.get("name")) or "",
        color=as_int(payload.get("color")) or 0,
        predefined_id=as_int(payload.get("predefinedId")),
        deleted=bool(payload.get("deleted")),
    )
