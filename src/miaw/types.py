from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ConnectionState = Literal["disconnected", "connecting", "connected", "reconnecting", "qr_required"]

MessageType = Literal["text", "image", "video", "audio", "document", "sticker", "unknown"]

PresenceStatus = Literal["available", "unavailable", "composing", "recording", "paused"]

ParticipantRole = Literal["admin", "superadmin", "member"]


@dataclass(slots=True)
class MediaInfo:
    mimetype: str | None = None
    file_size: int | None = None
    file_name: str | None = None
    width: int | None = None
    height: int | None = None
    duration: int | None = None
    ptt: bool | None = None
    gif_playback: bool | None = None
    view_once: bool | None = None


@dataclass(slots=True)
class MiawMessage:
    """
    A received message, simplified from the transport's envelope.

    `from_jid` is the chat the message belongs to. It may be a phone JID
    (`...@s.whatsapp.net`), a privacy JID (`...@lid`) or a group (`...@g.us`);
    all three can be used as a send target directly.
    """

    id: str
    from_jid: str
    timestamp: int
    is_group: bool
    from_me: bool
    type: MessageType
    sender_phone: str | None = None
    sender_name: str | None = None
    text: str | None = None
    participant: str | None = None
    media: MediaInfo | None = None
    raw: Any | None = None


@dataclass(slots=True)
class Contact:
    jid: str
    phone: str | None = None
    name: str | None = None


@dataclass(slots=True)
class Chat:
    jid: str
    phone: str | None = None
    name: str | None = None
    is_group: bool = False
    last_message_time: int | None = None
    unread_count: int | None = None
    archived: bool = False
    pinned: bool = False


@dataclass(slots=True)
class Label:
    id: str
    name: str
    color: int
    predefined_id: int | None = None
    deleted: bool = False


@dataclass(slots=True)
class MessageEdit:
    message_id: str
    chat_id: str
    edit_timestamp: int
    new_text: str | None = None
    raw: Any | None = None


@dataclass(slots=True)
class MessageDelete:
    message_id: str
    chat_id: str
    from_me: bool
    participant: str | None = None
    raw: Any | None = None


@dataclass(slots=True)
class MessageReaction:
    message_id: str
    chat_id: str
    reactor_id: str
    emoji: str
    is_removal: bool
    raw: Any | None = None


@dataclass(slots=True)
class PresenceUpdate:
    jid: str
    status: PresenceStatus
    last_seen: int | None = None


@dataclass(slots=True)
class ContactInfo:
    jid: str
    phone: str | None = None
    name: str | None = None
    status: str | None = None
    is_business: bool = False


@dataclass(slots=True)
class BusinessProfile:
    description: str | None = None
    category: str | None = None
    website: str | None = None
    email: str | None = None
    address: str | None = None


@dataclass(slots=True)
class GroupParticipant:
    jid: str
    role: ParticipantRole = "member"


@dataclass(slots=True)
class GroupInfo:
    jid: str
    name: str
    participant_count: int
    participants: list[GroupParticipant] = field(default_factory=list)
    description: str | None = None
    owner: str | None = None
    created_at: int | None = None
    announce: bool | None = None
    restrict: bool | None = None


@dataclass(slots=True)
class GroupInviteInfo:
    jid: str
    name: str
    participant_count: int
    description: str | None = None
    created_at: int | None = None


@dataclass(slots=True)
class ParticipantOperationResult:
    """
    Per-participant outcome of add/remove/promote/demote.

    Status codes: `200` ok, `403` not authorized, `408` left / unknown,
    `409` already in group (add) or not in group (remove).
    """

    jid: str
    status: str
    success: bool


@dataclass(slots=True)
class ProductImage:
    url: str
    caption: str | None = None


@dataclass(slots=True)
class Product:
    id: str | None = None
    name: str | None = None
    description: str | None = None
    price_amount_1000: int | None = None
    currency: str | None = None
    images: list[ProductImage] = field(default_factory=list)
    is_hidden: bool = False
    retailer_id: str | None = None
    url: str | None = None


@dataclass(slots=True)
class ProductCollection:
    id: str
    name: str
    products: list[Product] = field(default_factory=list)


@dataclass(slots=True)
class NewsletterMetadata:
    id: str
    name: str
    description: str | None = None
    picture_url: str | None = None
    subscribers: int | None = None
    is_creator: bool | None = None
    is_following: bool | None = None
    is_muted: bool | None = None
    created_at: int | None = None


@dataclass(slots=True)
class NewsletterMessage:
    id: str
    newsletter_id: str
    timestamp: int
    content: str | None = None
    media_type: str | None = None
