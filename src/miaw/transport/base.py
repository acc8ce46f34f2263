from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Literal

from ..exceptions import UnsupportedOperationError
from ..types import (
    BusinessProfile,
    Contact,
    GroupInfo,
    GroupInviteInfo,
    Label,
    NewsletterMessage,
    NewsletterMetadata,
    ParticipantOperationResult,
    Product,
    ProductCollection,
)
from ..util.events import AsyncEventEmitter

MediaKind = Literal["image", "video", "audio", "document", "sticker"]
ParticipantAction = Literal["add", "remove", "promote", "demote"]
PresenceKind = Literal["available", "unavailable", "composing", "recording", "paused"]


class DisconnectReason(IntEnum):
    """Disconnect causes, numbered like the WhatsApp Web close codes."""

    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    CONNECTION_REPLACED = 440
    TIMED_OUT = 408
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503

    @property
    def label(self) -> str:
        """camelCase name as reported in `disconnected` notifications."""

        head, *rest = self.name.lower().split("_")
        return head + "".join(p.title() for p in rest)


def reason_name(code: int | None) -> str:
    if code is None:
        return "unknown"
    try:
        return DisconnectReason(code).label
    except ValueError:
        return "unknown"


@dataclass(slots=True)
class DisconnectInfo:
    status_code: int | None = None
    error: BaseException | None = None

    @property
    def reason(self) -> str:
        return reason_name(self.status_code)

    @property
    def is_logged_out(self) -> bool:
        return self.status_code == DisconnectReason.LOGGED_OUT


@dataclass(slots=True)
class ConnectionUpdate:
    """Payload of the `connection.update` transport event."""

    connection: Literal["connecting", "open", "close"] | None = None
    qr: str | None = None
    is_new_login: bool | None = None
    last_disconnect: DisconnectInfo | None = None


@dataclass(slots=True)
class TransportContext:
    instance_id: str
    session_dir: Path
    logger: logging.Logger


class BaseTransport:
    """
    Boundary between the client and a WhatsApp protocol implementation.

    Implementations emit these events on `events`, with Baileys-shaped dict
    payloads:

    - `connection.update` (`ConnectionUpdate`)
    - `creds.update`
    - `contacts.upsert` / `contacts.update` (list of contact dicts)
    - `chats.upsert` / `chats.update` (list of chat dicts)
    - `messages.upsert` (`{"type": "notify" | "append", "messages": [...]}`)
    - `messages.reaction` (list of `{"key", "reaction"}`)
    - `presence.update` (`{"id", "presences"}`)
    - `labels.edit` (label dict)

    Every request method raises `UnsupportedOperationError` unless overridden.
    """

    def __init__(self) -> None:
        self.events = AsyncEventEmitter()

    def _unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(operation)

    # -- lifecycle --

    async def connect(self) -> None:
        raise self._unsupported("connect")

    async def close(self) -> None:
        raise self._unsupported("close")

    async def logout(self) -> None:
        raise self._unsupported("logout")

    async def save_credentials(self) -> None:
        raise self._unsupported("save_credentials")

    def me(self) -> Contact | None:
        """The logged-in account, once known."""

        return None

    # -- messaging --

    async def send_text(
        self, jid: str, text: str, *, quoted: Mapping[str, Any] | None = None
    ) -> str:
        raise self._unsupported("send_text")

    async def send_media(
        self,
        jid: str,
        kind: MediaKind,
        data: bytes,
        *,
        mimetype: str | None = None,
        caption: str | None = None,
        file_name: str | None = None,
        ptt: bool = False,
        gif_playback: bool = False,
        view_once: bool = False,
        quoted: Mapping[str, Any] | None = None,
    ) -> str:
        raise self._unsupported(f"send_{kind}")

    async def send_reaction(self, key: Mapping[str, Any], emoji: str) -> str:
        """React to the message identified by `key`; an empty emoji removes it."""

        raise self._unsupported("send_reaction")

    async def forward_message(self, jid: str, message: Mapping[str, Any]) -> str:
        raise self._unsupported("forward_message")

    async def edit_message(self, key: Mapping[str, Any], text: str) -> str:
        raise self._unsupported("edit_message")

    async def delete_message(self, key: Mapping[str, Any]) -> str:
        raise self._unsupported("delete_message")

    async def delete_message_for_me(self, key: Mapping[str, Any], timestamp: int) -> None:
        raise self._unsupported("delete_message_for_me")

    async def read_messages(self, keys: Sequence[Mapping[str, Any]]) -> None:
        raise self._unsupported("read_messages")

    async def send_presence(self, presence: PresenceKind, jid: str | None = None) -> None:
        raise self._unsupported("send_presence")

    async def subscribe_presence(self, jid: str) -> None:
        raise self._unsupported("subscribe_presence")

    async def download_media(self, message: Mapping[str, Any]) -> bytes:
        raise self._unsupported("download_media")

    # -- lookups --

    async def on_whatsapp(self, jids: Sequence[str]) -> list[tuple[str, bool]]:
        """`(jid, exists)` for each queried JID."""

        raise self._unsupported("on_whatsapp")

    async def fetch_status(self, jid: str) -> str | None:
        raise self._unsupported("fetch_status")

    async def business_profile(self, jid: str) -> BusinessProfile | None:
        raise self._unsupported("business_profile")

    async def profile_picture_url(self, jid: str, *, high_res: bool = True) -> str | None:
        raise self._unsupported("profile_picture_url")

    # -- profile --

    async def update_profile_picture(self, jid: str, data: bytes) -> None:
        raise self._unsupported("update_profile_picture")

    async def remove_profile_picture(self, jid: str) -> None:
        raise self._unsupported("remove_profile_picture")

    async def update_profile_name(self, name: str) -> None:
        raise self._unsupported("update_profile_name")

    async def update_profile_status(self, status: str) -> None:
        raise self._unsupported("update_profile_status")

    # -- groups --

    async def group_create(self, subject: str, participants: Sequence[str]) -> GroupInfo:
        raise self._unsupported("group_create")

    async def group_metadata(self, jid: str) -> GroupInfo:
        raise self._unsupported("group_metadata")

    async def group_fetch_all_participating(self) -> list[GroupInfo]:
        raise self._unsupported("group_fetch_all_participating")

    async def group_leave(self, jid: str) -> None:
        raise self._unsupported("group_leave")

    async def group_update_subject(self, jid: str, subject: str) -> None:
        raise self._unsupported("group_update_subject")

    async def group_update_description(self, jid: str, description: str | None) -> None:
        raise self._unsupported("group_update_description")

    async def group_participants_update(
        self, jid: str, participants: Sequence[str], action: ParticipantAction
    ) -> list[ParticipantOperationResult]:
        raise self._unsupported("group_participants_update")

    async def group_invite_code(self, jid: str) -> str:
        raise self._unsupported("group_invite_code")

    async def group_revoke_invite(self, jid: str) -> str:
        raise self._unsupported("group_revoke_invite")

    async def group_accept_invite(self, code: str) -> str | None:
        raise self._unsupported("group_accept_invite")

    async def group_get_invite_info(self, code: str) -> GroupInviteInfo:
        raise self._unsupported("group_get_invite_info")

    # -- labels (WhatsApp Business) --

    async def resync_app_state(self, collections: Sequence[str]) -> None:
        raise self._unsupported("resync_app_state")

    async def add_label(self, label: Label) -> None:
        raise self._unsupported("add_label")

    async def add_chat_label(self, chat_jid: str, label_id: str) -> None:
        raise self._unsupported("add_chat_label")

    async def remove_chat_label(self, chat_jid: str, label_id: str) -> None:
        raise self._unsupported("remove_chat_label")

    async def add_message_label(self, chat_jid: str, message_id: str, label_id: str) -> None:
        raise self._unsupported("add_message_label")

    async def remove_message_label(self, chat_jid: str, message_id: str, label_id: str) -> None:
        raise self._unsupported("remove_message_label")

    # -- catalog (WhatsApp Business) --

    async def get_catalog(
        self, jid: str, *, limit: int = 10, cursor: str | None = None
    ) -> tuple[list[Product], str | None]:
        raise self._unsupported("get_catalog")

    async def get_collections(self, jid: str, *, limit: int = 51) -> list[ProductCollection]:
        raise self._unsupported("get_collections")

    async def product_create(self, product: Mapping[str, Any]) -> Product:
        raise self._unsupported("product_create")

    async def product_update(self, product_id: str, update: Mapping[str, Any]) -> Product:
        raise self._unsupported("product_update")

    async def product_delete(self, product_ids: Sequence[str]) -> int:
        raise self._unsupported("product_delete")

    # -- newsletters --

    async def newsletter_create(
        self, name: str, description: str | None = None
    ) -> NewsletterMetadata:
        raise self._unsupported("newsletter_create")

    async def newsletter_metadata(
        self, key: str, *, by: Literal["jid", "invite"] = "jid"
    ) -> NewsletterMetadata | None:
        raise self._unsupported("newsletter_metadata")

    async def newsletter_follow(self, jid: str) -> None:
        raise self._unsupported("newsletter_follow")

    async def newsletter_unfollow(self, jid: str) -> None:
        raise self._unsupported("newsletter_unfollow")

    async def newsletter_mute(self, jid: str) -> None:
        raise self._unsupported("newsletter_mute")

    async def newsletter_unmute(self, jid: str) -> None:
        raise self._unsupported("newsletter_unmute")

    async def newsletter_update_name(self, jid: str, name: str) -> None:
        raise self._unsupported("newsletter_update_name")

    async def newsletter_update_description(self, jid: str, description: str) -> None:
        raise self._unsupported("newsletter_update_description")

    async def newsletter_update_picture(self, jid: str, data: bytes) -> None:
        raise self._unsupported("newsletter_update_picture")

    async def newsletter_remove_picture(self, jid: str) -> None:
        raise self._unsupported("newsletter_remove_picture")

    async def newsletter_delete(self, jid: str) -> None:
        raise self._unsupported("newsletter_delete")

    async def newsletter_fetch_messages(
        self, jid: str, count: int, *, since: int | None = None, after: int | None = None
    ) -> list[NewsletterMessage]:
        raise self._unsupported("newsletter_fetch_messages")

    async def newsletter_react_message(self, jid: str, server_id: str, emoji: str | None) -> None:
        raise self._unsupported("newsletter_react_message")

    # -- address book --

    async def add_or_edit_contact(self, jid: str, contact: Mapping[str, Any]) -> None:
        raise self._unsupported("add_or_edit_contact")

    async def remove_contact(self, jid: str) -> None:
        raise self._unsupported("remove_contact")


TransportFactory = Callable[[TransportContext], Awaitable[BaseTransport]]
