from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .jid import ensure_phone_jid, is_lid_user, is_phone_user, jid_normalized_user
from .lid_cache import LidMapping
from .normalize import (
    LidPair,
    MalformedPayloadError,
    extract_protocol_event,
    extract_reaction_message,
    is_protocol_message,
    normalize_chat,
    normalize_contact,
    normalize_label,
    normalize_message,
    normalize_presence,
    normalize_reaction,
)
from .store import ChatStore, ContactStore, LabelStore, MessageStore
from .types import MessageDelete, MiawMessage
from .util.events import AsyncEventEmitter

logger = logging.getLogger(__name__)

# Transport events the projector folds, mapped to handler method names.
PROJECTED_EVENTS = {
    "contacts.upsert": "on_contacts",
    "contacts.update": "on_contacts",
    "chats.upsert": "on_chats",
    "chats.update": "on_chats",
    "messages.upsert": "on_messages_upsert",
    "messages.reaction": "on_reactions",
    "presence.update": "on_presence",
    "labels.edit": "on_labels",
}


def _batch(payload: Any) -> list[Any]:
    if payload is None:
        return []
    if isinstance(payload, Mapping):
        return [payload]
    if isinstance(payload, Iterable) and not isinstance(payload, (str, bytes)):
        return list(payload)
    return [payload]


class EventProjector:
    """
    Folds raw transport events into the in-memory stores.

    Every handler updates the LID mapping first, then the stores, then emits
    the domain notification on `notify`. A payload that fails to normalize is
    logged and skipped; the rest of its batch is still processed.
    """

    def __init__(
        self,
        *,
        contacts: ContactStore,
        chats: ChatStore,
        messages: MessageStore,
        labels: LabelStore,
        lid_mapping: LidMapping,
        notify: AsyncEventEmitter,
        log: logging.Logger | None = None,
    ) -> None:
        self.contacts = contacts
        self.chats = chats
        self.messages = messages
        self.labels = labels
        self.lid_mapping = lid_mapping
        self._notify = notify
        self._log = log or logger

    def bind(self, events: AsyncEventEmitter) -> None:
        for event, method in PROJECTED_EVENTS.items():
            events.on(event, getattr(self, method))

    def _remember(self, pairs: list[LidPair]) -> None:
        for lid, pn in pairs:
            self.lid_mapping.remember(lid, pn)
            self._log.debug("lid mapping %s -> %s", lid, pn)

    def on_contacts(self, payload: Any) -> None:
        for entry in _batch(payload):
            try:
                contact, pairs = normalize_contact(entry)
            except (MalformedPayloadError, AttributeError, TypeError) as e:
                self._log.warning("skipping malformed contact: %s", e)
                continue
            self._remember(pairs)
            self.contacts.upsert(contact)

    def on_chats(self, payload: Any) -> None:
        for entry in _batch(payload):
            try:
                chat, pairs = normalize_chat(entry)
            except (MalformedPayloadError, AttributeError, TypeError) as e:
                self._log.warning("skipping malformed chat: %s", e)
                continue
            self._remember(pairs)
            self.chats.upsert(chat)

    def on_labels(self, payload: Any) -> None:
        for entry in _batch(payload):
            try:
                label = normalize_label(entry)
            except (MalformedPayloadError, AttributeError, TypeError) as e:
                self._log.warning("skipping malformed label: %s", e)
                continue
            if label.deleted:
                self.labels.remove(label.id)
            else:
                self.labels.upsert(label)

    async def on_messages_upsert(self, event: Any) -> None:
        if not isinstance(event, Mapping):
            self._log.warning("ignoring messages.upsert payload of type %s", type(event).__name__)
            return
        # History backfill ("append") batches are not live traffic.
        if event.get("type") != "notify":
            return
        for web_msg in _batch(event.get("messages")):
            await self.project_message(web_msg)

    async def project_message(self, web_msg: Any) -> MiawMessage | None:
        """
        Project one live message envelope. Returns the stored record, or None
        when the envelope was a control message or could not be normalized.
        """

        try:
            control = extract_protocol_event(web_msg)
            protocol_only = control is None and is_protocol_message(web_msg)
            reaction = (
                extract_reaction_message(web_msg)
                if control is None and not protocol_only
                else None
            )
            msg = (
                normalize_message(web_msg)
                if control is None and reaction is None and not protocol_only
                else None
            )
        except (MalformedPayloadError, AttributeError, TypeError, ValueError) as e:
            self._log.warning("skipping malformed message: %s", e)
            return None

        if control is not None:
            event = "message_delete" if isinstance(control, MessageDelete) else "message_edit"
            await self._notify.emit(event, control)
            return None
        if reaction is not None:
            await self._notify.emit("message_reaction", reaction)
            return None
        if msg is None:
            return None

        self._learn_from_message(web_msg, msg)
        if msg.sender_phone is None and not msg.from_me:
            sender = msg.participant if msg.is_group else msg.from_jid
            if sender:
                msg.sender_phone = self.lid_mapping.phone_for(sender)

        self.messages.append(msg)
        await self._notify.emit("message", msg)
        return msg

    def _learn_from_message(self, web_msg: Mapping[str, Any], msg: MiawMessage) -> None:
        if msg.from_me:
            return
        key = web_msg.get("key")
        if not isinstance(key, Mapping):
            return

        pairs: list[LidPair] = []
        sender_lid = key.get("senderLid")
        if isinstance(sender_lid, str) and sender_lid and is_phone_user(msg.from_jid):
            pairs.append((sender_lid, jid_normalized_user(msg.from_jid) or msg.from_jid))

        # LID-addressed 1:1 chats and groups may still expose the phone form.
        pn_field = "participantPn" if msg.is_group else "senderPn"
        lid_source = msg.participant if msg.is_group else msg.from_jid
        pn = key.get(pn_field)
        if lid_source and is_lid_user(lid_source) and isinstance(pn, str) and pn:
            pn_jid = ensure_phone_jid(pn)
            pairs.append((lid_source, jid_normalized_user(pn_jid) or pn_jid))

        self._remember(pairs)

    async def on_reactions(self, payload: Any) -> None:
        for entry in _batch(payload):
            try:
                reaction = normalize_reaction(entry)
            except (MalformedPayloadError, AttributeError, TypeError) as e:
                self._log.warning("skipping malformed reaction: %s", e)
                continue
            await self._notify.emit("message_reaction", reaction)

    async def on_presence(self, event: Any) -> None:
        try:
            updates = normalize_presence(event)
        except (MalformedPayloadError, AttributeError, TypeError) as e:
            self._log.warning("skipping malformed presence update: %s", e)
            return
        for update in updates:
            await self._notify.emit("presence", update)

    def clear(self) -> None:
        self.contacts.clear()
        self.chats.clear()
        self.messages.clear()
        self.labels.clear()
        self.lid_mapping.clear()
