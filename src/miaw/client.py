from __future__ import annotations

import asyncio
from typing import Any

from .commands import (
    CatalogCommands,
    ContactCommands,
    GroupCommands,
    LabelCommands,
    MessagingCommands,
    NewsletterCommands,
    ProfileCommands,
)
from .config import ClientOptions
from .connection import ConnectionController
from .constants import LABEL_COLLECTIONS, TIMEOUTS
from .exceptions import UnsupportedOperationError
from .jid import format_phone_to_jid
from .lid_cache import LidMapping
from .logger import create_logger, level_for
from .projector import EventProjector
from .results import ChatsResult, ContactsResult, GroupsResult, LabelsResult, MessagesResult
from .session import SessionStore
from .store import ChatStore, ContactStore, LabelStore, MessageStore
from .transport.base import BaseTransport
from .transport.pyaileys_transport import create_pyaileys_transport
from .types import ConnectionState
from .util.events import AsyncEventEmitter, Listener


class MiawClient(
    MessagingCommands,
    ContactCommands,
    GroupCommands,
    ProfileCommands,
    LabelCommands,
    CatalogCommands,
    NewsletterCommands,
):
    """
    One WhatsApp account.

    The client owns a transport (rebuilt on every connect), the LID mapping
    and the contact/chat/message/label stores that incoming events are folded
    into. Instances share nothing, so several accounts can run side by side
    in one event loop as long as their `instance_id`s differ.

    Notifications (`client.on(event, fn)`):

    - `qr(str)`: pairing QR payload
    - `ready()`: connection open
    - `connection(state)`: every state change
    - `disconnected(reason)` / `reconnecting(attempt)`
    - `message(MiawMessage)`, `message_edit`, `message_delete`, `message_reaction`
    - `presence(PresenceUpdate)`
    - `session_saved()` / `error(Exception)`
    """

    def __init__(self, options: ClientOptions) -> None:
        self.options = options
        self.logger = create_logger(options.instance_id, debug=options.debug, logger=options.logger)
        self._debug = options.debug
        self._events = AsyncEventEmitter(error_logger=self.logger)

        self.contacts = ContactStore()
        self.chats = ChatStore()
        self.messages = MessageStore()
        self.labels = LabelStore()
        self.lid_mapping = LidMapping(options.lid_cache_size)

        self._projector = EventProjector(
            contacts=self.contacts,
            chats=self.chats,
            messages=self.messages,
            labels=self.labels,
            lid_mapping=self.lid_mapping,
            notify=self._events,
            log=self.logger,
        )
        self.session = SessionStore(options.session_path, options.instance_id)
        self._controller = ConnectionController(
            options=options,
            factory=options.transport_factory or create_pyaileys_transport,
            session=self.session,
            notify=self._events,
            attach=self._bind_transport,
            log=self.logger,
        )

    def _bind_transport(self, transport: BaseTransport) -> None:
        self._projector.bind(transport.events)

    # -- notifications --

    def on(self, event: str, listener: Listener) -> None:
        self._events.on(event, listener)

    def once(self, event: str, listener: Listener) -> None:
        self._events.once(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self._events.off(event, listener)

    # -- lifecycle --

    async def connect(self) -> None:
        """
        Start connecting. Returns once the transport is up; a first login
        then goes through `qr` before `ready`. Failures surface as `error`
        notifications and go through the reconnect policy.
        """

        await self._controller.connect()

    async def disconnect(self) -> None:
        await self._controller.disconnect()

    async def logout(self) -> None:
        """Unlink the device and delete its session; the next connect pairs again."""

        await self._controller.logout()

    async def dispose(self) -> None:
        await self._controller.disconnect()
        self.clear_caches()
        self._events.remove_all_listeners()

    def clear_caches(self) -> None:
        self._projector.clear()

    async def wait_for_state(
        self, state: ConnectionState, timeout_s: float = TIMEOUTS.WAIT_FOR_STATE / 1000
    ) -> None:
        await self._controller.wait_for_state(state, timeout_s)

    async def __aenter__(self) -> MiawClient:
        await self.connect()
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        await self.dispose()

    # -- queries --

    async def fetch_all_contacts(self) -> ContactsResult:
        async def call(_t: BaseTransport) -> dict[str, Any]:
            return {"contacts": self.contacts.values()}

        return await self._command("fetch_all_contacts", ContactsResult, call)

    async def fetch_all_groups(self) -> GroupsResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"groups": await t.group_fetch_all_participating()}

        return await self._command("fetch_all_groups", GroupsResult, call)

    async def fetch_all_chats(self) -> ChatsResult:
        async def call(_t: BaseTransport) -> dict[str, Any]:
            return {"chats": self.chats.values()}

        return await self._command("fetch_all_chats", ChatsResult, call)

    async def get_chat_messages(self, jid: str, limit: int | None = None) -> MessagesResult:
        """Stored messages for one chat in arrival order; `limit` keeps the newest."""

        chat = format_phone_to_jid(jid)

        async def call(_t: BaseTransport) -> dict[str, Any]:
            return {"messages": self.messages.get(chat, limit=limit)}

        return await self._command("get_chat_messages", MessagesResult, call)

    async def fetch_all_labels(self, force_sync: bool = False) -> LabelsResult:
        """
        Labels seen through app-state sync (business accounts).

        With `force_sync`, a label resync is requested first and awaited for
        at most `TIMEOUTS.LABEL_SYNC_WAIT`; whatever the store holds then is
        returned.
        """

        async def call(t: BaseTransport) -> dict[str, Any]:
            if force_sync:
                try:
                    await asyncio.wait_for(
                        t.resync_app_state(LABEL_COLLECTIONS),
                        timeout=TIMEOUTS.LABEL_SYNC_WAIT / 1000,
                    )
                except TimeoutError:
                    self.logger.warning("label resync still running; returning stored labels")
                except UnsupportedOperationError:
                    self.logger.debug("transport cannot resync labels")
            return {"labels": self.labels.values()}

        return await self._command("fetch_all_labels", LabelsResult, call)

    # -- identity --

    def resolve_lid_to_jid(self, jid: str) -> str:
        return self.lid_mapping.resolve(jid)

    def get_phone_from_jid(self, jid: str) -> str | None:
        return self.lid_mapping.phone_for(jid)

    def register_lid_mapping(self, lid: str, phone: str) -> None:
        self.lid_mapping.register(lid, phone)

    def get_lid_mappings(self) -> dict[str, str]:
        return self.lid_mapping.export()

    def get_lid_cache_size(self) -> int:
        return len(self.lid_mapping)

    def clear_lid_cache(self) -> None:
        self.lid_mapping.clear()

    # -- state --

    def get_connection_state(self) -> ConnectionState:
        return self._controller.state

    def get_instance_id(self) -> str:
        return self.options.instance_id

    def is_connected(self) -> bool:
        return self._controller.state == "connected"

    def enable_debug(self) -> None:
        self._debug = True
        self.logger.setLevel(level_for(True))

    def disable_debug(self) -> None:
        self._debug = False
        self.logger.setLevel(level_for(False))

    def is_debug_enabled(self) -> bool:
        return self._debug
