from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from ..exceptions import ValidationError
from ..results import (
    NewsletterMessagesResult,
    NewsletterMetadataResult,
    NewsletterOperationResult,
    OperationResult,
)
from ..transport.base import BaseTransport
from .base import CommandBase, MediaSource, read_media, require_newsletter_jid


class NewsletterCommands(CommandBase):
    """WhatsApp Channels (newsletters)."""

    async def create_newsletter(
        self, name: str, description: str | None = None
    ) -> NewsletterOperationResult:
        def check() -> None:
            if not name or not name.strip():
                raise ValidationError("Newsletter name cannot be empty")

        async def call(t: BaseTransport) -> dict[str, Any]:
            meta = await t.newsletter_create(name, description)
            return {"newsletter_id": meta.id}

        return await self._command(
            "create_newsletter", NewsletterOperationResult, call, check=check
        )

    async def get_newsletter_metadata(
        self, jid_or_invite: str, *, by_invite: bool = False
    ) -> NewsletterMetadataResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            meta = await t.newsletter_metadata(jid_or_invite, by="invite" if by_invite else "jid")
            if meta is None:
                raise ValidationError(f"Newsletter not found: {jid_or_invite}")
            return {"metadata": meta}

        def check() -> None:
            if not by_invite:
                require_newsletter_jid(jid_or_invite)

        return await self._command(
            "get_newsletter_metadata", NewsletterMetadataResult, call, check=check
        )

    async def _simple(
        self,
        operation: str,
        jid: str,
        fn: Callable[[BaseTransport], Awaitable[None]],
        *,
        name: str | None = None,
    ) -> NewsletterOperationResult:
        def check() -> None:
            require_newsletter_jid(jid)
            if name is not None and not name.strip():
                raise ValidationError("Newsletter name cannot be empty")

        async def call(t: BaseTransport) -> dict[str, Any]:
            await fn(t)
            return {"newsletter_id": jid}

        return await self._command(operation, NewsletterOperationResult, call, check=check)

    async def follow_newsletter(self, jid: str) -> NewsletterOperationResult:
        return await self._simple("follow_newsletter", jid, lambda t: t.newsletter_follow(jid))

    async def unfollow_newsletter(self, jid: str) -> NewsletterOperationResult:
        return await self._simple("unfollow_newsletter", jid, lambda t: t.newsletter_unfollow(jid))

    async def mute_newsletter(self, jid: str) -> NewsletterOperationResult:
        return await self._simple("mute_newsletter", jid, lambda t: t.newsletter_mute(jid))

    async def unmute_newsletter(self, jid: str) -> NewsletterOperationResult:
        return await self._simple("unmute_newsletter", jid, lambda t: t.newsletter_unmute(jid))

    async def update_newsletter_name(self, jid: str, name: str) -> NewsletterOperationResult:
        return await self._simple(
            "update_newsletter_name", jid, lambda t: t.newsletter_update_name(jid, name), name=name
        )

    async def update_newsletter_description(
        self, jid: str, description: str
    ) -> NewsletterOperationResult:
        return await self._simple(
            "update_newsletter_description",
            jid,
            lambda t: t.newsletter_update_description(jid, description),
        )

    async def update_newsletter_picture(
        self, jid: str, image: MediaSource
    ) -> NewsletterOperationResult:
        async def upload(t: BaseTransport) -> None:
            data, _ = await read_media(image)
            await t.newsletter_update_picture(jid, data)

        return await self._simple("update_newsletter_picture", jid, upload)

    async def remove_newsletter_picture(self, jid: str) -> NewsletterOperationResult:
        return await self._simple(
            "remove_newsletter_picture", jid, lambda t: t.newsletter_remove_picture(jid)
        )

    async def delete_newsletter(self, jid: str) -> NewsletterOperationResult:
        return await self._simple("delete_newsletter", jid, lambda t: t.newsletter_delete(jid))

    async def fetch_newsletter_messages(
        self, jid: str, count: int = 20, *, since: int | None = None, after: int | None = None
    ) -> NewsletterMessagesResult:
        def check() -> None:
            require_newsletter_jid(jid)
            if count < 1:
                raise ValidationError("count must be >= 1")

        async def call(t: BaseTransport) -> dict[str, Any]:
            msgs = await t.newsletter_fetch_messages(jid, count, since=since, after=after)
            return {"messages": msgs}

        return await self._command(
            "fetch_newsletter_messages", NewsletterMessagesResult, call, check=check
        )

    async def react_to_newsletter_message(
        self, jid: str, server_id: str, emoji: str | None
    ) -> OperationResult:
        """`emoji=None` (or "") removes the reaction."""

        async def call(t: BaseTransport) -> None:
            await t.newsletter_react_message(jid, server_id, emoji or None)

        return await self._command(
            "react_to_newsletter_message",
            OperationResult,
            call,
            check=lambda: require_newsletter_jid(jid),
        )
