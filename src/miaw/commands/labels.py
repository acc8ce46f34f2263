from __future__ import annotations

from typing import Any

from ..constants import LabelColor
from ..exceptions import ValidationError
from ..jid import format_phone_to_jid
from ..results import LabelOperationResult, OperationResult
from ..transport.base import BaseTransport
from ..types import Label
from .base import CommandBase


class LabelCommands(CommandBase):
    """Label management (WhatsApp Business accounts only)."""

    def _next_label_id(self) -> str:
        ids = [int(label.id) for label in self.labels.values() if label.id.isdigit()]
        return str(max(ids, default=0) + 1)

    async def add_label(
        self, name: str, color: int = LabelColor.COLOR_1, *, label_id: str | None = None
    ) -> LabelOperationResult:
        """
        Create a label (or overwrite `label_id`).

        The local label store is updated once the transport accepts the edit;
        the next app-state sync replaces it with the server's view.
        """

        def check() -> None:
            if not name or not name.strip():
                raise ValidationError("Label name cannot be empty")
            if not 0 <= int(color) <= max(LabelColor):
                raise ValidationError(f"Label color must be between 0 and {int(max(LabelColor))}")

        async def call(t: BaseTransport) -> dict[str, Any]:
            label = Label(id=label_id or self._next_label_id(), name=name, color=int(color))
            await t.add_label(label)
            self.labels.upsert(label)
            return {"label_id": label.id}

        return await self._command("add_label", LabelOperationResult, call, check=check)

    async def add_chat_label(self, chat: str, label_id: str) -> OperationResult:
        jid = format_phone_to_jid(chat)

        async def call(t: BaseTransport) -> None:
            await t.add_chat_label(jid, label_id)

        return await self._command("add_chat_label", OperationResult, call)

    async def remove_chat_label(self, chat: str, label_id: str) -> OperationResult:
        jid = format_phone_to_jid(chat)

        async def call(t: BaseTransport) -> None:
            await t.remove_chat_label(jid, label_id)

        return await self._command("remove_chat_label", OperationResult, call)

    async def add_message_label(self, chat: str, message_id: str, label_id: str) -> OperationResult:
        jid = format_phone_to_jid(chat)

        async def call(t: BaseTransport) -> None:
            await t.add_message_label(jid, message_id, label_id)

        return await self._command("add_message_label", OperationResult, call)

    async def remove_message_label(
        self, chat: str, message_id: str, label_id: str
    ) -> OperationResult:
        jid = format_phone_to_jid(chat)

        async def call(t: BaseTransport) -> None:
            await t.remove_message_label(jid, message_id, label_id)

        return await self._command("remove_message_label", OperationResult, call)
