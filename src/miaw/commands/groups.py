from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..jid import format_phone_to_jid
from ..results import (
    AcceptInviteResult,
    CreateGroupResult,
    GroupInfoResult,
    GroupInviteInfoResult,
    GroupParticipantsResult,
    InviteLinkResult,
    OperationResult,
    ParticipantsResult,
)
from ..transport.base import BaseTransport, ParticipantAction
from ..validation import require_group_name, require_phone_numbers
from .base import CommandBase, MediaSource, read_media, require_group_jid

INVITE_LINK_PREFIX = "https://chat.whatsapp.com/"


def invite_code(code_or_link: str) -> str:
    """Accepts either the bare code or a full chat.whatsapp.com link."""

    code = code_or_link.strip()
    if code.startswith(INVITE_LINK_PREFIX):
        code = code[len(INVITE_LINK_PREFIX) :]
    return code.split("?", 1)[0].strip("/")


class GroupCommands(CommandBase):
    async def create_group(self, name: str, participants: Sequence[str]) -> CreateGroupResult:
        def check() -> None:
            require_group_name(name)
            require_phone_numbers(list(participants))

        async def call(t: BaseTransport) -> dict[str, Any]:
            info = await t.group_create(name, [format_phone_to_jid(p) for p in participants])
            return {"group_jid": info.jid, "group_info": info}

        return await self._command("create_group", CreateGroupResult, call, check=check)

    async def get_group_info(self, group_jid: str) -> GroupInfoResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"group": await t.group_metadata(group_jid)}

        return await self._command(
            "get_group_info", GroupInfoResult, call, check=lambda: require_group_jid(group_jid)
        )

    async def get_group_participants(self, group_jid: str) -> GroupParticipantsResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            info = await t.group_metadata(group_jid)
            return {"participants": info.participants}

        return await self._command(
            "get_group_participants",
            GroupParticipantsResult,
            call,
            check=lambda: require_group_jid(group_jid),
        )

    async def leave_group(self, group_jid: str) -> OperationResult:
        async def call(t: BaseTransport) -> None:
            await t.group_leave(group_jid)

        return await self._command(
            "leave_group", OperationResult, call, check=lambda: require_group_jid(group_jid)
        )

    async def update_group_name(self, group_jid: str, name: str) -> OperationResult:
        def check() -> None:
            require_group_jid(group_jid)
            require_group_name(name)

        async def call(t: BaseTransport) -> None:
            await t.group_update_subject(group_jid, name)

        return await self._command("update_group_name", OperationResult, call, check=check)

    async def update_group_description(
        self, group_jid: str, description: str | None = None
    ) -> OperationResult:
        """An empty or missing description clears it."""

        async def call(t: BaseTransport) -> None:
            await t.group_update_description(group_jid, description or None)

        return await self._command(
            "update_group_description",
            OperationResult,
            call,
            check=lambda: require_group_jid(group_jid),
        )

    async def update_group_picture(self, group_jid: str, image: MediaSource) -> OperationResult:
        async def call(t: BaseTransport) -> None:
            data, _ = await read_media(image)
            await t.update_profile_picture(group_jid, data)

        return await self._command(
            "update_group_picture",
            OperationResult,
            call,
            check=lambda: require_group_jid(group_jid),
        )

    async def _participants(
        self, action: ParticipantAction, group_jid: str, phones: Sequence[str]
    ) -> ParticipantsResult:
        def check() -> None:
            require_group_jid(group_jid)
            require_phone_numbers(list(phones))

        async def call(t: BaseTransport) -> dict[str, Any]:
            jids = [format_phone_to_jid(p) for p in phones]
            return {"participants": await t.group_participants_update(group_jid, jids, action)}

        return await self._command(f"{action}_participants", ParticipantsResult, call, check=check)

    async def add_participants(self, group_jid: str, phones: Sequence[str]) -> ParticipantsResult:
        return await self._participants("add", group_jid, phones)

    async def remove_participants(
        self, group_jid: str, phones: Sequence[str]
    ) -> ParticipantsResult:
        return await self._participants("remove", group_jid, phones)

    async def promote_to_admin(self, group_jid: str, phones: Sequence[str]) -> ParticipantsResult:
        return await self._participants("promote", group_jid, phones)

    async def demote_from_admin(self, group_jid: str, phones: Sequence[str]) -> ParticipantsResult:
        return await self._participants("demote", group_jid, phones)

    async def get_group_invite_link(self, group_jid: str) -> InviteLinkResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"link": INVITE_LINK_PREFIX + await t.group_invite_code(group_jid)}

        return await self._command(
            "get_group_invite_link",
            InviteLinkResult,
            call,
            check=lambda: require_group_jid(group_jid),
        )

    async def revoke_group_invite(self, group_jid: str) -> InviteLinkResult:
        """Invalidate the current link; the result carries the new one."""

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"link": INVITE_LINK_PREFIX + await t.group_revoke_invite(group_jid)}

        return await self._command(
            "revoke_group_invite",
            InviteLinkResult,
            call,
            check=lambda: require_group_jid(group_jid),
        )

    async def accept_group_invite(self, code_or_link: str) -> AcceptInviteResult:
        code = invite_code(code_or_link)

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"group_jid": await t.group_accept_invite(code)}

        return await self._command("accept_group_invite", AcceptInviteResult, call)

    async def get_group_invite_info(self, code_or_link: str) -> GroupInviteInfoResult:
        code = invite_code(code_or_link)

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"info": await t.group_get_invite_info(code)}

        return await self._command("get_group_invite_info", GroupInviteInfoResult, call)
