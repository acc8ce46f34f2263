from __future__ import annotations

from ..exceptions import TransportRequestError, ValidationError
from ..results import OperationResult
from ..transport.base import BaseTransport
from .base import CommandBase, MediaSource, read_media

MAX_PROFILE_NAME_LENGTH = 25
MAX_PROFILE_STATUS_LENGTH = 139


def _own_jid(t: BaseTransport, operation: str) -> str:
    me = t.me()
    if me is None:
        raise TransportRequestError(operation, "account identity not known yet")
    return me.jid


class ProfileCommands(CommandBase):
    async def update_profile_picture(self, image: MediaSource) -> OperationResult:
        async def call(t: BaseTransport) -> None:
            data, _ = await read_media(image)
            await t.update_profile_picture(_own_jid(t, "update_profile_picture"), data)

        return await self._command("update_profile_picture", OperationResult, call)

    async def remove_profile_picture(self) -> OperationResult:
        async def call(t: BaseTransport) -> None:
            await t.remove_profile_picture(_own_jid(t, "remove_profile_picture"))

        return await self._command("remove_profile_picture", OperationResult, call)

    async def update_profile_name(self, name: str) -> OperationResult:
        def check() -> None:
            if not name or not name.strip():
                raise ValidationError("Profile name cannot be empty")
            if len(name) > MAX_PROFILE_NAME_LENGTH:
                raise ValidationError(
                    f"Profile name exceeds maximum length of {MAX_PROFILE_NAME_LENGTH} characters"
                )

        async def call(t: BaseTransport) -> None:
            await t.update_profile_name(name)

        return await self._command("update_profile_name", OperationResult, call, check=check)

    async def update_profile_status(self, status: str) -> OperationResult:
        def check() -> None:
            if len(status) > MAX_PROFILE_STATUS_LENGTH:
                raise ValidationError(
                    f"Status exceeds maximum length of {MAX_PROFILE_STATUS_LENGTH} characters"
                )

        async def call(t: BaseTransport) -> None:
            await t.update_profile_status(status)

        return await self._command("update_profile_status", OperationResult, call, check=check)
