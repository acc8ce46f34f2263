from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..exceptions import TransportRequestError, UnsupportedOperationError, ValidationError
from ..jid import format_phone_to_jid, phone_from_jid
from ..results import (
    BusinessProfileResult,
    CheckNumberResult,
    CheckNumbersResult,
    ContactInfoResult,
    OperationResult,
    ProfilePictureResult,
)
from ..transport.base import BaseTransport
from ..types import ContactInfo
from .base import CommandBase


async def _optional_status(t: BaseTransport, jid: str) -> str | None:
    try:
        return await t.fetch_status(jid)
    except UnsupportedOperationError:
        return None


class ContactCommands(CommandBase):
    """Number checks, profile lookups and the address book."""

    async def check_number(self, phone: str) -> CheckNumberResult:
        jid = format_phone_to_jid(phone)

        async def call(t: BaseTransport) -> dict[str, Any]:
            found = dict(await t.on_whatsapp([jid]))
            return {"exists": bool(found.get(jid)), "jid": jid}

        return await self._command("check_number", CheckNumberResult, call)

    async def check_numbers(self, phones: Sequence[str]) -> CheckNumbersResult:
        jids = [format_phone_to_jid(p) for p in phones]

        def check() -> None:
            if not jids:
                raise ValidationError("Phone numbers array cannot be empty")

        async def call(t: BaseTransport) -> dict[str, Any]:
            found = dict(await t.on_whatsapp(jids))
            results = [
                CheckNumberResult(success=True, exists=bool(found.get(j)), jid=j) for j in jids
            ]
            return {"results": results}

        return await self._command("check_numbers", CheckNumbersResult, call, check=check)

    async def get_contact_info(self, jid_or_phone: str) -> ContactInfoResult:
        """Profile status plus whatever the contact store knows about the name."""

        jid = format_phone_to_jid(jid_or_phone)

        async def call(t: BaseTransport) -> dict[str, Any]:
            status = await _optional_status(t, jid)
            try:
                is_business = await t.business_profile(jid) is not None
            except UnsupportedOperationError:
                is_business = False
            known = self.contacts.get(self.lid_mapping.resolve(jid))
            info = ContactInfo(
                jid=jid,
                phone=phone_from_jid(self.lid_mapping.resolve(jid)),
                name=known.name if known else None,
                status=status,
                is_business=is_business,
            )
            return {"contact": info}

        return await self._command("get_contact_info", ContactInfoResult, call)

    async def get_business_profile(self, jid_or_phone: str) -> BusinessProfileResult:
        jid = format_phone_to_jid(jid_or_phone)

        async def call(t: BaseTransport) -> dict[str, Any]:
            profile = await t.business_profile(jid)
            if profile is None:
                raise ValidationError(f"{jid} is not a business account")
            return {"profile": profile}

        return await self._command("get_business_profile", BusinessProfileResult, call)

    async def get_profile_picture(
        self, jid_or_phone: str, *, high_res: bool = True
    ) -> ProfilePictureResult:
        """A missing or hidden picture is still a success, with `url=None`."""

        jid = format_phone_to_jid(jid_or_phone)

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"url": await t.profile_picture_url(jid, high_res=high_res)}

        return await self._command("get_profile_picture", ProfilePictureResult, call)

    async def get_own_profile(self) -> ContactInfoResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            me = t.me()
            if me is None:
                raise TransportRequestError("get_own_profile", "account identity not known yet")
            info = ContactInfo(
                jid=me.jid,
                phone=me.phone,
                name=me.name,
                status=await _optional_status(t, me.jid),
            )
            return {"contact": info}

        return await self._command("get_own_profile", ContactInfoResult, call)

    async def add_or_edit_contact(
        self,
        phone: str,
        name: str,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> OperationResult:
        jid = format_phone_to_jid(phone)

        def check() -> None:
            if not name or not name.strip():
                raise ValidationError("Contact name cannot be empty")

        async def call(t: BaseTransport) -> None:
            payload = {
                "fullName": name,
                "firstName": first_name or name.split(" ", 1)[0],
                **({"lastName": last_name} if last_name else {}),
            }
            await t.add_or_edit_contact(jid, payload)

        return await self._command("add_or_edit_contact", OperationResult, call, check=check)

    async def remove_contact(self, phone: str) -> OperationResult:
        jid = format_phone_to_jid(phone)

        async def call(t: BaseTransport) -> None:
            await t.remove_contact(jid)

        return await self._command("remove_contact", OperationResult, call)
