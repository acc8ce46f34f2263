"""
JID helpers. Parsing is pyaileys' own (`pyaileys.wabinary`); the phone, LID and
suffix conveniences on top of it live here.
"""

from __future__ import annotations

import re

from pyaileys.wabinary import is_lid_user, jid_decode, jid_normalized_user

from .constants import (
    GROUP_SUFFIX,
    KNOWN_JID_SUFFIXES,
    LEGACY_USER_SUFFIX,
    LID_SUFFIX,
    NEWSLETTER_SUFFIX,
    S_WHATSAPP_NET,
)

_NON_DIGITS = re.compile(r"\D")

__all__ = [
    "digits_only",
    "ensure_lid",
    "ensure_phone_jid",
    "format_phone_to_jid",
    "is_group_jid",
    "is_lid_user",
    "is_newsletter_jid",
    "is_phone_user",
    "jid_decode",
    "jid_normalized_user",
    "phone_from_jid",
]


def is_phone_user(jid: str | None) -> bool:
    return bool(jid and (jid.endswith(S_WHATSAPP_NET) or jid.endswith(LEGACY_USER_SUFFIX)))


def is_group_jid(jid: str | None) -> bool:
    return bool(jid and jid.endswith(GROUP_SUFFIX))


def is_newsletter_jid(jid: str | None) -> bool:
    return bool(jid and jid.endswith(NEWSLETTER_SUFFIX))


def phone_from_jid(jid: str | None) -> str | None:
    """
    Strip the phone-identifier domain: `"62811@s.whatsapp.net" -> "62811"`.

    Returns None for anything that is not a phone-based JID (LIDs, groups, ...).
    """

    if not is_phone_user(jid):
        return None
    decoded = jid_decode(jid)
    return decoded.user if decoded and decoded.user else None


def digits_only(value: str | None) -> str | None:
    """Phone-ish value reduced to its digits (`"+62 811-2" -> "628112"`); None when empty."""

    if not value:
        return None
    if "@" in value:
        value = value.split("@", 1)[0].split(":", 1)[0]
    cleaned = _NON_DIGITS.sub("", value)
    return cleaned or None


def ensure_lid(value: str) -> str:
    """`"123" -> "123@lid"`; values that already carry a domain are kept."""

    return value if "@" in value else f"{value}{LID_SUFFIX}"


def ensure_phone_jid(value: str) -> str:
    """`"62811" -> "62811@s.whatsapp.net"`; values that already carry a domain are kept."""

    return value if "@" in value else f"{value}{S_WHATSAPP_NET}"


def format_phone_to_jid(phone_or_jid: str) -> str:
    """
    Turn user input into a WhatsApp JID.

    Anything already carrying a known suffix (`@s.whatsapp.net`, `@lid`, `@g.us`,
    `@c.us`, `@broadcast`, `@newsletter`) is returned as-is; otherwise all
    non-digits are dropped and the phone suffix is appended.
    """

    if any(suffix in phone_or_jid for suffix in KNOWN_JID_SUFFIXES):
        return phone_or_jid
    return f"{_NON_DIGITS.sub('', phone_or_jid)}{S_WHATSAPP_NET}"
