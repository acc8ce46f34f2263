from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .constants import BROADCAST_SUFFIX, GROUP_SUFFIX, LID_SUFFIX, S_WHATSAPP_NET
from .exceptions import ValidationError

VALID_JID_SUFFIXES = (S_WHATSAPP_NET, GROUP_SUFFIX, BROADCAST_SUFFIX, LID_SUFFIX)

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15
MAX_MESSAGE_LENGTH = 65536
MAX_GROUP_NAME_LENGTH = 100


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid


_OK = ValidationResult(True)


def _fail(error: str) -> ValidationResult:
    return ValidationResult(False, error)


def validate_phone_number(phone: str) -> ValidationResult:
    """
    International format without prefix: "6281234567890".
    """

    if not phone or not phone.strip():
        return _fail("Phone number cannot be empty")
    if "+" in phone:
        return _fail(
            "Phone number should not contain '+' (use international format without prefix)"
        )
    if " " in phone or "-" in phone:
        return _fail("Phone number should not contain spaces or hyphens")
    if not (phone.isascii() and phone.isdigit()):
        return _fail("Phone number should contain only digits")
    if not MIN_PHONE_DIGITS <= len(phone) <= MAX_PHONE_DIGITS:
        return _fail(f"Phone number should be between {MIN_PHONE_DIGITS}-{MAX_PHONE_DIGITS} digits")
    return _OK


def validate_phone_numbers(phones: Sequence[str]) -> ValidationResult:
    if not phones:
        return _fail("Phone numbers array cannot be empty")
    for i, phone in enumerate(phones):
        res = validate_phone_number(phone)
        if not res.valid:
            return _fail(f"Invalid phone number at index {i}: {res.error}")
    return _OK


def validate_jid(jid: str) -> ValidationResult:
    if not jid or not jid.strip():
        return _fail("JID cannot be empty")
    if not jid.endswith(VALID_JID_SUFFIXES):
        return _fail(f"JID must end with one of: {', '.join(VALID_JID_SUFFIXES)}")
    user, sep, rest = jid.partition("@")
    if not sep or "@" in rest:
        return _fail("Invalid JID format: should be identifier@domain")
    if not user:
        return _fail("JID identifier cannot be empty")
    return _OK


def validate_message_text(
    text: str, *, min_length: int = 1, max_length: int = MAX_MESSAGE_LENGTH
) -> ValidationResult:
    if not text or not text.strip():
        return _fail("Message text cannot be empty")
    if len(text) < min_length:
        plural = "s" if min_length > 1 else ""
        return _fail(f"Message text must be at least {min_length} character{plural}")
    if len(text) > max_length:
        return _fail(f"Message text exceeds maximum length of {max_length} characters")
    return _OK


def validate_group_name(name: str) -> ValidationResult:
    if not name or not name.strip():
        return _fail("Group name cannot be empty")
    if len(name) > MAX_GROUP_NAME_LENGTH:
        return _fail(f"Group name exceeds maximum length of {MAX_GROUP_NAME_LENGTH} characters")
    return _OK


def _require(res: ValidationResult) -> None:
    if not res.valid:
        raise ValidationError(res.error or "invalid value")


def require_phone_number(phone: str) -> None:
    _require(validate_phone_number(phone))


def require_phone_numbers(phones: Sequence[str]) -> None:
    _require(validate_phone_numbers(phones))


def require_jid(jid: str) -> None:
    _require(validate_jid(jid))


def require_message_text(text: str) -> None:
    _require(validate_message_text(text))


def require_group_name(name: str) -> None:
    _require(validate_group_name(name))
