from __future__ import annotations

from miaw.jid import (
    digits_only,
    format_phone_to_jid,
    is_group_jid,
    is_lid_user,
    is_newsletter_jid,
    is_phone_user,
    jid_decode,
    jid_normalized_user,
    phone_from_jid,
)


def test_format_phone_to_jid() -> None:
    assert format_phone_to_jid("+62 812-3456-7890") == "6281234567890@s.whatsapp.net"
    assert format_phone_to_jid("6281234567890") == "6281234567890@s.whatsapp.net"
    for jid in (
        "6281234567890@s.whatsapp.net",
        "111@lid",
        "120363000000000001@g.us",
        "123@newsletter",
        "status@broadcast",
    ):
        assert format_phone_to_jid(jid) == jid


def test_decode_and_normalize() -> None:
    full = jid_decode("6281234567890:12@s.whatsapp.net")
    assert full is not None
    assert full.user == "6281234567890"
    assert full.device == 12
    assert jid_decode("not-a-jid") is None

    assert jid_normalized_user("6281234567890:3@s.whatsapp.net") == "6281234567890@s.whatsapp.net"
    assert jid_normalized_user("6281234567890@c.us") == "6281234567890@s.whatsapp.net"
    assert jid_normalized_user(None) == ""


def test_predicates() -> None:
    assert is_lid_user("111@lid")
    assert not is_lid_user("111@s.whatsapp.net")
    assert is_phone_user("62811@s.whatsapp.net")
    assert is_phone_user("62811@c.us")
    assert is_group_jid("1203@g.us")
    assert is_newsletter_jid("1203@newsletter")
    assert not is_group_jid(None)


def test_phone_extraction() -> None:
    assert phone_from_jid("6281234567890@s.whatsapp.net") == "6281234567890"
    assert phone_from_jid("111@lid") is None
    assert phone_from_jid("1203@g.us") is None

    assert digits_only("+62 811-2") == "628112"
    assert digits_only("62811:4@s.whatsapp.net") == "62811"
    assert digits_only("") is None
    assert digits_only("abc") is None
