"""
Unit tests for address and phone helpers
"""

import pytest

from chatrelay.routing.jid import (
    e164_to_jid,
    is_group_jid,
    is_lid,
    is_same_identity,
    is_status_or_broadcast,
    jid_to_e164,
    strip_device_suffix,
)
from chatrelay.routing.phone import is_same_contact, normalize_phone_for_storage, phone_digits


class TestJidHelpers:
    """Test address helpers."""

    @pytest.mark.parametrize(
        "jid,expected",
        [
            ("919888142915:26@s.whatsapp.net", "919888142915@s.whatsapp.net"),
            ("214542927831175:25@lid", "214542927831175@lid"),
            ("123@s.whatsapp.net", "123@s.whatsapp.net"),
            ("123:4", "123"),
            (None, ""),
        ],
    )
    def test_strip_device_suffix(self, jid, expected):
        assert strip_device_suffix(jid) == expected

    def test_is_same_identity(self):
        assert is_same_identity("1:2@s.whatsapp.net", "1@s.whatsapp.net")
        assert not is_same_identity("", "")
        assert not is_same_identity("1@s.whatsapp.net", "2@s.whatsapp.net")

    def test_classifiers(self):
        assert is_lid("214542927831175@lid")
        assert not is_lid("15551234567@s.whatsapp.net")
        assert is_group_jid("120363001234567@g.us")
        assert not is_group_jid(None)
        assert is_status_or_broadcast("status@broadcast")
        assert not is_status_or_broadcast("15551234567@s.whatsapp.net")

    def test_conversions(self):
        assert jid_to_e164("1234567890:50@s.whatsapp.net") == "1234567890"
        assert e164_to_jid("+1 (555) 123-4567") == "15551234567@s.whatsapp.net"


class TestPhoneHelpers:
    """Test phone normalization."""

    @pytest.mark.parametrize(
        "user_id,expected",
        [
            ("12345678901@s.whatsapp.net", "+12345678901"),
            ("12345678901@lid", "+12345678901"),
            ("12345678901", "+12345678901"),
            ("+12345678901", "+12345678901"),
            ("12345678901:3@s.whatsapp.net", "+12345678901"),
        ],
    )
    def test_normalize_phone_for_storage(self, user_id, expected):
        assert normalize_phone_for_storage(user_id) == expected

    def test_is_same_contact(self):
        assert is_same_contact("12345678901@s.whatsapp.net", "+12345678901")
        assert not is_same_contact("12345678901", "12345678902")

    def test_phone_digits(self):
        assert phone_digits("+1 (555) 123-4567") == "15551234567"
        assert phone_digits(None) == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
