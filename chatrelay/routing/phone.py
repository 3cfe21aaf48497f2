"""Phone number normalization for contact storage and comparison."""
from __future__ import annotations

import re

_STRIP_SUFFIXES = ("@s.whatsapp.net", "@g.us", "@lid")


def normalize_phone_for_storage(user_id: str) -> str:
    """
    Normalize a user id to ``+<digits>`` form.

    Handles:
    - ``12345678901@s.whatsapp.net`` -> ``+12345678901``
    - ``12345678901@lid``            -> ``+12345678901``
    - ``120363001234567-1234567890@g.us`` -> ``+120363001234567-1234567890``
    - ``12345678901``                -> ``+12345678901``
    - ``+12345678901``               -> ``+12345678901``
    """
    value = user_id
    for suffix in _STRIP_SUFFIXES:
        value = value.replace(suffix, "", 1)
    value = re.sub(r":\d+$", "", value).strip()
    if not value.startswith("+"):
        value = f"+{value}"
    return value


def is_same_contact(id1: str, id2: str) -> bool:
    return normalize_phone_for_storage(id1) == normalize_phone_for_storage(id2)


def phone_digits(value: str | None) -> str:
    """Digits only; used for phone-number mention matching"""
    if not value:
        return ""
    return re.sub(r"\D", "", value)


__all__ = [
    "normalize_phone_for_storage",
    "is_same_contact",
    "phone_digits",
]
