"""Identity resolution and address normalization."""

from __future__ import annotations

from .identity import IdentityResolver, UnresolvableIdentifierError
from .jid import (
    e164_to_jid,
    is_group_jid,
    is_lid,
    is_same_identity,
    is_status_or_broadcast,
    jid_to_e164,
    strip_device_suffix,
)
from .phone import is_same_contact, normalize_phone_for_storage

__all__ = [
    "IdentityResolver",
    "UnresolvableIdentifierError",
    "e164_to_jid",
    "is_group_jid",
    "is_lid",
    "is_same_identity",
    "is_status_or_broadcast",
    "jid_to_e164",
    "strip_device_suffix",
    "is_same_contact",
    "normalize_phone_for_storage",
]
