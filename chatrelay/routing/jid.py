"""
Address helpers for linked-device style identifiers.

Addresses look like ``<user>[:<device>]@<domain>``:

- ``15551234567@s.whatsapp.net``   real (phone-number based) address
- ``15551234567:26@s.whatsapp.net`` same address from a specific device
- ``214542927831175@lid``          privacy-preserving linked identifier
- ``120363001234567@g.us``         group conversation
"""
from __future__ import annotations

import re

LID_DOMAIN = "@lid"
USER_DOMAIN = "@s.whatsapp.net"
GROUP_DOMAIN = "@g.us"

_DEVICE_SUFFIX_RE = re.compile(r":\d+(@|$)")


def strip_device_suffix(jid: str | None) -> str:
    """
    Remove a ``:N`` device suffix before the domain (or at the end).

    Examples:
        strip_device_suffix("919888142915:26@s.whatsapp.net") -> "919888142915@s.whatsapp.net"
        strip_device_suffix("214542927831175:25@lid")         -> "214542927831175@lid"
        strip_device_suffix("123@s.whatsapp.net")             -> "123@s.whatsapp.net"
    """
    if not jid:
        return ""
    return _DEVICE_SUFFIX_RE.sub(r"\1", jid.strip(), count=1)


def is_same_identity(a: str | None, b: str | None) -> bool:
    """Compare two addresses ignoring device suffixes; empty never matches"""
    a_norm = strip_device_suffix(a)
    return bool(a_norm) and a_norm == strip_device_suffix(b)


def is_lid(jid: str | None) -> bool:
    if not jid:
        return False
    return LID_DOMAIN in jid


def is_group_jid(jid: str | None) -> bool:
    if not jid:
        return False
    return jid.endswith(GROUP_DOMAIN)


def is_status_or_broadcast(jid: str | None) -> bool:
    """Status updates and broadcast lists never trigger replies"""
    if not jid:
        return False
    return jid.endswith("@status") or jid.endswith("@broadcast")


def jid_to_e164(jid: str) -> str:
    """
    Extract the user part of an address.

    jid_to_e164("1234567890:50@s.whatsapp.net") -> "1234567890"
    """
    return re.sub(r":\d+$", "", re.sub(r"@.*", "", jid))


def e164_to_jid(e164: str) -> str:
    """Build a real user address from a phone number in any format"""
    digits = re.sub(r"\D", "", e164)
    return f"{digits}{USER_DOMAIN}"


__all__ = [
    "LID_DOMAIN",
    "USER_DOMAIN",
    "GROUP_DOMAIN",
    "strip_device_suffix",
    "is_same_identity",
    "is_lid",
    "is_group_jid",
    "is_status_or_broadcast",
    "jid_to_e164",
    "e164_to_jid",
]
