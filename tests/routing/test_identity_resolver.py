"""
Unit tests for linked identifier resolution

Tests the self-chat shortcut, native lookup, observed mappings and the
fail-safe rejection of unknown identifiers.
"""

import pytest

from chatrelay.routing.identity import IdentityResolver, UnresolvableIdentifierError

SELF_LID = "214542927831175@lid"
SELF_JID = "15551234567@s.whatsapp.net"
OTHER_LID = "987654321000111@lid"
OTHER_JID = "19998887777@s.whatsapp.net"


@pytest.fixture
def resolver():
    return IdentityResolver(self_chat_lid=SELF_LID, self_address=SELF_JID)


class TestIdentityResolver:
    """Test IdentityResolver.resolve order."""

    def test_non_lid_passes_through(self, resolver):
        assert resolver.resolve(OTHER_JID) == OTHER_JID
        assert resolver.resolve("120363001234567@g.us") == "120363001234567@g.us"

    def test_self_chat_lid(self, resolver):
        assert resolver.resolve(SELF_LID) == SELF_JID

    def test_unknown_lid_raises(self, resolver):
        with pytest.raises(UnresolvableIdentifierError) as exc_info:
            resolver.resolve(OTHER_LID)
        assert exc_info.value.identifier == OTHER_LID
        assert isinstance(exc_info.value, LookupError)

    def test_native_lookup_callable(self):
        resolver = IdentityResolver(native_lookup=lambda lid: OTHER_JID if lid == OTHER_LID else None)
        assert resolver.resolve(OTHER_LID) == OTHER_JID

    def test_native_lookup_mapping(self):
        resolver = IdentityResolver(native_lookup={OTHER_LID: OTHER_JID})
        assert resolver.resolve(OTHER_LID) == OTHER_JID

    def test_native_wins_over_observed(self):
        resolver = IdentityResolver(native_lookup={OTHER_LID: OTHER_JID})
        resolver.observe(OTHER_LID, "10000000000@s.whatsapp.net")
        assert resolver.resolve(OTHER_LID) == OTHER_JID

    def test_observed_mapping(self, resolver):
        assert resolver.observe(OTHER_LID, OTHER_JID) is True
        assert resolver.resolve(OTHER_LID) == OTHER_JID

    def test_set_native_lookup_replaces_table(self, resolver):
        resolver.set_native_lookup({OTHER_LID: OTHER_JID})
        assert resolver.resolve(OTHER_LID) == OTHER_JID

        resolver.set_native_lookup(None)
        with pytest.raises(UnresolvableIdentifierError):
            resolver.resolve(OTHER_LID)


class TestObserve:
    """Test learning mappings from inbound traffic."""

    def test_rejects_invalid_pairs(self, resolver):
        assert resolver.observe(None, OTHER_JID) is False
        assert resolver.observe(OTHER_LID, None) is False
        assert resolver.observe(OTHER_JID, OTHER_JID) is False
        assert resolver.observe(OTHER_LID, SELF_LID) is False
        assert resolver.known_mappings() == {}

    def test_unchanged_mapping_not_reported(self, resolver):
        assert resolver.observe(OTHER_LID, OTHER_JID) is True
        assert resolver.observe(OTHER_LID, OTHER_JID) is False

    def test_observe_message(self, resolver, make_message):
        msg = make_message(sender_identity=OTHER_JID, sender_lid=OTHER_LID)
        assert resolver.observe_message(msg) is True
        assert resolver.known_mappings() == {OTHER_LID: OTHER_JID}

    def test_clear(self, resolver):
        resolver.observe(OTHER_LID, OTHER_JID)
        resolver.clear()
        with pytest.raises(UnresolvableIdentifierError):
            resolver.resolve(OTHER_LID)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
