"""
Pytest configuration for chatrelay tests

Shared fixtures for building inbound messages and channel settings
"""
import pytest

from chatrelay.channels.base import InboundMessage


@pytest.fixture
def make_message():
    """Factory for inbound messages with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> InboundMessage:
        counter["n"] += 1
        fields = {
            "channel": "whatsapp",
            "conversation_key": "15550001111@s.whatsapp.net",
            "sender_identity": "15550001111@s.whatsapp.net",
            "text": f"message {counter['n']}",
            "id": f"MSG{counter['n']}",
        }
        fields.update(overrides)
        return InboundMessage(**fields)

    return _make
