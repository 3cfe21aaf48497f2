"""
Unit tests for network error classification
"""

import errno

import pytest

from chatrelay.infra.network_errors import is_recoverable_network_error


class NetworkError(Exception):
    """Stand-in named like transport library errors."""


class TestIsRecoverableNetworkError:
    """Test is_recoverable_network_error function."""

    def test_none_is_recoverable(self):
        """An unexplained disconnect is retried."""
        assert is_recoverable_network_error(None) is True

    def test_builtin_connection_errors(self):
        assert is_recoverable_network_error(ConnectionResetError())
        assert is_recoverable_network_error(TimeoutError())
        assert is_recoverable_network_error(BrokenPipeError())

    def test_errno_code(self):
        err = OSError(errno.ECONNREFUSED, "refused")
        assert is_recoverable_network_error(err)

    def test_error_name(self):
        assert is_recoverable_network_error(NetworkError("bad gateway"))

    def test_message_snippet(self):
        assert is_recoverable_network_error(RuntimeError("socket hang up"))
        assert not is_recoverable_network_error(
            RuntimeError("socket hang up"), allow_message_match=False
        )

    def test_string_reason(self):
        assert is_recoverable_network_error("Connection lost")
        assert not is_recoverable_network_error("logged out")

    def test_chained_cause(self):
        """Wrapped network errors are found through the cause chain."""
        try:
            try:
                raise ConnectionResetError("reset by peer")
            except ConnectionResetError as inner:
                raise RuntimeError("stream failed") from inner
        except RuntimeError as outer:
            assert is_recoverable_network_error(outer)

    def test_non_recoverable(self):
        assert not is_recoverable_network_error(ValueError("Invalid token"))
        assert not is_recoverable_network_error(PermissionError("logged out"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
