"""
Tests for the rate-limited logging helper.
"""
import logging
from unittest.mock import MagicMock, patch

from intentswap_sdk._rate_limited_log import rate_limited_log, reset_rate_limits


def test_repeated_message_is_suppressed():
    mock_logger = MagicMock()
    mock_logger.name = "test"

    assert rate_limited_log("Lookup failed", logger_instance=mock_logger) is True
    assert rate_limited_log("Lookup failed", logger_instance=mock_logger) is False
    mock_logger.warning.assert_called_once_with("Lookup failed")


def test_levels_and_messages_are_keyed_separately():
    mock_logger = MagicMock()
    mock_logger.name = "test"

    assert rate_limited_log("a", logger_instance=mock_logger)
    assert rate_limited_log("b", logger_instance=mock_logger)
    assert rate_limited_log("a", level="error", logger_instance=mock_logger)
    mock_logger.error.assert_called_once_with("a")
    assert mock_logger.warning.call_count == 2


def test_reset_allows_logging_again():
    mock_logger = MagicMock()
    mock_logger.name = "test"

    rate_limited_log("again", logger_instance=mock_logger)
    reset_rate_limits()
    assert rate_limited_log("again", logger_instance=mock_logger) is True
    assert mock_logger.warning.call_count == 2


def test_default_logger(caplog):
    with caplog.at_level(logging.WARNING):
        rate_limited_log("module logger message")
    assert "module logger message" in caplog.text


def test_cache_key_includes_logger_and_level():
    mock_logger = MagicMock()
    mock_logger.name = "test"
    with patch("intentswap_sdk._rate_limited_log._log_cache", {}) as cache:
        rate_limited_log("expiring", logger_instance=mock_logger)
        assert "test:warning:expiring" in cache
        cache.clear()
        assert rate_limited_log("expiring", logger_instance=mock_logger) is True
