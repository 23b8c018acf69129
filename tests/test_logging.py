"""
Tests for logging helpers
"""

from gharpaluwa.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging


class TestSanitize:
    """Tests for log sanitizers."""

    def test_id_keeps_last_eight(self):
        assert sanitize_id_for_logging("65a1b2c3d4e5f6a7b8c9d0e1") == "b8c9d0e1"
        assert sanitize_id_for_logging("short") == "short"
        assert sanitize_id_for_logging(None) == "N/A"

    def test_newlines_are_escaped(self):
        assert sanitize_string_for_logging("Max\nINFO - forged") == "Max\\nINFO - forged"

    def test_truncation(self):
        assert sanitize_string_for_logging("x" * 60, max_length=10) == "x" * 10 + "..."

    def test_get_logger_is_cached(self):
        assert get_logger("gharpaluwa.test") is get_logger("gharpaluwa.test")

    def test_id_control_characters(self):
        """Test ids are escaped before being cut to the short reference."""
        assert sanitize_id_for_logging("\r\n\x00-9") == "\\r\\n-9"
        assert sanitize_id_for_logging("a\tb") == "a\\tb"
