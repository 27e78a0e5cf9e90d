"""
Unit tests for log and error redaction
"""

import pytest

from agentdesk.utils.sanitize import preview, sanitize_dict, sanitize_string


@pytest.mark.unit
class TestSanitize:

    def test_redacts_provider_key(self):
        text = "auth failed for sk-abcdefghijklmnopqrstuvwxyz123"
        assert sanitize_string(text) == "auth failed for sk-***REDACTED***"

    def test_redacts_signature(self):
        assert sanitize_string("sig=" + "a" * 64) == "sig=***SIGNATURE***"

    def test_redacts_sensitive_keys(self):
        data = {"device": {"type": "mobile", "token": "abc"}, "hmac": "f00"}

        assert sanitize_dict(data) == {"device": {"type": "mobile", "token": "***REDACTED***"}, "hmac": "***REDACTED***"}

    def test_preview_truncates(self):
        assert preview("  many\n  words  ") == "many words"
        assert preview("x" * 100, limit=10) == "x" * 10 + "..."
