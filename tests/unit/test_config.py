"""
Unit Tests for Configuration and Logging
"""

import pytest
from pydantic import ValidationError

from astral.config import Settings
from astral.config.logging_config import _redact_sensitive_data


class TestSettings:
    """Settings defaults and environment overrides."""

    def test_defaults(self) -> None:
        """Test default settings values."""
        settings = Settings()

        assert settings.crisis.debounce_ms == 500
        assert settings.sync.max_retries == 5
        assert settings.crisis.alert_threshold == "low"
        assert not settings.is_production()

    def test_nested_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test per-section ASTRAL_* environment overrides."""
        monkeypatch.setenv("ASTRAL_SYNC_MAX_RETRIES", "7")
        monkeypatch.setenv("ASTRAL_CRISIS_ALERT_THRESHOLD", "high")
        monkeypatch.setenv("ASTRAL_ENV", "production")

        settings = Settings()

        assert settings.sync.max_retries == 7
        assert settings.crisis.alert_threshold == "high"
        assert settings.is_production()

    def test_secrets_are_masked(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the sync token is never shown in repr."""
        monkeypatch.setenv("ASTRAL_SYNC_API_TOKEN", "s3cr3t")

        settings = Settings()

        assert settings.sync.api_token.get_secret_value() == "s3cr3t"
        assert "s3cr3t" not in repr(settings)

    def test_invalid_threshold_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an unknown alert threshold fails validation."""
        monkeypatch.setenv("ASTRAL_CRISIS_ALERT_THRESHOLD", "extreme")

        with pytest.raises(ValidationError):
            Settings()


class TestLogRedaction:
    """structlog redaction processor."""

    def test_sensitive_keys_redacted(self) -> None:
        """Test that payload and credential keys are redacted at any depth."""
        event = _redact_sensitive_data(None, "info", {
            "event": "Sync item enqueued",
            "api_token": "abc",
            "details": {"payload": {"mood": 2}, "queue_size": 3},
        })

        assert event["event"] == "Sync item enqueued"
        assert event["api_token"] == "[REDACTED]"
        assert event["details"]["payload"] == "[REDACTED]"
        assert event["details"]["queue_size"] == 3

    def test_user_content_keys_match_exactly(self) -> None:
        """Test that user text is redacted while derived fields stay readable."""
        event = _redact_sensitive_data(None, "info", {
            "event": "Crisis analysis complete",
            "text": "I want to end it all",
            "text_hash": "ab12",
            "items": [{"context": {"screen": "journal"}, "retry_count": 1}],
        })

        assert event["text"] == "[REDACTED]"
        assert event["text_hash"] == "ab12"
        assert event["items"] == [{"context": "[REDACTED]", "retry_count": 1}]
