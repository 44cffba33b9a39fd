"""
Tests for tutor_room.config module.

Verifies:
- MOCK_MODE defaults to True when env var is unset
- MOCK_MODE reads correctly from environment variable
- Backend URL, token, timeouts and limits load from the environment
"""

import importlib

import pytest

import tutor_room.config


@pytest.fixture(autouse=True)
def restore_config(monkeypatch):
    """Reload config with the test environment restored after each test."""
    yield
    monkeypatch.undo()
    importlib.reload(tutor_room.config)


class TestMockModeConfig:
    """Tests for the MOCK_MODE configuration toggle."""

    def test_mock_mode_defaults_true(self, monkeypatch):
        """MOCK_MODE should default to True when MOCK_MODE env var is unset."""
        monkeypatch.delenv("MOCK_MODE", raising=False)
        importlib.reload(tutor_room.config)
        assert tutor_room.config.MOCK_MODE is True

    def test_mock_mode_true_when_set_yes(self, monkeypatch):
        """MOCK_MODE=yes in env should result in True."""
        monkeypatch.setenv("MOCK_MODE", "yes")
        importlib.reload(tutor_room.config)
        assert tutor_room.config.MOCK_MODE is True

    def test_mock_mode_true_when_set_one(self, monkeypatch):
        """MOCK_MODE=1 in env should result in True."""
        monkeypatch.setenv("MOCK_MODE", "1")
        importlib.reload(tutor_room.config)
        assert tutor_room.config.MOCK_MODE is True

    def test_mock_mode_false_when_set_false(self, monkeypatch):
        """MOCK_MODE=false in env should result in False."""
        monkeypatch.setenv("MOCK_MODE", "false")
        importlib.reload(tutor_room.config)
        assert tutor_room.config.MOCK_MODE is False

    def test_mock_mode_case_insensitive(self, monkeypatch):
        """MOCK_MODE=TRUE should also result in True (case-insensitive)."""
        monkeypatch.setenv("MOCK_MODE", "TRUE")
        importlib.reload(tutor_room.config)
        assert tutor_room.config.MOCK_MODE is True


class TestBackendConfig:
    """Tests for tutoring-backend connection settings."""

    def test_url_default_and_trailing_slash(self, monkeypatch):
        """TUTOR_API_URL should default to localhost and drop a trailing slash."""
        monkeypatch.delenv("TUTOR_API_URL", raising=False)
        importlib.reload(tutor_room.config)
        assert tutor_room.config.TUTOR_API_URL == "http://localhost:3000"

        monkeypatch.setenv("TUTOR_API_URL", "https://tutor.example.com/")
        importlib.reload(tutor_room.config)
        assert tutor_room.config.TUTOR_API_URL == "https://tutor.example.com"

    def test_token_loads_when_set(self, monkeypatch):
        """TUTOR_API_TOKEN should load from environment when set."""
        monkeypatch.setenv("TUTOR_API_TOKEN", "tok_123")
        importlib.reload(tutor_room.config)
        assert tutor_room.config.TUTOR_API_TOKEN == "tok_123"

    def test_timeouts_default(self, monkeypatch):
        """Ordinary calls get 10s, transcription and analysis 60s."""
        monkeypatch.delenv("DEFAULT_TIMEOUT_S", raising=False)
        monkeypatch.delenv("EXTENDED_TIMEOUT_S", raising=False)
        importlib.reload(tutor_room.config)
        assert tutor_room.config.DEFAULT_TIMEOUT_S == 10
        assert tutor_room.config.EXTENDED_TIMEOUT_S == 60


class TestLimitsConfig:
    """Tests for fixed limits and language settings."""

    def test_audio_limit_is_one_mebibyte(self):
        """Recordings are capped at exactly 1 MiB."""
        assert tutor_room.config.MAX_AUDIO_BYTES == 1_048_576

    def test_language_defaults(self, monkeypatch):
        """Debounce is 1s, cache TTL five minutes, auto-switch on."""
        for name in ("LANGUAGE_DEBOUNCE_S", "LANGUAGE_CACHE_TTL_S", "AUTO_SWITCH_UI"):
            monkeypatch.delenv(name, raising=False)
        importlib.reload(tutor_room.config)
        assert tutor_room.config.LANGUAGE_DEBOUNCE_S == 1.0
        assert tutor_room.config.LANGUAGE_CACHE_TTL_S == 300
        assert tutor_room.config.AUTO_SWITCH_UI is True

    def test_auto_switch_can_be_disabled(self, monkeypatch):
        """AUTO_SWITCH_UI=false turns UI auto-switching off."""
        monkeypatch.setenv("AUTO_SWITCH_UI", "false")
        importlib.reload(tutor_room.config)
        assert tutor_room.config.AUTO_SWITCH_UI is False
