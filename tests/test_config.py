"""Tests for relay settings."""

import pytest
from pydantic import ValidationError

from prekeychat.config import RelaySettings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run without PREKEYCHAT_ variables or a .env file in scope."""
    for name in ("HOST", "PORT", "LOCAL_NAME", "REMOTE_NAME", "DEVICE_ID", "LOG_LEVEL"):
        monkeypatch.delenv(f"PREKEYCHAT_{name}", raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestRelaySettings:
    """Test defaults and environment overrides."""

    def test_defaults(self) -> None:
        """Defaults bind to localhost:8080 with remote peer "remote"."""
        settings = RelaySettings()

        assert settings.host == "127.0.0.1"
        assert settings.port == 8080
        assert settings.local_name == "local"
        assert settings.remote_name == "remote"
        assert settings.device_id == 1
        assert settings.log_level == "INFO"

    def test_env_override(self, monkeypatch) -> None:
        """PREKEYCHAT_ variables override defaults."""
        monkeypatch.setenv("PREKEYCHAT_PORT", "9090")
        monkeypatch.setenv("PREKEYCHAT_REMOTE_NAME", "browser")
        monkeypatch.setenv("PREKEYCHAT_LOG_LEVEL", "debug")

        settings = RelaySettings()
        assert settings.port == 9090
        assert settings.remote_name == "browser"
        assert settings.log_level == "DEBUG"

    def test_dotenv_file(self, tmp_path) -> None:
        """Settings are read from a .env file in the working directory."""
        (tmp_path / ".env").write_text("PREKEYCHAT_HOST=0.0.0.0\n")
        assert RelaySettings().host == "0.0.0.0"

    def test_rejects_unknown_log_level(self, monkeypatch) -> None:
        """Unknown log level is a validation error."""
        monkeypatch.setenv("PREKEYCHAT_LOG_LEVEL", "LOUD")
        with pytest.raises(ValidationError):
            RelaySettings()

    def test_rejects_device_id_zero(self, monkeypatch) -> None:
        """Device ids start at 1."""
        monkeypatch.setenv("PREKEYCHAT_DEVICE_ID", "0")
        with pytest.raises(ValidationError):
            RelaySettings()

    def test_get_settings_cached(self) -> None:
        """get_settings returns one shared instance."""
        assert get_settings() is get_settings()
