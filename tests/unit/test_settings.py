import pytest

from config.settings import Settings, get_settings


def test_defaults(monkeypatch) -> None:
    for name in ("PORT", "HISTORY_WINDOW", "REQUEST_TIMEOUT_SECONDS", "CHAT_MODEL", "GEMINI_MODEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.port == 3000
    assert settings.history_window == 15
    assert settings.request_timeout == 300
    assert settings.chat_model == "gemini-2.0-flash"


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-flash")
    monkeypatch.setenv("VISION_MODEL", "gemini-2.5-pro")

    settings = get_settings()

    assert settings.port == 8080
    assert settings.chat_model == "gemini-2.5-flash"
    assert settings.vision_model == "gemini-2.5-pro"


def test_missing_api_key_is_fatal(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_API_KEY", "   ")

    with pytest.raises(RuntimeError):
        Settings().require_api_key()
