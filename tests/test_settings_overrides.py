from __future__ import annotations

from services.relay import build_default_context
from settings import get_settings


def test_environment_overrides_apply(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "Production")
    monkeypatch.setenv("LONG_POLL_TIMEOUT_MS", "5000")
    monkeypatch.setenv("LONG_POLL_DISCONNECT_CHECK_SECONDS", "0.25")
    monkeypatch.setenv("COMMAND_DELIVERY_MODE", "broadcast")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("HOST", "127.0.0.1")
    monkeypatch.setenv("PORT", "8080")

    get_settings.cache_clear()
    build_default_context.cache_clear()

    try:
        settings = get_settings()
        context = build_default_context()

        assert settings.environment == "production"
        assert settings.is_development is False
        assert settings.long_poll_timeout_ms == 5000
        assert settings.cors_allow_origins == ("http://a.test", "http://b.test")
        assert (settings.host, settings.port) == ("127.0.0.1", 8080)
        assert context.commands.delivery_mode == "broadcast"
        assert context.commands.disconnect_check_seconds == 0.25
    finally:
        build_default_context.cache_clear()
        get_settings.cache_clear()


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("LONG_POLL_TIMEOUT_MS", "-3")
    monkeypatch.setenv("LONG_POLL_MAX_TIMEOUT_MS", "soon")
    monkeypatch.setenv("COMMAND_DELIVERY_MODE", "random")
    monkeypatch.setenv("LOG_LEVEL", " debug ")

    get_settings.cache_clear()
    try:
        settings = get_settings()

        assert settings.long_poll_timeout_ms == 30000
        assert settings.long_poll_max_timeout_ms == 120000
        assert settings.delivery_mode == "fifo"
        assert settings.log_level == "DEBUG"
    finally:
        get_settings.cache_clear()


def test_default_timeout_is_capped_by_maximum(monkeypatch) -> None:
    monkeypatch.setenv("LONG_POLL_TIMEOUT_MS", "90000")
    monkeypatch.setenv("LONG_POLL_MAX_TIMEOUT_MS", "60000")

    get_settings.cache_clear()
    try:
        assert get_settings().long_poll_timeout_ms == 60000
    finally:
        get_settings.cache_clear()
