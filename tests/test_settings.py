import pytest
from pydantic import ValidationError

from serenity.app.core.config import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("OPENAI_MODEL", "OPENAI_TEMPERATURE", "RATE_LIMIT_REQUESTS_PER_WINDOW"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.openai_model == "gpt-3.5-turbo-0125"
    assert settings.openai_temperature == 0.8
    assert settings.openai_max_tokens == 180
    assert settings.rate_limit_requests_per_window == 60
    assert settings.rate_limit_window_seconds == 60
    assert settings.moderation_fail_closed is False


def test_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("APP_SHARED_SECRET", "from-env")
    monkeypatch.setenv("RATE_LIMIT_REQUESTS_PER_WINDOW", "5")
    monkeypatch.setenv("MODERATION_FAIL_CLOSED", "true")

    settings = Settings(_env_file=None)

    assert settings.openai_api_key == "sk-env"
    assert settings.app_shared_secret == "from-env"
    assert settings.rate_limit_requests_per_window == 5
    assert settings.moderation_fail_closed is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"rate_limit_requests_per_window": 0},
        {"rate_limit_window_seconds": -1},
        {"openai_temperature": 2.5},
        {"openai_max_tokens": 0},
        {"httpx_read_timeout": 0},
    ],
)
def test_rejects_invalid_values(overrides) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_allow_origin_defaults_to_wildcard(monkeypatch) -> None:
    monkeypatch.delenv("ALLOW_ORIGIN", raising=False)

    assert Settings(_env_file=None).allow_origin == "*"


def test_allow_origin_is_used_verbatim(monkeypatch) -> None:
    monkeypatch.setenv("ALLOW_ORIGIN", "http://chat.example.org")

    settings = Settings(_env_file=None)
    assert settings.allow_origin == "http://chat.example.org"
