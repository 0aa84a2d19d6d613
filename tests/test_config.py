"""Tests for core/config.py -- Settings validation and the SecurityPolicy projection."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.config import SecurityPolicy, Settings


def _settings(**overrides) -> Settings:
    values = {"debug": True, "seed_password": "Seed-Pass1!"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_defaults_match_security_policy_defaults() -> None:
    assert _settings().security_policy() == SecurityPolicy()


def test_security_policy_projection() -> None:
    policy = _settings(
        max_login_attempts=3,
        lockout_duration_seconds=60,
        session_expiry_hours=1,
        token_expiry_hours=2,
        login_rate_limit_attempts=10,
        login_rate_limit_window_seconds=30,
    ).security_policy()
    assert policy.max_login_attempts == 3
    assert policy.lockout_duration == timedelta(minutes=1)
    assert policy.session_expiry == timedelta(hours=1)
    assert policy.token_expiry == timedelta(hours=2)
    assert policy.login_rate_limit_attempts == 10
    assert policy.login_rate_limit_window == timedelta(seconds=30)


def test_iteration_floor_is_enforced() -> None:
    with pytest.raises(ValidationError, match="PBKDF2_ITERATIONS"):
        _settings(pbkdf2_iterations=1000)
    assert _settings(pbkdf2_iterations=200_000).pbkdf2_iterations == 200_000


@pytest.mark.parametrize("field", ["max_login_attempts", "session_expiry_hours", "login_rate_limit_window_seconds"])
def test_policy_numbers_must_be_positive(field: str) -> None:
    with pytest.raises(ValidationError, match=field.upper()):
        _settings(**{field: 0})


def test_production_requires_seed_password() -> None:
    with pytest.raises(ValidationError, match="SEED_PASSWORD is required"):
        _settings(debug=False, seed_password="")


def test_debug_generates_seed_password() -> None:
    first = _settings(seed_password="")
    second = _settings(seed_password="")
    assert first.seed_password
    assert first.seed_password != second.seed_password


def test_environment_variables_are_read(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAMPAIGN_AUTH_MAX_LOGIN_ATTEMPTS", "7")
    monkeypatch.setenv("CAMPAIGN_AUTH_APP_BASE_URL", "https://dash.campaign.org/")
    settings = _settings()
    assert settings.max_login_attempts == 7
    assert settings.app_base_url == "https://dash.campaign.org"
