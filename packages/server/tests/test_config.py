"""
Tests for server settings.
"""

import pytest
from pydantic import ValidationError

from app.core.config import FALLBACK_JWT_SECRET, Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.environment == "development"
    assert settings.jwt_secret == FALLBACK_JWT_SECRET
    assert settings.cookie_name == "auth-token"
    assert settings.port == 3004
    assert settings.login_policy == "preprovisioned"
    assert settings.token_lifetime_seconds == 86400


def test_production_rejects_fallback_secret():
    with pytest.raises(ValidationError, match="TEAMD_JWT_SECRET"):
        Settings(_env_file=None, environment="production")


def test_production_with_secret():
    settings = Settings(_env_file=None, environment="production", jwt_secret="s3cret")
    assert settings.is_production
    assert settings.session_cookie_domain == ".large-event.com"


def test_cookie_domain_only_in_production():
    assert Settings(_env_file=None).session_cookie_domain is None


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("TEAMD_JWT_EXPIRE_HOURS", "2")
    monkeypatch.setenv("TEAMD_LOGIN_POLICY", "auto_create")
    settings = Settings(_env_file=None)
    assert settings.token_lifetime_seconds == 7200
    assert settings.login_policy == "auto_create"


def test_settings_are_immutable():
    settings = Settings(_env_file=None)
    with pytest.raises(ValidationError):
        settings.port = 8080
