"""
tests/test_config.py -- Settings validation.

_env_file=None keeps a developer's local .env out of these tests.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

STRONG_KEY = "k" * 40


class TestSecretKey:
    def test_production_requires_secret(self) -> None:
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(_env_file=None, debug=False, secret_key="")

    def test_debug_generates_secret(self) -> None:
        settings = Settings(_env_file=None, debug=True, secret_key="")
        assert len(settings.secret_key) >= 32

    def test_short_secret_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least 32 characters"):
            Settings(_env_file=None, debug=True, secret_key="too-short")

    def test_short_admin_secret_rejected(self) -> None:
        with pytest.raises(ValidationError, match="ADMIN_TOKEN_SECRET"):
            Settings(_env_file=None, secret_key=STRONG_KEY, admin_token_secret="short")


class TestAdminSigningKey:
    def test_defaults_to_secret_key(self) -> None:
        assert Settings(_env_file=None, secret_key=STRONG_KEY).admin_signing_key == STRONG_KEY

    def test_separate_admin_secret(self) -> None:
        admin_key = "a" * 32
        settings = Settings(_env_file=None, secret_key=STRONG_KEY, admin_token_secret=admin_key)
        assert settings.admin_signing_key == admin_key


def test_rate_limit_defaults() -> None:
    settings = Settings(_env_file=None, secret_key=STRONG_KEY)
    assert settings.login_rate_limit == "10/minute"
    assert settings.admin_login_rate_limit == "5/15minutes"
