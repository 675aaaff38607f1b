"""
tests/test_config.py -- Settings validation [M6][M7].

Settings is built with _env_file=None and explicit values so the local
environment (including DEBUG=true from conftest) cannot leak in.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_production_requires_secret_key(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False)


def test_debug_generates_secret_key(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delenv("JWT_SECRET", raising=False)
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.secret_key) >= 32


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, debug=True, secret_key="too-short")


def test_jwt_secret_is_accepted_as_alias(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.setenv("JWT_SECRET", "j" * 40)
    assert Settings(_env_file=None, debug=False).secret_key == "j" * 40


def test_defaults() -> None:
    settings = Settings(_env_file=None, debug=False, secret_key="s" * 32)
    assert settings.token_expire_seconds == 86400
    assert settings.bcrypt_rounds == 12
    assert settings.login_rate_limit == "10/minute"


def test_bcrypt_rounds_floor() -> None:
    with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
        Settings(_env_file=None, debug=False, secret_key="s" * 32, bcrypt_rounds=4)


def test_token_expiry_must_be_positive() -> None:
    with pytest.raises(ValidationError, match="TOKEN_EXPIRE_SECONDS"):
        Settings(_env_file=None, debug=False, secret_key="s" * 32, token_expire_seconds=0)
