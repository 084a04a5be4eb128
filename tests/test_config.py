"""
tests/test_config.py -- Settings validation.

Covers:
  - SECRET_KEY is mandatory outside debug mode
  - SECRET_KEY shorter than 32 characters is refused
  - debug mode generates a usable key when none is set
  - BCRYPT_ROUNDS outside bcrypt's 4..31 range is refused

Settings are built directly with _env_file=None so a stray .env in the
working directory cannot leak into the assertions. conftest.py seeds DEBUG
and BCRYPT_ROUNDS in os.environ, so each test sets them explicitly.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

_GOOD_KEY = "k" * 32


@pytest.fixture
def env(monkeypatch):
    for name in ("DEBUG", "SECRET_KEY", "BCRYPT_ROUNDS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_production_without_secret_key_is_refused(env):
    env.setenv("DEBUG", "false")
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None)


def test_short_secret_key_is_refused(env):
    env.setenv("SECRET_KEY", "k" * 31)
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None)


def test_short_secret_key_is_refused_in_debug_too(env):
    env.setenv("DEBUG", "true")
    env.setenv("SECRET_KEY", "too-short")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_debug_generates_secret_key(env):
    env.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert len(settings.secret_key) >= 32
    assert Settings(_env_file=None).secret_key != settings.secret_key


def test_valid_secret_key_is_kept(env):
    env.setenv("SECRET_KEY", _GOOD_KEY)
    settings = Settings(_env_file=None)
    assert settings.secret_key == _GOOD_KEY
    assert settings.debug is False
    assert settings.bcrypt_rounds == 10


@pytest.mark.parametrize("rounds", ["3", "32"])
def test_bcrypt_rounds_out_of_range_is_refused(env, rounds):
    env.setenv("SECRET_KEY", _GOOD_KEY)
    env.setenv("BCRYPT_ROUNDS", rounds)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.parametrize("rounds", ["4", "31"])
def test_bcrypt_rounds_bounds_are_accepted(env, rounds):
    env.setenv("SECRET_KEY", _GOOD_KEY)
    env.setenv("BCRYPT_ROUNDS", rounds)
    assert Settings(_env_file=None).bcrypt_rounds == int(rounds)
