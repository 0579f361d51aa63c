# mypy: ignore-errors
# tests/services/test_security.py
"""Tests for password hashing and access tokens."""

import pytest
from jose import JWTError, jwt

from rchat.core.security import (
    create_access_token,
    hash_password,
    resolve_identity,
    verify_password,
)
from rchat.core.settings import settings


def test_password_hash_is_salted_bcrypt() -> None:
    first = hash_password("correct-horse-battery")
    second = hash_password("correct-horse-battery")

    assert first.startswith("$2b$")
    assert first != second
    assert verify_password("correct-horse-battery", first)
    assert not verify_password("wrong-horse-battery", first)


def test_unrecognised_hash_never_matches() -> None:
    assert verify_password("anything", "salt$deadbeef") is False


def test_token_round_trip() -> None:
    assert resolve_identity(create_access_token("alice")) == "alice"


def test_token_without_subject_is_rejected() -> None:
    token = jwt.encode({"exp": 9999999999}, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(JWTError):
        resolve_identity(token)
