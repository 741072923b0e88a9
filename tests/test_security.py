"""Tests for password generation and hashing."""

import pytest

from app.config import settings
from app.utils.security import (
    PASSWORD_ALPHABET,
    PASSWORD_DIGITS,
    PASSWORD_LOWER,
    PASSWORD_UPPER,
    generate_credential,
    generate_password,
    hash_password,
    verify_password,
)


def test_generated_password_has_every_character_class():
    for _ in range(50):
        password = generate_password()

        assert len(password) == settings.password_length
        assert set(password) <= set(PASSWORD_ALPHABET)
        assert any(c in PASSWORD_UPPER for c in password)
        assert any(c in PASSWORD_LOWER for c in password)
        assert any(c in PASSWORD_DIGITS for c in password)


def test_generated_passwords_avoid_ambiguous_characters():
    assert not set("0O1lI") & set(PASSWORD_ALPHABET)


def test_generate_password_custom_length():
    assert len(generate_password(12)) == 12
    assert len(generate_password(3)) == 3


def test_generate_password_rejects_short_length():
    with pytest.raises(ValueError):
        generate_password(2)


def test_hash_and_verify():
    hashed = hash_password("Secret99")

    assert hashed != "Secret99"
    assert verify_password("Secret99", hashed)
    assert not verify_password("secret99", hashed)


def test_generate_credential_hash_matches_password():
    credential = generate_credential()

    assert verify_password(credential.password, credential.password_hash)
