"""Password generation and hashing for issued login credentials."""

import secrets
from typing import NamedTuple

from passlib.context import CryptContext

from app.config import settings

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

# No 0/O, 1/l/I: passwords are read aloud and copied off printouts
PASSWORD_UPPER = "ABCDEFGHJKLMNPQRSTUVWXYZ"
PASSWORD_LOWER = "abcdefghijkmnopqrstuvwxyz"
PASSWORD_DIGITS = "23456789"
PASSWORD_ALPHABET = PASSWORD_UPPER + PASSWORD_LOWER + PASSWORD_DIGITS


class GeneratedCredential(NamedTuple):
    """A one-time password and its bcrypt hash."""

    password: str
    password_hash: str


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Bcrypt hash of the password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Bcrypt hash to verify against

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def generate_password(length: int | None = None) -> str:
    """Generate a random one-time password.

    The password always holds at least one upper-case letter, one lower-case
    letter and one digit.

    Args:
        length: Password length, defaults to the configured password_length

    Returns:
        The plain text password
    """
    length = length or settings.password_length
    if length < 3:
        raise ValueError("Password length must be at least 3")

    chars = [
        secrets.choice(PASSWORD_UPPER),
        secrets.choice(PASSWORD_LOWER),
        secrets.choice(PASSWORD_DIGITS),
    ]
    chars.extend(secrets.choice(PASSWORD_ALPHABET) for _ in range(length - len(chars)))
    # Shuffle so the guaranteed classes are not always in front
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def generate_credential() -> GeneratedCredential:
    """Generate a one-time password together with its hash."""
    password = generate_password()
    return GeneratedCredential(password=password, password_hash=hash_password(password))
