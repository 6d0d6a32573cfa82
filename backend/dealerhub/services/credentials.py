# Overview: Password policy and bcrypt hashing shared by dealer and admin accounts.

"""
Credential helpers.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum length from PASSWORD_MIN_LENGTH (default 6), at most 72 bytes
- Must contain uppercase, lowercase and a digit
- Model ``password`` setters route through hash_password, so plaintext
  never reaches a column
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..errors import ValidationError

DEFAULT_ROUNDS = 12
DEFAULT_MIN_LENGTH = 6

# bcrypt input limit
MAX_PASSWORD_BYTES = 72


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or not password:
        raise PasswordValidationError("Password is required")

    min_length = _config("PASSWORD_MIN_LENGTH", DEFAULT_MIN_LENGTH)
    if len(password) < min_length:
        raise PasswordValidationError(f"Password must be at least {min_length} characters long")

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_config("BCRYPT_ROUNDS", DEFAULT_ROUNDS))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise (including a
    malformed stored hash).
    """
    if not isinstance(password, str) or not isinstance(password_hash, str):
        return False
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False
