# Overview: Password policy and hashing; the only place plaintext passwords are handled.

"""
Password Handling

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- 8 to 100 characters
- Must contain uppercase, lowercase and a digit
- Accounts without a password (OAuth, magic link, anonymous) never verify
"""

import re

import bcrypt


PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100
BCRYPT_ROUNDS = 12

# bcrypt only reads the first 72 bytes (and newer releases reject longer input)
BCRYPT_MAX_BYTES = 72


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise PasswordValidationError("Password must be at least 8 characters")

    if len(password) > PASSWORD_MAX_LENGTH:
        raise PasswordValidationError("Password must be less than 100 characters")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one number")


def _encode(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(_encode(password), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for password-less accounts and malformed hashes.
    """
    if not password_hash:
        return False

    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode('utf-8'))
    except ValueError:
        return False
