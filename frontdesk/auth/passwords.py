"""Staff password hashing with bcrypt.

bcrypt only reads the first 72 bytes of a password, so longer input is
rejected instead of being truncated. The work factor comes from
``settings.bcrypt_rounds``; hashes made with another factor are upgraded at
the next successful login (see :func:`needs_rehash`).
"""

import bcrypt

from frontdesk.config import settings

MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return encoded


def hash_password(password: str) -> str:
    """Hash a plain-text password with the configured bcrypt cost.

    Raises:
        ValueError: If the password is longer than 72 bytes.
    """
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(password), salt).decode("ascii")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True if ``plain_password`` matches the stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_encode(plain_password), hashed_password.encode("ascii"))
    except ValueError:
        return False


def needs_rehash(hashed_password: str) -> bool:
    """True when the stored hash was made with a different cost than configured."""
    # Format: $2b$<rounds>$<salt+hash>
    parts = hashed_password.split("$")
    try:
        rounds = int(parts[2])
    except (IndexError, ValueError):
        return True
    return rounds != settings.bcrypt_rounds
