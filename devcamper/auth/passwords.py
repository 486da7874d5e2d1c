"""Password hashing and password-reset tokens."""

import hashlib
import secrets
from datetime import datetime, timedelta
from functools import lru_cache

import bcrypt

from devcamper.core import config

# bcrypt only looks at the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_encode(password), hashed_password.encode('utf-8'))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """Stand-in hash verified when no account matches a login email."""
    return hash_password(secrets.token_hex(16))


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def generate_reset_token() -> tuple[str, str, datetime]:
    """Return ``(plaintext, sha256 hash, expiry)`` for a new reset token.

    Only the hash and expiry are stored; the plaintext goes to the user.
    """
    token = secrets.token_hex(20)
    expire = datetime.now() + timedelta(minutes=config.RESET_TOKEN_EXPIRE_MINUTES)
    return token, hash_reset_token(token), expire
