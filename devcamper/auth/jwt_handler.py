from datetime import datetime, timedelta, timezone

import jwt

from devcamper.core import config


def create_access_token(user_id: int, expires_days: int | None = None) -> str:
    """Sign a credential whose ``sub`` claim is the user's id as a string."""
    expire_days = expires_days or config.JWT_EXPIRE_DAYS
    issued_at = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + timedelta(days=expire_days)}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def user_id_from_token(token: str) -> int | None:
    """Return the user id a credential was issued for, or ``None`` when ``sub`` is not an id."""
    subject = decode_access_token(token).get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None
