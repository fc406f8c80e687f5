from datetime import datetime, timedelta, timezone

import jwt

from clinic_scheduler.core import config


def create_access_token(subject: str, role: str | None = None, expires_minutes: int | None = None) -> str:
    """Signed bearer token for a staff member; ``role`` is informational only."""
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    claims = {"sub": subject, "iat": issued_at, "exp": issued_at + lifetime}
    if role:
        claims["role"] = role
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
