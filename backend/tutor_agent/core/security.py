"""
Security utilities: JWT bearer token handling.
Tokens are issued by the platform's auth service; this app only verifies them.
"""

from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone

from tutor_agent.config import get_settings


# ── JWT Token ────────────────────────────────────────────
def create_access_token(user_id: str, extra_data: dict | None = None) -> str:
    """Create a JWT access token (used by tooling and tests)."""
    settings = get_settings()

    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRY_MINUTES),
        "iat": datetime.now(timezone.utc),
    }
    if extra_data:
        payload.update(extra_data)

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT token. Returns payload or None if invalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None
