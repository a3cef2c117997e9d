import logging
from datetime import datetime, timedelta, timezone

import jwt
from pydantic import BaseModel

from backend.auth.errors import ConfigurationError, TokenError
from backend.core import config

logger = logging.getLogger(__name__)


class TokenClaims(BaseModel):
    user_id: int
    role: str


def _signing_key() -> str:
    if not config.JWT_SECRET_KEY:
        raise ConfigurationError("JWT_SECRET_KEY is not configured.")
    return config.JWT_SECRET_KEY


def create_access_token(user_id: int, role: str, issued_at: datetime | None = None) -> str:
    issued = issued_at or datetime.now(timezone.utc)
    expire = issued + timedelta(minutes=config.JWT_EXPIRES_MINUTES)
    payload = {"userId": user_id, "role": role, "iat": issued, "exp": expire}
    return jwt.encode(payload, _signing_key(), algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    """Verify ``token`` and return its claims.

    Every failure raises ``TokenError`` with the same public message; the
    ``reason`` attribute tells expired, tampered and garbage tokens apart.
    """
    try:
        payload = jwt.decode(
            token,
            _signing_key(),
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["exp", "iat", "userId", "role"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("expired") from exc
    except jwt.InvalidSignatureError as exc:
        raise TokenError("signature") from exc
    except jwt.MissingRequiredClaimError as exc:
        raise TokenError("missing_claims") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("malformed") from exc

    user_id = payload["userId"]
    role = payload["role"]
    if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(role, str):
        raise TokenError("missing_claims")
    return TokenClaims(user_id=user_id, role=role)
