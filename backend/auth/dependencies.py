import logging

from fastapi import Header, Request

from backend.auth import jwt_handler
from backend.auth.errors import MissingTokenError, TokenError
from backend.auth.jwt_handler import TokenClaims

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"


def extract_bearer_token(authorization: str | None) -> str:
    parts = (authorization or "").split(None, 1)
    if parts and parts[0] == BEARER_SCHEME:
        parts = parts[1:]
    token = parts[0].strip() if parts else ""
    if not token:
        raise MissingTokenError()
    return token


def get_current_claims(
    request: Request,
    authorization: str | None = Header(default=None),
) -> TokenClaims:
    token = extract_bearer_token(authorization)
    try:
        claims = jwt_handler.decode_access_token(token)
    except TokenError as exc:
        logger.warning("Token verification failed: %s", exc.reason)
        raise
    request.state.user = claims
    return claims
