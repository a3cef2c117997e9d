"""OAuth callback handling shared by every provider.

One ``OAuthCallbackFlow`` is created per callback request. It walks the
authorization-code exchange from the received code to the redirect that
hands the application token back to the frontend:

    INIT -> AWAITING_CODE -> CODE_RECEIVED -> TOKEN_EXCHANGED
         -> PROFILE_RESOLVED -> USER_RESOLVED -> TOKEN_ISSUED -> REDIRECTED

Any failure moves the flow to FAILED, which is terminal. The redirect URL
is only produced once a token exists, so a failed callback never redirects.
"""

import enum
import logging
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from backend.auth import jwt_handler, passwords
from backend.auth.errors import AuthError, DuplicateUserError, InternalError, MissingCodeError
from backend.auth.oauth import OAuthProfile, OAuthProvider
from backend.core import config
from backend.models.user import User
from backend.stores.user_store import UserStore

logger = logging.getLogger(__name__)


class CallbackState(enum.Enum):
    INIT = "init"
    AWAITING_CODE = "awaiting_code"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    PROFILE_RESOLVED = "profile_resolved"
    USER_RESOLVED = "user_resolved"
    TOKEN_ISSUED = "token_issued"
    REDIRECTED = "redirected"
    FAILED = "failed"


def resolve_oauth_user(profile: OAuthProfile, store: UserStore, default_role: str | None = None) -> User:
    """Find the user for ``profile`` or create one.

    Existing users are returned untouched, role included. New users get the
    configured default role and a hash of a random secret, so they can never
    log in with a password. If a concurrent request inserts the same email
    first, the lookup is retried once and the winning record is used.
    """
    user = store.find_by_email(profile.email)
    if user is not None:
        return user

    try:
        return store.create(
            name=profile.name,
            email=profile.email,
            password_hash=passwords.hash_password(passwords.generate_random_secret()),
            role=default_role or config.OAUTH_DEFAULT_ROLE,
        )
    except DuplicateUserError:
        user = store.find_by_email(profile.email)
        if user is None:
            logger.error("Duplicate insert reported but no user found on retry")
            raise InternalError("User resolution failed") from None
        return user


def build_frontend_redirect(token: str, frontend_url: str | None = None) -> str:
    parsed = urlparse(frontend_url or config.FRONTEND_URL)
    query = dict(parse_qsl(parsed.query))
    query["token"] = token
    return urlunparse(parsed._replace(query=urlencode(query)))


class OAuthCallbackFlow:
    def __init__(self, provider: OAuthProvider, store: UserStore):
        self.provider = provider
        self.store = store
        self.state = CallbackState.INIT
        self.failure_reason: str | None = None
        self.user: User | None = None

    def _advance(self, state: CallbackState) -> None:
        logger.debug("%s callback: %s -> %s", self.provider.name, self.state.value, state.value)
        self.state = state

    def _fail(self, reason: str) -> None:
        self.failure_reason = reason
        self._advance(CallbackState.FAILED)

    def run(self, code: str | None) -> str:
        """Complete the callback and return the frontend redirect URL."""
        if self.state is not CallbackState.INIT:
            raise RuntimeError("OAuthCallbackFlow instances handle a single callback.")
        self._advance(CallbackState.AWAITING_CODE)

        if not code:
            self._fail("missing code")
            raise MissingCodeError()
        self._advance(CallbackState.CODE_RECEIVED)

        try:
            access_token = self.provider.exchange_code(code)
            self._advance(CallbackState.TOKEN_EXCHANGED)

            profile = self.provider.fetch_profile(access_token)
            self._advance(CallbackState.PROFILE_RESOLVED)

            self.user = resolve_oauth_user(profile, self.store)
            self._advance(CallbackState.USER_RESOLVED)

            token = jwt_handler.create_access_token(self.user.id, self.user.role)
            self._advance(CallbackState.TOKEN_ISSUED)

            redirect_url = build_frontend_redirect(token)
        except AuthError as exc:
            self._fail(exc.__class__.__name__)
            raise
        except Exception as exc:
            self._fail(exc.__class__.__name__)
            logger.exception("%s OAuth callback failed", self.provider.display_name)
            raise InternalError(f"{self.provider.display_name} authentication failed") from exc

        self._advance(CallbackState.REDIRECTED)
        logger.info("%s OAuth login completed for user %s", self.provider.display_name, self.user.id)
        return redirect_url
