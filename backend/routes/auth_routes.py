import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from backend.auth import jwt_handler, passwords
from backend.auth.dependencies import get_current_claims
from backend.auth.errors import (
    AuthenticationError,
    AuthError,
    ConfigurationError,
    DuplicateUserError,
    InternalError,
    ValidationError,
)
from backend.auth.jwt_handler import TokenClaims
from backend.auth.oauth import GitHubProvider, GoogleProvider, OAuthProvider, get_github_provider, get_google_provider
from backend.auth.oauth_flow import OAuthCallbackFlow
from backend.auth.validators import validate_login, validate_registration
from backend.stores.user_store import UserStore, get_user_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    user: UserResponse
    token: str


class MeResponse(BaseModel):
    userId: int
    role: str


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    # compared against when the email is unknown so both failures cost a bcrypt check
    return passwords.hash_password(passwords.generate_random_secret())


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: Any = Body(default=None), store: UserStore = Depends(get_user_store)):
    result = validate_registration(payload)
    if not result.ok:
        raise ValidationError(result.error)
    data = result.data

    try:
        if store.find_by_email(data.email) is not None:
            raise DuplicateUserError()

        user = store.create(
            name=data.name,
            email=data.email,
            password_hash=passwords.hash_password(data.password),
            role=data.role,
        )
        token = jwt_handler.create_access_token(user.id, user.role)
    except AuthError:
        raise
    except Exception as exc:
        logger.exception('Registration error')
        raise InternalError('Registration failed') from exc

    logger.info('Registered user %s with role %s', user.id, user.role)
    return AuthResponse(
        message='User registered successfully',
        user=UserResponse.model_validate(user),
        token=token,
    )


@router.post('/login', response_model=AuthResponse)
def login(payload: Any = Body(default=None), store: UserStore = Depends(get_user_store)):
    result = validate_login(payload)
    if not result.ok:
        raise ValidationError(result.error)
    data = result.data

    try:
        user = store.find_by_email(data.email)
        if user is None:
            passwords.verify_password(data.password, _dummy_password_hash())
            raise AuthenticationError()
        if not passwords.verify_password(data.password, user.password_hash):
            raise AuthenticationError()
        token = jwt_handler.create_access_token(user.id, user.role)
    except AuthError:
        raise
    except Exception as exc:
        logger.exception('Login error')
        raise InternalError('Login failed') from exc

    return AuthResponse(
        message='Login successful',
        user=UserResponse.model_validate(user),
        token=token,
    )


def _start_oauth(provider: OAuthProvider) -> RedirectResponse:
    try:
        authorization_url = provider.build_authorization_url()
    except ConfigurationError as exc:
        logger.exception('%s OAuth redirect error', provider.display_name)
        raise InternalError(f'Failed to initiate {provider.display_name} OAuth') from exc
    return RedirectResponse(url=authorization_url, status_code=status.HTTP_302_FOUND)


def _finish_oauth(provider: OAuthProvider, code: str | None, store: UserStore) -> RedirectResponse:
    flow = OAuthCallbackFlow(provider, store)
    redirect_url = flow.run(code)
    return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)


@router.get('/google')
def google_auth(provider: GoogleProvider = Depends(get_google_provider)):
    return _start_oauth(provider)


@router.get('/google/callback')
def google_auth_callback(
    code: str | None = Query(default=None),
    provider: GoogleProvider = Depends(get_google_provider),
    store: UserStore = Depends(get_user_store),
):
    return _finish_oauth(provider, code, store)


@router.get('/github')
def github_auth(provider: GitHubProvider = Depends(get_github_provider)):
    return _start_oauth(provider)


@router.get('/github/callback')
def github_auth_callback(
    code: str | None = Query(default=None),
    provider: GitHubProvider = Depends(get_github_provider),
    store: UserStore = Depends(get_user_store),
):
    return _finish_oauth(provider, code, store)


@router.get('/me', response_model=MeResponse)
def me(claims: TokenClaims = Depends(get_current_claims)):
    return MeResponse(userId=claims.user_id, role=claims.role)
