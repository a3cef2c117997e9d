from urllib.parse import parse_qs, urlparse

import pytest

from backend.auth import jwt_handler, passwords
from backend.auth.errors import (
    DuplicateUserError,
    ExternalProviderError,
    InternalError,
    MissingCodeError,
    ProviderEmailUnverifiedError,
)
from backend.auth.oauth import OAuthProfile, OAuthProvider
from backend.auth.oauth_flow import (
    CallbackState,
    OAuthCallbackFlow,
    build_frontend_redirect,
    resolve_oauth_user,
)
from backend.models.user import User


class FakeProvider(OAuthProvider):
    name = 'fake'
    display_name = 'Fake'

    def __init__(self, profile: OAuthProfile | None = None, profile_error: Exception | None = None):
        super().__init__('client-id', 'client-secret', 'http://localhost/callback', http_client=None)
        self.profile = profile
        self.profile_error = profile_error
        self.calls: list[str] = []

    def exchange_code(self, code: str) -> str:
        self.calls.append(f'exchange:{code}')
        return 'provider-access-token'

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        self.calls.append(f'profile:{access_token}')
        if self.profile_error is not None:
            raise self.profile_error
        return self.profile


def _token_from_redirect(location: str) -> str:
    return parse_qs(urlparse(location).query)['token'][0]


def test_callback_creates_new_user_and_redirects_with_token(user_store, db_session) -> None:
    provider = FakeProvider(OAuthProfile(email='ada@example.com', name='Ada'))
    flow = OAuthCallbackFlow(provider, user_store)

    location = flow.run('auth-code')

    assert flow.state is CallbackState.REDIRECTED
    assert location.startswith('http://localhost:3000')
    users = db_session.query(User).all()
    assert len(users) == 1
    assert users[0].name == 'Ada'
    assert users[0].role == 'student'
    claims = jwt_handler.decode_access_token(_token_from_redirect(location))
    assert claims.user_id == users[0].id
    assert claims.role == 'student'


def test_callback_reuses_existing_user_without_changing_role(user_store, db_session) -> None:
    existing = user_store.create(
        name='Ada Teacher',
        email='ada@example.com',
        password_hash=passwords.hash_password('Passw0rd!'),
        role='teacher',
    )
    provider = FakeProvider(OAuthProfile(email='ada@example.com', name='Someone Else'))

    location = OAuthCallbackFlow(provider, user_store).run('auth-code')

    assert db_session.query(User).count() == 1
    stored = user_store.find_by_email('ada@example.com')
    assert stored.name == 'Ada Teacher'
    assert stored.role == 'teacher'
    claims = jwt_handler.decode_access_token(_token_from_redirect(location))
    assert claims.user_id == existing.id
    assert claims.role == 'teacher'


def test_callback_without_code_makes_no_provider_calls(user_store) -> None:
    provider = FakeProvider(OAuthProfile(email='ada@example.com', name='Ada'))
    flow = OAuthCallbackFlow(provider, user_store)

    with pytest.raises(MissingCodeError):
        flow.run(None)

    assert provider.calls == []
    assert flow.state is CallbackState.FAILED


def test_callback_with_unverified_email_writes_nothing(user_store, db_session) -> None:
    provider = FakeProvider(profile_error=ProviderEmailUnverifiedError())
    flow = OAuthCallbackFlow(provider, user_store)

    with pytest.raises(ProviderEmailUnverifiedError):
        flow.run('auth-code')

    assert flow.state is CallbackState.FAILED
    assert flow.failure_reason == 'ProviderEmailUnverifiedError'
    assert db_session.query(User).count() == 0


def test_callback_propagates_provider_failure(user_store, db_session) -> None:
    provider = FakeProvider(profile_error=ExternalProviderError('Fake', 'profile lookup returned HTTP 503'))

    with pytest.raises(ExternalProviderError):
        OAuthCallbackFlow(provider, user_store).run('auth-code')

    assert db_session.query(User).count() == 0


def test_callback_wraps_unexpected_failure(user_store) -> None:
    provider = FakeProvider(profile_error=KeyError('email'))
    flow = OAuthCallbackFlow(provider, user_store)

    with pytest.raises(InternalError) as exception_info:
        flow.run('auth-code')

    assert exception_info.value.message == 'Fake authentication failed'
    assert flow.state is CallbackState.FAILED


def test_flow_handles_a_single_callback(user_store) -> None:
    flow = OAuthCallbackFlow(FakeProvider(OAuthProfile(email='ada@example.com', name='Ada')), user_store)
    flow.run('auth-code')

    with pytest.raises(RuntimeError):
        flow.run('auth-code')


class RacingStore:
    """Store where another request inserts the same email between lookup and insert."""

    def __init__(self, winner: User | None):
        self.winner = winner
        self.lookups = 0

    def find_by_email(self, email: str) -> User | None:
        self.lookups += 1
        return None if self.lookups == 1 else self.winner

    def create(self, *, name: str, email: str, password_hash: str, role: str) -> User:
        raise DuplicateUserError()


def test_resolve_oauth_user_returns_race_winner() -> None:
    winner = User(id=41, name='Ada', email='ada@example.com', password_hash='$2b$x', role='parent')
    store = RacingStore(winner)

    user = resolve_oauth_user(OAuthProfile(email='ada@example.com', name='Ada'), store)

    assert user is winner
    assert store.lookups == 2


def test_resolve_oauth_user_fails_when_race_winner_disappears() -> None:
    with pytest.raises(InternalError):
        resolve_oauth_user(OAuthProfile(email='ada@example.com', name='Ada'), RacingStore(None))


def test_resolve_oauth_user_uses_given_default_role(user_store) -> None:
    user = resolve_oauth_user(OAuthProfile(email='pat@example.com', name='Pat'), user_store, default_role='parent')

    assert user.role == 'parent'
    assert user.password_hash.startswith('$2')


def test_build_frontend_redirect_keeps_existing_query() -> None:
    location = build_frontend_redirect('abc.def.ghi', 'https://app.example.com/login?next=%2Fclasses')

    parsed = urlparse(location)
    assert parsed.netloc == 'app.example.com'
    assert parse_qs(parsed.query) == {'next': ['/classes'], 'token': ['abc.def.ghi']}
