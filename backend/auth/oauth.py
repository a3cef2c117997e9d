"""OAuth2 authorization-code clients for Google and GitHub.

Both providers share the same three steps: build the authorization URL,
exchange the callback code for an access token, and fetch the user's
profile. Subclasses only describe their endpoints and response shapes;
GitHub additionally needs a second call to list the user's emails.
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx
from fastapi import Depends

from backend.auth.errors import (
    ConfigurationError,
    ExternalProviderError,
    OAuthCodeRejectedError,
    ProviderEmailUnverifiedError,
)
from backend.core import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthProfile:
    email: str
    name: str
    verified: bool = True


class OAuthProvider:
    name: str = ""
    display_name: str = ""
    authorize_url: str = ""
    token_url: str = ""
    profile_url: str = ""
    scope: str = ""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, http_client: httpx.Client):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.http_client = http_client

    def authorization_params(self) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
        }

    def build_authorization_url(self) -> str:
        if not self.client_id or not self.redirect_uri:
            raise ConfigurationError(f"{self.display_name} OAuth client is not configured.")
        return f"{self.authorize_url}?{urlencode(self.authorization_params())}"

    def exchange_code(self, code: str) -> str:
        response = self._token_request(code)
        if 400 <= response.status_code < 500:
            raise OAuthCodeRejectedError(
                self.display_name,
                f"token endpoint rejected code with HTTP {response.status_code}: "
                f"{self._error_summary(response)}",
            )
        self._ensure_success(response, "token exchange")

        data = self._json(response, "token exchange")
        if not isinstance(data, dict):
            raise ExternalProviderError(self.display_name, "token response is not a JSON object")
        if data.get("error"):
            raise OAuthCodeRejectedError(
                self.display_name,
                f"token endpoint rejected code: {data.get('error')} {data.get('error_description', '')}".strip(),
            )
        access_token = data.get("access_token")
        if not access_token:
            raise OAuthCodeRejectedError(self.display_name, "token response has no access_token")
        return access_token

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        raise NotImplementedError

    def _token_request(self, code: str) -> httpx.Response:
        raise NotImplementedError

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.http_client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise ExternalProviderError(self.display_name, f"{method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise ExternalProviderError(
                self.display_name, f"{method} {url} failed: {exc.__class__.__name__}"
            ) from exc

    def _get_json(self, url: str, access_token: str, step: str) -> Any:
        response = self._request(
            "GET",
            url,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
        self._ensure_success(response, step)
        return self._json(response, step)

    def _ensure_success(self, response: httpx.Response, step: str) -> None:
        if not response.is_success:
            raise ExternalProviderError(
                self.display_name,
                f"{step} returned HTTP {response.status_code}: {self._error_summary(response)}",
            )

    def _json(self, response: httpx.Response, step: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalProviderError(self.display_name, f"{step} returned a non-JSON body") from exc

    @staticmethod
    def _error_summary(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.reason_phrase or "no details"
        if isinstance(data, dict):
            return str(data.get("error_description") or data.get("error") or data.get("message") or "no details")
        return "no details"


class GoogleProvider(OAuthProvider):
    name = "google"
    display_name = "Google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    profile_url = "https://www.googleapis.com/oauth2/v1/userinfo"
    scope = "profile email"

    def authorization_params(self) -> dict[str, str]:
        params = super().authorization_params()
        # prompt=consent forces the consent screen on every login
        params.update({"access_type": "offline", "prompt": "consent"})
        return params

    def _token_request(self, code: str) -> httpx.Response:
        return self._request(
            "POST",
            self.token_url,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        data = self._get_json(self.profile_url, access_token, "profile lookup")
        email = data.get("email") if isinstance(data, dict) else None
        if not email:
            raise ExternalProviderError(self.display_name, "profile response has no email")
        email = email.strip().lower()
        name = (data.get("name") or "").strip() or email.split("@", 1)[0]
        return OAuthProfile(email=email, name=name, verified=True)


class GitHubProvider(OAuthProvider):
    name = "github"
    display_name = "GitHub"
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"
    profile_url = "https://api.github.com/user"
    emails_url = "https://api.github.com/user/emails"
    scope = "user:email"

    def _token_request(self, code: str) -> httpx.Response:
        return self._request(
            "POST",
            self.token_url,
            json={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            },
            headers={"Accept": "application/json"},
        )

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        user_data = self._get_json(self.profile_url, access_token, "profile lookup")
        if not isinstance(user_data, dict):
            raise ExternalProviderError(self.display_name, "profile response is not a JSON object")

        # the profile only carries the email when the user made it public
        emails = self._get_json(self.emails_url, access_token, "email lookup")
        if not isinstance(emails, list):
            raise ExternalProviderError(self.display_name, "email listing is not a JSON array")

        email = select_primary_verified_email(emails)
        if email is None:
            raise ProviderEmailUnverifiedError()

        name = (user_data.get("name") or "").strip() or user_data.get("login") or email.split("@", 1)[0]
        return OAuthProfile(email=email, name=name, verified=True)


def select_primary_verified_email(emails: list[Any]) -> str | None:
    for entry in emails:
        if not isinstance(entry, dict):
            continue
        if entry.get("primary") is True and entry.get("verified") is True and entry.get("email"):
            return entry["email"].strip().lower()
    return None


def get_http_client():
    client = httpx.Client(timeout=config.OAUTH_HTTP_TIMEOUT_SECONDS)
    try:
        yield client
    finally:
        client.close()


def get_google_provider(http_client: httpx.Client = Depends(get_http_client)) -> GoogleProvider:
    return GoogleProvider(
        config.GOOGLE_CLIENT_ID,
        config.GOOGLE_CLIENT_SECRET,
        config.GOOGLE_REDIRECT_URI,
        http_client,
    )


def get_github_provider(http_client: httpx.Client = Depends(get_http_client)) -> GitHubProvider:
    return GitHubProvider(
        config.GITHUB_CLIENT_ID,
        config.GITHUB_CLIENT_SECRET,
        config.GITHUB_REDIRECT_URI,
        http_client,
    )
