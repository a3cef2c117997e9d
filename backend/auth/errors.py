"""Authentication errors.

Every error carries the message that is safe to show the caller and the
HTTP status it maps to. Internal detail (provider responses, token failure
reasons) is kept on separate attributes and only ever logged.
"""


class AuthError(Exception):
    """Base exception for all authentication errors."""

    status_code = 400

    def __init__(self, message: str = "Authentication error"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


class ValidationError(AuthError):
    """Raised when a registration or login payload fails validation."""


class DuplicateUserError(AuthError):
    """Raised when an email is already registered."""

    def __init__(self, message: str = "User already exists"):
        super().__init__(message)


class AuthenticationError(AuthError):
    """Raised for an unknown email or a wrong password.

    The message is identical for both cases.
    """

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class MissingCodeError(AuthError):
    """Raised when an OAuth callback arrives without an authorization code."""

    def __init__(self, message: str = "Authorization code missing"):
        super().__init__(message)


class ProviderEmailUnverifiedError(AuthError):
    """Raised when a provider has no primary, verified email for the user."""

    def __init__(
        self,
        message: str = "Email not found. Please ensure your GitHub email is public and verified.",
    ):
        super().__init__(message)


class ExternalProviderError(AuthError):
    """Raised when a call to an identity provider fails.

    ``detail`` describes what went wrong for the logs; ``message`` is the
    sanitized text returned to the caller.
    """

    status_code = 500

    def __init__(self, provider: str, detail: str, message: str | None = None):
        self.provider = provider
        self.detail = detail
        super().__init__(message or f"{provider} authentication failed")


class OAuthCodeRejectedError(ExternalProviderError):
    """Raised when a provider refuses to exchange an authorization code."""


class TokenError(AuthError):
    """Raised when a bearer token cannot be verified.

    ``reason`` is one of ``malformed``, ``expired``, ``signature`` or
    ``missing_claims`` and is only used for diagnostics.
    """

    def __init__(self, reason: str, message: str = "Invalid token"):
        self.reason = reason
        super().__init__(message)


class MissingTokenError(TokenError):
    """Raised when a protected request carries no bearer token."""

    status_code = 401

    def __init__(self, message: str = "Access denied. No token provided."):
        super().__init__("missing", message)


class InternalError(AuthError):
    """Raised for unexpected failures; the message is always generic."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
