import os

from dotenv import load_dotenv

from backend.auth.errors import ConfigurationError

load_dotenv()

ROLES = ("student", "teacher", "parent")


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


DATABASE_URL = os.getenv("DATABASE_URL")
PORT = _get_int(os.getenv("PORT"), 5000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:8081"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = 60

BCRYPT_ROUNDS = _get_int(os.getenv("BCRYPT_ROUNDS"), 10)
PASSWORD_HASH_CONCURRENCY = _get_int(os.getenv("PASSWORD_HASH_CONCURRENCY"), os.cpu_count() or 1)

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI")

GITHUB_CLIENT_ID = os.getenv("GITHUB_CLIENT_ID")
GITHUB_CLIENT_SECRET = os.getenv("GITHUB_CLIENT_SECRET")
GITHUB_REDIRECT_URI = os.getenv("GITHUB_REDIRECT_URI")

OAUTH_HTTP_TIMEOUT_SECONDS = float(os.getenv("OAUTH_HTTP_TIMEOUT_SECONDS", "10"))
OAUTH_DEFAULT_ROLE = os.getenv("OAUTH_DEFAULT_ROLE", "student")

FRONTEND_URL = os.getenv("FRONTEND_URL")

REQUIRED_SETTINGS = (
    "DATABASE_URL",
    "JWT_SECRET_KEY",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
    "GITHUB_CLIENT_ID",
    "GITHUB_CLIENT_SECRET",
    "GITHUB_REDIRECT_URI",
    "FRONTEND_URL",
)


def validate_runtime_config() -> None:
    missing = [name for name in REQUIRED_SETTINGS if not globals().get(name)]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
    if OAUTH_DEFAULT_ROLE not in ROLES:
        raise ConfigurationError(
            f"OAUTH_DEFAULT_ROLE must be one of: {', '.join(ROLES)}"
        )
    if BCRYPT_ROUNDS < 4 or BCRYPT_ROUNDS > 31:
        raise ConfigurationError("BCRYPT_ROUNDS must be between 4 and 31.")
    if PASSWORD_HASH_CONCURRENCY < 1:
        raise ConfigurationError("PASSWORD_HASH_CONCURRENCY must be at least 1.")
