import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
PORT = int(os.getenv("PORT", "5000"))

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./devcamper.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "30"))
JWT_COOKIE_EXPIRE_DAYS = int(os.getenv("JWT_COOKIE_EXPIRE_DAYS", "30"))
COOKIE_SECURE = APP_ENV.lower() not in {"development", "local", "test"}

RESET_TOKEN_EXPIRE_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "10"))

SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
FROM_NAME = os.getenv("FROM_NAME", "DevCamper")
FROM_EMAIL = os.getenv("FROM_EMAIL", "noreply@devcamper.io")

GEOCODER_URL = os.getenv("GEOCODER_URL", "https://www.mapquestapi.com/geocoding/v1/address")
GEOCODER_API_KEY = os.getenv("GEOCODER_API_KEY", "")
GEOCODER_TIMEOUT_SECONDS = float(os.getenv("GEOCODER_TIMEOUT_SECONDS", "10"))

FILE_UPLOAD_PATH = os.getenv("FILE_UPLOAD_PATH", "./public/uploads")
MAX_FILE_UPLOAD = int(os.getenv("MAX_FILE_UPLOAD", "1000000"))

RATE_LIMIT_WINDOW_MINUTES = int(os.getenv("RATE_LIMIT_WINDOW_MINUTES", "10"))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), default=["http://localhost:3000"])


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
