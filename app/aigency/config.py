import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    chat_webhook_url: str
    chat_timeout_seconds: float

    revalidate_header: str
    log_level: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///aigency.db"),
        chat_webhook_url=_getenv("CHAT_WEBHOOK_URL", ""),
        chat_timeout_seconds=_getenv_float("CHAT_TIMEOUT_SECONDS", 60.0),
        revalidate_header=_getenv("REVALIDATE_HEADER", "X-Revalidate-Paths"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "CHAT_WEBHOOK_URL": s.chat_webhook_url,
        "CHAT_TIMEOUT_SECONDS": s.chat_timeout_seconds,
        "REVALIDATE_HEADER": s.revalidate_header,
        "LOG_LEVEL": s.log_level,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies only; no uploads
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }
