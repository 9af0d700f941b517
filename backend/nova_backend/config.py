from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_EMAIL_API_URL = "https://api.resend.com/emails"
DEFAULT_EMAIL_FROM = "Nova AI <no-reply@nova-ai.app>"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(slots=True)
class AppConfig:
    port: int
    firebase_credentials_path: Optional[Path]
    firebase_web_api_key: Optional[str] = None
    firestore_database_id: Optional[str] = None
    ai_gateway_url: str = DEFAULT_GATEWAY_URL
    ai_gateway_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    email_api_url: str = DEFAULT_EMAIL_API_URL
    email_api_key: Optional[str] = None
    email_from: str = DEFAULT_EMAIL_FROM
    verification_code_ttl_minutes: int = 10
    expose_verification_codes: bool = False
    admin_emails: frozenset[str] = field(default_factory=frozenset)
    history_limit: int = 20


def _resolve_path(path_str: str, base_dir: Path) -> Path:
    candidate = Path(path_str.strip()).expanduser()
    if candidate.is_absolute():
        return candidate

    for root in (base_dir, base_dir.parent):
        resolved = (root / candidate).resolve()
        if resolved.exists():
            return resolved

    # Fallback: return path relative to base dir even if it doesn't exist yet.
    return (base_dir / candidate).resolve()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from exc


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _parse_emails(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(item.strip().lower() for item in raw.split(",") if item.strip())


def load_config() -> AppConfig:
    """Load configuration from environment variables/.env file."""
    backend_dir = Path(__file__).resolve().parent.parent
    dotenv_path = backend_dir / ".env"
    load_dotenv(dotenv_path)

    port = _int_env("PORT", 5000)

    credentials_path_raw = os.getenv("FIREBASE_CREDENTIALS_PATH")
    if not credentials_path_raw:
        raise ConfigError("FIREBASE_CREDENTIALS_PATH is required")

    credentials_path = _resolve_path(credentials_path_raw, backend_dir)
    if not credentials_path.exists():
        raise ConfigError(
            "Firebase credentials file not found at resolved path: "
            f"{credentials_path}"
        )

    ttl_minutes = _int_env("VERIFICATION_CODE_TTL_MINUTES", 10)
    if ttl_minutes <= 0:
        raise ConfigError("VERIFICATION_CODE_TTL_MINUTES must be positive")

    history_limit = _int_env("HISTORY_LIMIT", 20)
    if history_limit < 0:
        raise ConfigError("HISTORY_LIMIT must not be negative")

    return AppConfig(
        port=port,
        firebase_credentials_path=credentials_path,
        firebase_web_api_key=os.getenv("FIREBASE_WEB_API_KEY"),
        firestore_database_id=os.getenv("FIRESTORE_DATABASE_ID"),
        ai_gateway_url=os.getenv("AI_GATEWAY_URL") or DEFAULT_GATEWAY_URL,
        ai_gateway_api_key=os.getenv("AI_GATEWAY_API_KEY"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        email_api_url=os.getenv("EMAIL_API_URL") or DEFAULT_EMAIL_API_URL,
        email_api_key=os.getenv("EMAIL_API_KEY"),
        email_from=os.getenv("EMAIL_FROM") or DEFAULT_EMAIL_FROM,
        verification_code_ttl_minutes=ttl_minutes,
        expose_verification_codes=_bool_env("EXPOSE_VERIFICATION_CODES"),
        admin_emails=_parse_emails(os.getenv("ADMIN_EMAILS")),
        history_limit=history_limit,
    )
