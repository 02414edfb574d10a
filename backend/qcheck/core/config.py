from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _load_dotenv() -> None:
    if os.getenv("QCHECK_SKIP_DOTENV") == "1":
        return

    env_path = Path(__file__).resolve().parents[2] / ".env"
    if not env_path.exists():
        return

    from dotenv import load_dotenv

    load_dotenv(env_path, override=True)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_non_negative_int(value: str | None, default: int = 0) -> int:
    if value is None:
        return default
    raw = value.strip()
    if not raw:
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        return default


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    env: str
    app_name: str
    cors_origins: list[str]
    upload_dir: Path
    database_url: str | None
    storage_backend: str
    jwt_secret: str
    jwt_algorithm: str
    token_ttl_minutes: int
    dev_login_enabled: bool
    log_level: str
    bulk_approve_limit: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    _load_dotenv()

    env = os.getenv("QCHECK_ENV", "development")
    cors = os.getenv("QCHECK_CORS_ORIGINS", "http://localhost:5173")
    upload_dir = Path(os.getenv("QCHECK_UPLOAD_DIR", "backend/uploads"))
    storage_backend = os.getenv("QCHECK_STORAGE_BACKEND", "local").strip().lower() or "local"
    token_ttl_minutes = _parse_non_negative_int(os.getenv("QCHECK_TOKEN_TTL_MINUTES"), default=0) or 60 * 24 * 7
    bulk_approve_limit = _parse_non_negative_int(os.getenv("QCHECK_BULK_APPROVE_LIMIT"), default=0) or 500
    # Dev login hands out tokens without credentials; never on outside development.
    dev_login_enabled = _parse_bool(os.getenv("QCHECK_DEV_LOGIN"), default=env == "development")

    return Settings(
        env=env,
        app_name="qcheck API",
        cors_origins=_split_csv(cors),
        upload_dir=upload_dir,
        database_url=os.getenv("DATABASE_URL") or None,
        storage_backend=storage_backend,
        jwt_secret=os.getenv("QCHECK_JWT_SECRET") or "dev-insecure-secret",
        jwt_algorithm=os.getenv("QCHECK_JWT_ALGORITHM", "HS256"),
        token_ttl_minutes=token_ttl_minutes,
        dev_login_enabled=dev_login_enabled,
        log_level=os.getenv("QCHECK_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        bulk_approve_limit=bulk_approve_limit,
    )
