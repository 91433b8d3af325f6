import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    env: str
    database_url: str
    log_level: str

    transfer_max_workers: int
    resolver_max_workers: int
    exclusive_active_tables: bool
    max_attachment_bytes: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "WARN", "INFO", "DEBUG", "NOTSET")


def _getenv_log_level(name: str, default: str) -> str:
    level = _getenv(name, default).upper()
    if level not in LOG_LEVELS:
        raise RuntimeError(f"{name} must be one of {', '.join(LOG_LEVELS)} (got {level!r}).")
    return level


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///idcards.db"),
        log_level=_getenv_log_level("LOG_LEVEL", "INFO"),
        transfer_max_workers=max(1, _getenv_int("TRANSFER_MAX_WORKERS", 4)),
        resolver_max_workers=max(1, _getenv_int("RESOLVER_MAX_WORKERS", 4)),
        exclusive_active_tables=_getenv_bool("EXCLUSIVE_ACTIVE_TABLES", False),
        max_attachment_bytes=_getenv_int("MAX_ATTACHMENT_BYTES", 5 * 1024 * 1024),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "TRANSFER_MAX_WORKERS": s.transfer_max_workers,
        "RESOLVER_MAX_WORKERS": s.resolver_max_workers,
        "EXCLUSIVE_ACTIVE_TABLES": s.exclusive_active_tables,
        "MAX_ATTACHMENT_BYTES": s.max_attachment_bytes,
    }
