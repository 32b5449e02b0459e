from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_DB_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - DATABASE_URL: PostgreSQL connection string (required to start the server)
    - HOST: interface to bind. Default '0.0.0.0'
    - PORT: listen port. Default 8000
    - DB_TIMEOUT_SECONDS: per-call database timeout. Default 5
    - DB_POOL_MIN_SIZE / DB_POOL_MAX_SIZE: connection pool bounds. Default 1 / 10
    - LOG_LEVEL: logging level name. Default 'INFO'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    """

    database_url: Optional[str]
    host: str
    port: int
    db_timeout_seconds: float
    db_pool_min_size: int
    db_pool_max_size: int
    log_level: str
    cors_allow_origins: List[str]


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int, minimum: int = 0) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from a .env file (if any) and the environment."""
    load_dotenv(find_dotenv(usecwd=True), override=False)

    database_url = os.getenv("DATABASE_URL") or None
    min_size = _parse_int(_get_env("DB_POOL_MIN_SIZE", "1"), 1)
    max_size = _parse_int(_get_env("DB_POOL_MAX_SIZE", "10"), 10, minimum=1)
    if max_size < min_size:
        max_size = min_size

    return Settings(
        database_url=database_url,
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=_parse_int(_get_env("PORT", "8000"), 8000, minimum=1),
        db_timeout_seconds=_parse_float(
            _get_env("DB_TIMEOUT_SECONDS", str(DEFAULT_DB_TIMEOUT_SECONDS)),
            DEFAULT_DB_TIMEOUT_SECONDS,
        ),
        db_pool_min_size=min_size,
        db_pool_max_size=max_size,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
    )
