"""
Environment-backed settings.

Values come from the process environment. `main.py` loads `.env` from the
working directory first, so local runs can keep credentials out of the shell.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from dotenv import load_dotenv

DEFAULT_SSL_ROOT_CERT = "/home/runner/.postgresql/root.crt"
DEFAULT_API_BASE_URL = "https://rickandmortyapi.com/api/"


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class DatabaseSettings:
    host: str
    port: int
    name: str
    user: str
    password: str
    ssl_root_cert: str
    url: str | None = None
    pool_max_size: int = 5
    command_timeout_s: float = 30.0

    def dsn(self) -> str:
        """
        Connection string for asyncpg. An explicit DATABASE_URL wins.
        """
        if self.url:
            return self.url
        user = quote(self.user, safe="")
        password = quote(self.password, safe="")
        return f"postgresql://{user}:{password}@{self.host}:{self.port}/{self.name}"


@dataclass(frozen=True)
class ApiSettings:
    base_url: str
    timeout_s: float = 30.0


def database_settings() -> DatabaseSettings:
    pool_max_size = _env_int("DB_POOL_MAX_SIZE", 5)
    if pool_max_size <= 0:
        pool_max_size = 5

    command_timeout_s = _env_float("DB_COMMAND_TIMEOUT_S", 30.0)
    if command_timeout_s <= 0:
        command_timeout_s = 30.0

    return DatabaseSettings(
        host=_env_str("DB_HOST", "localhost"),
        port=_env_int("DB_PORT", 5432),
        name=_env_str("DB_NAME", "postgres"),
        user=_env_str("DB_USER", "postgres"),
        password=os.environ.get("DB_PASS", ""),
        ssl_root_cert=_env_str("DB_SSL_ROOT_CERT", DEFAULT_SSL_ROOT_CERT),
        url=os.environ.get("DATABASE_URL", "").strip() or None,
        pool_max_size=pool_max_size,
        command_timeout_s=command_timeout_s,
    )


def api_settings() -> ApiSettings:
    return ApiSettings(
        base_url=_env_str("RAM_API_BASE_URL", DEFAULT_API_BASE_URL),
        timeout_s=_env_float("RAM_API_TIMEOUT_S", 30.0),
    )


def load_env(path: Path | None = None) -> bool:
    """
    Load `.env` (default: current working directory) without overriding
    variables that are already exported.
    """
    env_path = path or Path.cwd() / ".env"
    return load_dotenv(env_path, override=False)


def configure_logging() -> None:
    level_name = _env_str("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
