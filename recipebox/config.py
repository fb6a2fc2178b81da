from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_PORT = 8080
DEFAULT_POOL_MIN = 1
DEFAULT_POOL_MAX = 10
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Config:
    """Runtime settings read once at startup."""

    database_url: str
    port: int = DEFAULT_PORT
    pool_min: int = DEFAULT_POOL_MIN
    pool_max: int = DEFAULT_POOL_MAX
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a configuration from environment variables.

        ``DATABASE_URL`` is required. ``PORT``, ``DB_POOL_MIN``, ``DB_POOL_MAX``
        and ``LOG_LEVEL`` fall back to their defaults when unset or empty.
        """

        env = os.environ if environ is None else environ

        database_url = env.get("DATABASE_URL", "").strip()
        if not database_url:
            raise ConfigError("DATABASE_URL environment variable required")

        pool_min = _int_setting(env, "DB_POOL_MIN", DEFAULT_POOL_MIN)
        pool_max = _int_setting(env, "DB_POOL_MAX", DEFAULT_POOL_MAX)
        if pool_min < 1 or pool_max < pool_min:
            raise ConfigError(
                f"Invalid pool size: DB_POOL_MIN={pool_min}, DB_POOL_MAX={pool_max}"
            )

        return cls(
            database_url=database_url,
            port=port_from_env(env),
            pool_min=pool_min,
            pool_max=pool_max,
            log_level=(env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )


def port_from_env(environ: Optional[Mapping[str, str]] = None) -> int:
    """Return the listening port from ``PORT``, shared by the app and gunicorn."""

    env = os.environ if environ is None else environ
    port = _int_setting(env, "PORT", DEFAULT_PORT)
    if not 0 < port < 65536:
        raise ConfigError(f"PORT must be between 1 and 65535, got {port}")
    return port


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


__all__ = ["Config", "port_from_env"]
