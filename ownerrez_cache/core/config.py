"""
ownerrez_cache/core/config.py  ── OwnerRez cache service
═══════════════════════════════════════════════════════════════════════════════
All configuration comes from environment variables and is resolved ONCE at
startup by load_settings(). Anything required but missing raises
ConfigurationError — the process must refuse to start rather than serve
401s or empty caches forever.

  Upstream auth   OWNERREZ_TOKEN (bearer)  or  OWNERREZ_USERNAME + OWNERREZ_PASSWORD
  Access gate     API_TOKENS         comma-separated allow-list (required)
  HTTP            PORT, ALLOWED_ORIGINS
  Refresh         REFRESH_INTERVAL_S, REFRESH_BACKOFF, REFRESH_MAX_INTERVAL_S,
                  UPSTREAM_TIMEOUT_S
  Query cursors   BOOKINGS_PROPERTY_IDS, BOOKINGS_SINCE_UTC, GUESTS_CREATED_SINCE_UTC
═══════════════════════════════════════════════════════════════════════════════
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ownerrez_cache.core.errors import ConfigurationError

OWNERREZ_BASE = "https://api.ownerrez.com/v2"

DEFAULT_PORT               = 3000
DEFAULT_REFRESH_INTERVAL_S = 5 * 60     # 5 min
DEFAULT_MAX_INTERVAL_S     = 60 * 60    # backoff ceiling
DEFAULT_TIMEOUT_S          = 30.0
DEFAULT_SINCE_UTC          = "2024-01-01T00:00:00Z"
NOT_READY_RETRY_AFTER_S    = 10

BACKOFF_MODES = ("none", "exponential")


@dataclass(frozen=True)
class Settings:
    api_tokens: frozenset
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    base_url: str = OWNERREZ_BASE
    allowed_origins: tuple = ()
    port: int = DEFAULT_PORT
    refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S
    refresh_backoff: str = "none"
    refresh_max_interval_s: float = DEFAULT_MAX_INTERVAL_S
    upstream_timeout_s: float = DEFAULT_TIMEOUT_S
    bookings_property_ids: tuple = ()
    bookings_since_utc: str = DEFAULT_SINCE_UTC
    guests_created_since_utc: str = DEFAULT_SINCE_UTC
    log_level: str = "INFO"
    user_agent: str = "ownerrez-cache/1.0"

    @property
    def uses_bearer(self) -> bool:
        return bool(self.token)


def _csv(raw: Optional[str]) -> tuple:
    if not raw:
        return ()
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def _positive(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {raw!r}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve Settings from the environment. Raises ConfigurationError."""
    if env is None:
        env = os.environ

    token    = env.get("OWNERREZ_TOKEN", "").strip() or None
    username = env.get("OWNERREZ_USERNAME", "").strip() or None
    password = env.get("OWNERREZ_PASSWORD", "") or None
    if not token and not (username and password):
        raise ConfigurationError(
            "OWNERREZ_TOKEN or OWNERREZ_USERNAME and OWNERREZ_PASSWORD must be set"
        )

    api_tokens = frozenset(_csv(env.get("API_TOKENS")))
    if not api_tokens:
        raise ConfigurationError("API_TOKENS must contain at least one token")

    backoff = env.get("REFRESH_BACKOFF", "none").strip().lower() or "none"
    if backoff not in BACKOFF_MODES:
        raise ConfigurationError(
            f"REFRESH_BACKOFF must be one of {', '.join(BACKOFF_MODES)}, got {backoff!r}"
        )

    return Settings(
        api_tokens=api_tokens,
        username=username,
        password=password,
        token=token,
        base_url=env.get("OWNERREZ_BASE_URL", "").strip().rstrip("/") or OWNERREZ_BASE,
        allowed_origins=_csv(env.get("ALLOWED_ORIGINS")),
        port=int(_positive(env, "PORT", DEFAULT_PORT)),
        refresh_interval_s=_positive(env, "REFRESH_INTERVAL_S", DEFAULT_REFRESH_INTERVAL_S),
        refresh_backoff=backoff,
        refresh_max_interval_s=_positive(env, "REFRESH_MAX_INTERVAL_S", DEFAULT_MAX_INTERVAL_S),
        upstream_timeout_s=_positive(env, "UPSTREAM_TIMEOUT_S", DEFAULT_TIMEOUT_S),
        bookings_property_ids=_csv(env.get("BOOKINGS_PROPERTY_IDS")),
        bookings_since_utc=env.get("BOOKINGS_SINCE_UTC", "").strip() or DEFAULT_SINCE_UTC,
        guests_created_since_utc=(
            env.get("GUESTS_CREATED_SINCE_UTC", "").strip() or DEFAULT_SINCE_UTC
        ),
        log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
