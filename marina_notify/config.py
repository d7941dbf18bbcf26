"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

MIN_PUSH_CONCURRENCY = 1
MAX_PUSH_CONCURRENCY = 16


@dataclass(frozen=True)
class Settings:
  """Typed settings for the marina notification service."""

  environment: str
  debug: bool
  log_level: str
  log_file: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  allowed_origins: tuple[str, ...]
  pg_dsn: str | None
  pg_connect_timeout: int
  pg_command_timeout: float
  jwt_secret: str | None
  fcm_service_account: str | None
  fcm_project_id: str | None
  queue_transitions_secret: str | None
  push_concurrency: int
  push_timeout_seconds: float
  oauth_timeout_seconds: float
  token_refresh_margin_seconds: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  pg_command_timeout: float


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  # CORS stays disabled when no origins are configured.
  if not raw:
    return ()

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("MARINA_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _parse_positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _resolve_pg_dsn() -> str | None:
  """Pick the first configured store DSN."""
  for name in ("SUPABASE_DB_URL", "MARINA_PG_DSN", "DATABASE_URL"):
    value = _optional_str(os.getenv(name))
    if value:
      return value
  return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("MARINA_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("MARINA_DEBUG"))

  log_backup_count = int(os.getenv("MARINA_LOG_BACKUP_COUNT", "5"))
  if log_backup_count < 0:
    raise ValueError("MARINA_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Out-of-range pool sizes are clamped rather than rejected.
  push_concurrency = int(os.getenv("MARINA_PUSH_CONCURRENCY", "10"))
  push_concurrency = max(MIN_PUSH_CONCURRENCY, min(MAX_PUSH_CONCURRENCY, push_concurrency))

  token_refresh_margin_seconds = int(os.getenv("MARINA_TOKEN_REFRESH_MARGIN_SECONDS", "60"))
  if token_refresh_margin_seconds < 0:
    raise ValueError("MARINA_TOKEN_REFRESH_MARGIN_SECONDS must be zero or a positive integer.")

  return Settings(
    environment=environment,
    debug=debug,
    log_level=(os.getenv("MARINA_LOG_LEVEL") or "INFO").strip().upper(),
    log_file=_optional_str(os.getenv("MARINA_LOG_FILE")),
    log_max_bytes=_parse_positive_int("MARINA_LOG_MAX_BYTES", "5242880"),
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("MARINA_LOG_HTTP_4XX")),
    allowed_origins=_parse_origins(os.getenv("MARINA_ALLOWED_ORIGINS")),
    pg_dsn=_resolve_pg_dsn(),
    pg_connect_timeout=_parse_positive_int("MARINA_PG_CONNECT_TIMEOUT", "5"),
    pg_command_timeout=_parse_positive_float("MARINA_PG_COMMAND_TIMEOUT", "15"),
    jwt_secret=_optional_str(os.getenv("SUPABASE_JWT_SECRET")),
    fcm_service_account=_optional_str(os.getenv("FCM_SERVICE_ACCOUNT")),
    fcm_project_id=_optional_str(os.getenv("FCM_PROJECT_ID")),
    queue_transitions_secret=_optional_str(os.getenv("QUEUE_TRANSITIONS_SECRET")),
    push_concurrency=push_concurrency,
    push_timeout_seconds=_parse_positive_float("MARINA_PUSH_TIMEOUT_SECONDS", "10"),
    oauth_timeout_seconds=_parse_positive_float("MARINA_OAUTH_TIMEOUT_SECONDS", "10"),
    token_refresh_margin_seconds=token_refresh_margin_seconds,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load only the settings the database engine needs."""
  return DatabaseSettings(debug=_parse_bool(os.getenv("MARINA_DEBUG")), pg_dsn=_resolve_pg_dsn(), pg_connect_timeout=_parse_positive_int("MARINA_PG_CONNECT_TIMEOUT", "5"), pg_command_timeout=_parse_positive_float("MARINA_PG_COMMAND_TIMEOUT", "15"))
