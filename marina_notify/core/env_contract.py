"""Runtime environment contract checks for the HTTP service and the queue worker.

How/Why:
- Keep runtime configuration explicit so deploy-time mistakes surface at startup.
- Redact secrets (DSN, service account, shared secrets) in startup logs.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from marina_notify.notifications.credentials import parse_service_account

EnvUseTarget = Literal["service", "worker", "both"]
EnvValidator = Callable[[str, dict[str, str]], str | None]


@dataclass(frozen=True)
class EnvVarDefinition:
  """Describe how and where an environment variable must be validated."""

  name: str
  required: bool
  secret: bool
  used_by: EnvUseTarget
  validator: EnvValidator | None = None


class EnvContractError(RuntimeError):
  """Raised when required runtime environment keys are missing or invalid."""


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  if raw is None:
    return default

  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _validate_non_empty(value: str, _: dict[str, str]) -> str | None:
  if value.strip() == "":
    return "must not be empty."

  return None


def _validate_allowed_origins(value: str, _: dict[str, str]) -> str | None:
  """Reject wildcard CORS origins."""
  origins = [origin.strip() for origin in value.split(",") if origin.strip()]
  if "*" in origins:
    return "must not include wildcard origins."

  return None


def _validate_environment_name(value: str, _: dict[str, str]) -> str | None:
  normalized = value.strip().lower()
  if normalized in {"dev", "development", "stage", "staging", "prod", "production", "test", "testing"}:
    return None

  return "must be one of: development, stage, production, test (or aliases)."


def _validate_service_account(value: str, _: dict[str, str]) -> str | None:
  """Accept raw or base64-encoded service-account JSON with an issuer and a key."""
  parsed = parse_service_account(value)
  if parsed.is_valid:
    return None

  return f"must be raw or base64-encoded service account JSON ({parsed.error})."


def _validate_postgres_dsn(value: str, _: dict[str, str]) -> str | None:
  if value.startswith(("postgresql://", "postgres://", "postgresql+asyncpg://")):
    return None

  return "must be a postgresql:// connection URL."


REQUIRED_ENV_REGISTRY: tuple[EnvVarDefinition, ...] = (
  EnvVarDefinition(name="MARINA_ENV", required=False, secret=False, used_by="both", validator=_validate_environment_name),
  EnvVarDefinition(name="MARINA_ALLOWED_ORIGINS", required=False, secret=False, used_by="service", validator=_validate_allowed_origins),
  EnvVarDefinition(name="SUPABASE_DB_URL", required=True, secret=True, used_by="both", validator=_validate_postgres_dsn),
  EnvVarDefinition(name="SUPABASE_JWT_SECRET", required=True, secret=True, used_by="service", validator=_validate_non_empty),
  EnvVarDefinition(name="FCM_SERVICE_ACCOUNT", required=True, secret=True, used_by="both", validator=_validate_service_account),
  EnvVarDefinition(name="FCM_PROJECT_ID", required=False, secret=False, used_by="both"),
  EnvVarDefinition(name="QUEUE_TRANSITIONS_SECRET", required=False, secret=True, used_by="service"),
)


def _iter_applicable_definitions(*, target: Literal["service", "worker"]) -> tuple[EnvVarDefinition, ...]:
  applicable: list[EnvVarDefinition] = []
  for definition in REQUIRED_ENV_REGISTRY:
    if definition.used_by == "both" or definition.used_by == target:
      applicable.append(definition)

  return tuple(applicable)


def _resolve_value(*, definition: EnvVarDefinition) -> str:
  """Resolve values, honouring the store DSN aliases."""
  raw = os.getenv(definition.name)
  if raw is not None:
    return raw

  if definition.name == "SUPABASE_DB_URL":
    return os.getenv("MARINA_PG_DSN") or os.getenv("DATABASE_URL", "")

  return ""


def list_required_env_names(*, target: Literal["service", "worker"]) -> tuple[str, ...]:
  names: list[str] = []
  for definition in _iter_applicable_definitions(target=target):
    if definition.required:
      names.append(definition.name)

  return tuple(names)


def validate_env_values(*, target: Literal["service", "worker"], env_map: dict[str, str]) -> list[str]:
  """Validate a provided env map against contract rules for a target process."""
  errors: list[str] = []
  for definition in _iter_applicable_definitions(target=target):
    value = env_map.get(definition.name, "")
    if definition.required and value.strip() == "":
      errors.append(f"{definition.name}: required variable is missing.")
      continue

    if definition.validator and value.strip() != "":
      validation_error = definition.validator(value, env_map)
      if validation_error:
        errors.append(f"{definition.name}: {validation_error}")

  return errors


def validate_runtime_env_or_raise(*, logger: logging.Logger, target: Literal["service", "worker"]) -> None:
  """Validate and log runtime env values using the centralized contract."""
  # Enforcement is opt-in so local runs and CI can start with partial config.
  env_contract_enabled = _parse_bool(os.getenv("MARINA_ENV_CONTRACT_ENFORCE"), default=False)
  resolved_values: dict[str, str] = {}
  applicable_definitions = _iter_applicable_definitions(target=target)
  for definition in applicable_definitions:
    value = _resolve_value(definition=definition)
    resolved_values[definition.name] = value
    if definition.secret:
      logger.info("ENV_CHECK key=%s value=%s", definition.name, "<redacted>" if value else "<missing>")
    elif value == "":
      logger.info("ENV_CHECK key=%s value=<missing>", definition.name)
    else:
      logger.info("ENV_CHECK key=%s value=%s", definition.name, value)

  errors = validate_env_values(target=target, env_map=resolved_values)

  if not errors:
    logger.info("ENV_CHECK status=ok target=%s checked=%d", target, len(applicable_definitions))
    return

  message = "ENV_CHECK status=failed target={target} violations:\n- {errors}".format(target=target, errors="\n- ".join(errors))
  if env_contract_enabled:
    logger.error(message)
    raise EnvContractError(message)

  logger.warning("ENV_CHECK enforcement disabled; set MARINA_ENV_CONTRACT_ENFORCE=1 to fail startup")
  logger.warning(message)
