from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Annotated, Any

import jwt
from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marina_notify.config import Settings, get_settings
from marina_notify.notifications.contracts import AuthorizationError, ConfigurationError

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerIdentity:
  """Verified caller of an authenticated endpoint."""

  user_id: str
  claims: dict[str, Any] = field(default_factory=dict, compare=False)


def decode_caller_token(token: str, *, secret: str) -> dict[str, Any]:
  """Verify an HS256 Supabase access token and return its claims."""
  # Supabase issues `aud=authenticated`; only signature, expiry and subject matter here.
  return jwt.decode(token, secret, algorithms=["HS256"], options={"require": ["sub", "exp"], "verify_aud": False})


def authenticate_caller(credentials: HTTPAuthorizationCredentials | None, settings: Settings) -> CallerIdentity:
  """Resolve the bearer token into a caller identity or raise 401."""
  if credentials is None or not credentials.credentials:
    raise AuthorizationError("Cabeçalho Authorization ausente. Faça login novamente.")

  if not settings.jwt_secret:
    raise ConfigurationError("SUPABASE_JWT_SECRET is not configured.")

  try:
    claims = decode_caller_token(credentials.credentials, secret=settings.jwt_secret)
  except jwt.PyJWTError as exc:
    logger.info("Caller token rejected error_type=%s", type(exc).__name__)
    raise AuthorizationError("Não foi possível validar o usuário.") from exc

  user_id = str(claims.get("sub") or "").strip()
  if not user_id:
    raise AuthorizationError("Não foi possível validar o usuário.")

  return CallerIdentity(user_id=user_id, claims=claims)


async def get_caller_identity(credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)], settings: Annotated[Settings, Depends(get_settings)]) -> CallerIdentity:
  return authenticate_caller(credentials, settings)


async def require_queue_secret(settings: Annotated[Settings, Depends(get_settings)], x_queue_secret: Annotated[str | None, Header()] = None, x_cron_secret: Annotated[str | None, Header()] = None) -> None:
  """Gate the queue processor behind its shared secret when one is configured."""
  expected = settings.queue_transitions_secret
  if not expected:
    return

  provided = x_queue_secret if x_queue_secret is not None else (x_cron_secret or "")
  if not secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
    logger.warning("Unauthorized access attempt to process_queue_transitions")
    raise AuthorizationError("Unauthorized")
