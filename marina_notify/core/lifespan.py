import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import httpx
from fastapi import FastAPI

from marina_notify.config import get_settings
from marina_notify.core.database import dispose_db_engine
from marina_notify.core.env_contract import EnvContractError, validate_runtime_env_or_raise
from marina_notify.core.logging import _initialize_logging
from marina_notify.notifications.factory import build_notification_components


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Configure logging, validate the environment and build the shared pipeline."""
  settings = get_settings()
  logger = logging.getLogger("marina_notify.core.lifespan")

  _initialize_logging(settings)
  logger.info("Startup environment=%s store=%s", settings.environment, _redact_dsn(settings.pg_dsn))

  try:
    validate_runtime_env_or_raise(logger=logger, target="service")
  except EnvContractError:
    logger.error("Environment contract failed; refusing to start the service.", exc_info=True)
    raise

  # One pooled client serves both the token exchange and FCM sends.
  http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.push_timeout_seconds), limits=httpx.Limits(max_connections=max(settings.push_concurrency * 2, 10)))
  components = build_notification_components(settings, http_client=http_client)
  app.state.notification_service = components.service
  app.state.queue_processor = components.processor
  logger.info("Notification pipeline ready push_concurrency=%d", settings.push_concurrency)

  try:
    yield
  finally:
    await http_client.aclose()
    await dispose_db_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
