import logging
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("marina_notify.core.middleware")

_REQUEST_ID_HEADER = "x-request-id"


def _build_request_url(scope: Scope) -> str:
  """Path plus query string, read from the scope without touching the body."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"

  return path


def _incoming_request_id(scope: Scope) -> str | None:
  """Reuse a caller-supplied request id when it looks sane."""
  for key, value in scope.get("headers", []):
    if key.decode("latin-1").lower() == _REQUEST_ID_HEADER:
      candidate = value.decode("latin-1").strip()
      if 0 < len(candidate) <= 128:
        return candidate
  return None


class RequestLoggingMiddleware:
  """Assign a request id and log method, path, status and latency."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = _incoming_request_id(scope) or str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if _REQUEST_ID_HEADER not in response_headers:
          response_headers[_REQUEST_ID_HEADER] = request_id

      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      process_time = (time.perf_counter() - start_time) * 1000
      logger.info("Response request_id=%s %s %s status=%s (took %.2fms)", request_id, method, scope.get("path", ""), status_code or 0, process_time)


class SecurityHeadersMiddleware:
  """Strip server fingerprinting headers and forbid MIME sniffing."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for header in ("x-powered-by", "server"):
          if header in headers:
            del headers[header]
        headers["x-content-type-options"] = "nosniff"

      await send(message)

    await self.app(scope, receive, send_wrapper)
