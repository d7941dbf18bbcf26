import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marina_notify.config import get_settings
from marina_notify.notifications.contracts import NotificationError

logger = logging.getLogger("marina_notify.core.exceptions")


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(message: str, *, request_id: str | None = None, details: Any = None) -> dict[str, Any]:
  """Build the JSON error body shared by every failure path."""
  payload: dict[str, Any] = {"error": message}
  if details is not None:
    payload["details"] = details
  # The request id lets support correlate client reports with server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: Any) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


async def notification_exception_handler(request: Request, exc: NotificationError) -> JSONResponse:
  """Map pipeline errors to their status; 5xx details stay in the server log."""
  request_id = _request_id(request)
  status_code = int(exc.status_code)
  if status_code >= 500:
    logger.error("Notification failure request_id=%s path=%s error_type=%s error=%s", request_id, request.url.path, type(exc).__name__, exc, exc_info=True)
  elif get_settings().log_http_4xx:
    logger.warning("Notification request rejected request_id=%s path=%s status_code=%s error=%s", request_id, request.url.path, status_code, exc)

  headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
  return JSONResponse(status_code=status_code, content=_error_payload(exc.client_message, request_id=request_id), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
  """Handle routing and framework HTTP errors (404, 405) with the shared error body."""
  request_id = _request_id(request)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  if get_settings().log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  message = exc.detail if isinstance(exc.detail, str) else "Request failed."
  return JSONResponse(status_code=exc.status_code, content=_error_payload(message, request_id=request_id), headers=getattr(exc, "headers", None))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Reject malformed bodies with 400 and sanitized details."""
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_payload("Invalid request payload.", request_id=request_id, details=sanitized_errors))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch anything the other handlers did not."""
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))
