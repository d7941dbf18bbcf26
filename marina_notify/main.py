from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from marina_notify.api.routes import functions, tasks
from marina_notify.config import get_settings
from marina_notify.core.exceptions import global_exception_handler, http_exception_handler, notification_exception_handler, request_validation_exception_handler
from marina_notify.core.lifespan import lifespan
from marina_notify.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from marina_notify.notifications.contracts import NotificationError

settings = get_settings()

app = FastAPI(title="marina-notify", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

# CORS is only mounted when explicit origins are configured.
if settings.allowed_origins:
  app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "x-client-info", "apikey", "x-queue-secret", "x-cron-secret"],
  )

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(NotificationError, notification_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(functions.router, prefix="/functions/v1", tags=["functions"])
app.include_router(tasks.router, prefix="/functions/v1", tags=["tasks"])
