from __future__ import annotations

from fastapi import Request

from marina_notify.notifications.contracts import ConfigurationError
from marina_notify.notifications.queue_processor import QueueTransitionProcessor
from marina_notify.notifications.service import NotificationService


def get_notification_service(request: Request) -> NotificationService:
  """Return the pipeline built during application startup."""
  service = getattr(request.app.state, "notification_service", None)
  if service is None:
    raise ConfigurationError("Notification service is not initialized.")
  return service


def get_queue_processor(request: Request) -> QueueTransitionProcessor:
  processor = getattr(request.app.state, "queue_processor", None)
  if processor is None:
    raise ConfigurationError("Queue processor is not initialized.")
  return processor
