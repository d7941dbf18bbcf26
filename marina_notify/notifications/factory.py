"""Factory helpers for the notification dispatch pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from marina_notify.config import Settings
from marina_notify.notifications.contracts import NotificationStore
from marina_notify.notifications.credentials import CredentialStore, parse_service_account
from marina_notify.notifications.dispatcher import PushDispatcher
from marina_notify.notifications.persister import NotificationPersister
from marina_notify.notifications.push_sender import FcmPushSender
from marina_notify.notifications.queue_processor import QueueTransitionProcessor
from marina_notify.notifications.recipients import RecipientResolver
from marina_notify.notifications.service import NotificationService
from marina_notify.notifications.token_registry import TokenRegistry
from marina_notify.storage.postgres_store import PostgresNotificationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationComponents:
  """Process-wide pipeline objects built once at startup."""

  service: NotificationService
  processor: QueueTransitionProcessor


def build_notification_service(settings: Settings, *, http_client: httpx.AsyncClient, store: NotificationStore) -> NotificationService:
  """Build a notification service with explicit dependencies."""
  service_account = None
  if settings.fcm_service_account:
    service_account = parse_service_account(settings.fcm_service_account)
    if not service_account.is_valid:
      logger.error("FCM_SERVICE_ACCOUNT could not be parsed: %s", service_account.error)
    else:
      logger.info("FCM service account loaded encoding=%s", service_account.encoding.value)
  else:
    logger.warning("FCM_SERVICE_ACCOUNT is not set; push delivery will fail until it is configured.")

  credential_store = CredentialStore(http_client=http_client, timeout_seconds=settings.oauth_timeout_seconds, refresh_margin_seconds=settings.token_refresh_margin_seconds)
  sender = FcmPushSender(http_client=http_client, timeout_seconds=settings.push_timeout_seconds)
  return NotificationService(
    store=store,
    resolver=RecipientResolver(store=store),
    token_registry=TokenRegistry(store=store),
    credential_store=credential_store,
    dispatcher=PushDispatcher(sender=sender, concurrency=settings.push_concurrency),
    persister=NotificationPersister(store=store),
    service_account=service_account,
    project_id_override=settings.fcm_project_id,
  )


def build_notification_components(settings: Settings, *, http_client: httpx.AsyncClient, store: NotificationStore | None = None) -> NotificationComponents:
  """Wire the service and the queue processor around one store."""
  resolved_store = store or PostgresNotificationStore()
  service = build_notification_service(settings, http_client=http_client, store=resolved_store)
  processor = QueueTransitionProcessor(store=resolved_store, notification_service=service)
  return NotificationComponents(service=service, processor=processor)
