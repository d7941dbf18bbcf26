"""Notification orchestration for marina events."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from marina_notify.notifications.contracts import (
  ConfigurationError,
  CredentialError,
  CredentialErrorKind,
  DispatchResult,
  EventKind,
  InvalidRequestError,
  NotFoundError,
  NotificationEvent,
  NotificationRecord,
  NotificationStore,
  ParsedCredential,
  PermissionDeniedError,
  ServiceAccountCredential,
)
from marina_notify.notifications.credentials import CredentialStore
from marina_notify.notifications.dispatcher import PushDispatcher
from marina_notify.notifications.persister import NotificationPersister
from marina_notify.notifications.recipients import RecipientResolver
from marina_notify.notifications.templates import DEFAULT_BOAT_NAME, compose_launch_request, compose_queue_status, compose_wall_post
from marina_notify.notifications.token_registry import TokenRegistry

logger = logging.getLogger(__name__)

NO_TOKENS_MESSAGE = "No push tokens found for the recipients."
NO_QUEUE_TOKENS_MESSAGE = "No push tokens found for recipients."
NO_BROADCAST_TOKENS_MESSAGE = "Nenhum token de push cadastrado no momento."
NO_LAUNCH_RECIPIENTS_MESSAGE = "Nenhum usuário elegível encontrado para receber o push."
NO_LAUNCH_TOKENS_MESSAGE = "Nenhum token de push encontrado para os destinatários."
NO_WALL_POST_RECIPIENTS_MESSAGE = "No eligible boat owners found for this marina."
NO_QUEUE_RECIPIENTS_MESSAGE = "No eligible boat owners found to receive notification."
NO_QUEUE_BOAT_MESSAGE = "No boat linked to this queue entry. Notification skipped."


def sanitize_data_payload(data: Mapping[str, Any] | None) -> dict[str, str]:
  """Stringify caller-supplied data values, dropping empty keys."""
  payload: dict[str, str] = {}
  for key, value in (data or {}).items():
    if not key:
      continue
    if isinstance(value, bool):
      payload[str(key)] = "true" if value else "false"
    elif value is None:
      payload[str(key)] = "null"
    elif isinstance(value, dict | list):
      payload[str(key)] = json.dumps(value, ensure_ascii=False)
    else:
      payload[str(key)] = str(value)
  return payload


def require_broadcast_content(title: str | None, body: str | None) -> tuple[str, str]:
  """Return the trimmed broadcast title and body, raising 400 when either is blank."""
  clean_title = (title or "").strip()
  clean_body = (body or "").strip()
  if not clean_title or not clean_body:
    raise InvalidRequestError("Informe título e mensagem para enviar a notificação.")
  return clean_title, clean_body


class NotificationService:
  """Runs the recipient -> token -> credential -> dispatch -> persist pipeline."""

  def __init__(
    self,
    *,
    store: NotificationStore,
    resolver: RecipientResolver,
    token_registry: TokenRegistry,
    credential_store: CredentialStore,
    dispatcher: PushDispatcher,
    persister: NotificationPersister,
    service_account: ParsedCredential | None,
    project_id_override: str | None = None,
  ) -> None:
    self._store = store
    self._resolver = resolver
    self._token_registry = token_registry
    self._credential_store = credential_store
    self._dispatcher = dispatcher
    self._persister = persister
    self._service_account = service_account
    self._project_id_override = project_id_override

  def _resolve_credential(self) -> tuple[ServiceAccountCredential, str]:
    """Return the parsed credential and the FCM project id to send under."""
    if self._service_account is None:
      raise ConfigurationError("FCM_SERVICE_ACCOUNT is not configured.", public_message="FCM_SERVICE_ACCOUNT is not configured. Add the Firebase service account credentials.")

    credential = self._service_account.credential
    if not self._service_account.is_valid or credential is None:
      raise CredentialError(f"Failed to parse FCM service account credentials: {self._service_account.error}", kind=CredentialErrorKind.MALFORMED)

    project_id = self._project_id_override or credential.project_id
    if not project_id:
      raise ConfigurationError("Firebase project id is missing.", public_message="Firebase project id not found. Set FCM_PROJECT_ID or include project_id in the service account.")

    return credential, project_id

  async def _deliver(self, *, event: NotificationEvent, recipients: frozenset[str], no_tokens_message: str = NO_TOKENS_MESSAGE, report_recipients: bool = True) -> DispatchResult:
    """Shared tail of every pipeline: tokens, credential, fan-out, history."""
    tokens = await self._token_registry.tokens_for(recipients)
    if not tokens:
      logger.info("No push tokens for event=%s recipients=%d", event.kind.value, len(recipients))
      return DispatchResult.nothing_to_notify(no_tokens_message, total_recipients=len(recipients) if report_recipients else None)

    credential, project_id = self._resolve_credential()
    access_token = await self._credential_store.get_access_token(credential)
    outcome = await self._dispatcher.send(tokens, event, access_token.value, project_id)

    await self._persister.persist(NotificationRecord(recipient=recipient, title=event.title, body=event.body, data=event.data) for recipient in sorted(recipients))

    return DispatchResult(delivered=outcome.success_count, failed=outcome.failure_count, total_recipients=len(recipients), targeted_devices=len(tokens))

  async def notify_admin_broadcast(self, *, caller_id: str, title: str | None, body: str | None, data: Mapping[str, Any] | None = None) -> DispatchResult:
    """Send an administrator's message to every registered device."""
    clean_title, clean_body = require_broadcast_content(title, body)

    if not await self._store.is_administrator(caller_id):
      logger.warning("Broadcast rejected for non-administrator caller_id=%s", caller_id)
      raise PermissionDeniedError("Apenas administradores podem enviar notificações.")

    recipients = await self._resolver.resolve_broadcast()
    event = NotificationEvent(kind=EventKind.ADMIN_BROADCAST, title=clean_title, body=clean_body, data=sanitize_data_payload(data))
    logger.info("Admin broadcast requested caller_id=%s recipients=%d", caller_id, len(recipients))
    return await self._deliver(event=event, recipients=recipients, no_tokens_message=NO_BROADCAST_TOKENS_MESSAGE, report_recipients=False)

  async def notify_launch_request(self, *, marina_id: str | None, boat_id: str | None) -> DispatchResult:
    """Tell marina staff and the boat's owners that a launch was requested."""
    if not marina_id or not boat_id:
      raise InvalidRequestError("Parâmetros obrigatórios ausentes. Informe marina_id e boat_id.")

    boat = await self._store.get_boat(boat_id)
    if boat is None:
      raise NotFoundError("Embarcação não encontrada.")

    recipients = await self._resolver.resolve_launch_request(marina_id=marina_id, boat=boat)
    if not recipients:
      return DispatchResult.nothing_to_notify(NO_LAUNCH_RECIPIENTS_MESSAGE)

    title, body = compose_launch_request(boat_name=boat.name, marina_name=boat.marina_name)
    event = NotificationEvent(kind=EventKind.BOAT_LAUNCH_REQUEST, title=title, body=body, data={"marina_id": marina_id, "boat_id": boat_id})
    return await self._deliver(event=event, recipients=recipients, no_tokens_message=NO_LAUNCH_TOKENS_MESSAGE)

  async def notify_wall_post(
    self, *, marina_id: str | None, post_id: str | None = None, title: str | None = None, post_type: str | None = None, start_date: str | None = None, end_date: str | None = None
  ) -> DispatchResult:
    """Tell every boat owner of the marina about a new wall post."""
    if not marina_id:
      raise InvalidRequestError("marina_id is required.")

    marina = await self._store.get_marina(marina_id)
    if marina is None:
      raise NotFoundError("Marina not found.")

    recipients = await self._resolver.resolve_marina_boat_owners(marina_id=marina_id)
    if not recipients:
      return DispatchResult.nothing_to_notify(NO_WALL_POST_RECIPIENTS_MESSAGE)

    notification_title, notification_body = compose_wall_post(marina_name=marina.name, post_title=title, post_type=post_type, start_date=start_date, end_date=end_date)
    data = {"marina_id": marina_id, "post_id": post_id or ""}
    if post_type:
      data["type"] = post_type
    if start_date:
      data["start_date"] = start_date
    if end_date:
      data["end_date"] = end_date

    event = NotificationEvent(kind=EventKind.MARINA_WALL_POST, title=notification_title, body=notification_body, data=data)
    return await self._deliver(event=event, recipients=recipients)

  async def notify_queue_status_change(self, *, entry_id: str | None, status: str | None = None) -> DispatchResult:
    """Tell a boat's owners that its launch-queue entry changed status."""
    if not entry_id:
      raise InvalidRequestError("entry_id is required.")

    entry = await self._store.get_queue_entry(entry_id)
    if entry is None:
      raise NotFoundError("Queue entry not found.")

    if not entry.boat_id:
      logger.info("Queue entry has no boat; skipping notification entry_id=%s", entry_id)
      return DispatchResult.nothing_to_notify(NO_QUEUE_BOAT_MESSAGE)

    boat = await self._store.get_boat(entry.boat_id)
    if boat is None:
      raise NotFoundError("Boat not found.")

    recipients = await self._resolver.resolve_owners(boat=boat)
    if not recipients:
      return DispatchResult.nothing_to_notify(NO_QUEUE_RECIPIENTS_MESSAGE)

    effective_status = (status or "").strip().lower() or entry.status
    boat_name = boat.name or entry.boat_name or entry.generic_boat_name or DEFAULT_BOAT_NAME
    title, body = compose_queue_status(marina_name=entry.marina_name, boat_name=boat_name, status=effective_status)
    data = {"queue_entry_id": entry.id, "marina_id": entry.marina_id or "", "boat_id": entry.boat_id, "status": effective_status}
    event = NotificationEvent(kind=EventKind.QUEUE_STATUS_UPDATE, title=title, body=body, data=data)
    return await self._deliver(event=event, recipients=recipients, no_tokens_message=NO_QUEUE_TOKENS_MESSAGE)
