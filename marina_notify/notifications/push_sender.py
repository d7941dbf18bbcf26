"""Push notification delivery over the FCM HTTP v1 API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from marina_notify.notifications.contracts import DeliveryError, EventKind, NotificationEvent, PushSender

logger = logging.getLogger(__name__)

FCM_SEND_URL_TEMPLATE = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# Queue updates ring on the device; the other events stay silent.
_SOUND_EVENTS = frozenset({EventKind.QUEUE_STATUS_UPDATE})


def build_fcm_message(*, token: str, event: NotificationEvent) -> dict[str, Any]:
  """Build the `messages:send` request body for one device token."""
  message: dict[str, Any] = {"token": token, "notification": {"title": event.title, "body": event.body}, "data": dict(event.data)}
  if event.kind in _SOUND_EVENTS:
    message["android"] = {"notification": {"sound": "default"}}
    message["apns"] = {"payload": {"aps": {"sound": "default"}}}
  return {"message": message}


def mask_token(token: str) -> str:
  """Shorten a device token for log lines."""
  if len(token) <= 12:
    return "***"
  return f"{token[:6]}...{token[-4:]}"


class FcmPushSender(PushSender):
  """`httpx` backed sender for Firebase Cloud Messaging.

  Makes exactly one attempt per call. Any transport failure or non-2xx
  response raises `DeliveryError` carrying the provider status and body.
  """

  def __init__(self, *, http_client: httpx.AsyncClient, timeout_seconds: float = 10.0, url_template: str = FCM_SEND_URL_TEMPLATE) -> None:
    self._http_client = http_client
    self._timeout_seconds = timeout_seconds
    self._url_template = url_template

  async def send(self, *, token: str, event: NotificationEvent, access_token: str, project_id: str) -> None:
    url = self._url_template.format(project_id=project_id)
    headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}
    try:
      response = await self._http_client.post(url, json=build_fcm_message(token=token, event=event), headers=headers, timeout=self._timeout_seconds)
    except httpx.HTTPError as exc:
      raise DeliveryError(f"Push request failed: {type(exc).__name__}") from exc

    if not response.is_success:
      raise DeliveryError(f"Push provider rejected message (status={response.status_code})", status_code=response.status_code, body=response.text)

    logger.debug("Push delivered token=%s event=%s", mask_token(token), event.kind.value)
