from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials

from marina_notify.api.deps import get_notification_service
from marina_notify.api.models import AdminBroadcastRequest, LaunchRequestNotification, QueueStatusNotification, WallPostNotification
from marina_notify.config import Settings, get_settings
from marina_notify.core.security import authenticate_caller, security_scheme
from marina_notify.notifications.service import NotificationService, require_broadcast_content

router = APIRouter()
logger = logging.getLogger(__name__)


@router.options("/admin_broadcast_push", include_in_schema=False)
@router.options("/notify_marina_launch_request", include_in_schema=False)
@router.options("/notify_mural_publication", include_in_schema=False)
@router.options("/notify_queue_status_change", include_in_schema=False)
async def preflight() -> PlainTextResponse:
  """Answer cross-origin preflight with a bare 200."""
  return PlainTextResponse("ok", status_code=status.HTTP_200_OK)


@router.post("/admin_broadcast_push", status_code=status.HTTP_200_OK)
async def admin_broadcast_push(
  payload: AdminBroadcastRequest,
  credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)],
  settings: Annotated[Settings, Depends(get_settings)],
  service: Annotated[NotificationService, Depends(get_notification_service)],
) -> dict[str, Any]:
  """Send an administrator broadcast to every registered device."""
  # Blank content is rejected before the caller is authenticated.
  require_broadcast_content(payload.title, payload.body)
  caller = authenticate_caller(credentials, settings)
  result = await service.notify_admin_broadcast(caller_id=caller.user_id, title=payload.title, body=payload.body, data=payload.data)
  response = result.to_payload()
  if result.message is None:
    response.pop("totalRecipients", None)
    response["requestedBy"] = caller.user_id
  return response


@router.post("/notify_marina_launch_request", status_code=status.HTTP_200_OK)
async def notify_marina_launch_request(payload: LaunchRequestNotification, service: Annotated[NotificationService, Depends(get_notification_service)]) -> dict[str, Any]:
  """Notify marina staff and boat owners about a launch request."""
  result = await service.notify_launch_request(marina_id=payload.marina_id, boat_id=payload.boat_id)
  return result.to_payload()


@router.post("/notify_mural_publication", status_code=status.HTTP_200_OK)
async def notify_mural_publication(payload: WallPostNotification, service: Annotated[NotificationService, Depends(get_notification_service)]) -> dict[str, Any]:
  """Notify a marina's boat owners about a new wall post."""
  result = await service.notify_wall_post(marina_id=payload.marina_id, post_id=payload.post_id, title=payload.title, post_type=payload.post_type, start_date=payload.start_date, end_date=payload.end_date)
  return result.to_payload()


@router.post("/notify_queue_status_change", status_code=status.HTTP_200_OK)
async def notify_queue_status_change(payload: QueueStatusNotification, service: Annotated[NotificationService, Depends(get_notification_service)]) -> dict[str, Any]:
  """Notify a boat's owners about a launch-queue status change."""
  result = await service.notify_queue_status_change(entry_id=payload.entry_id, status=payload.status)
  return result.to_payload()
