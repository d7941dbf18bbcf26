from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse

from marina_notify.api.deps import get_queue_processor
from marina_notify.core.security import require_queue_secret
from marina_notify.notifications.queue_processor import QueueTransitionProcessor

router = APIRouter()
logger = logging.getLogger(__name__)


@router.options("/process_queue_transitions", include_in_schema=False)
async def process_queue_transitions_preflight() -> PlainTextResponse:
  return PlainTextResponse("ok", status_code=status.HTTP_200_OK)


@router.post("/process_queue_transitions", status_code=status.HTTP_200_OK, dependencies=[Depends(require_queue_secret)])
async def process_queue_transitions(
  processor: Annotated[QueueTransitionProcessor, Depends(get_queue_processor)], limit: Annotated[str | None, Query()] = None, max_batch: Annotated[str | None, Query(alias="max")] = None
) -> dict[str, int]:
  """
  Handler for the scheduler (cron or Cloud Scheduler style callers).
  Advances due launch-queue entries and notifies each entry's boat owners.
  """
  raw_limit = limit if limit is not None else max_batch
  logger.info("Queue transition run requested limit=%s", raw_limit)
  result = await processor.run(raw_limit)
  return result.to_payload()
