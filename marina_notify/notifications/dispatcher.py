"""Concurrent fan-out of one notification to many device tokens."""

from __future__ import annotations

import logging
from collections.abc import Collection

from marina_notify.notifications.contracts import DeliveryError, DeliveryOutcome, NotificationEvent, PushSender
from marina_notify.notifications.push_sender import mask_token
from marina_notify.notifications.worker_pool import BoundedWorkerPool, OutcomeAccumulator

logger = logging.getLogger(__name__)

DEFAULT_PUSH_CONCURRENCY = 10


class PushDispatcher:
  """Sends one event to every token once, isolating per-token failures.

  `success_count + failure_count` always equals the number of distinct
  tokens. An empty token set returns `(0, 0)` without touching the provider.
  """

  def __init__(self, *, sender: PushSender, concurrency: int = DEFAULT_PUSH_CONCURRENCY) -> None:
    self._sender = sender
    self._pool = BoundedWorkerPool(concurrency=concurrency)

  async def send(self, tokens: Collection[str], event: NotificationEvent, access_token: str, project_id: str) -> DeliveryOutcome:
    unique_tokens = sorted({token for token in tokens if token})
    if not unique_tokens:
      return DeliveryOutcome(success_count=0, failure_count=0)

    accumulator = OutcomeAccumulator()

    async def _deliver(token: str) -> None:
      try:
        await self._sender.send(token=token, event=event, access_token=access_token, project_id=project_id)
      except DeliveryError as exc:
        accumulator.record_failure()
        logger.warning("Push delivery failed token=%s status=%s body=%s", mask_token(token), exc.provider_status, exc.body or str(exc))
      except Exception as exc:  # noqa: BLE001
        accumulator.record_failure()
        logger.error("Push delivery failed unexpectedly token=%s error=%s", mask_token(token), exc, exc_info=True)
      else:
        accumulator.record_success()

    await self._pool.map(_deliver, unique_tokens)
    outcome = accumulator.outcome()
    logger.info("Push fan-out complete event=%s targeted=%d delivered=%d failed=%d", event.kind.value, len(unique_tokens), outcome.success_count, outcome.failure_count)
    return outcome
