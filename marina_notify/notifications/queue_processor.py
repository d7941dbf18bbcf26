"""Batch launch-queue transitions with one notification per moved entry."""

from __future__ import annotations

import logging

from marina_notify.notifications.contracts import NotificationStore, QueueRunResult, TransitionedEntry, TransitionError
from marina_notify.notifications.service import NotificationService
from marina_notify.notifications.worker_pool import BoundedWorkerPool, OutcomeAccumulator

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 200
DEFAULT_PROCESSOR_CONCURRENCY = 4


def clamp_batch_size(raw: str | int | None) -> int:
  """Parse a `limit`/`max` value: non-positive or unparseable -> 50, capped at 200."""
  if raw is None:
    return DEFAULT_BATCH_SIZE
  try:
    value = int(str(raw).strip())
  except ValueError:
    return DEFAULT_BATCH_SIZE
  if value <= 0:
    return DEFAULT_BATCH_SIZE
  return min(value, MAX_BATCH_SIZE)


class QueueTransitionProcessor:
  """Advances due queue entries and notifies each entry's owners.

  `processed` equals the number of transitioned entries and
  `notified + failed_notifications == processed`. A failed transition call
  raises `TransitionError` and reports nothing.
  """

  def __init__(self, *, store: NotificationStore, notification_service: NotificationService, concurrency: int = DEFAULT_PROCESSOR_CONCURRENCY) -> None:
    self._store = store
    self._notification_service = notification_service
    self._pool = BoundedWorkerPool(concurrency=concurrency)

  async def run(self, max_batch: int | str | None = DEFAULT_BATCH_SIZE) -> QueueRunResult:
    batch_size = clamp_batch_size(max_batch)

    try:
      entries = list(await self._store.process_launch_queue_transitions(batch_size))
    except Exception as exc:
      logger.error("Queue transition call failed max_batch=%d error=%s", batch_size, exc, exc_info=True)
      raise TransitionError(f"Queue transition call failed: {exc}") from exc

    if not entries:
      logger.info("No queue entries due for transition max_batch=%d", batch_size)
      return QueueRunResult(processed=0, notified=0, failed_notifications=0, max_batch=batch_size)

    accumulator = OutcomeAccumulator()

    async def _notify(entry: TransitionedEntry) -> None:
      if not entry.entry_id:
        accumulator.record_failure()
        logger.warning("Transitioned entry without id; skipping status=%s", entry.new_status)
        return
      try:
        result = await self._notification_service.notify_queue_status_change(entry_id=entry.entry_id, status=entry.new_status)
      except Exception as exc:  # noqa: BLE001
        accumulator.record_failure()
        logger.error("Queue status notification failed entry_id=%s status=%s error=%s", entry.entry_id, entry.new_status, exc, exc_info=True)
      else:
        accumulator.record_success()
        logger.debug("Queue status notification sent entry_id=%s result=%s", entry.entry_id, result.to_payload())

    await self._pool.map(_notify, entries)
    outcome = accumulator.outcome()
    logger.info("Queue transitions processed=%d notified=%d failed=%d max_batch=%d", len(entries), outcome.success_count, outcome.failure_count, batch_size)
    return QueueRunResult(processed=len(entries), notified=outcome.success_count, failed_notifications=outcome.failure_count, max_batch=batch_size)
