"""Best-effort notification history persistence."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from marina_notify.notifications.contracts import NotificationRecord, NotificationStore, PersistenceError

logger = logging.getLogger(__name__)


class NotificationPersister:
  """Writes one history row per recipient and never fails the caller."""

  def __init__(self, *, store: NotificationStore) -> None:
    self._store = store

  async def persist(self, records: Iterable[NotificationRecord]) -> None:
    """Insert complete records in one store call, logging and dropping failures."""
    candidates = list(records)
    valid = [record for record in candidates if record.recipient and record.title and record.body]
    if len(valid) != len(candidates):
      logger.debug("Dropping incomplete notification records count=%d", len(candidates) - len(valid))

    if not valid:
      return

    try:
      await self._store.insert_notifications(valid)
    except PersistenceError as exc:
      logger.error("Notification history insert failed rows=%d error=%s", len(valid), exc)
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification history insert failed unexpectedly rows=%d error=%s", len(valid), exc, exc_info=True)
