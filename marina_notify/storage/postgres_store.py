"""Postgres-backed store for recipient, token and queue lookups using SQLAlchemy."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marina_notify.core.database import get_session_factory
from marina_notify.notifications.contracts import BoatOwnership, ConfigurationError, Marina, NotificationRecord, PersistenceError, QueueEntry, StoreError, TransitionedEntry
from marina_notify.schema.store import BoatDetailsView, LaunchQueueView, MarinaRecord, PushTokenRecord, UserNotificationRecord, UserProfileView

logger = logging.getLogger(__name__)

MARINA_PROFILE_SLUG = "marina"
ADMIN_PROFILE_SLUG = "administrador"


def _is_uuid(value: str | None) -> bool:
  if not value:
    return False
  try:
    uuid.UUID(str(value))
  except ValueError:
    return False
  return True


def _to_boat(row: BoatDetailsView) -> BoatOwnership:
  co_owner_ids = tuple(str(owner_id) for owner_id in (row.co_owner_ids or []) if owner_id)
  return BoatOwnership(
    id=str(row.id),
    name=row.name,
    marina_id=str(row.marina_id) if row.marina_id else None,
    marina_name=row.marina_name,
    primary_owner_id=str(row.primary_owner_id) if row.primary_owner_id else None,
    co_owner_ids=co_owner_ids,
  )


class PostgresNotificationStore:
  """Read recipients and tokens, run queue transitions, write notification history.

  Ids that are not UUIDs cannot match any row, so lookups short-circuit to
  "not found" instead of sending a query Postgres would reject.
  """

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  @asynccontextmanager
  async def _session(self, operation: str, *, error_cls: type[StoreError] = StoreError) -> AsyncIterator[AsyncSession]:
    session_factory = self._session_factory or get_session_factory()
    if session_factory is None:
      raise ConfigurationError("Database connection is not configured (SUPABASE_DB_URL is missing).")

    try:
      async with session_factory() as session:
        yield session
    except (SQLAlchemyError, OSError, TimeoutError) as exc:
      logger.error("Store operation failed operation=%s error=%s", operation, exc, exc_info=True)
      raise error_cls(f"Store operation failed: {operation}") from exc

  async def get_boat(self, boat_id: str) -> BoatOwnership | None:
    if not _is_uuid(boat_id):
      return None
    async with self._session("get_boat") as session:
      result = await session.execute(select(BoatDetailsView).where(BoatDetailsView.id == boat_id))
      row = result.scalar_one_or_none()
    return _to_boat(row) if row is not None else None

  async def list_marina_boats(self, marina_id: str) -> list[BoatOwnership]:
    if not _is_uuid(marina_id):
      return []
    async with self._session("list_marina_boats") as session:
      result = await session.execute(select(BoatDetailsView).where(BoatDetailsView.marina_id == marina_id))
      rows = result.scalars().all()
    return [_to_boat(row) for row in rows]

  async def get_marina(self, marina_id: str) -> Marina | None:
    if not _is_uuid(marina_id):
      return None
    async with self._session("get_marina") as session:
      result = await session.execute(select(MarinaRecord).where(MarinaRecord.id == marina_id))
      row = result.scalar_one_or_none()
    return Marina(id=str(row.id), name=row.name) if row is not None else None

  async def get_queue_entry(self, entry_id: str) -> QueueEntry | None:
    if not _is_uuid(entry_id):
      return None
    async with self._session("get_queue_entry") as session:
      result = await session.execute(select(LaunchQueueView).where(LaunchQueueView.id == entry_id))
      row = result.scalar_one_or_none()
    if row is None:
      return None
    return QueueEntry(
      id=str(row.id),
      status=row.status or "",
      boat_id=str(row.boat_id) if row.boat_id else None,
      boat_name=row.boat_name,
      generic_boat_name=row.generic_boat_name,
      marina_id=str(row.marina_id) if row.marina_id else None,
      marina_name=row.marina_name,
    )

  async def list_marina_profile_user_ids(self, marina_id: str) -> list[str]:
    if not _is_uuid(marina_id):
      return []
    async with self._session("list_marina_profile_user_ids") as session:
      stmt = select(UserProfileView.user_id).where(UserProfileView.profile_slug == MARINA_PROFILE_SLUG, UserProfileView.marina_id == marina_id)
      result = await session.execute(stmt)
      return [str(user_id) for user_id in result.scalars().all() if user_id]

  async def is_administrator(self, user_id: str) -> bool:
    if not _is_uuid(user_id):
      return False
    async with self._session("is_administrator") as session:
      stmt = select(UserProfileView.user_id).where(UserProfileView.user_id == user_id, UserProfileView.profile_slug == ADMIN_PROFILE_SLUG).limit(1)
      result = await session.execute(stmt)
      return result.first() is not None

  async def list_push_token_owner_ids(self) -> list[str]:
    async with self._session("list_push_token_owner_ids") as session:
      result = await session.execute(select(PushTokenRecord.user_id).distinct())
      return [str(user_id) for user_id in result.scalars().all() if user_id]

  async def list_push_tokens(self, user_ids: Sequence[str]) -> list[str]:
    valid_ids = [user_id for user_id in user_ids if _is_uuid(user_id)]
    if not valid_ids:
      return []
    async with self._session("list_push_tokens") as session:
      result = await session.execute(select(PushTokenRecord.token).where(PushTokenRecord.user_id.in_(valid_ids)))
      return list(result.scalars().all())

  async def process_launch_queue_transitions(self, max_batch: int) -> list[TransitionedEntry]:
    """Run the store-side workflow function that advances due queue entries."""
    async with self._session("process_launch_queue_transitions") as session:
      result = await session.execute(text("SELECT * FROM process_launch_queue_transitions(max_batch => :max_batch)"), {"max_batch": max_batch})
      rows = result.mappings().all()
      await session.commit()
    return [TransitionedEntry.from_row(row) for row in rows]

  async def insert_notifications(self, records: Iterable[NotificationRecord]) -> None:
    rows = [UserNotificationRecord(user_id=record.recipient, title=record.title, body=record.body, data=dict(record.data) or None, status=record.status) for record in records if _is_uuid(record.recipient)]
    if not rows:
      return
    async with self._session("insert_notifications", error_cls=PersistenceError) as session:
      session.add_all(rows)
      await session.commit()
