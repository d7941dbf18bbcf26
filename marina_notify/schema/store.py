"""SQLAlchemy mappings for the store tables and views read by the dispatcher.

The schema itself is owned by the main backend; these classes only describe
the columns this service touches.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Text, func, text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from marina_notify.core.database import Base


class UserProfileView(Base):
  """Profile links between users, profile slugs and marinas."""

  __tablename__ = "user_profiles_view"

  user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
  profile_slug: Mapped[str] = mapped_column(Text, primary_key=True)
  marina_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)


class PushTokenRecord(Base):
  """Device registration token owned by a user."""

  __tablename__ = "user_push_tokens"

  token: Mapped[str] = mapped_column(Text, primary_key=True)
  user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), index=True, nullable=False)


class BoatDetailsView(Base):
  """Boat with marina and ownership details."""

  __tablename__ = "boats_detailed"

  id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
  name: Mapped[str | None] = mapped_column(Text, nullable=True)
  marina_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
  marina_name: Mapped[str | None] = mapped_column(Text, nullable=True)
  primary_owner_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
  primary_owner_name: Mapped[str | None] = mapped_column(Text, nullable=True)
  co_owner_ids: Mapped[list[str] | None] = mapped_column(ARRAY(UUID(as_uuid=False)), nullable=True)


class MarinaRecord(Base):
  __tablename__ = "marinas"

  id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
  name: Mapped[str | None] = mapped_column(Text, nullable=True)


class LaunchQueueView(Base):
  """Launch-queue entry joined with boat and marina names."""

  __tablename__ = "boat_launch_queue_view"

  id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
  status: Mapped[str] = mapped_column(Text, nullable=False)
  boat_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
  boat_name: Mapped[str | None] = mapped_column(Text, nullable=True)
  generic_boat_name: Mapped[str | None] = mapped_column(Text, nullable=True)
  marina_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
  marina_name: Mapped[str | None] = mapped_column(Text, nullable=True)


class UserNotificationRecord(Base):
  """Notification history row shown in the app inbox."""

  __tablename__ = "user_notifications"

  id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()"))
  user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), index=True, nullable=False)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  status: Mapped[str] = mapped_column(Text, nullable=False, server_default="pending")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
