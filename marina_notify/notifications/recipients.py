"""Recipient resolution for notification events."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from marina_notify.notifications.contracts import BoatOwnership, NotificationStore

logger = logging.getLogger(__name__)


def resolve_boat_owners(boat: BoatOwnership) -> frozenset[str]:
  """Return the primary owner plus every non-empty co-owner of a boat."""
  owners: set[str] = set()
  if boat.primary_owner_id:
    owners.add(str(boat.primary_owner_id))
  for owner_id in boat.co_owner_ids:
    if owner_id:
      owners.add(str(owner_id))
  return frozenset(owners)


def _collect(user_ids: Iterable[str | None]) -> set[str]:
  return {str(user_id) for user_id in user_ids if user_id}


class RecipientResolver:
  """Computes the deduplicated recipient set for each event subject.

  An empty result is a valid "nothing to notify" outcome. Store failures
  propagate to the caller.
  """

  def __init__(self, *, store: NotificationStore) -> None:
    self._store = store

  async def resolve_launch_request(self, *, marina_id: str, boat: BoatOwnership) -> frozenset[str]:
    """Marina staff linked to the marina plus the owners of the boat."""
    staff_ids = await self._store.list_marina_profile_user_ids(marina_id)
    recipients = _collect(staff_ids) | resolve_boat_owners(boat)
    logger.debug("Resolved launch request recipients marina_id=%s boat_id=%s staff=%d total=%d", marina_id, boat.id, len(staff_ids), len(recipients))
    return frozenset(recipients)

  async def resolve_marina_boat_owners(self, *, marina_id: str) -> frozenset[str]:
    """Owners of every boat registered to the marina."""
    boats = await self._store.list_marina_boats(marina_id)
    recipients: set[str] = set()
    for boat in boats:
      recipients |= resolve_boat_owners(boat)
    logger.debug("Resolved marina boat owners marina_id=%s boats=%d total=%d", marina_id, len(boats), len(recipients))
    return frozenset(recipients)

  async def resolve_owners(self, *, boat: BoatOwnership) -> frozenset[str]:
    return resolve_boat_owners(boat)

  async def resolve_broadcast(self) -> frozenset[str]:
    """Every user holding at least one registered push token."""
    owner_ids = await self._store.list_push_token_owner_ids()
    return frozenset(_collect(owner_ids))
