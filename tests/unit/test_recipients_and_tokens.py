from __future__ import annotations

import pytest

from marina_notify.notifications.contracts import BoatOwnership, StoreError
from marina_notify.notifications.recipients import RecipientResolver, resolve_boat_owners
from marina_notify.notifications.token_registry import TokenRegistry


def test_resolve_boat_owners_merges_primary_and_co_owners():
  boat = BoatOwnership(id="boat-1", primary_owner_id="owner-1", co_owner_ids=("owner-2", "", "owner-1"))

  assert resolve_boat_owners(boat) == frozenset({"owner-1", "owner-2"})


def test_resolve_boat_owners_without_owners_is_empty():
  assert resolve_boat_owners(BoatOwnership(id="boat-1")) == frozenset()


@pytest.mark.anyio
async def test_launch_request_recipients_are_staff_plus_owners(fake_store):
  fake_store.marina_staff["marina-1"] = ["staff-1", "staff-2", "owner-1"]
  boat = BoatOwnership(id="boat-1", marina_id="marina-1", primary_owner_id="owner-1", co_owner_ids=("owner-2",))

  recipients = await RecipientResolver(store=fake_store).resolve_launch_request(marina_id="marina-1", boat=boat)

  assert recipients == frozenset({"staff-1", "staff-2", "owner-1", "owner-2"})


@pytest.mark.anyio
async def test_marina_boat_owners_cover_every_boat(fake_store):
  fake_store.boats = {
    "boat-1": BoatOwnership(id="boat-1", marina_id="marina-1", primary_owner_id="owner-1"),
    "boat-2": BoatOwnership(id="boat-2", marina_id="marina-1", primary_owner_id="owner-2", co_owner_ids=("owner-1", "owner-3")),
    "boat-3": BoatOwnership(id="boat-3", marina_id="marina-2", primary_owner_id="owner-9"),
  }

  recipients = await RecipientResolver(store=fake_store).resolve_marina_boat_owners(marina_id="marina-1")

  assert recipients == frozenset({"owner-1", "owner-2", "owner-3"})


@pytest.mark.anyio
async def test_marina_without_boats_resolves_to_empty_set(fake_store):
  assert await RecipientResolver(store=fake_store).resolve_marina_boat_owners(marina_id="marina-1") == frozenset()


@pytest.mark.anyio
async def test_broadcast_recipients_are_token_owners(fake_store):
  fake_store.tokens = {"user-1": ["tok-a"], "user-2": [], "user-3": ["tok-c"]}

  assert await RecipientResolver(store=fake_store).resolve_broadcast() == frozenset({"user-1", "user-3"})


@pytest.mark.anyio
async def test_resolver_propagates_store_failures(fake_store):
  async def _fail(marina_id):
    raise StoreError("boom")

  fake_store.list_marina_boats = _fail

  with pytest.raises(StoreError):
    await RecipientResolver(store=fake_store).resolve_marina_boat_owners(marina_id="marina-1")


@pytest.mark.anyio
async def test_tokens_for_deduplicates_shared_tokens_and_ids(fake_store):
  fake_store.tokens = {"user-1": ["tok-a", "tok-b"], "user-2": ["tok-b", " tok-a "], "user-3": [None, "", "tok-c"]}

  tokens = await TokenRegistry(store=fake_store).tokens_for(["user-1", "user-2", "user-2", "user-3"])

  assert tokens == frozenset({"tok-a", "tok-b", "tok-c"})
  assert fake_store.calls == ["list_push_tokens"]


@pytest.mark.anyio
async def test_tokens_for_empty_recipients_skips_store(fake_store):
  assert await TokenRegistry(store=fake_store).tokens_for([]) == frozenset()
  assert await TokenRegistry(store=fake_store).tokens_for(["", "  "]) == frozenset()
  assert fake_store.calls == []
