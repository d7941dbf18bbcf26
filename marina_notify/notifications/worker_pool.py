"""Bounded concurrency helpers for fan-out work."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from marina_notify.notifications.contracts import DeliveryOutcome

T = TypeVar("T")
R = TypeVar("R")


class BoundedWorkerPool:
  """Run one coroutine per item with at most `concurrency` in flight.

  Results come back in input order. Cancelling the caller cancels every
  pending item.
  """

  def __init__(self, *, concurrency: int) -> None:
    if concurrency <= 0:
      raise ValueError("concurrency must be a positive integer.")
    self._concurrency = concurrency

  @property
  def concurrency(self) -> int:
    return self._concurrency

  async def map(self, func: Callable[[T], Awaitable[R]], items: Iterable[T]) -> list[R]:
    semaphore = asyncio.Semaphore(self._concurrency)

    async def _worker(item: T) -> R:
      async with semaphore:
        return await func(item)

    return list(await asyncio.gather(*(_worker(item) for item in items)))


class OutcomeAccumulator:
  """Success/failure counters shared by the workers of one fan-out."""

  def __init__(self) -> None:
    self.success_count = 0
    self.failure_count = 0

  def record_success(self) -> None:
    self.success_count += 1

  def record_failure(self) -> None:
    self.failure_count += 1

  def outcome(self) -> DeliveryOutcome:
    return DeliveryOutcome(success_count=self.success_count, failure_count=self.failure_count)
