"""Run one launch-queue transition batch outside the HTTP service.

How/Why:
- Lets a plain cron job (or a one-off operator run) advance the queue without going through the HTTP gate.
- Builds the same pipeline the service builds, so notifications and history rows are identical.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

import httpx

# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from marina_notify.config import get_settings  # noqa: E402
from marina_notify.core.database import dispose_db_engine  # noqa: E402
from marina_notify.core.env_contract import validate_runtime_env_or_raise  # noqa: E402
from marina_notify.core.logging import _initialize_logging  # noqa: E402
from marina_notify.notifications.factory import build_notification_components  # noqa: E402
from marina_notify.notifications.queue_processor import DEFAULT_BATCH_SIZE  # noqa: E402


async def _run(limit: int) -> dict[str, int]:
  settings = get_settings()
  _initialize_logging(settings)
  logger = logging.getLogger("marina_notify.scripts.process_queue_transitions")
  validate_runtime_env_or_raise(logger=logger, target="worker")

  async with httpx.AsyncClient(timeout=httpx.Timeout(settings.push_timeout_seconds)) as http_client:
    try:
      components = build_notification_components(settings, http_client=http_client)
      result = await components.processor.run(limit)
    finally:
      await dispose_db_engine()

  return result.to_payload()


def main() -> None:
  """Parse CLI args and process one batch of due queue transitions."""
  parser = argparse.ArgumentParser(description="Advance due launch-queue entries and notify boat owners.")
  parser.add_argument("--limit", type=int, default=DEFAULT_BATCH_SIZE, help="Maximum entries to transition (capped at 200).")
  args = parser.parse_args()

  payload = asyncio.run(_run(args.limit))
  print(json.dumps(payload))
  sys.exit(0 if payload["failed_notifications"] == 0 else 1)


if __name__ == "__main__":
  try:
    main()
  except Exception as exc:  # noqa: BLE001
    print(f"ERROR: {exc}", file=sys.stderr)
    raise
