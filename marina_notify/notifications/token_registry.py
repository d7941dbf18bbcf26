"""Push token lookup for a recipient set."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from marina_notify.notifications.contracts import NotificationStore

logger = logging.getLogger(__name__)


class TokenRegistry:
  """Maps recipients to their deduplicated, non-blank device tokens."""

  def __init__(self, *, store: NotificationStore) -> None:
    self._store = store

  async def tokens_for(self, recipients: Iterable[str]) -> frozenset[str]:
    """Return every registered token owned by the recipients.

    Skips the store entirely for an empty recipient set. One set-membership
    lookup otherwise; a token shared by several recipients appears once.
    """
    user_ids = sorted({recipient.strip() for recipient in recipients if recipient and recipient.strip()})
    if not user_ids:
      return frozenset()

    rows = await self._store.list_push_tokens(user_ids)
    tokens = frozenset(token.strip() for token in rows if isinstance(token, str) and token.strip())
    logger.debug("Resolved push tokens recipients=%d rows=%d unique=%d", len(user_ids), len(rows), len(tokens))
    return tokens
