"""Operator alerts delivered through the chat platform."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from loguru import logger

from personaforge.core.errors import PlatformError
from personaforge.core.models import ConversationId
from personaforge.core.ports import ChatPlatformPort


class PlatformOwnerNotifier:
    """Sends alerts to owner chats; repeats of one key are muted for a cooldown."""

    def __init__(
        self,
        platform: ChatPlatformPort,
        owner_ids: Sequence[str],
        *,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._platform = platform
        self._owners = sorted({str(o).strip() for o in owner_ids if str(o).strip()})
        self._cooldown = max(0.0, float(cooldown_seconds))
        self._clock = clock
        self._recent_alert_keys: dict[str, float] = {}

    async def notify(self, text: str, *, key: str) -> bool:
        if not self._owners:
            return False

        now = self._clock()
        for seen, expires_at in list(self._recent_alert_keys.items()):
            if expires_at <= now:
                self._recent_alert_keys.pop(seen, None)

        compact = " ".join(key.split()).strip() or "unknown"
        if compact in self._recent_alert_keys:
            return False
        self._recent_alert_keys[compact] = now + self._cooldown

        delivered = False
        for owner in self._owners:
            try:
                await self._platform.send_message(ConversationId(owner), text)
                delivered = True
            except PlatformError as exc:
                logger.warning("Owner alert to {} failed: {}", owner, exc)
        return delivered
