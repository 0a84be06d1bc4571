"""Per-conversation cooldown and per-user sliding-window limits."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable

from personaforge.core.models import ConversationId
from personaforge.runtime.state import ConversationRuntimeState

SWEEP_INTERVAL_SECONDS = 60.0


class RateGate:
    """Advisory gates checked before any embedding or inference work.

    Each check and its stamp happen under one lock acquisition, so two
    concurrent turns can never both pass a cooldown. Expired cooldown stamps
    and empty user windows are swept at most once per
    ``SWEEP_INTERVAL_SECONDS``.
    """

    def __init__(
        self,
        state: ConversationRuntimeState,
        *,
        default_cooldown_seconds: float = 5.0,
        user_limit: int = 5,
        user_window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = state
        self._default_cooldown = float(default_cooldown_seconds)
        self._user_limit = max(1, int(user_limit))
        self._user_window = float(user_window_seconds)
        self._clock = clock
        self._longest_cooldown = max(0.0, self._default_cooldown)
        self._next_cooldown_sweep = 0.0
        self._next_user_sweep = 0.0

    async def allow(self, conversation: ConversationId, cooldown_seconds: float | None = None) -> bool:
        cooldown = self._default_cooldown if cooldown_seconds is None else float(cooldown_seconds)
        self._longest_cooldown = max(self._longest_cooldown, cooldown)
        now = self._clock()
        async with self._state.cooldown_lock:
            self._maybe_sweep_cooldowns(now)
            last = self._state.last_reply_at.get(conversation.key)
            if cooldown > 0 and last is not None and now - last < cooldown:
                return False
            self._state.last_reply_at[conversation.key] = now
            return True

    async def allow_user(self, user_id: str) -> bool:
        now = self._clock()
        async with self._state.user_lock:
            self._maybe_sweep_users(now)
            window = self._state.user_windows.get(user_id)
            if window is None:
                window = deque()
                self._state.user_windows[user_id] = window
            self._expire(window, now)
            if len(window) >= self._user_limit:
                return False
            window.append(now)
            return True

    async def reset(self, conversation: ConversationId) -> None:
        async with self._state.cooldown_lock:
            self._state.last_reply_at.pop(conversation.key, None)

    # ── Housekeeping (callers hold the matching lock) ────────────────

    def _expire(self, window: deque[float], now: float) -> None:
        while window and now - window[0] >= self._user_window:
            window.popleft()

    def _maybe_sweep_users(self, now: float) -> None:
        if now < self._next_user_sweep:
            return
        windows = self._state.user_windows
        for user_id in list(windows):
            self._expire(windows[user_id], now)
            if not windows[user_id]:
                del windows[user_id]
        self._next_user_sweep = now + SWEEP_INTERVAL_SECONDS

    def _maybe_sweep_cooldowns(self, now: float) -> None:
        if now < self._next_cooldown_sweep:
            return
        stamps = self._state.last_reply_at
        horizon = self._longest_cooldown
        for key in [k for k, stamped in stamps.items() if now - stamped >= horizon]:
            del stamps[key]
        self._next_cooldown_sweep = now + SWEEP_INTERVAL_SECONDS
