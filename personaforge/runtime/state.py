"""Per-conversation runtime state shared by the reply pipeline stages.

Every map lives behind one coarse ``asyncio.Lock``. Critical sections are map
lookups and updates only; nothing awaits I/O while holding a lock.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict, deque

from personaforge.core.models import ConversationId, PendingBatch, Turn

MAX_CONTEXT_MESSAGES = 20
MAX_TRACKED_CONVERSATIONS = 1000


class ConversationRuntimeState:
    """Debounce batches, cooldown stamps, user windows and recent history."""

    def __init__(
        self,
        *,
        max_history: int = MAX_CONTEXT_MESSAGES,
        max_conversations: int = MAX_TRACKED_CONVERSATIONS,
    ) -> None:
        self.max_history = max(1, int(max_history))
        self.max_conversations = max(1, int(max_conversations))

        self.pending: dict[str, PendingBatch] = {}
        self.pending_lock = asyncio.Lock()

        self.last_reply_at: dict[str, float] = {}
        self.cooldown_lock = asyncio.Lock()

        self.user_windows: dict[str, deque[float]] = {}
        self.user_lock = asyncio.Lock()

        # Least recently active conversation first.
        self._history: OrderedDict[str, deque[Turn]] = OrderedDict()
        self._history_lock = asyncio.Lock()

    # ── History ──────────────────────────────────────────────────────

    async def append_turn(self, conversation: ConversationId, turn: Turn) -> None:
        """Append one turn; the oldest turn is evicted past ``max_history``.

        Past ``max_conversations`` the least recently active conversation
        loses its history.
        """
        async with self._history_lock:
            buffer = self._history.get(conversation.key)
            if buffer is None:
                buffer = deque(maxlen=self.max_history)
                self._history[conversation.key] = buffer
                while len(self._history) > self.max_conversations:
                    self._history.popitem(last=False)
            else:
                self._history.move_to_end(conversation.key)
            buffer.append(turn)

    async def recent_turns(self, conversation: ConversationId, limit: int | None = None) -> list[Turn]:
        """Return up to ``limit`` most recent turns, oldest first."""
        async with self._history_lock:
            buffer = self._history.get(conversation.key)
            turns = list(buffer) if buffer else []
        if limit is None:
            return turns
        if limit <= 0:
            return []
        return turns[-limit:]

    async def clear_history(self, conversation: ConversationId) -> None:
        async with self._history_lock:
            self._history.pop(conversation.key, None)

    def conversation_count(self) -> int:
        return len(self._history)
