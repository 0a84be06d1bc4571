"""Runtime state, background tasks and account workers."""

from personaforge.runtime.debounce import DebounceAggregator
from personaforge.runtime.notify import PlatformOwnerNotifier
from personaforge.runtime.state import ConversationRuntimeState
from personaforge.runtime.tasks import TaskSupervisor

__all__ = [
    "ConversationRuntimeState",
    "DebounceAggregator",
    "PlatformOwnerNotifier",
    "TaskSupervisor",
]
