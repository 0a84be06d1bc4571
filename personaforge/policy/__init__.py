"""Reply gating: trigger rules, rate limits and settings resolution."""

from personaforge.policy.rate_gate import RateGate
from personaforge.policy.settings import ConfigSettingsProvider
from personaforge.policy.trigger import (
    DEFAULT_RULES,
    TriggerContext,
    TriggerDecision,
    TriggerEvaluator,
    TriggerRule,
)

__all__ = [
    "ConfigSettingsProvider",
    "DEFAULT_RULES",
    "RateGate",
    "TriggerContext",
    "TriggerDecision",
    "TriggerEvaluator",
    "TriggerRule",
]
