"""Reply trigger evaluation as an ordered list of named predicates.

The first predicate that matches decides the turn. Direct-address signals
(private chat, reply to us, mention, keyword) come before mode and
probability rules, so identity always overrides chance.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from loguru import logger

from personaforge.core.models import ConversationSettings, Persona


@dataclass(frozen=True, slots=True, kw_only=True)
class TriggerContext:
    """Signals available to trigger predicates for one debounced turn."""

    text: str
    settings: ConversationSettings
    persona: Persona
    is_private: bool
    is_reply_to_bot: bool
    has_media: bool
    account_name: str
    account_handle: str
    rng: random.Random

    @property
    def folded_text(self) -> str:
        return self.text.casefold()


@dataclass(frozen=True, slots=True)
class TriggerRule:
    """One named predicate; ``matches`` returning True means reply."""

    name: str
    matches: Callable[[TriggerContext], bool]


@dataclass(frozen=True, slots=True, kw_only=True)
class TriggerDecision:
    reply: bool
    rule: str | None = None


# ── Predicates ───────────────────────────────────────────────────────


def _is_private(ctx: TriggerContext) -> bool:
    return ctx.is_private


def _is_reply_to_bot(ctx: TriggerContext) -> bool:
    return ctx.is_reply_to_bot


def _is_mentioned(ctx: TriggerContext) -> bool:
    text = ctx.folded_text
    names = [ctx.persona.display_name or "", ctx.account_name]
    if ctx.account_handle:
        names.append("@" + ctx.account_handle.lstrip("@"))
    return any(name.strip() and name.strip().casefold() in text for name in names)


def _matches_keyword(ctx: TriggerContext) -> bool:
    text = ctx.folded_text
    keywords = (*ctx.settings.trigger_keywords, *ctx.persona.trigger_keywords)
    return any(kw.strip() and kw.strip().casefold() in text for kw in keywords)


def _media_in_all_mode(ctx: TriggerContext) -> bool:
    return ctx.settings.reply_mode == "all" and ctx.has_media


def _probability_in_all_mode(ctx: TriggerContext) -> bool:
    if ctx.settings.reply_mode != "all":
        return False
    p = ctx.settings.reply_probability
    if p <= 0.0:
        return False
    if p >= 1.0:
        return True
    return ctx.rng.random() < p


DEFAULT_RULES: tuple[TriggerRule, ...] = (
    TriggerRule("private", _is_private),
    TriggerRule("reply_to_bot", _is_reply_to_bot),
    TriggerRule("mention", _is_mentioned),
    TriggerRule("keyword", _matches_keyword),
    TriggerRule("media_in_all_mode", _media_in_all_mode),
    TriggerRule("probability", _probability_in_all_mode),
)


class TriggerEvaluator:
    """Decides whether a debounced turn deserves a reply."""

    def __init__(
        self,
        *,
        account_name: str,
        account_handle: str = "",
        rng: random.Random | None = None,
        rules: Sequence[TriggerRule] = DEFAULT_RULES,
    ) -> None:
        self.account_name = account_name
        self.account_handle = account_handle
        self._rng = rng or random.Random()
        self._rules = tuple(rules)

    @property
    def rule_names(self) -> list[str]:
        return [rule.name for rule in self._rules]

    def evaluate(
        self,
        text: str,
        settings: ConversationSettings,
        persona: Persona,
        is_private: bool,
        is_reply_to_bot: bool,
        *,
        has_media: bool = False,
    ) -> TriggerDecision:
        ctx = TriggerContext(
            text=text,
            settings=settings,
            persona=persona,
            is_private=is_private,
            is_reply_to_bot=is_reply_to_bot,
            has_media=has_media,
            account_name=self.account_name,
            account_handle=self.account_handle,
            rng=self._rng,
        )
        for rule in self._rules:
            if rule.matches(ctx):
                logger.debug("Trigger rule matched: {}", rule.name)
                return TriggerDecision(reply=True, rule=rule.name)
        return TriggerDecision(reply=False)

    def should_reply(
        self,
        text: str,
        settings: ConversationSettings,
        persona: Persona,
        is_private: bool,
        is_reply_to_bot: bool,
        *,
        has_media: bool = False,
    ) -> bool:
        return self.evaluate(
            text, settings, persona, is_private, is_reply_to_bot, has_media=has_media
        ).reply

    def with_rules(self, rules: Sequence[TriggerRule]) -> TriggerEvaluator:
        """Return an evaluator sharing identity and RNG but using *rules*."""
        return TriggerEvaluator(
            account_name=self.account_name,
            account_handle=self.account_handle,
            rng=self._rng,
            rules=rules,
        )
