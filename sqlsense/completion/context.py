"""Cursor context classification.

Classification is keyword/regex based and runs on the raw text before the cursor.
The rules are not mutually exclusive, so :data:`CONTEXT_RULES` is an ordered
precedence table: the first matching rule wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from .models import Context

LOG = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE


@dataclass(frozen=True, slots=True)
class ContextRule:
    """Predicate/classifier pair: any pattern matches and the guard does not."""

    context: Context
    patterns: tuple[re.Pattern[str], ...]
    unless: re.Pattern[str] | None = None

    def matches(self, text: str) -> bool:
        if not any(pattern.search(text) for pattern in self.patterns):
            return False
        return self.unless is None or not self.unless.search(text)


def _rule(context: Context, *patterns: str, unless: str | None = None) -> ContextRule:
    return ContextRule(
        context=context,
        patterns=tuple(re.compile(pattern, _FLAGS) for pattern in patterns),
        unless=re.compile(unless, _FLAGS) if unless else None,
    )


CONTEXT_RULES: tuple[ContextRule, ...] = (
    _rule(Context.ON, r"\bON\s+[\w.`]*\Z", r"\bON\s+\S+\s*(=|<|>|!=)\s*\Z"),
    _rule(Context.SET, r"\bSET\s+[\w,\s=`'\"]*\Z"),
    _rule(
        Context.WHERE,
        r"\b(WHERE|AND|OR)\s+[\w.`]*\Z",
        r"\b(WHERE|AND|OR)\s+\S+\s*(=|<|>|!=|LIKE|IN|BETWEEN)\s*\Z",
    ),
    _rule(Context.GROUP_BY, r"\bGROUP\s+BY\s+[\w.,`\s]*\Z"),
    _rule(Context.ORDER_BY, r"\bORDER\s+BY\s+[\w.,`\s]*\Z"),
    _rule(Context.HAVING, r"\bHAVING\s+[\w.`]*\Z"),
    _rule(Context.FROM, r"\bFROM\s+[\w.,`\s]*\Z", unless=r"\bSELECT\b.*\bFROM\b.*\bWHERE\b"),
    _rule(
        Context.JOIN,
        r"\b(JOIN|INNER\s+JOIN|LEFT\s+JOIN|RIGHT\s+JOIN|OUTER\s+JOIN|CROSS\s+JOIN)\s+[\w.`]*\Z",
    ),
    _rule(Context.SELECT, r"\bSELECT\s+(DISTINCT\s+)?[\w.,`*\s()]*\Z", unless=r"\bFROM\b"),
    _rule(Context.INSERT, r"\bINSERT\s+INTO\s+"),
    _rule(Context.UPDATE, r"\bUPDATE\s+[\w.`]*\Z"),
    _rule(Context.VALUES, r"\bVALUES\s*\("),
)


def classify(before_cursor: str, rules: Sequence[ContextRule] = CONTEXT_RULES) -> Context:
    """Return the context of the cursor given the text that precedes it."""

    if not before_cursor:
        return Context.UNKNOWN
    try:
        for rule in rules:
            if rule.matches(before_cursor):
                return rule.context
    except Exception:  # pragma: no cover - classification must never raise
        LOG.exception("Context classification failed")
    return Context.UNKNOWN


__all__ = ["CONTEXT_RULES", "ContextRule", "classify"]
