"""Priority-ordered categorization rules.

A :class:`RuleSet` is an immutable tuple of :class:`CategoryRule` evaluated
top to bottom against the lower-cased transaction description; the first
applicable rule wins. Order is part of the contract: transfer rules sit ahead
of every category rule so an internal transfer is never booked as an expense,
and reordering a rule set changes categorization results.

Patterns are plain ``re`` expressions compiled once at construction. Short
tokens use word boundaries (``\\bpos\\b``) so they do not fire inside longer
words such as "deposit".
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Literal

type RuleType = Literal["expense", "income", "transfer"]

_RULE_TYPES: frozenset[str] = frozenset({"expense", "income", "transfer"})


@dataclass(frozen=True, slots=True)
class CategoryRule:
    pattern: str
    type: RuleType
    category: str = ""
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.type not in _RULE_TYPES:
            raise ValueError(f"unsupported rule type: {self.type!r}")
        if self.type == "expense" and not self.category:
            raise ValueError(f"expense rule {self.pattern!r} needs a category")
        object.__setattr__(self, "regex", re.compile(self.pattern, re.IGNORECASE))

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Read-only, ordered collection of rules passed into the categorizer."""

    rules: tuple[CategoryRule, ...]
    name: str = "custom"

    @classmethod
    def from_rules(cls, rules: Iterable[CategoryRule], *, name: str = "custom") -> RuleSet:
        return cls(rules=tuple(rules), name=name)

    def __iter__(self) -> Iterator[CategoryRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def categories(self) -> tuple[str, ...]:
        """Distinct expense categories in first-seen order."""

        seen: dict[str, None] = {}
        for r in self.rules:
            if r.type == "expense":
                seen.setdefault(r.category, None)
        return tuple(seen)


# Transfers (internal movements; skipped on import)
_TRANSFER_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(r"transfer to own|self transfer|same name|own account", "transfer"),
    CategoryRule(r"inter[- ]?account|between accounts", "transfer"),
)

_EXPENSE_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(r"payroll|salary|wage|staff", "expense", "Professional Services"),
    CategoryRule(r"uber|bolt|taxi|transport|\bbus\b|\bcab\b", "expense", "Travel & Transport"),
    CategoryRule(r"electricity|power|nepa|ekedc|ikedc|aedc|phed", "expense", "Utilities"),
    CategoryRule(
        r"airtime|\bmtn\b|\bglo\b|airtel|9mobile|\bdata\b|internet|wifi",
        "expense",
        "Utilities",
    ),
    CategoryRule(r"\brent\b|lease|accommodation", "expense", "Rent & Facilities"),
    CategoryRule(r"software|subscription|saas|license|hosting", "expense", "Software & Tools"),
    CategoryRule(r"office|stationery|supplies|paper|printer", "expense", "Office Supplies"),
    CategoryRule(
        r"marketing|advert|promotion|campaign|\bads\b", "expense", "Marketing & Advertising"
    ),
    CategoryRule(
        r"training|course|seminar|workshop|conference", "expense", "Training & Development"
    ),
    CategoryRule(
        r"equipment|hardware|laptop|computer|phone|device", "expense", "Equipment & Hardware"
    ),
    CategoryRule(r"maintenance|repair|servicing|fixing", "expense", "Miscellaneous"),
    CategoryRule(r"fuel|petrol|diesel|gas station", "expense", "Travel & Transport"),
    CategoryRule(r"dstv|gotv|cable|netflix|spotify", "expense", "Software & Tools"),
    CategoryRule(r"insurance|\bhmo\b|health", "expense", "Professional Services"),
    CategoryRule(r"bank charge|\bvat\b|stamp duty|sms alert", "expense", "Miscellaneous"),
    CategoryRule(r"\bpos\b|atm withdrawal|cash withdrawal", "expense", "Miscellaneous"),
)

_INCOME_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(r"payment received|credit alert|inward", "income"),
    CategoryRule(r"transfer from|tfr from|\bfrm\b", "income"),
    CategoryRule(r"deposit|lodgement", "income"),
)

DEFAULT_RULE_SET: RuleSet = RuleSet(
    rules=_TRANSFER_RULES + _EXPENSE_RULES + _INCOME_RULES,
    name="default",
)


__all__ = ["CategoryRule", "DEFAULT_RULE_SET", "RuleSet", "RuleType"]
