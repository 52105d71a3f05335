"""Rule-based transaction categorization.

Public API:
    - :func:`categorize_transaction` (pure, one row)
    - :func:`categorize_transactions` (pure, many rows, order preserved)
    - :func:`category_summary` (totals for a categorized sequence)

Confidence values are fixed per outcome so that UI trust indicators stay
stable for a given rule set:

=============================  ==========
outcome                        confidence
=============================  ==========
transfer rule                  0.85
expense rule                   0.80
income rule                    0.75
no rule, non-zero amount       0.50
zero amount                    0.30
=============================  ==========
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from .models import (
    CategorizationResult,
    CategorizedTransaction,
    NormalizedTransaction,
    TransactionType,
)
from .rules import DEFAULT_RULE_SET, RuleSet

FALLBACK_EXPENSE_CATEGORY = "Miscellaneous"

_CONF_TRANSFER = 0.85
_CONF_EXPENSE_RULE = 0.8
_CONF_INCOME_RULE = 0.75
_CONF_FALLBACK = 0.5
_CONF_UNKNOWN = 0.3


def _provisional_type(amount: Decimal) -> TransactionType:
    if amount < 0:
        return "expense"
    if amount > 0:
        return "income"
    return "unknown"


def categorize_transaction(
    transaction: NormalizedTransaction, rules: RuleSet = DEFAULT_RULE_SET
) -> CategorizationResult:
    """Classify one row as expense/income/transfer/unknown.

    Rules are tried in order. A transfer rule wins regardless of the amount's
    sign; an expense or income rule only applies when it agrees with the
    sign-derived type, otherwise evaluation moves on to the next rule.
    """

    description = transaction.description.lower()
    base = _provisional_type(transaction.amount)

    for rule in rules:
        if not rule.matches(description):
            continue
        if rule.type == "transfer":
            return CategorizationResult("transfer", "", _CONF_TRANSFER)
        if rule.type == "expense" and base == "expense":
            return CategorizationResult("expense", rule.category, _CONF_EXPENSE_RULE)
        if rule.type == "income" and base == "income":
            return CategorizationResult("income", "", _CONF_INCOME_RULE)

    if base == "expense":
        return CategorizationResult("expense", FALLBACK_EXPENSE_CATEGORY, _CONF_FALLBACK)
    if base == "income":
        return CategorizationResult("income", "", _CONF_FALLBACK)
    return CategorizationResult("unknown", "", _CONF_UNKNOWN)


def categorize_transactions(
    transactions: Iterable[NormalizedTransaction], rules: RuleSet = DEFAULT_RULE_SET
) -> list[CategorizedTransaction]:
    out: list[CategorizedTransaction] = []
    for tx in transactions:
        result = categorize_transaction(tx, rules)
        out.append(
            CategorizedTransaction(
                transaction=tx,
                type=result.type,
                category=result.category or None,
                confidence=result.confidence,
            )
        )
    return out


def category_summary(transactions: Iterable[CategorizedTransaction]) -> dict[str, Any]:
    """Aggregate counts and absolute totals by type and expense category."""

    summary: dict[str, Any] = {
        "total_expenses": Decimal("0"),
        "total_income": Decimal("0"),
        "by_category": {},
        "expense_count": 0,
        "income_count": 0,
        "transfer_count": 0,
        "unknown_count": 0,
    }
    by_category: dict[str, dict[str, Any]] = summary["by_category"]

    for tx in transactions:
        magnitude = abs(tx.amount)
        if tx.type == "expense":
            summary["expense_count"] += 1
            summary["total_expenses"] += magnitude
            if tx.category:
                bucket = by_category.setdefault(
                    tx.category, {"count": 0, "total": Decimal("0")}
                )
                bucket["count"] += 1
                bucket["total"] += magnitude
        elif tx.type == "income":
            summary["income_count"] += 1
            summary["total_income"] += magnitude
        elif tx.type == "transfer":
            summary["transfer_count"] += 1
        else:
            summary["unknown_count"] += 1

    return summary


__all__ = [
    "FALLBACK_EXPENSE_CATEGORY",
    "categorize_transaction",
    "categorize_transactions",
    "category_summary",
]
