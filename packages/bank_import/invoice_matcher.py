"""Match income rows to open invoices, and auto-create invoices for the rest.

Public API:
    - :func:`score_candidate` / :func:`best_match` (pure scoring)
    - :class:`InvoiceMatcher` (store-backed lookup, mark-paid, auto-create)
    - :func:`generate_invoice_number`

Scoring (additive, per candidate):

- amount: exact (< 0.01 apart) +50, within 1% +40, within 5% +25; anything
  further apart discards the candidate outright
- invoice number appears in the description: +40, match type ``reference``
- client full name or company name appears: +30, match type ``customer``
  (``combined`` when the reference also matched); otherwise any client-name
  token longer than two characters appearing: +15
- issue date within 7 days of the transaction: +10, within 30 days: +5

A candidate needs 40 points to qualify. The highest score wins and ties keep
the store's query order. Confidence is ``min(score / 100, 0.99)``.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from .logging_setup import get_logger
from .models import (
    CreatedInvoice,
    InvoiceCandidate,
    InvoiceMatch,
    MatchType,
    NormalizedTransaction,
)
from .persistence import OPEN_INVOICE_STATUSES, LedgerStore, NewInvoice
from .vendors import DEFAULT_CUSTOMER_NAME, extract_customer_name

_logger = get_logger("bank_import.invoice_matcher")

LOOKBACK_DAYS = 60
LOOKAHEAD_DAYS = 7
MIN_SCORE = 40
MAX_CONFIDENCE = 0.99

_EXACT = Decimal("0.01")
_ONE_PCT = Decimal("1")
_FIVE_PCT = Decimal("5")


@dataclass(frozen=True, slots=True)
class CandidateScore:
    candidate: InvoiceCandidate
    score: int
    match_type: MatchType


def _amount_points(amount: Decimal, total: Decimal) -> int | None:
    diff = abs(total - amount)
    if diff < _EXACT:
        return 50
    pct = diff / total * 100
    if pct < _ONE_PCT:
        return 40
    if pct < _FIVE_PCT:
        return 25
    return None


def _date_points(tx_date: date, issue_date: date) -> int:
    days = abs((tx_date - issue_date).days)
    if days <= 7:
        return 10
    if days <= 30:
        return 5
    return 0


def score_candidate(
    transaction: NormalizedTransaction, candidate: InvoiceCandidate
) -> CandidateScore | None:
    """Score one invoice for one income row; ``None`` when the amount is off.

    The minimum-score threshold is applied by :func:`best_match`, not here.
    """

    if candidate.total <= 0:
        return None
    amount = abs(transaction.amount)
    points = _amount_points(amount, candidate.total)
    if points is None:
        return None

    score = points
    match_type: MatchType = "amount"
    description = transaction.description.lower()

    number = candidate.invoice_number.strip().lower()
    if number and number in description:
        score += 40
        match_type = "reference"

    client = (candidate.client_name or "").strip().lower()
    company = (candidate.company_name or "").strip().lower()
    if (client and client in description) or (company and company in description):
        score += 30
        match_type = "combined" if match_type == "reference" else "customer"
    elif client and any(len(part) > 2 and part in description for part in client.split()):
        score += 15

    score += _date_points(transaction.date, candidate.issue_date)
    return CandidateScore(candidate=candidate, score=score, match_type=match_type)


def best_match(
    transaction: NormalizedTransaction, candidates: Iterable[InvoiceCandidate]
) -> InvoiceMatch | None:
    """Pick the best qualifying candidate, or ``None``.

    Only positive amounts are matched. Ties keep the earlier candidate.
    """

    if transaction.amount <= 0:
        return None

    best: CandidateScore | None = None
    for cand in candidates:
        scored = score_candidate(transaction, cand)
        if scored is None or scored.score < MIN_SCORE:
            continue
        if best is None or scored.score > best.score:
            best = scored

    if best is None:
        return None
    return InvoiceMatch(
        invoice_id=best.candidate.id,
        invoice_number=best.candidate.invoice_number,
        confidence=min(best.score / 100, MAX_CONFIDENCE),
        match_type=best.match_type,
        score=best.score,
        client_name=best.candidate.client_name or best.candidate.company_name,
    )


_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out: list[str] = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


def generate_invoice_number(now_ms: int | None = None) -> str:
    """``INV-<base36 epoch millis>-<4 hex>``; the suffix keeps same-ms calls apart."""

    ms = int(time.time() * 1000) if now_ms is None else now_ms
    return f"INV-{_base36(ms)}-{uuid.uuid4().hex[:4].upper()}"


class InvoiceMatcher:
    """Ledger-backed matcher for one user's income rows.

    Store errors propagate to the caller; "no match" is a ``None`` result.
    """

    def __init__(self, ledger: LedgerStore, *, currency: str = "NGN") -> None:
        self._ledger = ledger
        self._currency = currency

    def find_match(self, transaction: NormalizedTransaction, user_id: str) -> InvoiceMatch | None:
        if transaction.amount <= 0:
            return None
        candidates = self._ledger.find_open_invoices(
            user_id,
            statuses=OPEN_INVOICE_STATUSES,
            issued_from=transaction.date - timedelta(days=LOOKBACK_DAYS),
            issued_to=transaction.date + timedelta(days=LOOKAHEAD_DAYS),
        )
        match = best_match(transaction, candidates)
        if match is None:
            _logger.debug(
                "no invoice match among %d candidates for %s %s",
                len(candidates),
                transaction.date,
                transaction.amount,
            )
        return match

    def mark_paid(
        self,
        match: InvoiceMatch,
        transaction: NormalizedTransaction,
        *,
        user_id: str,
        batch_id: str,
    ) -> str:
        """Mark the matched invoice paid; returns its previous status."""

        previous = self._ledger.mark_invoice_paid(
            user_id, match.invoice_id, batch_id=batch_id, transaction=transaction
        )
        _logger.info(
            "invoice %s marked paid (was %s, %s match, confidence %.2f, batch %s)",
            match.invoice_number,
            previous,
            match.match_type,
            match.confidence,
            batch_id,
        )
        return previous

    def create_invoice_from_transaction(
        self,
        transaction: NormalizedTransaction,
        *,
        user_id: str,
        batch_id: str,
    ) -> CreatedInvoice:
        """Record unmatched income as a new, already-paid invoice."""

        customer_name = extract_customer_name(transaction.description) or DEFAULT_CUSTOMER_NAME
        new_invoice = NewInvoice(
            invoice_number=generate_invoice_number(),
            customer_name=customer_name,
            title=f"Payment - {transaction.description[:50]}",
            notes=(
                "Auto-created from bank statement import.\n"
                f"Original description: {transaction.description}"
            ),
            currency=self._currency,
        )
        created = self._ledger.insert_invoice(
            user_id, new_invoice, batch_id=batch_id, transaction=transaction
        )
        _logger.info(
            "invoice %s auto-created for %s (customer %s%s, batch %s)",
            created.invoice_number,
            transaction.amount,
            created.customer_name,
            ", new" if created.customer_created else "",
            batch_id,
        )
        return created


__all__ = [
    "CandidateScore",
    "InvoiceMatcher",
    "LOOKAHEAD_DAYS",
    "LOOKBACK_DAYS",
    "MIN_SCORE",
    "best_match",
    "generate_invoice_number",
    "score_candidate",
]
