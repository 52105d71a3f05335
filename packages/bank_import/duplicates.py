"""Duplicate detection for incoming statement rows.

Public surface:
- ``is_duplicate``: compare one incoming row against existing records, in
  record order, first match wins.
- ``DuplicateIndex``: the same rule over a pre-indexed snapshot, for callers
  that check many rows against a large record set.

A row duplicates a record when either
1. both carry a bank reference id and the ids are equal, or
2. they fall on the same calendar date and their absolute amounts differ by
   less than ``AMOUNT_TOLERANCE`` (strict ``<``; 0.009 apart is a duplicate,
   0.011 apart is not).

Rule 2 can flag two genuinely distinct same-day, same-amount transactions.
That is the documented behavior, not something callers should work around.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from .models import ExistingRecord, NormalizedTransaction

AMOUNT_TOLERANCE = Decimal("0.01")


def _same_amount(a: Decimal, b: Decimal) -> bool:
    return abs(abs(a) - abs(b)) < AMOUNT_TOLERANCE


def matches_record(transaction: NormalizedTransaction, record: ExistingRecord) -> bool:
    ref = transaction.reference
    if ref and record.bank_transaction_id and ref == record.bank_transaction_id:
        return True
    return transaction.date == record.date and _same_amount(transaction.amount, record.amount)


def is_duplicate(
    transaction: NormalizedTransaction, existing: Iterable[ExistingRecord]
) -> bool:
    """Return True when ``transaction`` matches any of ``existing``."""

    return any(matches_record(transaction, rec) for rec in existing)


class DuplicateIndex:
    """Snapshot of existing records indexed by reference id and by date.

    Gives the same answers as :func:`is_duplicate` over the same records.
    The snapshot is not updated by :meth:`check`; call :meth:`add` to include
    records created after the index was built.
    """

    def __init__(self, records: Iterable[ExistingRecord] = ()) -> None:
        self._refs: set[str] = set()
        self._by_date: dict[date, list[Decimal]] = defaultdict(list)
        self._size = 0
        for rec in records:
            self.add(rec)

    def add(self, record: ExistingRecord) -> None:
        if record.bank_transaction_id:
            self._refs.add(record.bank_transaction_id)
        self._by_date[record.date].append(record.amount)
        self._size += 1

    def __len__(self) -> int:
        return self._size

    def check(self, transaction: NormalizedTransaction) -> bool:
        if transaction.reference and transaction.reference in self._refs:
            return True
        amounts = self._by_date.get(transaction.date)
        if not amounts:
            return False
        return any(_same_amount(transaction.amount, amt) for amt in amounts)


__all__ = [
    "AMOUNT_TOLERANCE",
    "DuplicateIndex",
    "is_duplicate",
    "matches_record",
]
