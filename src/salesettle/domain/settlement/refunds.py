"""Refund obligations derived from ledger records.

An entity is owed ``committed - accepted`` summed over its wallet/token lines,
unless it is already marked refunded. Before anything is written the per-record
view is cross-checked against the ledger's independently maintained counters:
if ``committed - accepted - refunded`` per token disagrees with the sum of the
obligations, the two views have diverged (typically a concurrent write) and the
run must stop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from salesettle.domain.errors import (
    PreconditionError,
    RefundTotalsMismatchError,
    TokenTotalsMismatch,
)
from salesettle.domain.model import group_by_entity

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from salesettle.domain.model import (
        Address,
        Amount,
        CommitmentRecord,
        EntityID,
        LedgerTotals,
        TokenAmounts,
    )


@dataclass(frozen=True, slots=True)
class RefundObligation:
    entity_id: EntityID
    refund_by_token: Mapping[Address, Amount] = field(default_factory=dict[str, int])

    @property
    def total_refund(self) -> Amount:
        return sum(self.refund_by_token.values())


def compute_refunds(records: Iterable[CommitmentRecord]) -> list[RefundObligation]:
    """Return the refund owed to each unrefunded entity with a positive residual.

    The result is sorted by entity ID so refund batches are reproducible.
    """

    obligations: list[RefundObligation] = []
    negative: list[str] = []

    for entity_id, entity_records in sorted(group_by_entity(records).items()):
        if any(record.refunded for record in entity_records):
            continue

        by_token: TokenAmounts = {}
        for record in entity_records:
            if record.residual < 0:
                negative.append(str(record.key))
                continue
            by_token[record.token] = by_token.get(record.token, 0) + record.residual

        obligation = RefundObligation(entity_id=entity_id, refund_by_token=by_token)
        if obligation.total_refund > 0:
            obligations.append(obligation)

    if negative:
        listed = ", ".join(negative)
        raise PreconditionError(f"Accepted amount exceeds committed amount for: {listed}")

    return obligations


def refund_total_by_token(obligations: Iterable[RefundObligation]) -> TokenAmounts:
    totals: TokenAmounts = {}
    for obligation in obligations:
        for token, amount in obligation.refund_by_token.items():
            totals[token] = totals.get(token, 0) + amount
    return totals


def check_refund_consistency(
    obligations: Sequence[RefundObligation],
    totals: LedgerTotals,
) -> None:
    """Raise :class:`RefundTotalsMismatchError` unless both views agree per token."""

    from_records = refund_total_by_token(obligations)
    from_counters = totals.outstanding_refund_by_token()

    mismatches = [
        TokenTotalsMismatch(
            token=token,
            from_records=from_records.get(token, 0),
            from_counters=from_counters.get(token, 0),
        )
        for token in sorted({*from_records, *from_counters})
        if from_records.get(token, 0) != from_counters.get(token, 0)
    ]
    if mismatches:
        raise RefundTotalsMismatchError(mismatches)
