"""Reconciliation of desired allocations against ledger-observed state.

The ledger records are the enumeration domain: every non-refunded
``(entity, wallet, token)`` line the ledger knows is classified exactly once,
and a desired entry without a ledger line is never turned into a write.
A ledger line with a non-zero accepted amount and no desired entry is zeroed.

Running the engine again after its updates have been applied yields no
updates, which is what makes a failed batch run resumable by simply running
the whole pipeline again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from salesettle.domain.errors import SettlementValidationError, ValidationIssue
from salesettle.domain.model import AllocationUpdate, ValidationKind

from .totals import calculate_total_by_token

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from salesettle.domain.model import (
        AllocationKey,
        CommitmentRecord,
        DesiredAllocation,
        TokenAmounts,
    )

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconciliationOutcome:
    """Minimal update set plus the counters used for the operator summary.

    For every enumerated ledger key exactly one of ``num_correct_contract``,
    ``num_unset`` and ``num_overwritten`` is incremented. ``num_correct_csv``
    counts desired entries whose value the ledger already holds.
    """

    updates: tuple[AllocationUpdate, ...] = ()
    num_contract: int = 0
    num_correct_contract: int = 0
    num_correct_csv: int = 0
    num_unset: int = 0
    num_overwritten: int = 0
    num_refunded_skipped: int = 0
    num_desired: int = 0
    num_desired_without_commitment: int = 0
    desired_total_by_token: TokenAmounts = field(default_factory=dict[str, int])

    @property
    def is_noop(self) -> bool:
        return not self.updates

    def ordered_updates(self) -> list[AllocationUpdate]:
        """Updates sorted by key, so batch boundaries are identical across re-runs."""

        return sorted(self.updates, key=lambda update: update.key)


def reconcile(
    desired: Mapping[AllocationKey, DesiredAllocation],
    records: Iterable[CommitmentRecord],
) -> ReconciliationOutcome:
    """Diff ``desired`` against ``records`` and return the required updates."""

    updates: list[AllocationUpdate] = []
    violations: list[ValidationIssue] = []
    num_contract = correct_contract = correct_csv = unset = overwritten = refunded = 0
    seen_keys: set[AllocationKey] = set()

    for record in records:
        key = record.key
        seen_keys.add(key)
        if record.refunded:
            # allocation is final once the entity has been refunded
            refunded += 1
            continue

        num_contract += 1
        current = record.accepted_amount
        wanted = desired.get(key)

        if wanted is None:
            if current == 0:
                correct_contract += 1
            else:
                updates.append(AllocationUpdate.for_key(key, 0))
                overwritten += 1
            continue

        target = wanted.accepted_amount
        if target == current:
            correct_contract += 1
            correct_csv += 1
            continue

        if target > record.committed_amount:
            violations.append(
                ValidationIssue(
                    ValidationKind.EXCEEDS_COMMITMENT,
                    "Allocation exceeds committed amount",
                    {
                        "saleSpecificEntityID": key.entity_id,
                        "wallet": key.wallet,
                        "token": key.token,
                        "acceptedAmount": str(target),
                        "committedAmount": str(record.committed_amount),
                    },
                )
            )
            continue

        updates.append(AllocationUpdate.for_key(key, target))
        if current == 0:
            unset += 1
        else:
            overwritten += 1

    if violations:
        raise SettlementValidationError(violations)

    outside = sum(1 for key in desired if key not in seen_keys)
    if outside:
        log.debug("%s desired allocation(s) have no ledger commitment and are ignored", outside)

    return ReconciliationOutcome(
        updates=tuple(updates),
        num_contract=num_contract,
        num_correct_contract=correct_contract,
        num_correct_csv=correct_csv,
        num_unset=unset,
        num_overwritten=overwritten,
        num_refunded_skipped=refunded,
        num_desired=len(desired),
        num_desired_without_commitment=outside,
        desired_total_by_token=calculate_total_by_token(desired.values()),
    )
