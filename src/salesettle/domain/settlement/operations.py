"""Batch operations bound to a ledger writer."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

from .batching import BatchOperation

if TYPE_CHECKING:
    from collections.abc import Sequence

    from salesettle.domain.model import AllocationUpdate, Amount, EntityID
    from salesettle.domain.ports import SettlementLedgerWriter, WriteReceipt

    from .refunds import RefundObligation

SET_ALLOCATIONS = "setAllocations"
PROCESS_REFUNDS = "processRefunds"
FINALIZE_SETTLEMENT = "finalizeSettlement"


def allocation_operation(
    writer: SettlementLedgerWriter,
    *,
    allow_overwrite: bool,
    dry_run: bool,
) -> BatchOperation[AllocationUpdate]:
    """Build the ``setAllocations`` operation; in dry-run mode it only estimates."""

    return BatchOperation(
        name=SET_ALLOCATIONS,
        describe=_describe_update,
        estimate=partial(writer.estimate_set_allocations, allow_overwrite=allow_overwrite),
        write=None if dry_run else partial(writer.set_allocations, allow_overwrite=allow_overwrite),
    )


def refund_operation(
    writer: SettlementLedgerWriter,
    *,
    dry_run: bool,
) -> BatchOperation[RefundObligation]:
    """Build the ``processRefunds`` operation over refund obligations."""

    def estimate(batch: Sequence[RefundObligation]) -> int:
        return writer.estimate_process_refunds(_entity_ids(batch))

    def write(batch: Sequence[RefundObligation]) -> WriteReceipt:
        return writer.process_refunds(_entity_ids(batch))

    return BatchOperation(
        name=PROCESS_REFUNDS,
        describe=_describe_refund,
        estimate=estimate,
        write=None if dry_run else write,
    )


def finalize_operation(
    writer: SettlementLedgerWriter,
    *,
    dry_run: bool,
) -> BatchOperation[Amount]:
    """Build the single-item ``finalizeSettlement`` operation."""

    def estimate(batch: Sequence[Amount]) -> int:
        (expected_total,) = batch
        return writer.estimate_finalize_settlement(expected_total)

    def write(batch: Sequence[Amount]) -> WriteReceipt:
        (expected_total,) = batch
        return writer.finalize_settlement(expected_total)

    return BatchOperation(
        name=FINALIZE_SETTLEMENT,
        describe=str,
        estimate=estimate,
        write=None if dry_run else write,
    )


def _entity_ids(batch: Sequence[RefundObligation]) -> list[EntityID]:
    return [obligation.entity_id for obligation in batch]


def _describe_update(update: AllocationUpdate) -> str:
    return str(update.key)


def _describe_refund(obligation: RefundObligation) -> str:
    return obligation.entity_id
