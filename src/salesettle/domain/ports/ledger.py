"""Ports for the sale ledger collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from salesettle.domain.model import (
        AllocationUpdate,
        Amount,
        BidRecord,
        EntityID,
        LedgerState,
        LedgerTotals,
        SaleStage,
    )


@dataclass(frozen=True, slots=True)
class WriteReceipt:
    """Confirmation of a write that has been included in a block."""

    tx_hash: str
    block_number: int
    succeeded: bool
    gas_used: int | None = None


@runtime_checkable
class SettlementLedgerReader(Protocol):
    """Read side of the ledger. Every call reflects fresh ledger state."""

    def read_state(self) -> LedgerState:
        """Return all commitment records plus the aggregate counters, or raise."""
        ...

    def read_totals(self) -> LedgerTotals: ...

    def read_stage(self) -> SaleStage: ...


@runtime_checkable
class AuctionBidReader(Protocol):
    """Read side of the auction bid book kept alongside the sale ledger."""

    def read_bids(self) -> list[BidRecord]: ...


@runtime_checkable
class SettlementLedgerWriter(Protocol):
    """Write side of the ledger. Each write blocks until it is confirmed."""

    def estimate_set_allocations(
        self, updates: Sequence[AllocationUpdate], *, allow_overwrite: bool
    ) -> int: ...

    def set_allocations(
        self, updates: Sequence[AllocationUpdate], *, allow_overwrite: bool
    ) -> WriteReceipt: ...

    def estimate_process_refunds(self, entity_ids: Sequence[EntityID]) -> int: ...

    def process_refunds(self, entity_ids: Sequence[EntityID]) -> WriteReceipt: ...

    def estimate_finalize_settlement(self, expected_total_accepted: Amount) -> int: ...

    def finalize_settlement(self, expected_total_accepted: Amount) -> WriteReceipt: ...
