"""Reusable fakes and factories for settlement tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from salesettle.domain.errors import WriteRejectedError
from salesettle.domain.model import (
    AllocationKey,
    BidRecord,
    CommitmentRecord,
    DesiredAllocation,
    LedgerState,
    LedgerTotals,
    SaleStage,
)
from salesettle.domain.ports import WriteReceipt
from salesettle.domain.reconciliation import RawAllocation

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from salesettle.domain.model import AllocationUpdate, Amount, EntityID, TokenAmounts

# digit-only addresses are already in checksum form
WALLET_A = "0x" + "1" * 40
WALLET_B = "0x" + "2" * 40
WALLET_C = "0x" + "3" * 40
TOKEN_USDC = "0x" + "5" * 40
TOKEN_USDT = "0x" + "6" * 40


def entity(number: int) -> EntityID:
    return "0x" + f"{number:032x}"


def make_record(
    entity_id: EntityID,
    *,
    wallet: str = WALLET_A,
    token: str = TOKEN_USDC,
    committed: Amount = 1_000,
    accepted: Amount = 0,
    refunded: bool = False,
) -> CommitmentRecord:
    return CommitmentRecord(
        entity_id=entity_id,
        wallet=wallet,
        token=token,
        committed_amount=committed,
        accepted_amount=accepted,
        refunded=refunded,
    )


def make_desired(
    entity_id: EntityID,
    amount: Amount,
    *,
    wallet: str = WALLET_A,
    token: str = TOKEN_USDC,
) -> DesiredAllocation:
    return DesiredAllocation(
        entity_id=entity_id, wallet=wallet, token=token, accepted_amount=amount
    )


def make_raw(
    entity_id: str,
    amount: str | int,
    *,
    wallet: str = WALLET_A,
    token: str = TOKEN_USDC,
    line: int | None = None,
) -> RawAllocation:
    return RawAllocation(
        entity_id=entity_id,
        wallet=wallet,
        token=token,
        accepted_amount=amount,
        line=line,
    )


def desired_map(*allocations: DesiredAllocation) -> dict[AllocationKey, DesiredAllocation]:
    return {allocation.key: allocation for allocation in allocations}


def totals_for(
    records: Iterable[CommitmentRecord],
    refunded: TokenAmounts | None = None,
) -> LedgerTotals:
    """Aggregate counters consistent with ``records``."""

    committed: TokenAmounts = {}
    accepted: TokenAmounts = {}
    refunded_totals: TokenAmounts = dict(refunded or {})
    for record in records:
        committed[record.token] = committed.get(record.token, 0) + record.committed_amount
        accepted[record.token] = accepted.get(record.token, 0) + record.accepted_amount
        if record.refunded:
            refunded_totals[record.token] = (
                refunded_totals.get(record.token, 0) + record.residual
            )
    return LedgerTotals(committed=committed, accepted=accepted, refunded=refunded_totals)


@dataclass
class FakeLedger:
    """In-memory ledger that applies writes to its records like the real contract would."""

    records: list[CommitmentRecord] = field(default_factory=list[CommitmentRecord])
    bids: list[BidRecord] = field(default_factory=list[BidRecord])
    stage: SaleStage = SaleStage.SETTLEMENT
    gas_per_item: int = 21_000
    fail_write_at: int | None = None
    finalized_with: Amount | None = None
    writes: list[tuple[str, int]] = field(default_factory=list[tuple[str, int]])
    estimates: list[tuple[str, int]] = field(default_factory=list[tuple[str, int]])
    read_count: int = 0
    _block: int = 100

    def read_state(self) -> LedgerState:
        self.read_count += 1
        return LedgerState(records=tuple(self.records), totals=self.read_totals())

    def read_totals(self) -> LedgerTotals:
        return totals_for(self.records)

    def read_stage(self) -> SaleStage:
        return self.stage

    def read_bids(self) -> list[BidRecord]:
        return list(self.bids)

    def estimate_set_allocations(
        self, updates: Sequence[AllocationUpdate], *, allow_overwrite: bool
    ) -> int:
        self.estimates.append(("setAllocations", len(updates)))
        if not allow_overwrite and self._overwrites(updates):
            raise WriteRejectedError("execution reverted: allocation already set")
        return self.gas_per_item * len(updates)

    def set_allocations(
        self, updates: Sequence[AllocationUpdate], *, allow_overwrite: bool
    ) -> WriteReceipt:
        rejected = not allow_overwrite and self._overwrites(updates)
        receipt = self._receipt("setAllocations", len(updates), reverts=rejected)
        if not receipt.succeeded:
            return receipt
        by_key = {update.key: update.accepted_amount for update in updates}
        self.records = [
            replace(record, accepted_amount=by_key[record.key]) if record.key in by_key else record
            for record in self.records
        ]
        return receipt

    def estimate_process_refunds(self, entity_ids: Sequence[EntityID]) -> int:
        self.estimates.append(("processRefunds", len(entity_ids)))
        return self.gas_per_item * len(entity_ids)

    def process_refunds(self, entity_ids: Sequence[EntityID]) -> WriteReceipt:
        receipt = self._receipt("processRefunds", len(entity_ids))
        if not receipt.succeeded:
            return receipt
        selected = set(entity_ids)
        self.records = [
            replace(record, refunded=True) if record.entity_id in selected else record
            for record in self.records
        ]
        return receipt

    def estimate_finalize_settlement(self, expected_total_accepted: Amount) -> int:
        self.estimates.append(("finalizeSettlement", 1))
        return self.gas_per_item

    def finalize_settlement(self, expected_total_accepted: Amount) -> WriteReceipt:
        receipt = self._receipt("finalizeSettlement", 1)
        if receipt.succeeded:
            self.finalized_with = expected_total_accepted
            self.stage = SaleStage.DONE
        return receipt

    def accepted(self) -> dict[AllocationKey, Amount]:
        return {record.key: record.accepted_amount for record in self.records}

    def _overwrites(self, updates: Sequence[AllocationUpdate]) -> bool:
        current = self.accepted()
        return any(
            current.get(update.key, 0) not in (0, update.accepted_amount) for update in updates
        )

    def _receipt(self, operation: str, size: int, *, reverts: bool = False) -> WriteReceipt:
        index = len(self.writes)
        self.writes.append((operation, size))
        self._block += 1
        return WriteReceipt(
            tx_hash="0x" + f"{index:064x}",
            block_number=self._block,
            succeeded=not reverts and index != self.fail_write_at,
        )


def make_bid(
    number: int,
    *,
    committer: str = WALLET_A,
    amount: Amount = 1_000,
    refunded: bool = False,
) -> BidRecord:
    return BidRecord(
        entity_id=entity(number),
        bid_id="0x" + f"{number:064x}",
        committer=committer,
        timestamp=1_700_000_000 + number,
        price=5,
        amount=amount,
        refunded=refunded,
    )
