"""Ledger-observed commitment state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .allocations import AllocationKey

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .primitives import Address, Amount, EntityID

type TokenAmounts = dict[Address, Amount]


@dataclass(frozen=True, slots=True, kw_only=True)
class CommitmentRecord:
    """One ``(entity, wallet, token)`` line as read from the ledger.

    Only ``accepted_amount`` and ``refunded`` ever change, and only through
    ledger writes. ``refunded`` is an entity-level flag repeated on each line.
    """

    entity_id: EntityID
    wallet: Address
    token: Address
    committed_amount: Amount
    accepted_amount: Amount = 0
    refunded: bool = False
    commitment_id: str = "0x" + "00" * 32
    timestamp: int = 0
    price: int = 0
    lockup: bool = False
    extra_data: bytes = b""

    @property
    def key(self) -> AllocationKey:
        return AllocationKey(self.entity_id, self.wallet, self.token)

    @property
    def residual(self) -> Amount:
        return self.committed_amount - self.accepted_amount


@dataclass(frozen=True, slots=True)
class LedgerTotals:
    """Per-token running counters as reported by the ledger itself."""

    committed: Mapping[Address, Amount] = field(default_factory=dict["Address", "Amount"])
    accepted: Mapping[Address, Amount] = field(default_factory=dict["Address", "Amount"])
    refunded: Mapping[Address, Amount] = field(default_factory=dict["Address", "Amount"])

    @property
    def tokens(self) -> tuple[Address, ...]:
        return tuple(sorted({*self.committed, *self.accepted, *self.refunded}))

    def outstanding_refund_by_token(self) -> TokenAmounts:
        """``committed - accepted - refunded`` for every token the ledger reports."""

        return {
            token: self.committed.get(token, 0)
            - self.accepted.get(token, 0)
            - self.refunded.get(token, 0)
            for token in self.tokens
        }

    def total_accepted(self) -> Amount:
        return sum(self.accepted.values())


@dataclass(frozen=True, slots=True)
class LedgerState:
    """Everything one settlement run reads from the ledger, taken together."""

    records: tuple[CommitmentRecord, ...]
    totals: LedgerTotals


def group_by_entity(records: Iterable[CommitmentRecord]) -> dict[EntityID, list[CommitmentRecord]]:
    grouped: dict[EntityID, list[CommitmentRecord]] = {}
    for record in records:
        grouped.setdefault(record.entity_id, []).append(record)
    return grouped
