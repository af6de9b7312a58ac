"""Allocation keys, desired allocations and the updates derived from them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .primitives import Address, Amount, EntityID


@dataclass(frozen=True, slots=True, order=True)
class AllocationKey:
    """Identity of one commitment line: (entity, wallet, token)."""

    entity_id: EntityID
    wallet: Address
    token: Address

    def __str__(self) -> str:
        return f"{self.entity_id}:{self.wallet}:{self.token}"


@dataclass(frozen=True, slots=True, kw_only=True)
class DesiredAllocation:
    """Operator decision for one key; zero is an explicit removal signal."""

    entity_id: EntityID
    wallet: Address
    token: Address
    accepted_amount: Amount

    def __post_init__(self) -> None:
        if self.accepted_amount < 0:
            raise ValueError("Accepted amount must be non-negative")

    @property
    def key(self) -> AllocationKey:
        return AllocationKey(self.entity_id, self.wallet, self.token)


@dataclass(frozen=True, slots=True, kw_only=True)
class AllocationUpdate:
    """One ``(entity, wallet, token, acceptedAmount)`` write targeting the ledger."""

    entity_id: EntityID
    wallet: Address
    token: Address
    accepted_amount: Amount

    @classmethod
    def for_key(cls, key: AllocationKey, accepted_amount: Amount) -> AllocationUpdate:
        return cls(
            entity_id=key.entity_id,
            wallet=key.wallet,
            token=key.token,
            accepted_amount=accepted_amount,
        )

    @property
    def key(self) -> AllocationKey:
        return AllocationKey(self.entity_id, self.wallet, self.token)
