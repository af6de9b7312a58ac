"""Auction bids as recorded by the ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .primitives import Address, Amount, EntityID


@dataclass(frozen=True, slots=True, kw_only=True)
class BidRecord:
    """One auction bid; ``price`` and ``timestamp`` are raw ledger integers."""

    entity_id: EntityID
    bid_id: str
    committer: Address
    timestamp: int
    price: int
    amount: Amount
    refunded: bool = False
    extra_data: bytes = b""
