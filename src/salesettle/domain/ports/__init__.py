"""Domain port definitions for adapters."""

from __future__ import annotations

from .ledger import AuctionBidReader, SettlementLedgerReader, SettlementLedgerWriter, WriteReceipt

__all__ = [
    "AuctionBidReader",
    "SettlementLedgerReader",
    "SettlementLedgerWriter",
    "WriteReceipt",
]
