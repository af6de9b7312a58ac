"""Public interface for the Ethereum sale-ledger adapter."""

from __future__ import annotations

from .errors import LedgerRpcError, LedgerWriteRejectedError, ReceiptTimeoutError
from .reader import EntityAllocation, EthereumLedgerReader, page_ranges
from .rpc import JsonRpcClient
from .writer import EthereumLedgerWriter

__all__ = [
    "EntityAllocation",
    "EthereumLedgerReader",
    "EthereumLedgerWriter",
    "JsonRpcClient",
    "LedgerRpcError",
    "LedgerWriteRejectedError",
    "ReceiptTimeoutError",
    "page_ranges",
]
