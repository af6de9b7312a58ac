"""Errors raised by the ledger adapter."""

from __future__ import annotations

from salesettle.domain.errors import WriteOutcomeUnknownError, WriteRejectedError


class LedgerRpcError(RuntimeError):
    """Raised when the JSON-RPC endpoint returns an application-level error."""

    def __init__(self, message: str, *, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class LedgerWriteRejectedError(LedgerRpcError, WriteRejectedError):
    """A write, or the gas estimation for it, was reverted by the ledger."""


class ReceiptTimeoutError(WriteOutcomeUnknownError):
    """A submitted transaction was not confirmed within the configured timeout."""

    def __init__(self, tx_hash: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} was not confirmed within {timeout_seconds:g}s; "
            "its outcome is unknown"
        )
        self.tx_hash = tx_hash
