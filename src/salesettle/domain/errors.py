"""Settlement error taxonomy.

Validation and precondition errors carry every detected issue at once so an
operator can fix an input file in one pass. Write failures carry the batch
index and keys needed to resume by hand.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .model import Address, Amount, ValidationKind


class SettlementError(RuntimeError):
    """Base class for settlement failures."""


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    kind: ValidationKind
    message: str
    details: dict[str, object] = field(default_factory=dict[str, object])

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.kind}] {self.message}"
        return f"[{self.kind}] {self.message}: {json.dumps(self.details, default=str)}"


class SettlementValidationError(SettlementError):
    """Raised with the full list of input or cross-validation issues."""

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = "\n".join(f"  - {issue}" for issue in self.issues)
        super().__init__(f"Validation failed with {len(self.issues)} error(s):\n{lines}")


class PreconditionError(SettlementError):
    """Raised when ledger state does not allow the requested phase to run."""


@dataclass(frozen=True, slots=True)
class TokenTotalsMismatch:
    token: Address
    from_records: Amount
    from_counters: Amount

    def __str__(self) -> str:
        return (
            f"token {self.token}: per-record refund sum {self.from_records} "
            f"!= ledger counters {self.from_counters}"
        )


class RefundTotalsMismatchError(PreconditionError):
    """Per-record refunds disagree with the ledger's aggregate counters."""

    def __init__(self, mismatches: Sequence[TokenTotalsMismatch]) -> None:
        self.mismatches = tuple(mismatches)
        lines = "\n".join(f"  - {mismatch}" for mismatch in self.mismatches)
        super().__init__(
            "Refund totals derived from commitment records do not match the ledger "
            f"counters for {len(self.mismatches)} token(s):\n{lines}"
        )


class BatchWriteError(SettlementError):
    """A batch write failed; earlier confirmed batches remain applied."""

    def __init__(
        self,
        *,
        operation: str,
        batch_index: int,
        batch_count: int,
        keys: Sequence[object],
        reason: str,
        tx_hash: str | None = None,
        block_number: int | None = None,
    ) -> None:
        self.operation = operation
        self.batch_index = batch_index
        self.batch_count = batch_count
        self.keys = tuple(keys)
        self.reason = reason
        self.tx_hash = tx_hash
        self.block_number = block_number
        location = f" in block {block_number}" if block_number is not None else ""
        tx = f" Transaction hash: {tx_hash}." if tx_hash else ""
        super().__init__(
            f"{operation} batch {batch_index + 1}/{batch_count} failed{location}: "
            f"{reason}.{tx} Batches before it are applied; re-run to resume."
        )


class SubmissionCancelledError(SettlementError):
    """The operator declined to start a live submission."""


class WriteRejectedError(SettlementError):
    """The ledger refused a write (or its estimation) as a whole."""


class WriteOutcomeUnknownError(SettlementError):
    """A write was sent but its confirmation never arrived."""
