"""Sequential, confirmation-gated batch submission.

Batches are written strictly one after another: the next batch is only sent
once the previous write is confirmed, so later batches always observe the
effects of earlier ones. A failed batch stops the run. Nothing is rolled back
and nothing is retried; the caller re-runs reconciliation from fresh ledger
state to pick up whatever is left.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from salesettle.domain.errors import (
    BatchWriteError,
    SubmissionCancelledError,
    WriteOutcomeUnknownError,
    WriteRejectedError,
)

if TYPE_CHECKING:
    from salesettle.domain.ports import WriteReceipt

log = getLogger(__name__)


def create_batches[T](items: Sequence[T], batch_size: int) -> list[list[T]]:
    """Split ``items`` into contiguous batches of at most ``batch_size``, keeping order."""

    if batch_size <= 0:
        raise ValueError("Batch size must be a positive integer")
    return [list(items[start : start + batch_size]) for start in range(0, len(items), batch_size)]


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchOperation[T]:
    """How to estimate and apply one batch of ``T``.

    ``write`` is ``None`` in dry-run mode; ``estimate`` is ``None`` when no
    signer is available to estimate with.
    """

    name: str
    describe: Callable[[T], object]
    estimate: Callable[[Sequence[T]], int] | None = None
    write: Callable[[Sequence[T]], WriteReceipt] | None = None

    @property
    def dry_run(self) -> bool:
        return self.write is None


@dataclass(frozen=True, slots=True)
class SubmissionPlan:
    operation: str
    item_count: int
    batch_count: int
    first_batch_gas_estimate: int | None = None


type ConfirmSubmission = Callable[[SubmissionPlan], bool]


@dataclass(frozen=True, slots=True)
class BatchResult:
    index: int
    size: int
    gas_estimate: int | None = None
    receipt: WriteReceipt | None = None

    @property
    def submitted(self) -> bool:
        return self.receipt is not None


@dataclass(frozen=True, slots=True)
class SubmissionReport:
    operation: str
    batch_count: int
    dry_run: bool
    results: tuple[BatchResult, ...] = ()

    @property
    def total_gas_estimate(self) -> int:
        return sum(result.gas_estimate or 0 for result in self.results)

    @property
    def submitted_batches(self) -> int:
        return sum(1 for result in self.results if result.submitted)


def submit_batches[T](
    items: Sequence[T],
    operation: BatchOperation[T],
    *,
    batch_size: int,
    confirm: ConfirmSubmission | None = None,
) -> SubmissionReport:
    """Estimate and (unless dry-running) write ``items`` batch by batch.

    ``items`` must already be in a reproducible order; batch boundaries follow
    it exactly. ``confirm`` is asked once, before the first write.
    """

    batches = create_batches(items, batch_size)
    results: list[BatchResult] = []

    for index, batch in enumerate(batches):
        log.info(
            "Processing %s batch %s/%s with %s item(s)...",
            operation.name,
            index + 1,
            len(batches),
            len(batch),
        )

        gas_estimate: int | None = None
        if operation.estimate is not None:
            gas_estimate = _guarded(
                partial(operation.estimate, batch),
                operation=operation,
                index=index,
                batches=batches,
            )
            log.info("  Gas estimate: %s", gas_estimate)

        if operation.write is None:
            log.info("  Dry run mode, skipping transaction submission")
            results.append(BatchResult(index=index, size=len(batch), gas_estimate=gas_estimate))
            continue

        if index == 0 and confirm is not None:
            plan = SubmissionPlan(
                operation=operation.name,
                item_count=len(items),
                batch_count=len(batches),
                first_batch_gas_estimate=gas_estimate,
            )
            if not confirm(plan):
                raise SubmissionCancelledError(f"{operation.name} submission cancelled by operator")

        receipt = _guarded(
            partial(operation.write, batch),
            operation=operation,
            index=index,
            batches=batches,
        )
        if not receipt.succeeded:
            raise BatchWriteError(
                operation=operation.name,
                batch_index=index,
                batch_count=len(batches),
                keys=[operation.describe(item) for item in batch],
                reason="transaction reverted",
                tx_hash=receipt.tx_hash,
                block_number=receipt.block_number,
            )
        log.info("  Confirmed in block %s (tx %s)", receipt.block_number, receipt.tx_hash)
        results.append(
            BatchResult(index=index, size=len(batch), gas_estimate=gas_estimate, receipt=receipt)
        )

    return SubmissionReport(
        operation=operation.name,
        batch_count=len(batches),
        dry_run=operation.dry_run,
        results=tuple(results),
    )


def _guarded[T, R](
    call: Callable[[], R],
    *,
    operation: BatchOperation[T],
    index: int,
    batches: Sequence[Sequence[T]],
) -> R:
    try:
        return call()
    except (WriteRejectedError, WriteOutcomeUnknownError) as exc:
        raise BatchWriteError(
            operation=operation.name,
            batch_index=index,
            batch_count=len(batches),
            keys=[operation.describe(item) for item in batches[index]],
            reason=str(exc),
        ) from exc
