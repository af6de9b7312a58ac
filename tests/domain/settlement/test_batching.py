from __future__ import annotations

from collections.abc import Sequence  # noqa: TC003

import pytest

from salesettle.domain.errors import (
    BatchWriteError,
    SubmissionCancelledError,
    WriteOutcomeUnknownError,
    WriteRejectedError,
)
from salesettle.domain.ports import WriteReceipt
from salesettle.domain.settlement import (
    BatchOperation,
    SubmissionPlan,
    create_batches,
    submit_batches,
)


class _RecordingLedger:
    def __init__(self, *, fail_at: int | None = None, raise_at: int | None = None) -> None:
        self.fail_at = fail_at
        self.raise_at = raise_at
        self.written: list[list[int]] = []
        self.estimated: list[list[int]] = []

    def estimate(self, batch: Sequence[int]) -> int:
        self.estimated.append(list(batch))
        return 1_000 * len(batch)

    def write(self, batch: Sequence[int]) -> WriteReceipt:
        index = len(self.written)
        if index == self.raise_at:
            raise WriteRejectedError("execution reverted: overwrite not allowed")
        self.written.append(list(batch))
        return WriteReceipt(
            tx_hash=f"0x{index:02x}",
            block_number=10 + index,
            succeeded=index != self.fail_at,
        )

    def operation(self, *, dry_run: bool = False) -> BatchOperation[int]:
        return BatchOperation(
            name="setAllocations",
            describe=str,
            estimate=self.estimate,
            write=None if dry_run else self.write,
        )


def test_create_batches_keeps_order_and_sizes() -> None:
    items = list(range(1203))

    batches = create_batches(items, 500)

    assert [len(batch) for batch in batches] == [500, 500, 203]
    assert [item for batch in batches for item in batch] == items


def test_create_batches_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError, match="positive"):
        create_batches([1, 2, 3], 0)


def test_create_batches_of_nothing_is_empty() -> None:
    assert create_batches([], 10) == []


def test_batches_are_written_in_order() -> None:
    ledger = _RecordingLedger()

    report = submit_batches(list(range(5)), ledger.operation(), batch_size=2)

    assert ledger.written == [[0, 1], [2, 3], [4]]
    assert report.batch_count == 3
    assert report.submitted_batches == 3
    assert report.total_gas_estimate == 5_000
    assert not report.dry_run


def test_dry_run_estimates_without_writing() -> None:
    ledger = _RecordingLedger()
    confirmations: list[SubmissionPlan] = []

    def confirm(plan: SubmissionPlan) -> bool:
        confirmations.append(plan)
        return True

    report = submit_batches(
        list(range(5)), ledger.operation(dry_run=True), batch_size=2, confirm=confirm
    )

    assert ledger.written == []
    assert ledger.estimated == [[0, 1], [2, 3], [4]]
    assert confirmations == []
    assert report.dry_run
    assert report.submitted_batches == 0
    assert report.total_gas_estimate == 5_000


def test_confirmation_is_asked_once_before_first_write() -> None:
    ledger = _RecordingLedger()
    plans: list[SubmissionPlan] = []

    def confirm(plan: SubmissionPlan) -> bool:
        plans.append(plan)
        assert ledger.written == []
        return True

    submit_batches(list(range(3)), ledger.operation(), batch_size=2, confirm=confirm)

    assert plans == [
        SubmissionPlan(
            operation="setAllocations",
            item_count=3,
            batch_count=2,
            first_batch_gas_estimate=2_000,
        )
    ]


def test_declined_confirmation_writes_nothing() -> None:
    ledger = _RecordingLedger()

    with pytest.raises(SubmissionCancelledError):
        submit_batches(list(range(3)), ledger.operation(), batch_size=2, confirm=lambda _: False)

    assert ledger.written == []


def test_failed_receipt_stops_remaining_batches() -> None:
    ledger = _RecordingLedger(fail_at=1)

    with pytest.raises(BatchWriteError) as excinfo:
        submit_batches(list(range(6)), ledger.operation(), batch_size=2)

    error = excinfo.value
    assert ledger.written == [[0, 1], [2, 3]]
    assert error.batch_index == 1
    assert error.batch_count == 3
    assert error.keys == ("2", "3")
    assert error.tx_hash == "0x01"
    assert error.block_number == 11
    assert "batch 2/3" in str(error)


def test_rejected_write_becomes_batch_error() -> None:
    ledger = _RecordingLedger(raise_at=0)

    with pytest.raises(BatchWriteError) as excinfo:
        submit_batches(list(range(4)), ledger.operation(), batch_size=2)

    assert excinfo.value.batch_index == 0
    assert "overwrite not allowed" in excinfo.value.reason
    assert isinstance(excinfo.value.__cause__, WriteRejectedError)


def test_unknown_outcome_is_fatal() -> None:
    def write(_: Sequence[int]) -> WriteReceipt:
        raise WriteOutcomeUnknownError("receipt never arrived")

    operation = BatchOperation(name="processRefunds", describe=str, write=write)

    with pytest.raises(BatchWriteError) as excinfo:
        submit_batches([1, 2, 3], operation, batch_size=2)

    assert excinfo.value.operation == "processRefunds"
    assert excinfo.value.keys == ("1", "2")
