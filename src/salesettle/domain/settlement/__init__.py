"""Settlement writes: refund derivation and ordered batch submission."""

from __future__ import annotations

from .batching import (
    BatchOperation,
    BatchResult,
    ConfirmSubmission,
    SubmissionPlan,
    SubmissionReport,
    create_batches,
    submit_batches,
)
from .operations import (
    FINALIZE_SETTLEMENT,
    PROCESS_REFUNDS,
    SET_ALLOCATIONS,
    allocation_operation,
    finalize_operation,
    refund_operation,
)
from .refunds import (
    RefundObligation,
    check_refund_consistency,
    compute_refunds,
    refund_total_by_token,
)

__all__ = [
    "FINALIZE_SETTLEMENT",
    "PROCESS_REFUNDS",
    "SET_ALLOCATIONS",
    "BatchOperation",
    "BatchResult",
    "ConfirmSubmission",
    "RefundObligation",
    "SubmissionPlan",
    "SubmissionReport",
    "allocation_operation",
    "check_refund_consistency",
    "compute_refunds",
    "create_batches",
    "finalize_operation",
    "refund_operation",
    "refund_total_by_token",
    "submit_batches",
]
