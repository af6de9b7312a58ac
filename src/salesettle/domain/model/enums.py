"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class SaleStage(IntEnum):
    """Stages of the sale state machine, in the ledger's ``uint8`` encoding.

    The ledger owns every transition. This system only reads the stage to
    guard the settlement phases.
    """

    PRE_OPEN = 0
    OPEN = 1
    CLOSED = 2
    CANCELLATION = 3
    SETTLEMENT = 4
    DONE = 5


class ValidationKind(StrEnum):
    MALFORMED_ROW = "malformed_row"
    MALFORMED_IDENTIFIER = "malformed_identifier"
    NEGATIVE_AMOUNT = "negative_amount"
    AMOUNT_OVERFLOW = "amount_overflow"
    ZERO_ALLOCATION = "zero_allocation"
    DUPLICATE_ALLOCATION = "duplicate_allocation"
    DUPLICATE_COMMITMENT = "duplicate_commitment"
    ENTITY_NOT_FOUND = "entity_not_found"
    ENTITY_REFUNDED = "entity_refunded"
    NO_MATCHING_COMMITMENT = "no_matching_commitment"
    EXCEEDS_COMMITMENT = "exceeds_commitment"
