"""Domain model for sale settlement."""

from __future__ import annotations

from .allocations import AllocationKey, AllocationUpdate, DesiredAllocation
from .bids import BidRecord
from .commitments import (
    CommitmentRecord,
    LedgerState,
    LedgerTotals,
    TokenAmounts,
    group_by_entity,
)
from .enums import SaleStage, ValidationKind
from .primitives import (
    ENTITY_ID_BYTES,
    UINT256_MAX,
    Address,
    Amount,
    EntityID,
    entity_id_from_bytes,
    entity_id_to_bytes,
    format_amount,
    normalize_address,
    normalize_entity_id,
)

__all__ = [
    "ENTITY_ID_BYTES",
    "UINT256_MAX",
    "Address",
    "AllocationKey",
    "AllocationUpdate",
    "Amount",
    "BidRecord",
    "CommitmentRecord",
    "DesiredAllocation",
    "EntityID",
    "LedgerState",
    "LedgerTotals",
    "SaleStage",
    "TokenAmounts",
    "ValidationKind",
    "entity_id_from_bytes",
    "entity_id_to_bytes",
    "format_amount",
    "group_by_entity",
    "normalize_address",
    "normalize_entity_id",
]
