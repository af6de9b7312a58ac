"""CSV input and output for operator files."""

from __future__ import annotations

from .allocations import (
    ALLOCATIONS_HEADER,
    is_header_row,
    parse_allocation_rows,
    read_allocations_csv,
)
from .bids import BIDS_HEADER, bid_row, write_bids_csv
from .commitments import COMMITMENTS_HEADER, commitment_row, write_commitments_csv

__all__ = [
    "ALLOCATIONS_HEADER",
    "BIDS_HEADER",
    "COMMITMENTS_HEADER",
    "bid_row",
    "commitment_row",
    "is_header_row",
    "parse_allocation_rows",
    "read_allocations_csv",
    "write_bids_csv",
    "write_commitments_csv",
]
