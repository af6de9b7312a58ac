"""Reconciliation core: desired allocations versus ledger state.

Flow for one run:
1) load and normalize the operator's desired allocations (no ledger access)
2) read fresh ledger state
3) cross-validate the desired set against the ledger records
4) diff into the minimal update set
"""

from __future__ import annotations

from .desired import DesiredState, RawAllocation, load_desired_state
from .engine import ReconciliationOutcome, reconcile
from .totals import calculate_total_by_token
from .validation import ensure_valid_against_ledger, validate_against_ledger

__all__ = [
    "DesiredState",
    "RawAllocation",
    "ReconciliationOutcome",
    "calculate_total_by_token",
    "ensure_valid_against_ledger",
    "load_desired_state",
    "reconcile",
    "validate_against_ledger",
]
