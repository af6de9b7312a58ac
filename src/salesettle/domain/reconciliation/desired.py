"""Desired-state loading: operator input to a normalized allocation table."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from salesettle.domain.errors import SettlementValidationError, ValidationIssue
from salesettle.domain.model import (
    UINT256_MAX,
    AllocationKey,
    DesiredAllocation,
    ValidationKind,
    normalize_address,
    normalize_entity_id,
)

from .totals import calculate_total_by_token

# ASCII decimal integers only: no digit separators, no other scripts
_DIGITS = re.compile(r"[+-]?[0-9]+")

if TYPE_CHECKING:
    from collections.abc import Iterable

    from salesettle.domain.model import Amount, TokenAmounts


@dataclass(frozen=True, slots=True, kw_only=True)
class RawAllocation:
    """One unvalidated desired-allocation row as supplied by the operator."""

    entity_id: str
    wallet: str
    token: str
    accepted_amount: str | int
    line: int | None = None
    extra: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DesiredState(Mapping[AllocationKey, DesiredAllocation]):
    """Validated desired allocations keyed by ``(entity, wallet, token)``."""

    allocations: Mapping[AllocationKey, DesiredAllocation] = field(
        default_factory=dict[AllocationKey, DesiredAllocation]
    )

    @classmethod
    def from_allocations(cls, allocations: Iterable[DesiredAllocation]) -> DesiredState:
        """Build a state from already-typed allocations, rejecting duplicate keys."""

        table: dict[AllocationKey, DesiredAllocation] = {}
        issues: list[ValidationIssue] = []
        for allocation in allocations:
            if allocation.key in table:
                issues.append(_duplicate_issue(allocation.key, line=None))
                continue
            table[allocation.key] = allocation
        if issues:
            raise SettlementValidationError(issues)
        return cls(table)

    def __getitem__(self, key: AllocationKey) -> DesiredAllocation:
        return self.allocations[key]

    def __iter__(self) -> Iterator[AllocationKey]:
        return iter(self.allocations)

    def __len__(self) -> int:
        return len(self.allocations)

    def total_by_token(self) -> TokenAmounts:
        return calculate_total_by_token(self.allocations.values())


def load_desired_state(
    rows: Iterable[RawAllocation],
    *,
    allow_explicit_zero: bool = False,
) -> DesiredState:
    """Normalize ``rows`` into a :class:`DesiredState`.

    Every row is checked before anything is raised: malformed identifiers,
    negative or oversized amounts, zero amounts (unless ``allow_explicit_zero``)
    and duplicate keys are all reported together in one
    :class:`SettlementValidationError`. Removal of an existing allocation is
    normally expressed by leaving the key out; with ``allow_explicit_zero`` an
    explicit zero row means the same thing.
    """

    table: dict[AllocationKey, DesiredAllocation] = {}
    issues: list[ValidationIssue] = []

    for row in rows:
        allocation = _parse_row(row, issues)
        if allocation is None:
            continue
        if allocation.accepted_amount == 0 and not allow_explicit_zero:
            issues.append(
                ValidationIssue(
                    ValidationKind.ZERO_ALLOCATION,
                    "Allocation has 0 accepted amount",
                    _details(allocation.key, line=row.line),
                )
            )
        if allocation.key in table:
            issues.append(_duplicate_issue(allocation.key, line=row.line))
            continue
        table[allocation.key] = allocation

    if issues:
        raise SettlementValidationError(issues)
    return DesiredState(table)


def _parse_row(row: RawAllocation, issues: list[ValidationIssue]) -> DesiredAllocation | None:
    location: dict[str, object] = {"line": row.line} if row.line is not None else {}
    if row.extra:
        issues.append(
            ValidationIssue(
                ValidationKind.MALFORMED_ROW,
                "Row has unexpected extra fields",
                {**location, "extra": list(row.extra)},
            )
        )
        return None

    try:
        entity_id = normalize_entity_id(row.entity_id)
        wallet = normalize_address(row.wallet)
        token = normalize_address(row.token)
    except ValueError as exc:
        issues.append(ValidationIssue(ValidationKind.MALFORMED_IDENTIFIER, str(exc), location))
        return None

    key = AllocationKey(entity_id, wallet, token)
    amount = _parse_amount(row.accepted_amount, key=key, line=row.line, issues=issues)
    if amount is None:
        return None
    return DesiredAllocation(
        entity_id=entity_id, wallet=wallet, token=token, accepted_amount=amount
    )


def _parse_amount(
    value: str | int,
    *,
    key: AllocationKey,
    line: int | None,
    issues: list[ValidationIssue],
) -> Amount | None:
    if isinstance(value, int):
        amount = value
    else:
        text = value.strip()
        if _DIGITS.fullmatch(text) is None:
            issues.append(
                ValidationIssue(
                    ValidationKind.MALFORMED_ROW,
                    f'Accepted amount "{value}" is not an integer in smallest token units',
                    _details(key, line=line),
                )
            )
            return None
        amount = int(text)

    if amount < 0:
        issues.append(
            ValidationIssue(
                ValidationKind.NEGATIVE_AMOUNT,
                "Accepted amount must be non-negative",
                {**_details(key, line=line), "acceptedAmount": str(amount)},
            )
        )
        return None
    if amount > UINT256_MAX:
        issues.append(
            ValidationIssue(
                ValidationKind.AMOUNT_OVERFLOW,
                "Accepted amount does not fit in uint256",
                {**_details(key, line=line), "acceptedAmount": str(amount)},
            )
        )
        return None
    return amount


def _duplicate_issue(key: AllocationKey, *, line: int | None) -> ValidationIssue:
    return ValidationIssue(
        ValidationKind.DUPLICATE_ALLOCATION,
        "Duplicate allocation in desired state",
        _details(key, line=line),
    )


def _details(key: AllocationKey, *, line: int | None) -> dict[str, object]:
    details: dict[str, object] = {
        "saleSpecificEntityID": key.entity_id,
        "wallet": key.wallet,
        "token": key.token,
    }
    if line is not None:
        details["line"] = line
    return details
