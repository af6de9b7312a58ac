"""Cross-validation of desired allocations against ledger commitments."""

from __future__ import annotations

from typing import TYPE_CHECKING

from salesettle.domain.errors import SettlementValidationError, ValidationIssue
from salesettle.domain.model import AllocationKey, ValidationKind, group_by_entity

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from salesettle.domain.model import CommitmentRecord, DesiredAllocation, EntityID


def find_duplicate_commitments(records: Iterable[CommitmentRecord]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen: set[AllocationKey] = set()
    for record in records:
        if record.key in seen:
            issues.append(
                ValidationIssue(
                    ValidationKind.DUPLICATE_COMMITMENT,
                    "Duplicate commitment",
                    _key_details(record.key),
                )
            )
        seen.add(record.key)
    return issues


def find_unknown_or_refunded_entities(
    desired: Iterable[DesiredAllocation],
    records_by_entity: Mapping[EntityID, Sequence[CommitmentRecord]],
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for allocation in desired:
        records = records_by_entity.get(allocation.entity_id)
        if not records:
            issues.append(
                ValidationIssue(
                    ValidationKind.ENTITY_NOT_FOUND,
                    "Entity not found in commitment data",
                    {"saleSpecificEntityID": allocation.entity_id},
                )
            )
            continue
        if any(record.refunded for record in records):
            issues.append(
                ValidationIssue(
                    ValidationKind.ENTITY_REFUNDED,
                    "Entity has already been refunded",
                    {"saleSpecificEntityID": allocation.entity_id},
                )
            )
    return issues


def find_allocations_outside_commitments(
    desired: Iterable[DesiredAllocation],
    records_by_entity: Mapping[EntityID, Sequence[CommitmentRecord]],
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for allocation in desired:
        records = records_by_entity.get(allocation.entity_id)
        if not records:
            # reported as entity_not_found
            continue

        match = next((record for record in records if record.key == allocation.key), None)
        if match is None:
            issues.append(
                ValidationIssue(
                    ValidationKind.NO_MATCHING_COMMITMENT,
                    "No matching commitment found",
                    _key_details(allocation.key),
                )
            )
            continue

        if allocation.accepted_amount > match.committed_amount:
            issues.append(
                ValidationIssue(
                    ValidationKind.EXCEEDS_COMMITMENT,
                    "Allocation exceeds committed amount",
                    {
                        **_key_details(allocation.key),
                        "acceptedAmount": str(allocation.accepted_amount),
                        "committedAmount": str(match.committed_amount),
                    },
                )
            )
    return issues


def validate_against_ledger(
    desired: Iterable[DesiredAllocation],
    records: Sequence[CommitmentRecord],
) -> list[ValidationIssue]:
    """Return every issue found between the desired set and the ledger records."""

    allocations = list(desired)
    records_by_entity = group_by_entity(records)
    return [
        *find_duplicate_commitments(records),
        *find_unknown_or_refunded_entities(allocations, records_by_entity),
        *find_allocations_outside_commitments(allocations, records_by_entity),
    ]


def ensure_valid_against_ledger(
    desired: Iterable[DesiredAllocation],
    records: Sequence[CommitmentRecord],
) -> None:
    issues = validate_against_ledger(desired, records)
    if issues:
        raise SettlementValidationError(issues)


def _key_details(key: AllocationKey) -> dict[str, object]:
    return {"saleSpecificEntityID": key.entity_id, "wallet": key.wallet, "token": key.token}
