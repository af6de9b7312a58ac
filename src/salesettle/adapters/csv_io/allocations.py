"""Desired allocations CSV reader.

Expected columns: ``SALE_SPECIFIC_ENTITY_ID,WALLET,TOKEN,ACCEPTED_AMOUNT``. The
header row is optional and is matched case-insensitively against the first
non-blank row; blank lines are skipped. Rows are returned unvalidated so every
problem can be reported in one pass.
"""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING

from salesettle.domain.reconciliation import RawAllocation

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

ALLOCATIONS_HEADER = ("SALE_SPECIFIC_ENTITY_ID", "WALLET", "TOKEN", "ACCEPTED_AMOUNT")


def is_header_row(fields: Sequence[str]) -> bool:
    if len(fields) != len(ALLOCATIONS_HEADER):
        return False
    return all(
        field.strip().upper() == expected
        for field, expected in zip(fields, ALLOCATIONS_HEADER, strict=True)
    )


def parse_allocation_rows(lines: Iterable[str]) -> list[RawAllocation]:
    rows: list[RawAllocation] = []
    reader = csv.reader(lines)
    first_row = True
    for fields in reader:
        line_number = reader.line_num
        if not any(field.strip() for field in fields):
            continue
        if first_row:
            first_row = False
            if is_header_row(fields):
                continue

        padded = [field.strip() for field in fields]
        padded += [""] * (len(ALLOCATIONS_HEADER) - len(padded))
        entity_id, wallet, token, accepted_amount = padded[: len(ALLOCATIONS_HEADER)]
        rows.append(
            RawAllocation(
                entity_id=entity_id,
                wallet=wallet,
                token=token,
                accepted_amount=accepted_amount,
                line=line_number,
                extra=tuple(padded[len(ALLOCATIONS_HEADER) :]),
            )
        )
    return rows


def read_allocations_csv(path: Path) -> list[RawAllocation]:
    with path.open(newline="", encoding="utf-8") as handle:
        return parse_allocation_rows(handle)
