"""Commitment data CSV export."""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import TextIO

    from salesettle.domain.model import CommitmentRecord

COMMITMENTS_HEADER = (
    "SALE_SPECIFIC_ENTITY_ID",
    "WALLET",
    "TOKEN",
    "COMMITMENT_ID",
    "TIMESTAMP",
    "PRICE",
    "LOCKUP",
    "COMMITTED_AMOUNT",
    "ACCEPTED_AMOUNT",
    "REFUNDED",
    "EXTRA_DATA",
)


def format_flag(value: bool) -> str:
    return "true" if value else "false"


def commitment_row(record: CommitmentRecord) -> list[str]:
    return [
        record.entity_id,
        record.wallet,
        record.token,
        record.commitment_id,
        str(record.timestamp),
        str(record.price),
        format_flag(record.lockup),
        str(record.committed_amount),
        str(record.accepted_amount),
        format_flag(record.refunded),
        "0x" + record.extra_data.hex(),
    ]


def write_commitments_csv(records: Iterable[CommitmentRecord], output: TextIO) -> int:
    """Write the header and one row per record; return the number of rows written."""

    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(COMMITMENTS_HEADER)
    count = 0
    for record in records:
        writer.writerow(commitment_row(record))
        count += 1
    return count
