"""Auction bid data CSV export."""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING

from .commitments import format_flag

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import TextIO

    from salesettle.domain.model import BidRecord

BIDS_HEADER = (
    "SALE_SPECIFIC_ENTITY_ID",
    "BID_ID",
    "COMMITTER",
    "TIMESTAMP",
    "PRICE",
    "AMOUNT",
    "REFUNDED",
    "EXTRA_DATA",
)


def bid_row(bid: BidRecord) -> list[str]:
    return [
        bid.entity_id,
        bid.bid_id,
        bid.committer,
        str(bid.timestamp),
        str(bid.price),
        str(bid.amount),
        format_flag(bid.refunded),
        "0x" + bid.extra_data.hex(),
    ]


def write_bids_csv(bids: Iterable[BidRecord], output: TextIO) -> int:
    """Write the header and one row per bid; return the number of rows written."""

    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(BIDS_HEADER)
    count = 0
    for bid in bids:
        writer.writerow(bid_row(bid))
        count += 1
    return count
