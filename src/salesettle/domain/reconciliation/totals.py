"""Per-token aggregation helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from salesettle.domain.model import Address, Amount, TokenAmounts


class _TokenAmount(Protocol):
    @property
    def token(self) -> Address: ...

    @property
    def accepted_amount(self) -> Amount: ...


def calculate_total_by_token(allocations: Iterable[_TokenAmount]) -> TokenAmounts:
    """Sum accepted amounts per token."""

    totals: TokenAmounts = {}
    for allocation in allocations:
        totals[allocation.token] = totals.get(allocation.token, 0) + allocation.accepted_amount
    return totals
