"""Settlement run defaults."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BATCH_SIZE = 200
DEFAULT_PAYMENT_TOKEN_DECIMALS = 6


@dataclass(frozen=True, slots=True)
class SettlementConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    payment_token_decimals: int = DEFAULT_PAYMENT_TOKEN_DECIMALS
    allow_overwrites: bool = False
    dry_run: bool = True

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("Batch size must be a positive integer")
        if self.payment_token_decimals < 0:
            raise ValueError("Payment token decimals must be non-negative")


def get_settlement_config(
    *,
    batch_size: int | None = None,
    payment_token_decimals: int | None = None,
    allow_overwrites: bool = False,
    dry_run: bool = True,
) -> SettlementConfig:
    return SettlementConfig(
        batch_size=batch_size if batch_size is not None else DEFAULT_BATCH_SIZE,
        payment_token_decimals=(
            payment_token_decimals
            if payment_token_decimals is not None
            else DEFAULT_PAYMENT_TOKEN_DECIMALS
        ),
        allow_overwrites=allow_overwrites,
        dry_run=dry_run,
    )
