"""Ledger (sale contract) connection configuration."""

from __future__ import annotations

from dataclasses import dataclass, field

from eth_utils import is_address, to_checksum_address

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy

RPC_URL_ENV = "SETTLEMENT_RPC_URL"
SALE_ADDRESS_ENV = "SETTLEMENT_SALE_ADDRESS"
PRIVATE_KEY_ENV = "PRIVATE_KEY"

MAX_PAGE_SIZE = 2000
DEFAULT_RECEIPT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_RECEIPT_TIMEOUT_SECONDS = 600.0


def _read_resilience(rpc_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="ledger-read",
        base_url=rpc_url,
        timeout_seconds=60.0,
        retry=RetryPolicy(total=4),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
    )


def _write_resilience(rpc_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="ledger-write",
        base_url=rpc_url,
        timeout_seconds=60.0,
        retry=NO_RETRY,
    )


def parse_address(value: str) -> str:
    """Return ``value`` as a checksummed address or raise ``ConfigurationError``."""

    candidate = value.strip()
    if not is_address(candidate):
        raise ConfigurationError(
            f'Invalid address "{value}". Expected 0x followed by 40 hexadecimal characters.'
        )
    return to_checksum_address(candidate)


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """Where the sale ledger lives and how to talk to it."""

    rpc_url: str
    sale_address: str
    page_size: int = MAX_PAGE_SIZE
    receipt_poll_interval_seconds: float = DEFAULT_RECEIPT_POLL_INTERVAL_SECONDS
    receipt_timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT_SECONDS
    max_priority_fee_per_gas: int | None = None
    reads: ResilienceConfig = field(init=False)
    writes: ResilienceConfig = field(init=False)

    def __post_init__(self) -> None:
        if not 0 < self.page_size <= MAX_PAGE_SIZE:
            raise ConfigurationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")
        object.__setattr__(self, "reads", _read_resilience(self.rpc_url))
        object.__setattr__(self, "writes", _write_resilience(self.rpc_url))


@dataclass(frozen=True, slots=True)
class SignerConfig:
    private_key: str = field(repr=False)


def get_ledger_config(
    *,
    rpc_url: str | None = None,
    sale_address: str | None = None,
    max_priority_fee_per_gas: int | None = None,
) -> LedgerConfig:
    """Build the ledger config, preferring explicit values over the environment."""

    missing = [
        name
        for name, given in ((RPC_URL_ENV, rpc_url), (SALE_ADDRESS_ENV, sale_address))
        if given is None
    ]
    values = require_env_vars(missing) if missing else {}
    resolved_url = rpc_url or values[RPC_URL_ENV]
    resolved_address = sale_address or values[SALE_ADDRESS_ENV]

    return LedgerConfig(
        rpc_url=resolved_url,
        sale_address=parse_address(resolved_address),
        max_priority_fee_per_gas=max_priority_fee_per_gas,
    )


def try_get_signer_config() -> SignerConfig | None:
    """Return the signer config if a private key is configured."""

    private_key = optional_env_var(PRIVATE_KEY_ENV)
    if private_key is None:
        return None
    return SignerConfig(private_key=private_key)


def get_signer_config() -> SignerConfig:
    signer = try_get_signer_config()
    if signer is None:
        raise MissingConfigurationError(f"Missing configuration for: {PRIVATE_KEY_ENV}")
    return signer
