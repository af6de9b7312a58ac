"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy
from .ledger import (
    MAX_PAGE_SIZE,
    LedgerConfig,
    SignerConfig,
    get_ledger_config,
    get_signer_config,
    parse_address,
    try_get_signer_config,
)
from .logging import configure_logging
from .settlement import SettlementConfig, get_settlement_config

__all__ = [
    "MAX_PAGE_SIZE",
    "NO_RETRY",
    "ConfigurationError",
    "LedgerConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SettlementConfig",
    "SignerConfig",
    "configure_logging",
    "get_ledger_config",
    "get_settlement_config",
    "get_signer_config",
    "optional_env_var",
    "parse_address",
    "require_env_vars",
    "try_get_signer_config",
]
