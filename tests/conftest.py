from __future__ import annotations

import pytest

from salesettle.config.ledger import PRIVATE_KEY_ENV, RPC_URL_ENV, SALE_ADDRESS_ENV


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep an operator's shell configuration out of the tests."""

    for name in (RPC_URL_ENV, SALE_ADDRESS_ENV, PRIVATE_KEY_ENV):
        monkeypatch.delenv(name, raising=False)
