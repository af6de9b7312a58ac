from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from salesettle.app import LedgerConnection
from salesettle.config import LedgerConfig, SignerConfig  # noqa: TC001
from salesettle.config.ledger import PRIVATE_KEY_ENV, RPC_URL_ENV, SALE_ADDRESS_ENV
from salesettle.domain.model import AllocationKey
from salesettle.domain.settlement import SubmissionPlan
from salesettle.ui import cli
from tests.support.ledger import (
    TOKEN_USDC,
    WALLET_A,
    FakeLedger,
    entity,
    make_bid,
    make_record,
)

if TYPE_CHECKING:
    from pathlib import Path

SALE_ADDRESS = "0x" + "9" * 40

type Connections = list[tuple[LedgerConfig, SignerConfig | None]]


@pytest.fixture
def connections() -> Connections:
    return []


@pytest.fixture
def ledger(monkeypatch: pytest.MonkeyPatch, connections: Connections) -> FakeLedger:
    fake = FakeLedger(
        records=[make_record(entity(1)), make_record(entity(2))],
        bids=[make_bid(1), make_bid(2), make_bid(3)],
    )

    def fake_connect(config: LedgerConfig, signer: SignerConfig | None) -> LedgerConnection:
        connections.append((config, signer))
        return LedgerConnection(
            reader=fake, writer=fake if signer is not None else None, bids=fake
        )

    monkeypatch.setattr(cli, "connect_ledger", fake_connect)
    monkeypatch.setenv(RPC_URL_ENV, "http://node.test/rpc")
    monkeypatch.setenv(SALE_ADDRESS_ENV, SALE_ADDRESS)
    monkeypatch.delenv(PRIVATE_KEY_ENV, raising=False)
    return fake


@pytest.fixture
def allocations_csv(tmp_path: Path) -> Path:
    path = tmp_path / "allocations.csv"
    path.write_text(
        "SALE_SPECIFIC_ENTITY_ID,WALLET,TOKEN,ACCEPTED_AMOUNT\n"
        f"{entity(1)},{WALLET_A},{TOKEN_USDC},100\n"
        f"{entity(2)},{WALLET_A},{TOKEN_USDC},250\n",
        encoding="utf-8",
    )
    return path


def test_set_allocations_defaults_to_dry_run(
    ledger: FakeLedger, allocations_csv: Path, connections: Connections
) -> None:
    cli.main(["set-allocations", "--allocations-csv", str(allocations_csv)])

    assert ledger.writes == []
    ((config, signer),) = connections
    assert config.sale_address == SALE_ADDRESS
    assert signer is None


def test_set_allocations_live_run(
    ledger: FakeLedger, allocations_csv: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(PRIVATE_KEY_ENV, "0x" + "11" * 32)

    cli.main(
        [
            "set-allocations",
            "--allocations-csv",
            str(allocations_csv),
            "--no-dry-run",
            "--yes",
            "--batch-size",
            "1",
        ]
    )

    assert ledger.writes == [("setAllocations", 1), ("setAllocations", 1)]
    assert ledger.accepted()[AllocationKey(entity(2), WALLET_A, TOKEN_USDC)] == 250


def test_declined_prompt_submits_nothing(
    ledger: FakeLedger, allocations_csv: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(PRIVATE_KEY_ENV, "0x" + "11" * 32)
    monkeypatch.setattr("builtins.input", lambda _: "n")

    cli.main(["set-allocations", "--allocations-csv", str(allocations_csv), "--no-dry-run"])

    assert ledger.writes == []


def test_live_run_without_private_key_is_a_configuration_error(
    ledger: FakeLedger, allocations_csv: Path, connections: Connections
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["set-allocations", "--allocations-csv", str(allocations_csv), "--no-dry-run"])

    assert excinfo.value.code == 2
    assert connections == []


def test_missing_rpc_url_is_a_configuration_error(
    ledger: FakeLedger, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv(RPC_URL_ENV)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["process-refunds"])

    assert excinfo.value.code == 2


def test_invalid_sale_address_is_a_configuration_error(ledger: FakeLedger) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["process-refunds", "--sale-address", "0xnope"])

    assert excinfo.value.code == 2


def test_missing_required_argument_exits_with_usage_error(ledger: FakeLedger) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["set-allocations"])

    assert excinfo.value.code == 2


def test_validation_failure_exits_with_error(ledger: FakeLedger, tmp_path: Path) -> None:
    path = tmp_path / "allocations.csv"
    path.write_text(f"{entity(9)},{WALLET_A},{TOKEN_USDC},1\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["set-allocations", "--allocations-csv", str(path)])

    assert excinfo.value.code == 1


def test_finalize_settlement_passes_expected_total(
    ledger: FakeLedger, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(PRIVATE_KEY_ENV, "0x" + "11" * 32)
    ledger.records = [make_record(entity(1), accepted=700)]

    cli.main(
        ["finalize-settlement", "--expected-total-accepted", "700", "--no-dry-run", "--yes"]
    )

    assert ledger.finalized_with == 700


def test_commitment_data_csv_writes_file(ledger: FakeLedger, tmp_path: Path) -> None:
    output = tmp_path / "commitments.csv"

    cli.main(["commitment-data-csv", "--output-csv", str(output)])

    lines = output.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[0].startswith("SALE_SPECIFIC_ENTITY_ID,WALLET,TOKEN")


def test_bid_data_csv_writes_file(
    ledger: FakeLedger, tmp_path: Path, connections: Connections
) -> None:
    output = tmp_path / "bids.csv"

    cli.main(["bid-data-csv", "--output-csv", str(output)])

    lines = output.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 4
    assert lines[0].startswith("SALE_SPECIFIC_ENTITY_ID,BID_ID,COMMITTER")
    assert lines[1].startswith(f"{entity(1)},")
    ((_, signer),) = connections
    assert signer is None


def test_bid_data_csv_defaults_to_stdout(
    ledger: FakeLedger, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["bid-data-csv"])

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 4
    assert lines[3].startswith(f"{entity(3)},")


def test_prompt_treats_end_of_input_as_decline(monkeypatch: pytest.MonkeyPatch) -> None:
    def closed_stdin(_: str) -> str:
        raise EOFError

    monkeypatch.setattr("builtins.input", closed_stdin)
    plan = SubmissionPlan(operation="processRefunds", item_count=3, batch_count=1)

    assert cli._prompt_confirmation(plan) is False  # noqa: SLF001  # type: ignore[reportPrivateUsage]
