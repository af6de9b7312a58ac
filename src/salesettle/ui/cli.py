from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from salesettle.adapters.csv_io import read_allocations_csv
from salesettle.app import (
    connect_ledger,
    export_bid_data,
    export_commitment_data,
    finalize_settlement,
    process_refunds,
    set_allocations,
)
from salesettle.config import (
    ConfigurationError,
    configure_logging,
    get_ledger_config,
    get_settlement_config,
    get_signer_config,
    try_get_signer_config,
)
from salesettle.domain.errors import SubmissionCancelledError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType
    from typing import TextIO

    from salesettle.app import LedgerConnection
    from salesettle.config import LedgerConfig, SettlementConfig
    from salesettle.domain.settlement import ConfirmSubmission, SubmissionPlan

log = logging.getLogger(__name__)

EXPORT_COMMANDS = frozenset({"commitment-data-csv", "bid-data-csv"})


def _add_ledger_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rpc-url",
        type=str,
        help="JSON-RPC endpoint (defaults to SETTLEMENT_RPC_URL)",
    )
    parser.add_argument(
        "--sale-address",
        type=str,
        help="Address of the sale contract (defaults to SETTLEMENT_SALE_ADDRESS)",
    )


def _add_export_arguments(parser: argparse.ArgumentParser) -> None:
    _add_ledger_arguments(parser)
    parser.add_argument(
        "--output-csv",
        type=Path,
        help="Path to write CSV output (defaults to stdout)",
    )


def _add_write_arguments(parser: argparse.ArgumentParser) -> None:
    _add_ledger_arguments(parser)
    parser.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Validate and estimate without submitting transactions (default: on)",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Submit without asking for confirmation",
    )
    parser.add_argument(
        "--payment-token-decimals",
        type=int,
        default=None,
        help="Decimals used to display amounts (defaults to 6)",
    )
    parser.add_argument(
        "--max-priority-fee-per-gas",
        type=int,
        default=None,
        help="Max priority fee per gas in wei (defaults to the node's suggestion)",
    )


def _add_batch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of items per transaction (defaults to 200)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Settle a token sale against its ledger")
    subparsers = parser.add_subparsers(dest="command", required=True)

    allocations = subparsers.add_parser(
        "set-allocations",
        help="Set accepted amounts on the ledger from a CSV file",
    )
    allocations.add_argument(
        "--allocations-csv",
        type=Path,
        required=True,
        help="CSV with SALE_SPECIFIC_ENTITY_ID,WALLET,TOKEN,ACCEPTED_AMOUNT rows",
    )
    allocations.add_argument(
        "--allow-overwrites",
        action="store_true",
        help="Allow replacing accepted amounts that are already set",
    )
    allocations.add_argument(
        "--allow-explicit-zero",
        action="store_true",
        help="Accept rows with a zero amount as removals",
    )
    _add_write_arguments(allocations)
    _add_batch_arguments(allocations)

    refunds = subparsers.add_parser(
        "process-refunds",
        help="Refund the unaccepted part of every commitment",
    )
    _add_write_arguments(refunds)
    _add_batch_arguments(refunds)

    finalize = subparsers.add_parser(
        "finalize-settlement",
        help="Finalize settlement once the accepted total is as expected",
    )
    finalize.add_argument(
        "--expected-total-accepted",
        type=int,
        required=True,
        help="Expected total accepted amount over all tokens, in smallest units",
    )
    _add_write_arguments(finalize)

    commitments = subparsers.add_parser(
        "commitment-data-csv",
        help="Export commitment data to CSV",
    )
    _add_export_arguments(commitments)

    bids = subparsers.add_parser(
        "bid-data-csv",
        help="Export auction bid data to CSV",
    )
    _add_export_arguments(bids)

    return parser.parse_args(list(argv))


def _ledger_config(args: argparse.Namespace) -> LedgerConfig:
    return get_ledger_config(
        rpc_url=args.rpc_url,
        sale_address=args.sale_address,
        max_priority_fee_per_gas=getattr(args, "max_priority_fee_per_gas", None),
    )


def _settlement_config(args: argparse.Namespace) -> SettlementConfig:
    return get_settlement_config(
        batch_size=getattr(args, "batch_size", None),
        payment_token_decimals=args.payment_token_decimals,
        allow_overwrites=getattr(args, "allow_overwrites", False),
        dry_run=args.dry_run,
    )


def _prompt_confirmation(plan: SubmissionPlan) -> bool:
    estimate = (
        f", first batch gas estimate {plan.first_batch_gas_estimate}"
        if plan.first_batch_gas_estimate is not None
        else ""
    )
    prompt = (
        f"Submit {plan.item_count} {plan.operation} item(s) in "
        f"{plan.batch_count} transaction(s){estimate}? [y/N] "
    )
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _confirmation(args: argparse.Namespace) -> ConfirmSubmission | None:
    return None if args.yes else _prompt_confirmation


def _connect(args: argparse.Namespace) -> tuple[LedgerConnection, SettlementConfig | None]:
    ledger_config = _ledger_config(args)
    if args.command in EXPORT_COMMANDS:
        return connect_ledger(ledger_config, None), None

    settings = _settlement_config(args)
    signer = try_get_signer_config() if settings.dry_run else get_signer_config()
    return connect_ledger(ledger_config, signer), settings


def _write_export(args: argparse.Namespace, ledger: LedgerConnection, output: TextIO) -> int:
    if args.command == "bid-data-csv":
        if ledger.bids is None:
            raise ValueError("The ledger connection cannot read auction bids")
        return export_bid_data(reader=ledger.bids, output=output)
    return export_commitment_data(reader=ledger.reader, output=output)


def _export(args: argparse.Namespace, ledger: LedgerConnection) -> None:
    if args.output_csv is None:
        _write_export(args, ledger, sys.stdout)
        return
    with args.output_csv.open("w", newline="", encoding="utf-8") as handle:
        count = _write_export(args, ledger, handle)
    log.info(f"Wrote {count} rows to {args.output_csv}")


def _run_command(
    args: argparse.Namespace,
    ledger: LedgerConnection,
    settings: SettlementConfig | None,
) -> None:
    if settings is None:
        _export(args, ledger)
        return

    confirm = _confirmation(args)
    if settings.dry_run:
        log.info("=== DRY RUN MODE === No transactions will be submitted")

    if args.command == "set-allocations":
        rows = read_allocations_csv(args.allocations_csv)
        log.info(f"Read {len(rows)} row(s) from {args.allocations_csv}")
        set_allocations(
            rows,
            ledger=ledger,
            settings=settings,
            confirm=confirm,
            allow_explicit_zero=args.allow_explicit_zero,
        )
    elif args.command == "process-refunds":
        process_refunds(ledger=ledger, settings=settings, confirm=confirm)
    elif args.command == "finalize-settlement":
        finalize_settlement(
            args.expected_total_accepted,
            ledger=ledger,
            settings=settings,
            confirm=confirm,
        )
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        ledger, settings = _connect(parsed_args)
    except (ConfigurationError, ValueError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        _run_command(parsed_args, ledger, settings)
    except SubmissionCancelledError as exc:
        log.info(str(exc))
    except Exception:
        log.exception("Fatal error during settlement")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
