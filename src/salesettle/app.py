"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from salesettle.adapters.csv_io import write_bids_csv, write_commitments_csv
from salesettle.adapters.ledger import EthereumLedgerReader, EthereumLedgerWriter
from salesettle.config import SettlementConfig
from salesettle.domain.errors import PreconditionError
from salesettle.domain.model import SaleStage, format_amount
from salesettle.domain.reconciliation import (
    ensure_valid_against_ledger,
    load_desired_state,
    reconcile,
)
from salesettle.domain.settlement import (
    allocation_operation,
    check_refund_consistency,
    compute_refunds,
    finalize_operation,
    refund_operation,
    refund_total_by_token,
    submit_batches,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping
    from typing import TextIO

    from salesettle.config import LedgerConfig, SignerConfig
    from salesettle.domain.model import Address, Amount, TokenAmounts
    from salesettle.domain.ports import (
        AuctionBidReader,
        SettlementLedgerReader,
        SettlementLedgerWriter,
    )
    from salesettle.domain.reconciliation import RawAllocation, ReconciliationOutcome
    from salesettle.domain.settlement import ConfirmSubmission, SubmissionReport

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LedgerConnection:
    reader: SettlementLedgerReader
    writer: SettlementLedgerWriter | None = None
    bids: AuctionBidReader | None = None


def connect_ledger(config: LedgerConfig, signer: SignerConfig | None) -> LedgerConnection:
    """Build the JSON-RPC adapters; without a signer only the reader is available."""

    reader = EthereumLedgerReader(config)
    writer = EthereumLedgerWriter(config, signer) if signer is not None else None
    if writer is not None:
        log.info(f"Signing transactions as {writer.address}")
    return LedgerConnection(reader=reader, writer=writer, bids=reader)


@dataclass(frozen=True, slots=True)
class TokenTotalDifference:
    token: Address
    expected: Amount
    actual: Amount


@dataclass(frozen=True, slots=True)
class AllocationRunResult:
    outcome: ReconciliationOutcome
    report: SubmissionReport | None = None
    total_accepted_after: TokenAmounts | None = None
    differences: tuple[TokenTotalDifference, ...] = ()


@dataclass(frozen=True, slots=True)
class RefundRunResult:
    num_records: int
    refunded_entities: tuple[str, ...] = ()
    refund_by_token: TokenAmounts = field(default_factory=dict[str, int])
    report: SubmissionReport | None = None
    refunded_delta_by_token: TokenAmounts | None = None


@dataclass(frozen=True, slots=True)
class FinalizeRunResult:
    expected_total_accepted: Amount
    report: SubmissionReport


def set_allocations(
    rows: Iterable[RawAllocation],
    *,
    ledger: LedgerConnection,
    settings: SettlementConfig | None = None,
    confirm: ConfirmSubmission | None = None,
    allow_explicit_zero: bool = False,
) -> AllocationRunResult:
    """Bring the ledger's accepted amounts in line with ``rows``.

    Safe to re-run after a partial failure: the updates are recomputed from
    fresh ledger state, so already-applied batches drop out of the diff.
    """

    settings = settings or SettlementConfig()
    decimals = settings.payment_token_decimals

    desired = load_desired_state(rows, allow_explicit_zero=allow_explicit_zero)
    log.info(f"Read {len(desired)} allocation(s) with a total by token of:")
    _log_amounts(desired.total_by_token(), decimals)

    _require_stage(ledger.reader, {SaleStage.SETTLEMENT}, operation="setAllocations")
    state = ledger.reader.read_state()
    ensure_valid_against_ledger(desired.values(), state.records)
    outcome = reconcile(desired, state.records)
    updates = outcome.ordered_updates()

    log.info("=== SUMMARY ===")
    log.info("Total committed by token on the ledger (including refunds):")
    _log_amounts(state.totals.committed, decimals)
    log.info("Total accepted by token on the ledger:")
    _log_amounts(state.totals.accepted, decimals)
    log.info(f"Allocations in input: {outcome.num_desired}")
    log.info(f"  already matching the ledger: {outcome.num_correct_csv}")
    log.info(f"Non-refunded commitment lines on the ledger: {outcome.num_contract}")
    log.info(f"  already matching: {outcome.num_correct_contract}")
    log.info(f"  unset and to be set: {outcome.num_unset}")
    log.info(f"  set and to be overwritten: {outcome.num_overwritten}")
    log.info(f"Lines of refunded entities skipped: {outcome.num_refunded_skipped}")
    log.info(f"Allocations to update: {len(updates)}")
    log.info(f"Allow overwrites: {settings.allow_overwrites}")

    if outcome.is_noop:
        log.info("Ledger already matches the desired allocations, nothing to submit")
        return AllocationRunResult(outcome=outcome)

    if ledger.writer is None:
        _skip_without_signer(settings)
        return AllocationRunResult(outcome=outcome)

    report = submit_batches(
        updates,
        allocation_operation(
            ledger.writer,
            allow_overwrite=settings.allow_overwrites,
            dry_run=settings.dry_run,
        ),
        batch_size=settings.batch_size,
        confirm=confirm,
    )
    if report.dry_run:
        log.info(f"Total gas estimate: {report.total_gas_estimate}")
        return AllocationRunResult(outcome=outcome, report=report)

    log.info("All batches have been submitted successfully")
    accepted_after = dict(ledger.reader.read_totals().accepted)
    log.info("Total accepted by token after:")
    _log_amounts(accepted_after, decimals)

    differences = _compare_totals(outcome.desired_total_by_token, accepted_after)
    for difference in differences:
        log.warning(
            f"Total accepted amount for {difference.token} "
            f"({format_amount(difference.actual, decimals)}) does not match expected total "
            f"({format_amount(difference.expected, decimals)})"
        )
    return AllocationRunResult(
        outcome=outcome,
        report=report,
        total_accepted_after=accepted_after,
        differences=tuple(differences),
    )


def process_refunds(
    *,
    ledger: LedgerConnection,
    settings: SettlementConfig | None = None,
    confirm: ConfirmSubmission | None = None,
) -> RefundRunResult:
    """Refund ``committed - accepted`` to every unrefunded entity that is owed something."""

    settings = settings or SettlementConfig()
    decimals = settings.payment_token_decimals

    _require_stage(
        ledger.reader,
        {SaleStage.SETTLEMENT, SaleStage.DONE},
        operation="processRefunds",
    )
    state = ledger.reader.read_state()
    obligations = compute_refunds(state.records)
    check_refund_consistency(obligations, state.totals)
    refund_by_token = refund_total_by_token(obligations)

    log.info("=== SUMMARY ===")
    log.info(f"Commitment lines on the ledger: {len(state.records)}")
    log.info(f"Entities to refund: {len(obligations)}")
    log.info("Total committed by token on the ledger:")
    _log_amounts(state.totals.committed, decimals)
    log.info("Total accepted by token on the ledger:")
    _log_amounts(state.totals.accepted, decimals)
    log.info("Total refunded by token on the ledger (includes cancellations):")
    _log_amounts(state.totals.refunded, decimals)
    log.info("Total amount to refund by token:")
    _log_amounts(refund_by_token, decimals)

    result = RefundRunResult(
        num_records=len(state.records),
        refunded_entities=tuple(obligation.entity_id for obligation in obligations),
        refund_by_token=refund_by_token,
    )
    if not obligations:
        log.info("No entity is owed a refund, nothing to submit")
        return result

    if ledger.writer is None:
        _skip_without_signer(settings)
        return result

    report = submit_batches(
        obligations,
        refund_operation(ledger.writer, dry_run=settings.dry_run),
        batch_size=settings.batch_size,
        confirm=confirm,
    )
    if report.dry_run:
        log.info(f"Total gas estimate: {report.total_gas_estimate}")
        return replace(result, report=report)

    log.info("All batches have been submitted successfully")
    refunded_after = ledger.reader.read_totals().refunded
    log.info("Total refunded by token after (includes cancellations):")
    _log_amounts(refunded_after, decimals)
    delta = {
        token: refunded_after.get(token, 0) - state.totals.refunded.get(token, 0)
        for token in sorted({*refunded_after, *state.totals.refunded})
    }
    log.info("Difference in total refunded by token:")
    _log_amounts(delta, decimals)
    return replace(result, report=report, refunded_delta_by_token=delta)


def finalize_settlement(
    expected_total_accepted: Amount,
    *,
    ledger: LedgerConnection,
    settings: SettlementConfig | None = None,
    confirm: ConfirmSubmission | None = None,
) -> FinalizeRunResult | None:
    """Close the settlement phase once the ledger's accepted total is as expected."""

    settings = settings or SettlementConfig()
    decimals = settings.payment_token_decimals

    _require_stage(ledger.reader, {SaleStage.SETTLEMENT}, operation="finalizeSettlement")
    totals = ledger.reader.read_totals()
    actual = totals.total_accepted()
    log.info("Total accepted by token on the ledger:")
    _log_amounts(totals.accepted, decimals)
    if actual != expected_total_accepted:
        raise PreconditionError(
            f"Ledger total accepted amount {format_amount(actual, decimals)} does not match "
            f"expected {format_amount(expected_total_accepted, decimals)}"
        )

    if ledger.writer is None:
        _skip_without_signer(settings)
        return None

    report = submit_batches(
        [expected_total_accepted],
        finalize_operation(ledger.writer, dry_run=settings.dry_run),
        batch_size=1,
        confirm=confirm,
    )
    if not report.dry_run:
        log.info("Settlement finalized")
    return FinalizeRunResult(expected_total_accepted=expected_total_accepted, report=report)


def export_commitment_data(*, reader: SettlementLedgerReader, output: TextIO) -> int:
    """Write every ledger commitment line to ``output`` as CSV."""

    state = reader.read_state()
    return write_commitments_csv(state.records, output)


def export_bid_data(*, reader: AuctionBidReader, output: TextIO) -> int:
    """Write every auction bid to ``output`` as CSV."""

    return write_bids_csv(reader.read_bids(), output)


def _require_stage(
    reader: SettlementLedgerReader,
    allowed: Collection[SaleStage],
    *,
    operation: str,
) -> SaleStage:
    stage = reader.read_stage()
    if stage not in allowed:
        expected = " or ".join(sorted(s.name for s in allowed))
        raise PreconditionError(
            f"{operation} requires the sale to be in stage {expected}, but it is {stage.name}"
        )
    return stage


def _skip_without_signer(settings: SettlementConfig) -> None:
    if not settings.dry_run:
        raise PreconditionError("A signing key is required to submit transactions")
    log.info("No signing key configured, skipping transaction simulation")


def _compare_totals(
    expected: Mapping[Address, Amount],
    actual: Mapping[Address, Amount],
) -> list[TokenTotalDifference]:
    return [
        TokenTotalDifference(
            token=token,
            expected=expected.get(token, 0),
            actual=actual.get(token, 0),
        )
        for token in sorted({*expected, *actual})
        if expected.get(token, 0) != actual.get(token, 0)
    ]


def _log_amounts(amounts: Mapping[Address, Amount], decimals: int) -> None:
    for token, amount in amounts.items():
        log.info(f"  {token}: {format_amount(amount, decimals)}")

