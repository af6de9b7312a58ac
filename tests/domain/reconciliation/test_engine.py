from __future__ import annotations

from dataclasses import replace

import pytest

from salesettle.domain.errors import SettlementValidationError
from salesettle.domain.model import AllocationKey, CommitmentRecord, ValidationKind
from salesettle.domain.reconciliation import reconcile
from tests.support.ledger import (
    TOKEN_USDC,
    TOKEN_USDT,
    WALLET_A,
    WALLET_B,
    desired_map,
    entity,
    make_desired,
    make_record,
)


def _apply(
    records: list[CommitmentRecord], updates: dict[AllocationKey, int]
) -> list[CommitmentRecord]:
    return [
        replace(record, accepted_amount=updates[record.key]) if record.key in updates else record
        for record in records
    ]


def test_unset_commitment_gets_desired_amount() -> None:
    e1 = entity(1)
    records = [make_record(e1, committed=1000, accepted=0)]
    desired = desired_map(make_desired(e1, 500))

    outcome = reconcile(desired, records)

    assert [(u.entity_id, u.wallet, u.token, u.accepted_amount) for u in outcome.updates] == [
        (e1, WALLET_A, TOKEN_USDC, 500)
    ]
    assert outcome.num_unset == 1
    assert outcome.num_overwritten == 0
    assert outcome.num_correct_contract == 0


def test_missing_desired_entry_zeroes_accepted_amount() -> None:
    e1 = entity(1)
    records = [make_record(e1, committed=2000, accepted=1000)]

    outcome = reconcile({}, records)

    assert len(outcome.updates) == 1
    update = outcome.updates[0]
    assert update.key == records[0].key
    assert update.accepted_amount == 0
    assert outcome.num_overwritten == 1


def test_missing_desired_entry_with_zero_ledger_value_is_correct() -> None:
    records = [make_record(entity(1), accepted=0)]

    outcome = reconcile({}, records)

    assert outcome.is_noop
    assert outcome.num_correct_contract == 1
    assert outcome.num_correct_csv == 0


def test_matching_values_count_for_both_sides() -> None:
    e1 = entity(1)
    records = [make_record(e1, accepted=300)]

    outcome = reconcile(desired_map(make_desired(e1, 300)), records)

    assert outcome.is_noop
    assert outcome.num_correct_contract == 1
    assert outcome.num_correct_csv == 1


def test_changed_value_counts_as_overwrite() -> None:
    e1 = entity(1)
    records = [make_record(e1, accepted=300)]

    outcome = reconcile(desired_map(make_desired(e1, 700)), records)

    assert [u.accepted_amount for u in outcome.updates] == [700]
    assert outcome.num_overwritten == 1
    assert outcome.num_unset == 0


def test_desired_key_without_commitment_is_ignored() -> None:
    e1 = entity(1)
    records = [make_record(e1, wallet=WALLET_A)]
    stray = make_desired(e1, 100, wallet=WALLET_B)

    outcome = reconcile(desired_map(make_desired(e1, 100), stray), records)

    assert stray.key not in {update.key for update in outcome.updates}
    assert outcome.num_desired == 2
    assert outcome.num_desired_without_commitment == 1


def test_refunded_entities_are_skipped() -> None:
    e1 = entity(1)
    records = [make_record(e1, accepted=400, refunded=True)]

    outcome = reconcile({}, records)

    assert outcome.is_noop
    assert outcome.num_refunded_skipped == 1
    assert outcome.num_contract == 0
    assert outcome.num_desired_without_commitment == 0


def test_desired_amount_above_commitment_is_rejected() -> None:
    e1, e2 = entity(1), entity(2)
    records = [make_record(e1, committed=100), make_record(e2, committed=100)]
    desired = desired_map(make_desired(e1, 101), make_desired(e2, 500))

    with pytest.raises(SettlementValidationError) as excinfo:
        reconcile(desired, records)

    assert [issue.kind for issue in excinfo.value.issues] == [
        ValidationKind.EXCEEDS_COMMITMENT,
        ValidationKind.EXCEEDS_COMMITMENT,
    ]


def test_counters_partition_every_ledger_key() -> None:
    records = [
        make_record(entity(1), accepted=0),
        make_record(entity(2), accepted=0),
        make_record(entity(3), accepted=200),
        make_record(entity(4), accepted=200),
        make_record(entity(5), accepted=200),
        make_record(entity(6), token=TOKEN_USDT, accepted=0),
    ]
    desired = desired_map(
        make_desired(entity(1), 100),
        make_desired(entity(3), 200),
        make_desired(entity(4), 250),
        make_desired(entity(6), 0, token=TOKEN_USDT),
    )

    outcome = reconcile(desired, records)

    assert outcome.num_contract == len(records)
    assert outcome.num_correct_contract + outcome.num_unset + outcome.num_overwritten == len(
        records
    )
    assert outcome.num_correct_contract == 3  # entity 2, 3 and 6
    assert outcome.num_unset == 1  # entity 1
    assert outcome.num_overwritten == 2  # entity 4 changed, entity 5 zeroed
    assert outcome.num_correct_csv == 2  # entity 3 and 6


def test_reconcile_is_idempotent() -> None:
    records = [
        make_record(entity(3), accepted=50),
        make_record(entity(1)),
        make_record(entity(2), accepted=10),
    ]
    desired = desired_map(make_desired(entity(1), 100), make_desired(entity(2), 20))

    assert reconcile(desired, records) == reconcile(desired, records)


def test_applying_updates_converges_to_noop() -> None:
    records = [
        make_record(entity(1)),
        make_record(entity(2), accepted=10),
        make_record(entity(3), accepted=50),
        make_record(entity(4), wallet=WALLET_B, token=TOKEN_USDT, accepted=5),
    ]
    desired = desired_map(
        make_desired(entity(1), 100),
        make_desired(entity(2), 20),
        make_desired(entity(4), 5, wallet=WALLET_B, token=TOKEN_USDT),
    )

    first = reconcile(desired, records)
    applied = _apply(records, {u.key: u.accepted_amount for u in first.updates})
    second = reconcile(desired, applied)

    assert not first.is_noop
    assert second.is_noop
    assert second.num_correct_contract == len(records)


def test_ordered_updates_are_sorted_by_key() -> None:
    records = [make_record(entity(n)) for n in (5, 2, 9, 1)]
    desired = desired_map(*(make_desired(entity(n), n) for n in (5, 2, 9, 1)))

    outcome = reconcile(desired, records)

    assert [u.entity_id for u in outcome.ordered_updates()] == [
        entity(1),
        entity(2),
        entity(5),
        entity(9),
    ]


def test_desired_totals_are_reported_by_token() -> None:
    records = [make_record(entity(1)), make_record(entity(2), token=TOKEN_USDT)]
    desired = desired_map(
        make_desired(entity(1), 100),
        make_desired(entity(2), 40, token=TOKEN_USDT),
        make_desired(entity(3), 7),
    )

    outcome = reconcile(desired, records)

    assert outcome.desired_total_by_token == {TOKEN_USDC: 107, TOKEN_USDT: 40}
