"""Read side of the sale ledger over Ethereum JSON-RPC."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, cast

from salesettle.adapters.http_resilience import ResilientClient
from salesettle.domain.model import (
    AllocationKey,
    BidRecord,
    CommitmentRecord,
    LedgerState,
    LedgerTotals,
    SaleStage,
    entity_id_from_bytes,
    normalize_address,
)

from . import abi
from .errors import LedgerRpcError
from .rpc import JsonRpcClient

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from salesettle.config import LedgerConfig, ResilienceConfig
    from salesettle.domain.model import Address, Amount, EntityID, TokenAmounts

log = getLogger(__name__)

type _RawAmount = tuple[str, str, int]
type _RawCommitment = tuple[bytes, bytes, int, int, bool, bool, Sequence[_RawAmount], bytes]
type _RawEntityAllocation = tuple[bytes, Sequence[_RawAmount]]
type _RawBid = tuple[bytes, str, bytes, int, int, int, bool, bytes]


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def page_ranges(count: int, page_size: int) -> list[tuple[int, int]]:
    """Split ``[0, count)`` into half-open ``[from, to)`` pages."""

    return [(start, min(start + page_size, count)) for start in range(0, count, page_size)]


@dataclass(frozen=True, slots=True)
class EntityAllocation:
    """Accepted amounts the ledger holds for one entity."""

    entity_id: EntityID
    accepted: Mapping[AllocationKey, Amount] = field(default_factory=dict[AllocationKey, int])


@dataclass(slots=True)
class EthereumLedgerReader:
    config: LedgerConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def read_state(self) -> LedgerState:
        return asyncio.run(self._read_state_async())

    def read_totals(self) -> LedgerTotals:
        return asyncio.run(self._with_rpc(self._read_totals))

    def read_stage(self) -> SaleStage:
        return asyncio.run(self._with_rpc(self._read_stage))

    def read_entity_allocation_at(self, index: int) -> EntityAllocation:
        async def read(rpc: JsonRpcClient) -> EntityAllocation:
            (raw,) = await self._call(rpc, abi.READ_ENTITY_ALLOCATION_DATA_AT, index)
            return _parse_entity_allocation(cast("_RawEntityAllocation", raw))

        return asyncio.run(self._with_rpc(read))

    def read_bids(self) -> list[BidRecord]:
        bids = asyncio.run(self._with_rpc(self._read_bids))
        log.info(f"Read {len(bids)} bid(s) from the ledger")
        return bids

    async def _with_rpc[T](self, func: Callable[[JsonRpcClient], Awaitable[T]]) -> T:
        async with self.client_factory(self.config.reads) as client:
            rpc = JsonRpcClient(client, self.config.rpc_url)
            return await func(rpc)

    async def _read_state_async(self) -> LedgerState:
        async with self.client_factory(self.config.reads) as client:
            rpc = JsonRpcClient(client, self.config.rpc_url)
            commitments, allocations, totals = await asyncio.gather(
                self._read_commitments(rpc),
                self._read_entity_allocations(rpc),
                self._read_totals(rpc),
            )

        accepted: dict[AllocationKey, Amount] = {}
        for allocation in allocations:
            accepted.update(allocation.accepted)

        records = tuple(_flatten_commitments(commitments, accepted))
        log.info(
            f"Read {len(commitments)} commitment(s) and {len(allocations)} entity "
            f"allocation(s) from the ledger ({len(records)} record(s))"
        )
        return LedgerState(records=records, totals=totals)

    async def _read_commitments(self, rpc: JsonRpcClient) -> list[_RawCommitment]:
        (count,) = await self._call(rpc, abi.NUM_COMMITMENTS)
        pages = await asyncio.gather(
            *(
                self._call(rpc, abi.READ_COMMITMENT_DATA_IN, start, end)
                for start, end in page_ranges(cast("int", count), self.config.page_size)
            )
        )
        return [
            cast("_RawCommitment", item)
            for (page,) in pages
            for item in cast("Sequence[object]", page)
        ]

    async def _read_entity_allocations(self, rpc: JsonRpcClient) -> list[EntityAllocation]:
        (count,) = await self._call(rpc, abi.NUM_ENTITY_ALLOCATIONS)
        pages = await asyncio.gather(
            *(
                self._call(rpc, abi.READ_ENTITY_ALLOCATION_DATA_IN, start, end)
                for start, end in page_ranges(cast("int", count), self.config.page_size)
            )
        )
        return [
            _parse_entity_allocation(cast("_RawEntityAllocation", item))
            for (page,) in pages
            for item in cast("Sequence[object]", page)
        ]

    async def _read_bids(self, rpc: JsonRpcClient) -> list[BidRecord]:
        (count,) = await self._call(rpc, abi.NUM_BIDS)
        pages = await asyncio.gather(
            *(
                self._call(rpc, abi.READ_BID_DATA_IN, start, end)
                for start, end in page_ranges(cast("int", count), self.config.page_size)
            )
        )
        return [
            _parse_bid(cast("_RawBid", item))
            for (page,) in pages
            for item in cast("Sequence[object]", page)
        ]

    async def _read_totals(self, rpc: JsonRpcClient) -> LedgerTotals:
        committed, accepted, refunded = await asyncio.gather(
            self._read_token_amounts(rpc, abi.TOTAL_COMMITTED_AMOUNT_BY_TOKEN),
            self._read_token_amounts(rpc, abi.TOTAL_ACCEPTED_AMOUNT_BY_TOKEN),
            self._read_token_amounts(rpc, abi.TOTAL_REFUNDED_AMOUNT_BY_TOKEN),
        )
        return LedgerTotals(committed=committed, accepted=accepted, refunded=refunded)

    async def _read_token_amounts(
        self, rpc: JsonRpcClient, function: abi.ContractFunction
    ) -> TokenAmounts:
        (entries,) = await self._call(rpc, function)
        totals: TokenAmounts = {}
        for token, amount in cast("Sequence[tuple[str, int]]", entries):
            address = normalize_address(token)
            totals[address] = totals.get(address, 0) + amount
        return totals

    async def _read_stage(self, rpc: JsonRpcClient) -> SaleStage:
        (value,) = await self._call(rpc, abi.STAGE)
        try:
            return SaleStage(cast("int", value))
        except ValueError as exc:
            raise LedgerRpcError(f"Ledger reported an unknown sale stage: {value}") from exc

    async def _call(
        self, rpc: JsonRpcClient, function: abi.ContractFunction, *args: object
    ) -> tuple[object, ...]:
        data = await rpc.call(self.config.sale_address, function.encode_call(*args))
        return function.decode_output(data)


def _parse_entity_allocation(raw: _RawEntityAllocation) -> EntityAllocation:
    entity_bytes, amounts = raw
    entity_id = entity_id_from_bytes(entity_bytes)
    accepted: dict[AllocationKey, Amount] = {}
    for wallet, token, amount in amounts:
        key = AllocationKey(entity_id, normalize_address(wallet), normalize_address(token))
        accepted[key] = accepted.get(key, 0) + amount
    return EntityAllocation(entity_id=entity_id, accepted=accepted)


def _parse_bid(raw: _RawBid) -> BidRecord:
    bid_id, committer, entity_bytes, timestamp, price, amount, refunded, extra = raw
    return BidRecord(
        entity_id=entity_id_from_bytes(entity_bytes),
        bid_id="0x" + bid_id.hex(),
        committer=normalize_address(committer),
        timestamp=timestamp,
        price=price,
        amount=amount,
        refunded=refunded,
        extra_data=extra,
    )


def _flatten_commitments(
    commitments: Sequence[_RawCommitment],
    accepted: Mapping[AllocationKey, Amount],
) -> list[CommitmentRecord]:
    records: list[CommitmentRecord] = []
    for commitment in commitments:
        commitment_id, entity_bytes, timestamp, price, lockup, refunded, amounts, extra = commitment
        entity_id = entity_id_from_bytes(entity_bytes)
        for wallet, token, amount in amounts:
            wallet_address: Address = normalize_address(wallet)
            token_address: Address = normalize_address(token)
            key = AllocationKey(entity_id, wallet_address, token_address)
            records.append(
                CommitmentRecord(
                    entity_id=entity_id,
                    wallet=wallet_address,
                    token=token_address,
                    committed_amount=amount,
                    accepted_amount=accepted.get(key, 0),
                    refunded=refunded,
                    commitment_id="0x" + commitment_id.hex(),
                    timestamp=timestamp,
                    price=price,
                    lockup=lockup,
                    extra_data=extra,
                )
            )
    return records
