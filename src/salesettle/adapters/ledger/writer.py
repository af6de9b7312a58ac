"""Write side of the sale ledger: estimate, sign, send and confirm transactions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from eth_account import Account

from salesettle.adapters.http_resilience import ResilientClient
from salesettle.domain.errors import WriteOutcomeUnknownError, WriteRejectedError
from salesettle.domain.model import entity_id_to_bytes
from salesettle.domain.ports import WriteReceipt

from . import abi
from .errors import LedgerRpcError, ReceiptTimeoutError
from .rpc import JsonRpcClient

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from eth_account.signers.local import LocalAccount

    from salesettle.config import LedgerConfig, ResilienceConfig, SignerConfig
    from salesettle.domain.model import AllocationUpdate, Amount, EntityID

    from .schema import TransactionReceipt

log = getLogger(__name__)

# processRefunds(entityIDs, skipAlreadyRefunded)
_SKIP_ALREADY_REFUNDED = True

# node failures other than an explicit revert
_NODE_ERRORS = (httpx.HTTPError, LedgerRpcError)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def encode_set_allocations(updates: Sequence[AllocationUpdate], *, allow_overwrite: bool) -> str:
    allocations = [
        (entity_id_to_bytes(update.entity_id), update.wallet, update.token, update.accepted_amount)
        for update in updates
    ]
    return abi.SET_ALLOCATIONS.encode_call(allocations, allow_overwrite)


def encode_process_refunds(entity_ids: Sequence[EntityID]) -> str:
    return abi.PROCESS_REFUNDS.encode_call(
        [entity_id_to_bytes(entity_id) for entity_id in entity_ids], _SKIP_ALREADY_REFUNDED
    )


def encode_finalize_settlement(expected_total_accepted: Amount) -> str:
    return abi.FINALIZE_SETTLEMENT.encode_call(expected_total_accepted)


@dataclass(slots=True)
class EthereumLedgerWriter:
    """Signs with the configured key and blocks until each write is mined.

    Writes go through a client without retries: a transaction whose
    submission failed half-way is reported as having an unknown outcome
    rather than being sent again.
    """

    config: LedgerConfig
    signer: SignerConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _account: LocalAccount = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._account = Account.from_key(self.signer.private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def estimate_set_allocations(
        self, updates: Sequence[AllocationUpdate], *, allow_overwrite: bool
    ) -> int:
        return self._estimate(encode_set_allocations(updates, allow_overwrite=allow_overwrite))

    def set_allocations(
        self, updates: Sequence[AllocationUpdate], *, allow_overwrite: bool
    ) -> WriteReceipt:
        return self._transact(encode_set_allocations(updates, allow_overwrite=allow_overwrite))

    def estimate_process_refunds(self, entity_ids: Sequence[EntityID]) -> int:
        return self._estimate(encode_process_refunds(entity_ids))

    def process_refunds(self, entity_ids: Sequence[EntityID]) -> WriteReceipt:
        return self._transact(encode_process_refunds(entity_ids))

    def estimate_finalize_settlement(self, expected_total_accepted: Amount) -> int:
        return self._estimate(encode_finalize_settlement(expected_total_accepted))

    def finalize_settlement(self, expected_total_accepted: Amount) -> WriteReceipt:
        return self._transact(encode_finalize_settlement(expected_total_accepted))

    def _estimate(self, data: str) -> int:
        async def estimate() -> int:
            async with self.client_factory(self.config.reads) as client:
                rpc = JsonRpcClient(client, self.config.rpc_url)
                return await rpc.estimate_gas(self.address, self.config.sale_address, data)

        try:
            return asyncio.run(estimate())
        except WriteRejectedError:
            raise
        except _NODE_ERRORS as exc:
            raise WriteRejectedError(f"Gas estimation failed: {exc}") from exc

    def _transact(self, data: str) -> WriteReceipt:
        return asyncio.run(self._transact_async(data))

    async def _transact_async(self, data: str) -> WriteReceipt:
        async with self.client_factory(self.config.writes) as client:
            rpc = JsonRpcClient(client, self.config.rpc_url)
            try:
                raw_transaction, local_hash = await self._sign(rpc, data)
            except WriteRejectedError:
                raise
            except _NODE_ERRORS as exc:
                raise WriteRejectedError(f"Could not prepare transaction: {exc}") from exc

            try:
                tx_hash = await rpc.send_raw_transaction(raw_transaction)
            except WriteRejectedError:
                raise
            except _NODE_ERRORS as exc:
                raise WriteOutcomeUnknownError(
                    f"Submitting transaction {local_hash} failed, its outcome is unknown: {exc}"
                ) from exc
            log.info(f"  Transaction sent: {tx_hash}")

            receipt = await self._wait_for_receipt(rpc, tx_hash)

        return WriteReceipt(
            tx_hash=receipt.transaction_hash,
            block_number=receipt.block_number,
            succeeded=receipt.succeeded,
            gas_used=receipt.gas_used,
        )

    async def _sign(self, rpc: JsonRpcClient, data: str) -> tuple[bytes, str]:
        gas = await rpc.estimate_gas(self.address, self.config.sale_address, data)
        chain_id, nonce, block = await asyncio.gather(
            rpc.chain_id(),
            rpc.pending_nonce(self.address),
            rpc.latest_block(),
        )
        priority_fee = self.config.max_priority_fee_per_gas
        if priority_fee is None:
            priority_fee = await rpc.max_priority_fee_per_gas()

        transaction: dict[str, object] = {
            "type": 2,
            "chainId": chain_id,
            "nonce": nonce,
            "to": self.config.sale_address,
            "value": 0,
            "data": data,
            "gas": gas,
            "maxPriorityFeePerGas": priority_fee,
            "maxFeePerGas": 2 * block.base_fee_per_gas + priority_fee,
        }
        signed = self._account.sign_transaction(transaction)
        return bytes(signed.raw_transaction), f"0x{bytes(signed.hash).hex()}"

    async def _wait_for_receipt(self, rpc: JsonRpcClient, tx_hash: str) -> TransactionReceipt:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.receipt_timeout_seconds
        while True:
            try:
                receipt = await rpc.transaction_receipt(tx_hash)
            except _NODE_ERRORS as exc:
                log.warning(f"Polling receipt for {tx_hash} failed, retrying: {exc}")
                receipt = None
            if receipt is not None:
                return receipt
            if loop.time() >= deadline:
                raise ReceiptTimeoutError(tx_hash, self.config.receipt_timeout_seconds)
            await asyncio.sleep(self.config.receipt_poll_interval_seconds)
