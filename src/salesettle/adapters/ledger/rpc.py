"""Minimal Ethereum JSON-RPC client over :class:`ResilientClient`."""

from __future__ import annotations

import itertools
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import LedgerRpcError, LedgerWriteRejectedError
from .schema import BlockHeader, JsonRpcResponse, TransactionReceipt

if TYPE_CHECKING:
    from salesettle.adapters.http_resilience import ResilientClient

log = getLogger(__name__)

# "execution reverted" as reported by geth-compatible nodes
_REVERT_ERROR_CODE = 3


def _is_revert(code: int, message: str) -> bool:
    return code == _REVERT_ERROR_CODE or "revert" in message.lower()


class JsonRpcClient:
    """Thin, typed wrapper around the ``eth_*`` methods the ledger adapter needs."""

    def __init__(self, client: ResilientClient, url: str) -> None:
        self._client = client
        self._url = url
        self._ids = itertools.count(1)

    async def request(self, method: str, params: list[object]) -> object:
        request_id = next(self._ids)
        response = await self._client.post(
            self._url,
            json={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
        )
        response.raise_for_status()

        payload = JsonRpcResponse.model_validate(response.json())
        if payload.error is not None:
            error = payload.error
            log.debug(f"JSON-RPC error {error.code} from {method}: {error.message}")
            raise LedgerRpcError(
                f"{method} failed: {error.message}", code=error.code, data=error.data
            )
        return payload.result

    async def call(self, to: str, data: str) -> bytes:
        result = await self.request("eth_call", [{"to": to, "data": data}, "latest"])
        return _hex_bytes(result, method="eth_call")

    async def estimate_gas(self, sender: str | None, to: str, data: str) -> int:
        transaction: dict[str, object] = {"to": to, "data": data}
        if sender is not None:
            transaction["from"] = sender
        try:
            result = await self.request("eth_estimateGas", [transaction])
        except LedgerRpcError as exc:
            if exc.code is not None and _is_revert(exc.code, str(exc)):
                raise LedgerWriteRejectedError(str(exc), code=exc.code, data=exc.data) from exc
            raise
        return _hex_int(result, method="eth_estimateGas")

    async def chain_id(self) -> int:
        return _hex_int(await self.request("eth_chainId", []), method="eth_chainId")

    async def pending_nonce(self, address: str) -> int:
        result = await self.request("eth_getTransactionCount", [address, "pending"])
        return _hex_int(result, method="eth_getTransactionCount")

    async def latest_block(self) -> BlockHeader:
        result = await self.request("eth_getBlockByNumber", ["latest", False])
        return BlockHeader.model_validate(result)

    async def max_priority_fee_per_gas(self) -> int:
        result = await self.request("eth_maxPriorityFeePerGas", [])
        return _hex_int(result, method="eth_maxPriorityFeePerGas")

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        try:
            result = await self.request("eth_sendRawTransaction", ["0x" + raw_transaction.hex()])
        except LedgerRpcError as exc:
            raise LedgerWriteRejectedError(str(exc), code=exc.code, data=exc.data) from exc
        if not isinstance(result, str):
            raise LedgerRpcError("eth_sendRawTransaction returned no transaction hash")
        return result

    async def transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        result = await self.request("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        return TransactionReceipt.model_validate(result)


def _hex_int(value: object, *, method: str) -> int:
    if not isinstance(value, str):
        raise LedgerRpcError(f"{method} returned an unexpected result: {value!r}")
    return int(value, 16)


def _hex_bytes(value: object, *, method: str) -> bytes:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise LedgerRpcError(f"{method} returned an unexpected result: {value!r}")
    return bytes.fromhex(value[2:])

