"""Pydantic models describing the JSON-RPC payloads the ledger adapter consumes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _hex_to_int(value: object) -> object:
    if isinstance(value, str) and value.startswith(("0x", "0X")):
        return int(value, 16)
    return value


class JsonRpcBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class JsonRpcError(JsonRpcBaseModel):
    code: int
    message: str
    data: object | None = None


class JsonRpcResponse(JsonRpcBaseModel):
    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: object | None = None
    error: JsonRpcError | None = None


class TransactionReceipt(JsonRpcBaseModel):
    transaction_hash: str = Field(alias="transactionHash")
    block_number: int = Field(alias="blockNumber")
    status: int
    gas_used: int | None = Field(default=None, alias="gasUsed")

    _parse_quantities = field_validator("block_number", "status", "gas_used", mode="before")(
        _hex_to_int
    )

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class BlockHeader(JsonRpcBaseModel):
    number: int
    base_fee_per_gas: int = Field(alias="baseFeePerGas")

    _parse_quantities = field_validator("number", "base_fee_per_gas", mode="before")(
        _hex_to_int
    )
