"""ABI fragments of the sale contract used by the settlement tooling.

Only the functions the tooling calls are described. Return types are kept as
``eth_abi`` type strings so encoding and decoding stay symmetric.
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

_AMOUNT = "(address,address,uint256)"
_TOKEN_AMOUNT = "(address,uint256)"
_COMMITMENT = f"(bytes32,bytes16,uint64,uint64,bool,bool,{_AMOUNT}[],bytes)"
_ENTITY_ALLOCATION = f"(bytes16,{_AMOUNT}[])"
_ALLOCATION = "(bytes16,address,address,uint256)"
_BID = "(bytes32,address,bytes16,uint64,uint64,uint256,bool,bytes)"


@dataclass(frozen=True, slots=True)
class ContractFunction:
    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode_call(self, *args: object) -> str:
        """Return ``0x``-prefixed call data for ``args``."""

        payload = self.selector + encode(list(self.inputs), list(args))
        return "0x" + payload.hex()

    def decode_output(self, data: bytes) -> tuple[object, ...]:
        return tuple(decode(list(self.outputs), data))


NUM_COMMITMENTS = ContractFunction("numCommitments", outputs=("uint256",))
READ_COMMITMENT_DATA_IN = ContractFunction(
    "readCommitmentDataIn",
    inputs=("uint256", "uint256"),
    outputs=(f"{_COMMITMENT}[]",),
)
NUM_ENTITY_ALLOCATIONS = ContractFunction("numEntityAllocations", outputs=("uint256",))
READ_ENTITY_ALLOCATION_DATA_AT = ContractFunction(
    "readEntityAllocationDataAt",
    inputs=("uint256",),
    outputs=(_ENTITY_ALLOCATION,),
)
READ_ENTITY_ALLOCATION_DATA_IN = ContractFunction(
    "readEntityAllocationDataIn",
    inputs=("uint256", "uint256"),
    outputs=(f"{_ENTITY_ALLOCATION}[]",),
)
TOTAL_COMMITTED_AMOUNT_BY_TOKEN = ContractFunction(
    "totalCommittedAmountByToken", outputs=(f"{_TOKEN_AMOUNT}[]",)
)
TOTAL_ACCEPTED_AMOUNT_BY_TOKEN = ContractFunction(
    "totalAcceptedAmountByToken", outputs=(f"{_TOKEN_AMOUNT}[]",)
)
TOTAL_REFUNDED_AMOUNT_BY_TOKEN = ContractFunction(
    "totalRefundedAmountByToken", outputs=(f"{_TOKEN_AMOUNT}[]",)
)
STAGE = ContractFunction("stage", outputs=("uint8",))

NUM_BIDS = ContractFunction("numBids", outputs=("uint256",))
READ_BID_DATA_IN = ContractFunction(
    "readBidDataIn",
    inputs=("uint256", "uint256"),
    outputs=(f"{_BID}[]",),
)

SET_ALLOCATIONS = ContractFunction("setAllocations", inputs=(f"{_ALLOCATION}[]", "bool"))
PROCESS_REFUNDS = ContractFunction("processRefunds", inputs=("bytes16[]", "bool"))
FINALIZE_SETTLEMENT = ContractFunction("finalizeSettlement", inputs=("uint256",))
