"""Domain primitives: scalar aliases and identifier normalisation.

Identifiers are kept as ``0x``-prefixed hex strings so they can be compared,
sorted and logged without conversion. Addresses are always EIP-55 checksummed
and entity IDs are always lower-case, so string equality is key equality.
"""

from __future__ import annotations

import re
from typing import Final

from eth_utils import is_address, to_checksum_address

type EntityID = str
type Address = str
type Amount = int

ENTITY_ID_BYTES: Final[int] = 16
UINT256_MAX: Final[int] = 2**256 - 1

_ENTITY_ID_PATTERN = re.compile(rf"^0x[0-9a-fA-F]{{{ENTITY_ID_BYTES * 2}}}$")


def normalize_entity_id(value: str) -> EntityID:
    """Return a canonical 16-byte entity ID or raise ``ValueError``."""

    candidate = value.strip()
    if not _ENTITY_ID_PATTERN.fullmatch(candidate):
        raise ValueError(
            f'Invalid sale-specific entity ID "{value}": expected 0x followed by '
            f"{ENTITY_ID_BYTES * 2} hexadecimal characters"
        )
    return candidate.lower()


def normalize_address(value: str) -> Address:
    """Return the checksummed form of a 20-byte address or raise ``ValueError``."""

    candidate = value.strip()
    if not is_address(candidate):
        raise ValueError(f'Invalid address "{value}"')
    return to_checksum_address(candidate)


def entity_id_from_bytes(raw: bytes) -> EntityID:
    if len(raw) != ENTITY_ID_BYTES:
        raise ValueError(f"Entity ID must be {ENTITY_ID_BYTES} bytes, got {len(raw)}")
    return "0x" + raw.hex()


def entity_id_to_bytes(entity_id: EntityID) -> bytes:
    return bytes.fromhex(normalize_entity_id(entity_id)[2:])


def format_amount(amount: Amount, decimals: int) -> str:
    """Render a smallest-unit integer amount with ``decimals`` fractional digits."""

    if decimals == 0:
        return str(amount)
    sign = "-" if amount < 0 else ""
    whole, fraction = divmod(abs(amount), 10**decimals)
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0")
    if not fraction_text:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{fraction_text}"
