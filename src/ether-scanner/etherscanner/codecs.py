"""
Address and amount normalization for values read out of node traces.

Nodes are not consistent about how they encode addresses and quantities:
short hex, missing ``0x`` prefixes, booleans in address slots and truncated
quantities all show up in ``callTracer`` output. Both codecs here are
permissive and never raise; the worst case is a sentinel or a best-effort
padded value.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

ADDRESS_LENGTH = 42
ADDRESS_SHAPE_PATTERN = re.compile(r"^0x[a-zA-Z0-9]{40}")
_HEX_PREFIX_PATTERN = re.compile(r"^(?:0[xX])?([0-9a-fA-F]*)")


@dataclass(frozen=True)
class RawAddress:
    text: str


@dataclass(frozen=True)
class FlagAddress:
    flag: bool


# None stands for "absent" (no recipient, e.g. contract creation).
AddressLike = Optional[Union[RawAddress, FlagAddress]]


def address_like(value: Any) -> AddressLike:
    """Tag a raw trace field as a raw hex-ish address, a flag, or absent."""
    if isinstance(value, bool):
        return FlagAddress(value)
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    if not text:
        return None
    return RawAddress(text)


def _to_hex(value: str) -> str:
    body = value.lower()
    if body.startswith("0x"):
        body = body[2:]
    return f"0x{body}"


def normalize_address(value: Any) -> Any:
    """
    Canonicalize an address-like trace field.

    - absent input is returned unchanged
    - a 0x + 40 char address is returned unchanged
    - booleans map to "0x01" / "0x00"
    - anything else is left-padded with zero nibbles to 42 chars (no truncation)
    """
    tagged = address_like(value)
    if tagged is None:
        return value
    if isinstance(tagged, FlagAddress):
        return "0x01" if tagged.flag else "0x00"

    if ADDRESS_SHAPE_PATTERN.match(tagged.text):
        return tagged.text

    address = _to_hex(tagged.text)
    if len(address) < ADDRESS_LENGTH:
        address = "0x" + address[2:].rjust(ADDRESS_LENGTH - 2, "0")
    return address


def _looks_like_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_SHAPE_PATTERN.match(value))


def parse_quantity(value: Any) -> int:
    """
    Leniently parse a hex quantity into a non-negative int.

    Reads the longest valid hex prefix (after an optional 0x); absent,
    boolean or unparseable input counts as zero.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if not isinstance(value, str):
        return 0

    match = _HEX_PREFIX_PATTERN.match(value.strip())
    digits = match.group(1) if match else ""
    if not digits:
        return 0
    return int(digits, 16)


def to_decimal(value: Any) -> Any:
    """Hex quantity -> decimal string, without going through floats."""
    if not value:
        return value
    if _looks_like_address(value):
        return value
    if isinstance(value, str):
        value = value.strip()
        body = value[2:] if value[:2].lower() == "0x" else value
        value = f"0x0{body}"
    return str(parse_quantity(value))


def to_integer(value: Any) -> Any:
    """Same guards as :func:`to_decimal`, but returns an int."""
    if not value:
        return value
    if _looks_like_address(value):
        return value
    return parse_quantity(value)


@dataclass(frozen=True)
class HexAmount:
    """Raw quantity as read from the node."""

    raw: Any

    def to_decimal(self) -> Any:
        return to_decimal(self.raw)

    def to_integer(self) -> Any:
        return to_integer(self.raw)

    def quantity(self) -> int:
        return parse_quantity(self.raw)

    def is_positive(self) -> bool:
        return self.quantity() > 0
