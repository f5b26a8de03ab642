"""
Selector registry and calldata decoder for token-style calls.

The registry is built once from ABI lists and passed explicitly to the
decoder; nothing here is process-global.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from eth_abi import decode as abi_decode
from eth_hash.auto import keccak

from .errors import DecodeError
from .trace import DecodedCall

logger = logging.getLogger(__name__)

RECIPIENT_PARAM_NAMES = ("_to", "to", "dst", "recipient", "_recipient")
AMOUNT_PARAM_NAMES = ("_value", "value", "amount", "_amount", "wad")

TETHER_ABI: List[Dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "", "type": "address"}],
        "name": "balances",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "maximumFee",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "_totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "owner",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "basisPointsRate",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [{"name": "newOwner", "type": "address"}],
        "name": "transferOwnership",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]

ERC20_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [
            {"name": "_from", "type": "address"},
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transferFrom",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def canonical_type(param: Dict[str, Any]) -> str:
    typ = param.get("type")
    if not isinstance(typ, str) or not typ:
        raise ValueError("Invalid ABI input type.")
    if typ.startswith("tuple"):
        components = param.get("components") or []
        inner = ",".join(canonical_type(c) for c in components)
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def function_signature(name: str, inputs: List[Dict[str, Any]]) -> str:
    return f"{name}({','.join(canonical_type(inp) for inp in inputs)})"


def selector_hex(signature: str) -> str:
    return keccak(signature.encode()).hex()[:8]


class AbiRegistry:
    """Immutable selector -> function ABI entry mapping."""

    def __init__(self, functions: Mapping[str, Dict[str, Any]]) -> None:
        self._functions = MappingProxyType(dict(functions))

    @classmethod
    def from_abis(cls, *abis: Iterable[Dict[str, Any]]) -> "AbiRegistry":
        functions: Dict[str, Dict[str, Any]] = {}
        for abi in abis:
            for entry in abi:
                if not isinstance(entry, dict) or entry.get("type") != "function":
                    continue
                name = entry.get("name")
                inputs = entry.get("inputs", [])
                if not name or not isinstance(inputs, list):
                    continue
                try:
                    selector = selector_hex(function_signature(name, inputs))
                except ValueError:
                    logger.debug("skipping ABI entry %s with invalid inputs", name)
                    continue
                # first ABI wins on selector clashes
                functions.setdefault(selector, entry)
        return cls(functions)

    def get(self, selector: str) -> Optional[Dict[str, Any]]:
        return self._functions.get(selector.lower().replace("0x", "", 1))

    def selectors(self) -> List[str]:
        return sorted(self._functions)

    def __contains__(self, selector: object) -> bool:
        return isinstance(selector, str) and self.get(selector) is not None

    def __len__(self) -> int:
        return len(self._functions)


def default_registry() -> AbiRegistry:
    return AbiRegistry.from_abis(TETHER_ABI, ERC20_ABI)


def _json_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_json_value(v) for v in value]
    return value


class CallDecoder:
    """Decode token-style calldata against an :class:`AbiRegistry`."""

    def __init__(self, registry: AbiRegistry) -> None:
        self.registry = registry

    def __call__(self, contract: Optional[str], data: Any) -> Optional[DecodedCall]:
        return self.decode(data)

    def decode(self, data: Any) -> Optional[DecodedCall]:
        if not isinstance(data, str):
            return None
        body = data[2:] if data.startswith("0x") else data
        if len(body) < 8:
            return None

        entry = self.registry.get(body[:8])
        if entry is None:
            return None

        inputs = entry.get("inputs", [])
        name = entry.get("name") or ""
        try:
            types = [canonical_type(inp) for inp in inputs]
            values = abi_decode(types, bytes.fromhex(body[8:]))
        except Exception as exc:
            raise DecodeError(
                f"Failed to decode calldata for {name}: {exc}",
                {"selector": body[:8]},
            ) from exc

        params: List[Dict[str, Any]] = []
        to: Optional[str] = None
        value: Optional[str] = None
        for idx, (inp, raw) in enumerate(zip(inputs, values)):
            param_name = inp.get("name") or f"param{idx}"
            decoded = _json_value(raw)
            if types[idx] == "address" and isinstance(decoded, str):
                decoded = decoded.lower()
            params.append({"name": param_name, "type": types[idx], "value": decoded})
            if to is None and param_name in RECIPIENT_PARAM_NAMES and isinstance(decoded, str):
                to = decoded
            if value is None and param_name in AMOUNT_PARAM_NAMES and isinstance(raw, int):
                value = str(raw)

        return DecodedCall(
            method=name,
            signature=function_signature(name, inputs),
            params=params,
            to=to,
            value=value,
        )
