"""
Flatten a ``callTracer`` call tree into an ordered list of transfer events.

Each node is classified in order:

1. it moved native value -> one native event for the node itself;
2. it has children -> one "Token" event per direct child whose calldata is
   longer than a selector plus two words (transferFrom and wider calls);
3. it is a leaf -> STATICCALLs are skipped, anything else becomes one
   "Token" event built from the node.

Children are then walked depth first whichever branch fired. The
``traceAddress`` counter is shared with sibling recursion and only grows
along a single path; it is an ordering aid, not a canonical call path.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .codecs import HexAmount, normalize_address, to_integer

logger = logging.getLogger(__name__)

STATICCALL = "STATICCALL"
SELFDESTRUCT = "SELFDESTRUCT"
TOKEN_TYPE = "Token"
# 0x + selector + two words is 138 chars; only longer calldata qualifies
TOKEN_INPUT_THRESHOLD = 139
ROOT_TRACE_ADDRESS = -1


@dataclass(frozen=True)
class DecodedCall:
    """What a decoder learned about a token call."""

    method: str
    signature: str
    params: List[Dict[str, Any]] = field(default_factory=list)
    to: Optional[str] = None
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.method, "signature": self.signature, "params": list(self.params)}


# (contract, calldata) -> DecodedCall or None; CallDecoder in abi.py is the stock one
Decoder = Callable[[Optional[str], Any], Optional[DecodedCall]]


@dataclass
class CallNode:
    type: Optional[str]
    from_address: Any
    to: Any
    value: HexAmount
    input: Any
    calls: Optional[List[Any]]
    is_empty: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> "CallNode":
        if not isinstance(raw, Mapping):
            raise TypeError(f"call node must be an object, got {type(raw).__name__}")

        calls = raw.get("calls")
        if calls is not None and not isinstance(calls, list):
            raise TypeError(f"calls must be a list, got {type(calls).__name__}")

        return cls(
            type=raw.get("type"),
            from_address=raw.get("from"),
            to=raw.get("to"),
            value=HexAmount(raw.get("value")),
            input=raw.get("input"),
            calls=calls,
            is_empty=len(raw) == 0,
        )


@dataclass
class TransferEvent:
    hash: Optional[str]
    block_number: Any
    block_hash: Optional[str]
    from_address: Any
    to: Any
    value: Optional[str]
    type: Optional[str]
    is_suicide: bool
    is_internal: bool
    trace_address: int
    contract: Any = None
    method: Optional[str] = None
    input: Any = None
    input_decoded: Optional[Dict[str, Any]] = None

    @property
    def is_token(self) -> bool:
        return self.type == TOKEN_TYPE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "hash": self.hash,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "from": self.from_address,
            "to": self.to,
            "value": self.value,
            "type": self.type,
            "isSuicide": self.is_suicide,
            "isInternal": self.is_internal,
            "traceAddress": self.trace_address,
        }
        if self.is_token:
            data["contract"] = self.contract
            data["method"] = self.method
            data["input"] = self.input
            data["inputDecoded"] = self.input_decoded
        return data


@dataclass(frozen=True)
class DecodeIssue:
    hash: Optional[str]
    trace_address: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"hash": self.hash, "traceAddress": self.trace_address, "reason": self.reason}


@dataclass
class FlattenResult:
    events: List[TransferEvent] = field(default_factory=list)
    issues: List[DecodeIssue] = field(default_factory=list)

    @property
    def has_internal(self) -> bool:
        return any(event.is_internal for event in self.events)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self.events]

    def __len__(self) -> int:
        return len(self.events)


class _TraceWalker:
    def __init__(
        self,
        transaction: Mapping[str, Any],
        decoder: Optional[Decoder],
        result: FlattenResult,
    ) -> None:
        self.transaction = transaction
        self.decoder = decoder
        self.result = result
        self.tx_hash = transaction.get("hash")
        self.block_number = to_integer(transaction.get("blockNumber"))
        self.block_hash = transaction.get("blockHash")

    def walk(self, root: Any) -> None:
        # explicit stack: EVM call depth can exceed the interpreter recursion limit
        stack: List[Tuple[Any, int, bool]] = [(root, ROOT_TRACE_ADDRESS, False)]
        while stack:
            raw, dex, is_internal = stack.pop()
            visited = self._visit(raw, dex, is_internal)
            if visited is None:
                continue
            node, dex = visited
            children = node.calls or []
            for offset in range(len(children), 0, -1):
                stack.append((children[offset - 1], dex + offset, True))

    def _visit(self, raw: Any, dex: int, is_internal: bool) -> Optional[Tuple[CallNode, int]]:
        try:
            node = CallNode.from_dict(raw)
        except TypeError as exc:
            self._issue(dex, f"malformed call node: {exc}")
            return None

        if node.value.is_positive():
            self._emit(dex, self._native_event, node, dex, is_internal)
        elif node.calls:
            logger.debug("%s has sub calls", self.tx_hash)
            for child in node.calls:
                self._emit(dex, self._child_token_event, node, child, dex)
                dex += 1
        elif node.type == STATICCALL:
            return None
        else:
            logger.debug("%s is a single call", self.tx_hash)
            self._emit(dex, self._leaf_token_event, node, dex)
        return node, dex

    def _emit(self, dex: int, build: Callable[..., Optional[TransferEvent]], *args: Any) -> None:
        try:
            event = build(*args)
        except Exception as exc:  # pylint: disable=broad-except
            self._issue(dex, f"failed to build transfer event: {exc}")
            return
        if event is not None:
            self.result.events.append(event)

    def _issue(self, dex: int, reason: str) -> None:
        logger.warning("trace %s at %s: %s", self.tx_hash, dex, reason)
        self.result.issues.append(DecodeIssue(self.tx_hash, dex, reason))

    def _native_event(self, node: CallNode, dex: int, is_internal: bool) -> TransferEvent:
        return TransferEvent(
            hash=self.tx_hash,
            block_number=self.block_number,
            block_hash=self.block_hash,
            from_address=normalize_address(node.from_address),
            to=normalize_address(node.to),
            value=str(node.value.quantity()),
            type=node.type,
            is_suicide=node.type == SELFDESTRUCT,
            is_internal=is_internal,
            trace_address=dex,
        )

    def _child_token_event(self, parent: CallNode, raw_child: Any, dex: int) -> Optional[TransferEvent]:
        if not isinstance(raw_child, Mapping):
            return None
        data = raw_child.get("input")
        if data is None or len(data) <= TOKEN_INPUT_THRESHOLD:
            return None
        return self._token_event(parent.to, raw_child.get("to"), data, dex)

    def _leaf_token_event(self, node: CallNode, dex: int) -> TransferEvent:
        if node.is_empty:
            return self._token_event(
                self.transaction.get("from"),
                self.transaction.get("to"),
                self.transaction.get("input"),
                dex,
            )
        return self._token_event(node.from_address, node.to, node.input, dex)

    def _token_event(self, sender: Any, contract: Any, data: Any, dex: int) -> TransferEvent:
        contract_address = normalize_address(contract)
        decoded = self._decode(contract_address, data, dex)
        return TransferEvent(
            hash=self.tx_hash,
            block_number=self.block_number,
            block_hash=self.block_hash,
            from_address=normalize_address(sender),
            to=decoded.to if decoded else None,
            value=decoded.value if decoded else None,
            type=TOKEN_TYPE,
            is_suicide=False,
            is_internal=True,
            trace_address=abs(dex),
            contract=contract_address,
            method=decoded.method if decoded else None,
            input=data,
            input_decoded=decoded.to_dict() if decoded else None,
        )

    def _decode(self, contract: Any, data: Any, dex: int) -> Optional[DecodedCall]:
        if self.decoder is None:
            return None
        try:
            return self.decoder(contract, data)
        except Exception as exc:  # pylint: disable=broad-except
            self._issue(abs(dex), f"undecoded call to {contract}: {exc}")
            return None


def flatten(
    transaction: Optional[Mapping[str, Any]],
    root: Any,
    decoder: Optional[Decoder] = None,
) -> FlattenResult:
    """
    Flatten ``root`` (a callTracer node) for ``transaction``.

    An absent or empty root, which is what a failed trace fetch yields,
    produces an empty result. Malformed nodes are recorded in
    ``result.issues`` and skipped; nothing raises out of here.
    """
    result = FlattenResult()
    if not root:
        return result
    _TraceWalker(transaction or {}, decoder, result).walk(root)
    return result
