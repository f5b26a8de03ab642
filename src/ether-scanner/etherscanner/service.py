import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Union

from .abi import AbiRegistry, CallDecoder, default_registry
from .cache import ContractCache
from .codecs import to_decimal, to_integer
from .config import Config
from .errors import TransactionNotFoundError, UnconfirmedTransactionError
from .rpc_client import RpcClient
from .trace import Decoder, FlattenResult, flatten
from .trace_source import TraceSource

logger = logging.getLogger(__name__)

TX_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")
EMPTY_CODE = {"", "0x", "0x0"}


class ScanService:
    """Combine configuration, RPC client, trace source and decoder to scan blocks."""

    def __init__(
        self,
        config: Config,
        rpc: Optional[RpcClient] = None,
        decoder: Optional[Decoder] = None,
        registry: Optional[AbiRegistry] = None,
    ) -> None:
        self.config = config
        self.rpc = rpc or RpcClient(
            rpc_url=config.rpc_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            backoff_seconds=config.backoff_seconds,
        )
        self.traces = TraceSource(
            self.rpc,
            timeout=config.trace_timeout,
            reexec_margin=config.reexec_margin,
        )
        if decoder is None and config.decode_tokens:
            decoder = CallDecoder(registry or default_registry())
        self.decoder = decoder
        self.contract_cache = ContractCache()

    def scan_transaction(self, tx_hash: str) -> FlattenResult:
        tx = self._get_confirmed_transaction(self._normalize_tx_hash(tx_hash))
        return self.scan_transaction_details(tx)

    def scan_transaction_details(self, tx: Dict[str, Any]) -> FlattenResult:
        tree = self.traces.fetch(tx.get("hash"), tx.get("blockNumber"))
        return flatten(tx, tree, self.decoder)

    def get_transfers(self, tx_hash: str) -> Dict[str, Any]:
        normalized_hash = self._normalize_tx_hash(tx_hash)
        result = self.scan_transaction(normalized_hash)
        return {
            "hash": normalized_hash,
            "transfers": result.to_dicts(),
            "issues": [issue.to_dict() for issue in result.issues],
            "isInternal": result.has_internal,
        }

    def process_transaction(self, tx_hash: str) -> Dict[str, Any]:
        normalized_hash = self._normalize_tx_hash(tx_hash)
        tx = self._get_confirmed_transaction(normalized_hash)
        result = self.scan_transaction_details(tx)
        receipt = self.rpc.get_transaction_receipt(normalized_hash)
        return {
            "hash": normalized_hash,
            "transaction": tx,
            "transfers": result.to_dicts(),
            "issues": [issue.to_dict() for issue in result.issues],
            "receipt": receipt,
            "isInternal": result.has_internal,
        }

    def scan_block(self, block: Union[int, str]) -> Dict[str, Any]:
        number = self._parse_block_number(block)
        block_obj = self.rpc.get_block_by_number(number, False)
        if not block_obj:
            return {"block": None, "transactions": []}

        hashes = [self._tx_hash_of(entry) for entry in block_obj.get("transactions") or []]
        logger.info("scanning block %s (%d transactions)", number, len(hashes))

        # executor.map keeps block order regardless of completion order
        with ThreadPoolExecutor(max_workers=self.config.scan_concurrency) as executor:
            records = list(
                executor.map(lambda h: self._scan_block_transaction(h, number, block_obj), hashes)
            )

        block_obj["number"] = number
        return {"block": block_obj, "transactions": records}

    def _scan_block_transaction(self, tx_hash: str, number: int, block: Dict[str, Any]) -> Dict[str, Any]:
        tx = dict(self._get_confirmed_transaction(tx_hash))
        tx["blockNumber"] = number
        result = self.scan_transaction_details(tx)
        receipt = self.rpc.get_transaction_receipt(tx_hash) or {}

        to_address = tx.get("to")
        from_address = tx.get("from")
        to_balance = "0x0" if to_address is None else self.rpc.get_balance(to_address, number)
        from_balance = self.rpc.get_balance(from_address, number)
        timestamp = to_integer(block.get("timestamp"))

        to_account = {
            "blockNumber": number,
            "address": to_address or "none",
            "balance": self._balance(to_balance),
            "timestamp": timestamp,
            "isContract": self._is_contract(to_address, receipt, number),
        }
        from_account = {
            "blockNumber": number,
            "address": from_address,
            "balance": self._balance(from_balance),
            "timestamp": timestamp,
        }
        return {
            "hash": tx_hash,
            "transaction": tx,
            "scan": result.to_dicts(),
            "issues": [issue.to_dict() for issue in result.issues],
            "receipt": receipt,
            "isInternal": result.has_internal,
            "toAccount": to_account,
            "fromAccount": from_account,
        }

    def _is_contract(self, address: Optional[str], receipt: Dict[str, Any], number: int) -> bool:
        if receipt.get("contractAddress") is not None:
            return True
        if address is None:
            return False

        cached = self.contract_cache.get(address, number)
        if cached is not None:
            return cached

        code = self.rpc.get_code(address, number)
        is_contract = isinstance(code, str) and code.strip().lower() not in EMPTY_CODE
        self.contract_cache.set(address, number, is_contract)
        return is_contract

    def _balance(self, raw: Any) -> str:
        value = to_decimal(raw)
        return value if value else "0"

    def _get_confirmed_transaction(self, tx_hash: str) -> Dict[str, Any]:
        tx = self.rpc.get_transaction_by_hash(tx_hash)
        if not tx:
            raise TransactionNotFoundError(tx_hash)
        if tx.get("blockNumber") is None:
            raise UnconfirmedTransactionError(tx_hash)
        return tx

    def _tx_hash_of(self, entry: Any) -> str:
        if isinstance(entry, dict):
            return entry.get("hash")
        return entry

    def _normalize_tx_hash(self, tx_hash: str) -> str:
        if not isinstance(tx_hash, str):
            raise ValueError("tx_hash must be a string.")
        candidate = tx_hash.strip().lower()
        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"
        if not TX_HASH_PATTERN.match(candidate):
            raise ValueError("tx_hash must be 0x-prefixed 64 hex characters.")
        return candidate

    def _parse_block_number(self, value: Union[int, str]) -> int:
        message = "block must be latest, a decimal number, or 0x-prefixed hex."
        if isinstance(value, bool):
            raise ValueError(message)
        if isinstance(value, int):
            if value < 0:
                raise ValueError("block must be non-negative.")
            return value
        if not isinstance(value, str):
            raise ValueError(message)

        candidate = value.strip().lower()
        if candidate == "latest":
            return self.rpc.get_block_number()
        if candidate.isdigit():
            return int(candidate)
        if candidate.startswith("0x"):
            try:
                return int(candidate, 16)
            except ValueError as exc:
                raise ValueError(message) from exc
        raise ValueError(message)


def summarize(records: List[Dict[str, Any]]) -> Dict[str, int]:
    """Counts used by the CLI/MCP block summaries."""
    events = [event for record in records for event in record.get("scan", [])]
    return {
        "transactions": len(records),
        "events": len(events),
        "internal": sum(1 for event in events if event.get("isInternal")),
        "token_candidates": sum(1 for event in events if event.get("type") == "Token"),
        "issues": sum(len(record.get("issues", [])) for record in records),
    }
