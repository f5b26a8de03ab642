import logging
import threading
import time
from typing import Any, Dict, List, Optional, Union

import requests

from .errors import RpcError

logger = logging.getLogger(__name__)

BlockTag = Union[int, str]


def block_tag(value: BlockTag) -> str:
    if isinstance(value, bool):
        raise ValueError("block tag must be an int or string.")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("block number must be non-negative.")
        return hex(value)
    return value


class RpcClient:
    """Minimal JSON-RPC 2.0 client for EVM nodes (HTTP POST)."""

    def __init__(
        self,
        rpc_url: str,
        timeout: int = 30,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)
        self.headers = {"Content-Type": "application/json"}
        if headers:
            self.headers.update(dict(headers))
        # requests.Session is not thread-safe; block scans call in from a pool
        self._local = threading.local()
        self._next_id = 1
        self._id_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self.headers)
            self._local.session = session
        return session

    @session.setter
    def session(self, session: requests.Session) -> None:
        self._local.session = session

    def _request_id(self) -> int:
        with self._id_lock:
            request_id = self._next_id
            self._next_id += 1
        return request_id

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        if params is None:
            params = []
        if not isinstance(params, list):
            raise ValueError("params must be a list.")

        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id(),
            "method": method,
            "params": params,
        }

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.post(
                    self.rpc_url,
                    json=payload,
                    timeout=self.timeout,
                )
                if response.status_code in {429} or response.status_code >= 500:
                    if attempt < self.max_retries:
                        logger.debug("%s got HTTP %s, retrying", method, response.status_code)
                        time.sleep(self.backoff_seconds * attempt)
                        continue

                response.raise_for_status()
                data = response.json()
            except requests.RequestException as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise
            except ValueError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise RpcError("Unparseable JSON-RPC response.", method=method) from exc

            return self._unwrap(method, data)

        if last_error:
            raise last_error
        raise RuntimeError("RPC request failed without raising an exception.")

    def _unwrap(self, method: str, data: Any) -> Any:
        if not isinstance(data, dict):
            raise RpcError("Unexpected JSON-RPC response (non-object).", method=method)

        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            code = error_obj.get("code")
            message = error_obj.get("message")
            err_data = error_obj.get("data")
            parts: list[str] = []
            if code is not None:
                parts.append(f"code {code}")
            if message:
                parts.append(str(message))
            if err_data:
                parts.append(str(err_data))
            detail = ": ".join(parts) if parts else "unknown error"
            raise RpcError(f"RPC error: {detail}.", code=code, method=method)

        if "result" not in data:
            raise RpcError("Unexpected JSON-RPC response (missing result).", method=method)
        return data.get("result")

    def get_block_number(self) -> int:
        result = self.call("eth_blockNumber", [])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError("RPC error: eth_blockNumber returned unexpected result.", method="eth_blockNumber")
        return int(result, 16)

    def get_block_by_number(self, number: BlockTag, full_transactions: bool = False) -> Optional[Dict[str, Any]]:
        return self.call("eth_getBlockByNumber", [block_tag(number), full_transactions])

    def get_transaction_by_hash(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionByHash", [tx_hash])

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionReceipt", [tx_hash])

    def get_balance(self, address: str, tag: BlockTag = "latest") -> str:
        return self.call("eth_getBalance", [address, block_tag(tag)])

    def get_code(self, address: str, tag: BlockTag = "latest") -> str:
        return self.call("eth_getCode", [address, block_tag(tag)])

    def trace_transaction(self, tx_hash: str, options: Optional[Dict[str, Any]] = None) -> Any:
        return self.call("debug_traceTransaction", [tx_hash, dict(options or {})])
