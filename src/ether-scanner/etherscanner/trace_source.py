"""
Fetch ``callTracer`` trees through ``debug_traceTransaction``.

A failed fetch is never fatal: it is logged and reported as ``None`` so the
transaction shows up with no internal transfers instead of failing the scan.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .codecs import to_integer
from .errors import ScannerError
from .rpc_client import RpcClient

logger = logging.getLogger(__name__)

CALL_TRACER = "callTracer"


class TraceSource:
    def __init__(self, rpc: RpcClient, timeout: str = "30s", reexec_margin: int = 20) -> None:
        self.rpc = rpc
        self.timeout = timeout
        self.reexec_margin = reexec_margin

    def trace_options(self, head_block: int, tx_block: Any) -> Dict[str, Any]:
        tx_height = to_integer(tx_block)
        if not isinstance(tx_height, int):
            tx_height = head_block
        reexec = max(head_block - tx_height, 0) + self.reexec_margin
        return {"tracer": CALL_TRACER, "timeout": self.timeout, "reexec": reexec}

    def fetch(self, tx_hash: str, tx_block: Any) -> Optional[Dict[str, Any]]:
        try:
            head_block = self.rpc.get_block_number()
            result = self.rpc.trace_transaction(tx_hash, self.trace_options(head_block, tx_block))
        except (requests.RequestException, ScannerError, ValueError) as exc:
            logger.warning("error doing trace for %s: %s", tx_hash, exc)
            return None

        if not isinstance(result, dict):
            logger.warning("unexpected trace shape for %s: %s", tx_hash, type(result).__name__)
            return None
        return result
