"""
MCP server exposing block and transaction transfer scans.
"""

import argparse
import logging
from typing import Optional, Union

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .service import ScanService, summarize

server = FastMCP(
    name="ether-scanner",
    instructions="Reconstruct native and token-style transfers from Ethereum call traces.",
)

_service: Optional[ScanService] = None


def _get_service() -> ScanService:
    global _service
    if _service is None:
        cfg = load_config()
        logging.basicConfig(level=cfg.log_level)
        _service = ScanService(cfg)
    return _service


@server.tool(
    name="scan_block",
    title="Scan Block Transfers",
    description="Scan every transaction of a block (latest, decimal, or 0x hex). Set summary_only to get counts instead of the full records.",
)
def scan_block(block: Union[int, str], summary_only: bool = False) -> dict:
    svc = _get_service()
    result = svc.scan_block(block)
    if summary_only:
        block_obj = result["block"] or {}
        return {
            "number": block_obj.get("number"),
            "hash": block_obj.get("hash"),
            **summarize(result["transactions"]),
        }
    return result


@server.tool(
    name="scan_transaction",
    title="Scan Transaction",
    description="Fetch a confirmed transaction, its receipt, and all flattened transfers.",
)
def scan_transaction(tx_hash: str) -> dict:
    svc = _get_service()
    return svc.process_transaction(tx_hash)


@server.tool(
    name="get_transfers",
    title="Get Transaction Transfers",
    description="Return only the flattened transfer events (and any trace issues) for a transaction.",
)
def get_transfers(tx_hash: str) -> dict:
    svc = _get_service()
    return svc.get_transfers(tx_hash)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the ether-scanner MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    args = parser.parse_args()

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
