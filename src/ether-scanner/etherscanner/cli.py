import argparse
import json
import logging
import sys
from typing import Optional

from .config import load_config
from .service import ScanService, summarize


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconstruct native and token-style transfers from node call traces.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    block_parser = subparsers.add_parser("scan-block", help="Scan every transaction in a block")
    block_parser.add_argument(
        "--block",
        required=True,
        help="Block identifier: latest, decimal number, or 0x-prefixed hex.",
    )
    block_parser.add_argument(
        "--summary",
        action="store_true",
        help="Print event counts instead of the full block scan (may be large).",
    )

    tx_parser = subparsers.add_parser("scan-tx", help="Scan a single transaction with its receipt")
    tx_parser.add_argument(
        "--tx-hash",
        required=True,
        help="Transaction hash (0x-prefixed).",
    )

    transfers_parser = subparsers.add_parser("transfers", help="Print flattened transfers for a transaction")
    transfers_parser.add_argument(
        "--tx-hash",
        required=True,
        help="Transaction hash (0x-prefixed).",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        logging.basicConfig(
            level=config.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )
        service = ScanService(config)

        if args.command == "scan-block":
            result = service.scan_block(args.block)
            if args.summary:
                block = result["block"] or {}
                result = {
                    "number": block.get("number"),
                    "hash": block.get("hash"),
                    **summarize(result["transactions"]),
                }
            print(json.dumps(result, indent=2))
        elif args.command == "scan-tx":
            result = service.process_transaction(args.tx_hash)
            print(json.dumps(result, indent=2))
        elif args.command == "transfers":
            result = service.get_transfers(args.tx_hash)
            print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
