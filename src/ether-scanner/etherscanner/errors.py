"""
Error hierarchy for the scanner.

Only the orchestrator-facing conditions are raised; the codecs and the trace
flattener contain their own failures and never raise past their boundary.
"""

from typing import Any, Dict, Optional


class ScannerError(Exception):
    """Base exception for all scanner errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class RpcError(ScannerError, ValueError):
    """Node returned an error object or an unusable response."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        method: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.code = code
        self.method = method


class TransactionNotFoundError(ScannerError):
    """The node does not know the transaction hash."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} not found.", {"hash": tx_hash})
        self.tx_hash = tx_hash


class UnconfirmedTransactionError(ScannerError):
    """Transaction is still pending; no block context means no trace."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} is unconfirmed.", {"hash": tx_hash})
        self.tx_hash = tx_hash


class DecodeError(ScannerError):
    """Calldata matched a known selector but could not be decoded."""
