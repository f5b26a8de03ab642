import os
from dataclasses import dataclass

DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_TRACE_TIMEOUT = "30s"
# extra blocks of history the node may replay on top of the tx's own age
DEFAULT_REEXEC_MARGIN = 20
DEFAULT_SCAN_CONCURRENCY = 8

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass
class Config:
    rpc_url: str
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    max_retries: int = 3
    backoff_seconds: float = 0.5
    trace_timeout: str = DEFAULT_TRACE_TIMEOUT
    reexec_margin: int = DEFAULT_REEXEC_MARGIN
    scan_concurrency: int = DEFAULT_SCAN_CONCURRENCY
    decode_tokens: bool = True
    log_level: str = "WARNING"


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'.") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got '{raw}'.")


def load_config() -> Config:
    """Load configuration from environment variables."""
    rpc_url = (os.getenv("ETH_RPC_URL") or "").strip()
    if not rpc_url:
        raise ValueError("ETH_RPC_URL is required but not set.")

    try:
        backoff = float(os.getenv("REQUEST_BACKOFF_SECONDS", "0.5"))
    except ValueError as exc:
        raise ValueError("REQUEST_BACKOFF_SECONDS must be a number.") from exc

    log_level = os.getenv("LOG_LEVEL", "WARNING").strip().upper()
    if log_level not in _LOG_LEVELS:
        allowed = ", ".join(sorted(_LOG_LEVELS))
        raise ValueError(f"Unknown LOG_LEVEL '{log_level}'. Supported: {allowed}.")

    return Config(
        rpc_url=rpc_url.rstrip("/"),
        request_timeout=_int_env("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, minimum=1),
        max_retries=_int_env("REQUEST_RETRIES", 3, minimum=1),
        backoff_seconds=backoff,
        trace_timeout=os.getenv("TRACE_TIMEOUT", DEFAULT_TRACE_TIMEOUT).strip() or DEFAULT_TRACE_TIMEOUT,
        reexec_margin=_int_env("TRACE_REEXEC_MARGIN", DEFAULT_REEXEC_MARGIN),
        scan_concurrency=_int_env("SCAN_CONCURRENCY", DEFAULT_SCAN_CONCURRENCY, minimum=1),
        decode_tokens=_bool_env("DECODE_TOKENS", True),
        log_level=log_level,
    )
