import pytest

from etherscanner.config import Config, load_config

ENV_VARS = (
    "ETH_RPC_URL",
    "REQUEST_TIMEOUT",
    "REQUEST_RETRIES",
    "REQUEST_BACKOFF_SECONDS",
    "TRACE_TIMEOUT",
    "TRACE_REEXEC_MARGIN",
    "SCAN_CONCURRENCY",
    "DECODE_TOKENS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_rpc_url_is_required():
    with pytest.raises(ValueError, match="ETH_RPC_URL"):
        load_config()


def test_defaults(monkeypatch):
    monkeypatch.setenv("ETH_RPC_URL", " http://node.local:8545/ ")

    assert load_config() == Config(rpc_url="http://node.local:8545")


def test_overrides(monkeypatch):
    monkeypatch.setenv("ETH_RPC_URL", "http://node")
    monkeypatch.setenv("REQUEST_TIMEOUT", "60")
    monkeypatch.setenv("REQUEST_RETRIES", "5")
    monkeypatch.setenv("REQUEST_BACKOFF_SECONDS", "1.5")
    monkeypatch.setenv("TRACE_TIMEOUT", "2m")
    monkeypatch.setenv("TRACE_REEXEC_MARGIN", "0")
    monkeypatch.setenv("SCAN_CONCURRENCY", "2")
    monkeypatch.setenv("DECODE_TOKENS", "off")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config()

    assert config.request_timeout == 60
    assert config.max_retries == 5
    assert config.backoff_seconds == 1.5
    assert config.trace_timeout == "2m"
    assert config.reexec_margin == 0
    assert config.scan_concurrency == 2
    assert config.decode_tokens is False
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "name, value",
    [
        ("REQUEST_TIMEOUT", "soon"),
        ("SCAN_CONCURRENCY", "0"),
        ("TRACE_REEXEC_MARGIN", "-1"),
        ("REQUEST_BACKOFF_SECONDS", "fast"),
        ("DECODE_TOKENS", "maybe"),
        ("LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv("ETH_RPC_URL", "http://node")
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=name):
        load_config()
