from unittest.mock import MagicMock

import pytest
import requests

from etherscanner.abi import CallDecoder
from etherscanner.config import Config
from etherscanner.errors import TransactionNotFoundError, UnconfirmedTransactionError
from etherscanner.rpc_client import RpcClient
from etherscanner.service import ScanService, summarize

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
TOKEN = "0x" + "d4" * 20
CREATED = "0x" + "e5" * 20

HASH_PAY = "0x" + "01" * 32
HASH_CALL = "0x" + "02" * 32
HASH_CREATE = "0x" + "03" * 32
HASH_CALL_AGAIN = "0x" + "04" * 32

ONE_ETHER_HEX = "0xde0b6b3a7640000"


def _tx(tx_hash, to, value="0x0", data="0x"):
    return {
        "hash": tx_hash,
        "from": ALICE,
        "to": to,
        "value": value,
        "input": data,
        "blockNumber": "0x64",
        "blockHash": "0x" + "cd" * 32,
    }


TRANSACTIONS = {
    HASH_PAY: _tx(HASH_PAY, BOB, value=ONE_ETHER_HEX),
    HASH_CALL: _tx(HASH_CALL, TOKEN),
    HASH_CREATE: _tx(HASH_CREATE, None, value="0x5"),
    HASH_CALL_AGAIN: _tx(HASH_CALL_AGAIN, TOKEN),
}

TREES = {
    HASH_PAY: {"type": "CALL", "from": ALICE, "to": BOB, "value": ONE_ETHER_HEX, "input": "0x"},
    HASH_CALL: {
        "type": "CALL",
        "from": ALICE,
        "to": TOKEN,
        "value": "0x0",
        "input": "0x",
        "calls": [{"type": "CALL", "from": TOKEN, "to": BOB, "value": "0x7", "input": "0x"}],
    },
    HASH_CREATE: {"type": "CREATE", "from": ALICE, "value": "0x5", "input": "0x6080"},
    HASH_CALL_AGAIN: {"type": "STATICCALL", "from": ALICE, "to": TOKEN, "value": "0x0", "input": "0x"},
}

RECEIPTS = {
    HASH_PAY: {"contractAddress": None, "status": "0x1"},
    HASH_CALL: {"contractAddress": None, "status": "0x1"},
    HASH_CREATE: {"contractAddress": CREATED, "status": "0x1"},
    HASH_CALL_AGAIN: {"contractAddress": None, "status": "0x1"},
}

CODE = {BOB: "0x", TOKEN: "0x6080604052"}


def _fake_rpc():
    rpc = MagicMock(spec=RpcClient)
    rpc.get_block_number.return_value = 120
    rpc.get_transaction_by_hash.side_effect = lambda h: TRANSACTIONS.get(h)
    rpc.get_transaction_receipt.side_effect = lambda h: RECEIPTS.get(h)
    rpc.trace_transaction.side_effect = lambda h, options: TREES[h]
    rpc.get_balance.return_value = ONE_ETHER_HEX
    rpc.get_code.side_effect = lambda address, tag: CODE.get(address, "0x")
    rpc.get_block_by_number.return_value = {
        "hash": "0x" + "cd" * 32,
        "timestamp": "0x5f5e100",
        "transactions": [HASH_PAY, HASH_CALL, HASH_CREATE, HASH_CALL_AGAIN],
    }
    return rpc


@pytest.fixture
def rpc():
    return _fake_rpc()


@pytest.fixture
def service(rpc):
    return ScanService(Config(rpc_url="http://node.local:8545", scan_concurrency=4), rpc=rpc)


class TestScanTransaction:
    def test_value_transfer(self, service):
        result = service.scan_transaction(HASH_PAY)

        assert len(result.events) == 1
        assert result.events[0].value == "1000000000000000000"
        assert result.events[0].is_internal is False

    def test_unknown_transaction_fails_fast(self, service, rpc):
        rpc.get_transaction_by_hash.side_effect = None
        rpc.get_transaction_by_hash.return_value = None

        with pytest.raises(TransactionNotFoundError):
            service.scan_transaction(HASH_PAY)

    def test_pending_transaction_fails_fast(self, service, rpc):
        rpc.get_transaction_by_hash.side_effect = None
        rpc.get_transaction_by_hash.return_value = dict(TRANSACTIONS[HASH_PAY], blockNumber=None)

        with pytest.raises(UnconfirmedTransactionError):
            service.scan_transaction(HASH_PAY)
        rpc.trace_transaction.assert_not_called()

    def test_invalid_hash_is_rejected(self, service):
        with pytest.raises(ValueError):
            service.scan_transaction("0x1234")

    def test_trace_failure_reports_no_transfers(self, service, rpc):
        rpc.trace_transaction.side_effect = requests.ConnectionError("node down")

        record = service.process_transaction(HASH_CALL)

        assert record["transfers"] == []
        assert record["isInternal"] is False
        assert record["receipt"] == RECEIPTS[HASH_CALL]

    def test_get_transfers_normalizes_hash(self, service):
        record = service.get_transfers(f"  {HASH_CALL[2:].upper()} ")

        assert record["hash"] == HASH_CALL
        assert record["isInternal"] is True
        assert [t["value"] for t in record["transfers"]] == ["7"]


class TestScanBlock:
    def test_records_keep_block_order(self, service):
        result = service.scan_block(100)

        assert [r["hash"] for r in result["transactions"]] == [
            HASH_PAY,
            HASH_CALL,
            HASH_CREATE,
            HASH_CALL_AGAIN,
        ]
        assert result["block"]["number"] == 100

    def test_record_shape(self, service):
        record = service.scan_block(100)["transactions"][0]

        assert set(record) == {
            "hash",
            "transaction",
            "scan",
            "issues",
            "receipt",
            "isInternal",
            "toAccount",
            "fromAccount",
        }
        assert record["transaction"]["blockNumber"] == 100
        assert record["isInternal"] is False
        assert record["toAccount"] == {
            "blockNumber": 100,
            "address": BOB,
            "balance": "1000000000000000000",
            "timestamp": 100000000,
            "isContract": False,
        }
        assert record["fromAccount"]["address"] == ALICE
        assert "isContract" not in record["fromAccount"]

    def test_internal_flag_and_contract_detection(self, service):
        records = service.scan_block(100)["transactions"]
        call, create, call_again = records[1], records[2], records[3]

        assert call["isInternal"] is True
        assert call["toAccount"]["isContract"] is True
        assert call_again["scan"] == []
        assert create["toAccount"]["address"] == "none"
        assert create["toAccount"]["balance"] == "0"
        assert create["toAccount"]["isContract"] is True
        assert create["scan"][0]["to"] is None

    def test_code_probe_is_cached_per_block(self, rpc):
        service = ScanService(Config(rpc_url="http://node.local:8545", scan_concurrency=1), rpc=rpc)

        service.scan_block(100)

        probed = [c.args[0] for c in rpc.get_code.call_args_list]
        assert probed.count(TOKEN) == 1

    def test_missing_block(self, service, rpc):
        rpc.get_block_by_number.return_value = None
        assert service.scan_block(100) == {"block": None, "transactions": []}

    def test_latest_resolves_head(self, service, rpc):
        result = service.scan_block("latest")
        rpc.get_block_by_number.assert_called_once_with(120, False)
        assert result["block"]["number"] == 120

    @pytest.mark.parametrize("block", ["0x64", "100", 100])
    def test_block_identifiers(self, service, rpc, block):
        service.scan_block(block)
        rpc.get_block_by_number.assert_called_once_with(100, False)

    @pytest.mark.parametrize("block", ["soon", -1, True, 1.5])
    def test_invalid_block_identifiers(self, service, block):
        with pytest.raises(ValueError):
            service.scan_block(block)

    def test_summarize(self, service):
        counts = summarize(service.scan_block(100)["transactions"])
        assert counts == {
            "transactions": 4,
            "events": 3,
            "internal": 1,
            "token_candidates": 0,
            "issues": 0,
        }


def test_decoder_follows_config(rpc):
    enabled = ScanService(Config(rpc_url="http://node"), rpc=rpc)
    disabled = ScanService(Config(rpc_url="http://node", decode_tokens=False), rpc=rpc)

    assert isinstance(enabled.decoder, CallDecoder)
    assert disabled.decoder is None
