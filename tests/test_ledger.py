# tests/test_ledger.py
"""
TokenGate Chain: Web3 Ledger Tests

Address validation and log decoding. None of these reach the network.
"""

import asyncio

import pytest

from tokengate.chain.ledger import LedgerEvent, Web3Ledger, _decode_log
from tokengate.errors import PredicateBuildError, RpcError

CONTRACT = "0x" + "ab" * 20
OWNER = "0x" + "1" * 40


def make_ledger():
    return Web3Ledger(rpc_url="http://localhost:8545", timeout=1.0)


# =============================================================================
# Address Validation
# =============================================================================

@pytest.mark.parametrize("contract,owner", [
    ("0xABC", OWNER),
    (CONTRACT, "not-an-address"),
    (CONTRACT, "0x" + "zz" * 20),
])
def test_malformed_address_on_balance_read(contract, owner):
    with pytest.raises(PredicateBuildError):
        asyncio.run(make_ledger().balance_of(contract, owner, 42))


def test_malformed_account_on_log_query():
    with pytest.raises(PredicateBuildError):
        asyncio.run(make_ledger().get_transfer_logs(CONTRACT, "0x123", 0, 10))


def test_malformed_owner_on_burn():
    with pytest.raises(PredicateBuildError):
        asyncio.run(make_ledger().build_burn_transaction(CONTRACT, "0x123", 42, 1, 76000))


# =============================================================================
# Log Decoding
# =============================================================================

class StaticDecoder:
    def __init__(self, decoded):
        self.decoded = decoded

    def process_log(self, raw):
        return self.decoded


def test_decode_transfer_single():
    decoder = StaticDecoder({
        "args": {"id": 7},
        "blockNumber": 950,
        "transactionHash": b"\x01" * 32,
    })
    log = _decode_log(decoder, LedgerEvent.TRANSFER_SINGLE, {}, OWNER.upper().replace("0X", "0x"))

    assert log.asset_ids == [7]
    assert log.block_number == 950
    assert log.account == OWNER
    assert log.tx_hash == "0x" + "01" * 32


def test_decode_transfer_batch():
    decoder = StaticDecoder({
        "args": {"ids": [3, 4]},
        "blockNumber": 10,
        "transactionHash": b"\x02" * 32,
    })
    assert _decode_log(decoder, LedgerEvent.TRANSFER_BATCH, {}, OWNER).asset_ids == [3, 4]


def test_undecodable_log_is_rpc_error():
    token = make_ledger()._contract(CONTRACT)
    decoder = token.events.TransferSingle()

    with pytest.raises(RpcError) as info:
        _decode_log(decoder, LedgerEvent.TRANSFER_SINGLE, {"topics": [], "data": "0x"}, OWNER)
    assert info.value.method == "eth_getLogs"


def test_missing_fields_are_rpc_error():
    decoder = StaticDecoder({"args": {}, "blockNumber": 1, "transactionHash": b""})
    with pytest.raises(RpcError):
        _decode_log(decoder, LedgerEvent.CONTENT_CREATED, {}, OWNER)
