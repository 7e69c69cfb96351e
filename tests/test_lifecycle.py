# tests/test_lifecycle.py
"""
TokenGate: Burn Lifecycle Tests

State machine transitions, validation failures and receipt outcomes.
"""

import asyncio

import pytest

from tokengate.adapters import MockWalletAdapter
from tokengate.context import metadata_key
from tokengate.errors import TransactionError
from tokengate.lifecycle import BurnCoordinator, BurnState, BurnTarget, burn_gas_limit

CONTRACT = "0x" + "ab" * 20
OWNER = "0x" + "1" * 40
STRANGER = "0x" + "2" * 40


def setup(ledger, ctx, wallet_address=OWNER, chain_id=11155111, balance=1, **wallet_options):
    ledger.set_balance(CONTRACT, OWNER, 42, balance)
    wallet = MockWalletAdapter(chain_id=chain_id, address=wallet_address, ledger=ledger, **wallet_options)
    refreshed = []

    async def refresh(owner):
        refreshed.append(owner)

    burn = BurnCoordinator(ledger, wallet, ctx, refresh=refresh)
    return burn, wallet, refreshed


def states(burn):
    return [t.state for t in burn.history]


def test_gas_limit_margin():
    assert burn_gas_limit(60000) == 60000 + 6000 + 10000
    assert burn_gas_limit(0) == 10000


# =============================================================================
# Dialog
# =============================================================================

def test_open_and_cancel_send_nothing(ledger, ctx):
    burn, wallet, _ = setup(ledger, ctx)
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    burn.cancel()

    assert burn.state is BurnState.IDLE
    assert burn.target is None
    assert wallet.sent_transactions == []
    assert states(burn) == [BurnState.IDLE]


def test_confirm_requires_target(ledger, ctx):
    burn, _, _ = setup(ledger, ctx)
    with pytest.raises(TransactionError):
        asyncio.run(burn.confirm())


def test_amount_must_be_positive(ledger, ctx):
    burn, _, _ = setup(ledger, ctx)
    with pytest.raises(ValueError):
        burn.open(BurnTarget(CONTRACT, 42, OWNER, amount=0))


# =============================================================================
# Success
# =============================================================================

def test_confirmed_burn(ledger, ctx):
    burn, wallet, refreshed = setup(ledger, ctx)
    key = metadata_key(CONTRACT, 42)
    ctx.metadata.put(key, {"name": "cached"})

    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.SUCCESS
    assert outcome.confirmed
    assert outcome.tx_hash.startswith("0x")
    assert states(burn) == [
        BurnState.IDLE,
        BurnState.VALIDATING,
        BurnState.SIGNING,
        BurnState.PENDING,
        BurnState.SUCCESS,
    ]
    assert asyncio.run(ledger.balance_of(CONTRACT, OWNER, 42)) == 0
    assert key not in ctx.metadata
    assert refreshed == [OWNER]
    assert wallet.sent_transactions[0]["gas"] == burn_gas_limit(ledger.gas_estimate)


def test_owner_compared_case_insensitively(ledger, ctx):
    checksummed = "0x" + "Cd" * 20
    ledger.set_balance(CONTRACT, checksummed, 42, 1)
    wallet = MockWalletAdapter(chain_id=11155111, address=checksummed, ledger=ledger)
    burn = BurnCoordinator(ledger, wallet, ctx)

    burn.open(BurnTarget(CONTRACT, 42, checksummed))
    assert asyncio.run(burn.confirm()).state is BurnState.SUCCESS


def test_reopen_after_success(ledger, ctx):
    burn, _, _ = setup(ledger, ctx, balance=2)
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    asyncio.run(burn.confirm())

    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    assert burn.state is BurnState.IDLE
    assert asyncio.run(burn.confirm()).state is BurnState.SUCCESS


# =============================================================================
# Validation Failures
# =============================================================================

def test_wrong_signer_never_reaches_signing(ledger, ctx):
    burn, wallet, _ = setup(ledger, ctx, wallet_address=STRANGER)
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.ERROR
    assert outcome.reason == "not_owner"
    assert BurnState.SIGNING not in states(burn)
    assert wallet.sent_transactions == []
    assert "estimateGas" not in ledger.calls


def test_wrong_network_switches(ledger, ctx):
    burn, wallet, _ = setup(ledger, ctx, chain_id=1)
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert wallet.switch_requests == [11155111]
    assert outcome.state is BurnState.SUCCESS


def test_declined_network_switch(ledger, ctx):
    burn, wallet, _ = setup(ledger, ctx, chain_id=1, approve_switch=False)
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.ERROR
    assert outcome.reason == "cancelled"
    assert wallet.sent_transactions == []


def test_insufficient_balance(ledger, ctx):
    burn, wallet, _ = setup(ledger, ctx, balance=1)
    burn.open(BurnTarget(CONTRACT, 42, OWNER, amount=2))
    outcome = asyncio.run(burn.confirm())

    assert outcome.reason == "insufficient_balance"
    assert wallet.sent_transactions == []


def test_balance_rpc_failure(ledger, ctx):
    burn, _, _ = setup(ledger, ctx)
    ledger.fail_methods.add("balanceOf")
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.ERROR
    assert outcome.reason == "rpc"


# =============================================================================
# Signing and Receipt
# =============================================================================

def test_rejected_in_wallet(ledger, ctx):
    burn, _, _ = setup(ledger, ctx, auto_approve=False)
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.ERROR
    assert outcome.reason == "cancelled"
    assert asyncio.run(ledger.balance_of(CONTRACT, OWNER, 42)) == 1


def test_reverted_transaction(ledger, ctx):
    burn, _, refreshed = setup(ledger, ctx)
    ledger.revert_transactions = True
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.ERROR
    assert outcome.reason == "reverted"
    assert outcome.tx_hash is not None
    assert isinstance(outcome.error, TransactionError)
    assert refreshed == []


def test_unconfirmed_stays_pending(ledger, ctx):
    burn, _, refreshed = setup(ledger, ctx)
    ledger.confirm_transactions = False
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.PENDING
    assert not outcome.confirmed
    assert outcome.tx_hash is not None
    assert burn.state is BurnState.PENDING
    assert refreshed == []

    with pytest.raises(TransactionError):
        burn.open(BurnTarget(CONTRACT, 42, OWNER))


def test_receipt_lookup_failure_is_pending(ledger, ctx):
    burn, _, _ = setup(ledger, ctx)
    ledger.fail_methods.add("eth_getTransactionReceipt")
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.PENDING
    assert not outcome.confirmed

    ledger.fail_methods.clear()
    resumed = asyncio.run(burn.resume())
    assert resumed.state is BurnState.SUCCESS
