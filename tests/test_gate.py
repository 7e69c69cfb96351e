# tests/test_gate.py
"""
TokenGate: Content Gate Tests

End-to-end create and read paths over the in-memory ledger, threshold
network, wallet and HTTP transport.
"""

import asyncio

import pytest

from tokengate import (
    ContentGate,
    ErrorKind,
    EncryptionScheme,
    MockHTTPTransport,
    MockLedger,
    MockThresholdNetwork,
    MockWalletAdapter,
    Web3Ledger,
    extract_envelope,
    ledger_for,
)
from tokengate.errors import PredicateBuildError
from tokengate.lifecycle import BurnState, BurnTarget

CONTRACT = "0xABC"
OWNER = "0x" + "1" * 40
STRANGER = "0x" + "2" * 40
METADATA_URL = "https://example.com/42.json"


def make_gate(ctx, ledger, **network_options):
    transport = MockHTTPTransport()
    gate = ContentGate(ledger, MockThresholdNetwork(ledger, **network_options), ctx, transport)
    return gate, transport


def publish(gate, transport, ledger, envelope, asset_id=42, holder=OWNER):
    document = gate.build_token_metadata(
        envelope, name="Issue #1", contract_address=CONTRACT, asset_id=asset_id, creator=holder,
    )
    transport.add_json(METADATA_URL, document)
    ledger.mint(CONTRACT, holder, asset_id, uri=METADATA_URL)
    return document


# =============================================================================
# Scenario: 0xABC / 42 / sepolia
# =============================================================================

def test_holder_reads_threshold_content(ctx, ledger):
    gate, transport = make_gate(ctx, ledger)
    wallet = MockWalletAdapter(address=OWNER)

    async def run():
        protected = await gate.protect_content("secret", asset_id=42, contract_address=CONTRACT, chain="sepolia")
        publish(gate, transport, ledger, protected.value.envelope)
        return protected, await gate.access_content(CONTRACT, 42, OWNER, wallet)

    protected, result = asyncio.run(run())

    assert protected.ok
    assert not protected.value.used_fallback
    clause = protected.value.predicate.to_list()[0]
    assert clause["contractAddress"] == "0xABC"
    assert clause["parameters"] == [":userAddress", "42"]
    assert clause["chain"] == "sepolia"
    assert clause["returnValueTest"] == {"comparator": ">", "value": "0"}

    assert result.ok
    assert result.value.text == "secret"
    assert result.value.scheme is EncryptionScheme.THRESHOLD


def test_non_holder_is_refused_before_decrypt(ctx, ledger):
    gate, transport = make_gate(ctx, ledger)
    wallet = MockWalletAdapter(address=STRANGER)

    async def run():
        protected = await gate.protect_content("secret", asset_id=42, contract_address=CONTRACT)
        publish(gate, transport, ledger, protected.value.envelope)
        return await gate.access_content(CONTRACT, 42, STRANGER, wallet)

    result = asyncio.run(run())
    assert not result.ok
    assert result.kind is ErrorKind.NOT_OWNER
    assert transport.requests == []
    assert wallet.signed_messages == []


def test_rpc_outage_is_not_not_owner(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    ledger.fail_methods.add("balanceOf")

    result = asyncio.run(gate.access_content(CONTRACT, 42, OWNER, MockWalletAdapter(address=OWNER)))
    assert result.kind is ErrorKind.RPC_UNAVAILABLE


def test_missing_uri_and_missing_envelope(ctx, ledger):
    gate, transport = make_gate(ctx, ledger)
    wallet = MockWalletAdapter(address=OWNER)
    ledger.set_balance(CONTRACT, OWNER, 42, 1)

    result = asyncio.run(gate.access_content(CONTRACT, 42, OWNER, wallet))
    assert result.kind is ErrorKind.METADATA_UNAVAILABLE

    transport.add_json(METADATA_URL, {"name": "plain", "properties": {}})
    ledger.mint(CONTRACT, OWNER, 42, uri=METADATA_URL)
    result = asyncio.run(gate.access_content(CONTRACT, 42, OWNER, wallet))
    assert result.kind is ErrorKind.NO_ENCRYPTED_CONTENT


def test_gateway_failure(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    ledger.mint(CONTRACT, OWNER, 42, uri=METADATA_URL)

    result = asyncio.run(gate.access_content(CONTRACT, 42, OWNER, MockWalletAdapter(address=OWNER)))
    assert result.kind is ErrorKind.METADATA_UNAVAILABLE


def test_invalid_asset_id(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    result = asyncio.run(gate.protect_content("secret", asset_id="forty-two", contract_address=CONTRACT))
    assert result.kind is ErrorKind.INVALID_INPUT


# =============================================================================
# Fallback
# =============================================================================

def test_fallback_content_still_readable(ctx, ledger):
    gate, transport = make_gate(ctx, ledger, fail_connect=True)
    wallet = MockWalletAdapter(address=OWNER)

    async def run():
        protected = await gate.protect_content(b"\x89PNG", asset_id=42, contract_address=CONTRACT,
                                               file_name="cover.png")
        document = publish(gate, transport, ledger, protected.value.envelope)
        return protected, document, await gate.access_content(CONTRACT, 42, OWNER, wallet)

    protected, document, result = asyncio.run(run())
    assert protected.value.used_fallback
    assert document["properties"]["encryptionType"] == "web-crypto"
    assert result.ok
    assert result.value.data == b"\x89PNG"
    assert result.value.file_name == "cover.png"


def test_metadata_document_layout(ctx, ledger):
    gate, _ = make_gate(ctx, ledger, fail_connect=True)
    protected = asyncio.run(gate.protect_content("preview me", asset_id=42, contract_address=CONTRACT))
    envelope = protected.value.envelope

    document = gate.build_token_metadata(envelope, name="  ", contract_address=CONTRACT, asset_id=42,
                                         content_hash="hash")
    assert document["name"] == "Token #42"
    assert document["properties"]["tokenId"] == "42"
    assert document["properties"]["encrypted"] is True
    assert document["properties"]["encryptionData"]["originalContent"] is None
    assert {"trait_type": "Content Hash", "value": "hash"} in document["attributes"]
    assert extract_envelope(document).scheme is EncryptionScheme.SYMMETRIC

    with_preview = gate.build_token_metadata(envelope, name="x", contract_address=CONTRACT, asset_id=42,
                                             include_preview=True)
    assert with_preview["properties"]["encryptionData"]["originalContent"] == "preview me"


# =============================================================================
# Discovery
# =============================================================================

def test_list_owned_assets_from_events(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    ledger.mint(CONTRACT, OWNER, 7, uri="ipfs://a", content_hash="h7", block=900)
    ledger.mint(CONTRACT, OWNER, 9, uri="ipfs://b", content_hash="h9", block=950)
    ledger.mint(CONTRACT, STRANGER, 11, block=960)
    ledger.set_balance(CONTRACT, OWNER, 9, 0)

    result = asyncio.run(gate.list_owned_assets(OWNER, CONTRACT))
    assert result.ok
    assert result.value.complete
    assert [r.asset_id for r in result.value.records] == [7]
    record = result.value.records[0]
    assert record.content_hash == "h7"
    assert record.token_metadata_uri == "ipfs://a"
    assert record.balance == 1


def test_list_owned_assets_scans_ids_when_no_events(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    ledger.block_number = 5000
    ledger.mint(CONTRACT, OWNER, 5, uri="ipfs://c", block=10)

    result = asyncio.run(gate.list_owned_assets(OWNER, CONTRACT))
    assert [r.asset_id for r in result.value.records] == [5]


def test_list_owned_assets_partial(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    ledger.mint(CONTRACT, OWNER, 7, block=900)
    ledger.failing_ranges.add((500, 999))
    ledger.mint(CONTRACT, OWNER, 3, block=100)

    result = asyncio.run(gate.list_owned_assets(OWNER, CONTRACT))
    assert result.ok
    assert not result.value.complete
    assert [r.asset_id for r in result.value.records] == [3]


def test_list_owned_assets_rpc_down(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    ledger.fail_methods.add("eth_blockNumber")
    result = asyncio.run(gate.list_owned_assets(OWNER, CONTRACT))
    assert result.kind is ErrorKind.RPC_UNAVAILABLE


# =============================================================================
# Burn
# =============================================================================

def test_burn_through_gate_refreshes(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)
    ledger.mint(CONTRACT, OWNER, 42, uri=METADATA_URL)
    ctx.metadata.put(f"{CONTRACT.lower()}_42", {"name": "cached"})
    wallet = MockWalletAdapter(chain_id=11155111, address=OWNER, ledger=ledger)

    burn = gate.burn_coordinator(wallet)
    burn.open(BurnTarget(CONTRACT, 42, OWNER))
    outcome = asyncio.run(burn.confirm())

    assert outcome.state is BurnState.SUCCESS
    assert asyncio.run(ledger.balance_of(CONTRACT, OWNER, 42)) == 0
    assert f"{CONTRACT.lower()}_42" not in ctx.metadata
    assert "eth_getLogs" in ledger.calls


# =============================================================================
# Providers
# =============================================================================

def test_ledger_provider_reused(ctx):
    first = ledger_for(ctx)
    assert isinstance(first, Web3Ledger)
    assert ledger_for(ctx) is first
    assert ledger_for(ctx, "http://localhost:8545") is not first


def test_from_config_builds_web3_ledger(config):
    gate = ContentGate.from_config(MockThresholdNetwork(), config)
    assert isinstance(gate.ledger, Web3Ledger)
    assert gate.ledger.rpc_url == config.rpc_url
    assert not isinstance(gate.ledger, MockLedger)


def test_rejects_unknown_error_types(ctx, ledger):
    gate, _ = make_gate(ctx, ledger)

    class Exploding(MockLedger):
        async def balance_of(self, contract, owner, asset_id):
            raise ZeroDivisionError()

    gate.verifier.ledger = Exploding()
    with pytest.raises(ZeroDivisionError):
        asyncio.run(gate.access_content(CONTRACT, 42, OWNER, MockWalletAdapter(address=OWNER)))


def test_malformed_contract_is_invalid_input(config):
    gate = ContentGate.from_config(MockThresholdNetwork(), config)
    result = asyncio.run(gate.access_content("0xABC", 42, OWNER, MockWalletAdapter(address=OWNER)))

    assert not result.ok
    assert result.kind is ErrorKind.INVALID_INPUT


def test_malformed_caller_listing_is_invalid_input(ctx):
    class StrictLedger(MockLedger):
        async def balance_of(self, contract, owner, asset_id):
            if len(owner) != 42:
                raise PredicateBuildError(f"Invalid address {owner!r}")
            return await super().balance_of(contract, owner, asset_id)

    ledger = StrictLedger()
    ledger.mint(CONTRACT, "0x123", 7, block=900)
    gate, _ = make_gate(ctx, ledger)

    result = asyncio.run(gate.list_owned_assets("0x123", CONTRACT))
    assert result.kind is ErrorKind.INVALID_INPUT
