# tests/test_predicate.py
"""
TokenGate Access: Predicate Tests

Construction, normalization, canonical serialization and evaluation.
"""

import dataclasses

import pytest

from tokengate.access import (
    AccessPredicate,
    Clause,
    Comparator,
    build_access_predicate,
    normalize_asset_id,
)
from tokengate.config import default_lit_chain
from tokengate.errors import PredicateBuildError


# =============================================================================
# Construction
# =============================================================================

def test_single_balance_clause():
    predicate = build_access_predicate("0xABC", 42, chain="sepolia")

    assert predicate.to_list() == [{
        "contractAddress": "0xABC",
        "standardContractType": "ERC1155",
        "chain": "sepolia",
        "method": "balanceOf",
        "parameters": [":userAddress", "42"],
        "returnValueTest": {"comparator": ">", "value": "0"},
    }]


def test_asset_id_forms_normalize_identically():
    as_int = build_access_predicate("0xABC", 42, chain="sepolia")
    as_str = build_access_predicate("0xABC", " 42 ", chain="sepolia")
    as_hex = build_access_predicate("0xABC", "0x2a", chain="sepolia")

    assert as_int.canonical_bytes() == as_str.canonical_bytes() == as_hex.canonical_bytes()


@pytest.mark.parametrize("bad", ["abc", "4.2", -1, "-7", True, ""])
def test_invalid_asset_ids_rejected(bad):
    with pytest.raises(PredicateBuildError):
        normalize_asset_id(bad)


def test_empty_contract_rejected():
    with pytest.raises(PredicateBuildError):
        build_access_predicate("  ", 1, chain="sepolia")


def test_contract_address_not_validated():
    predicate = build_access_predicate("not-an-address", 1, chain="sepolia")
    assert predicate.contract_address == "not-an-address"


def test_default_chain_from_environment(monkeypatch):
    for name in ("LIT_CHAIN", "CHAIN_ID", "NETWORK_MODE"):
        monkeypatch.delenv(name, raising=False)
    assert build_access_predicate("0xABC", 1).chain == "sepolia"

    monkeypatch.setenv("CHAIN_ID", "1")
    assert build_access_predicate("0xABC", 1).chain == "ethereum"

    monkeypatch.setenv("LIT_CHAIN", "polygon")
    assert build_access_predicate("0xABC", 1).chain == "polygon"


def test_default_chain_mainnet_mode():
    assert default_lit_chain({"NETWORK_MODE": "mainnet"}) == "ethereum"
    assert default_lit_chain({}) == "sepolia"


# =============================================================================
# Serialization
# =============================================================================

def test_json_is_canonical_and_stable():
    predicate = build_access_predicate("0xABC", 42, chain="sepolia")
    text = predicate.to_json()

    assert " " not in text
    assert text.index('"chain"') < text.index('"contractAddress"')

    restored = AccessPredicate.from_json(text)
    assert restored == predicate
    assert restored.to_json() == text


def test_changed_asset_changes_bytes():
    a = build_access_predicate("0xABC", 42, chain="sepolia")
    b = build_access_predicate("0xABC", 43, chain="sepolia")
    assert a.canonical_bytes() != b.canonical_bytes()


def test_malformed_wire_forms():
    with pytest.raises(PredicateBuildError):
        AccessPredicate.from_json("not json")
    with pytest.raises(PredicateBuildError):
        AccessPredicate.from_list([])
    with pytest.raises(PredicateBuildError):
        AccessPredicate.from_list([{"chain": "sepolia"}])
    with pytest.raises(PredicateBuildError):
        AccessPredicate.from_list({"chain": "sepolia"})


def test_predicate_is_immutable():
    predicate = build_access_predicate("0xABC", 42, chain="sepolia")
    with pytest.raises(dataclasses.FrozenInstanceError):
        predicate.clauses[0].asset_id = "43"


# =============================================================================
# Evaluation
# =============================================================================

def test_default_clause_requires_positive_balance():
    clause = build_access_predicate("0xABC", 42, chain="sepolia").clauses[0]
    assert not clause.evaluate(0)
    assert clause.evaluate(1)
    assert clause.evaluate(5)


@pytest.mark.parametrize("comparator,balance,expected", [
    (Comparator.GTE, 2, True),
    (Comparator.GTE, 1, False),
    (Comparator.EQ, 2, True),
    (Comparator.LT, 1, True),
    (Comparator.LTE, 3, False),
    (Comparator.NE, 2, False),
])
def test_comparators(comparator, balance, expected):
    clause = Clause("0xABC", "1", "sepolia", comparator=comparator, threshold="2")
    assert clause.evaluate(balance) is expected
