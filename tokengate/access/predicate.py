# tokengate/access/predicate.py
"""
TokenGate Access: Ownership Predicates

Portable boolean conditions over on-chain state, evaluated by the
threshold network at decrypt time. The network refuses decryption when
the predicate bytes presented at decrypt time differ from the bytes bound
at encrypt time, so serialization is canonical (sorted keys, compact
separators) and clauses are immutable.

Wire form (one clause, JSON list):
    [{"chain": "sepolia",
      "contractAddress": "0xABC",
      "method": "balanceOf",
      "parameters": [":userAddress", "42"],
      "returnValueTest": {"comparator": ">", "value": "0"},
      "standardContractType": "ERC1155"}]

Usage:
    predicate = build_access_predicate("0xABC", 42, chain="sepolia")
    blob = predicate.canonical_bytes()
    same = AccessPredicate.from_json(predicate.to_json())
    assert same == predicate
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..config import default_lit_chain
from ..errors import PredicateBuildError


# =============================================================================
# Constants
# =============================================================================

CALLER_PLACEHOLDER = ":userAddress"
BALANCE_METHOD = "balanceOf"


class AssetStandard(str, Enum):
    """Token standard of the gating contract."""
    ERC1155 = "ERC1155"


class Comparator(str, Enum):
    """Return-value comparators understood by the network."""
    GT = ">"
    GTE = ">="
    EQ = "="
    LT = "<"
    LTE = "<="
    NE = "!="

    def compare(self, left: int, right: int) -> bool:
        if self is Comparator.GT:
            return left > right
        if self is Comparator.GTE:
            return left >= right
        if self is Comparator.EQ:
            return left == right
        if self is Comparator.LT:
            return left < right
        if self is Comparator.LTE:
            return left <= right
        return left != right


def normalize_asset_id(asset_id: Union[int, str]) -> str:
    """Normalize an integer-like asset id to its decimal string."""
    if isinstance(asset_id, bool):
        raise PredicateBuildError(f"Invalid asset id: {asset_id!r}")
    if isinstance(asset_id, int):
        value = asset_id
    else:
        text = str(asset_id).strip()
        try:
            value = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            raise PredicateBuildError(f"Invalid asset id: {asset_id!r}")
    if value < 0:
        raise PredicateBuildError(f"Asset id must be non-negative: {asset_id!r}")
    return str(value)


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class Clause:
    """
    Single balance condition.

    Attributes:
        contract_address: Gating contract (not validated here)
        asset_id: Decimal asset id
        chain: Chain identifier understood by the network
        comparator: Comparison applied to the returned balance
        threshold: Decimal string compared against
        standard: Token standard
        method: Contract read method
    """
    contract_address: str
    asset_id: str
    chain: str
    comparator: Comparator = Comparator.GT
    threshold: str = "0"
    standard: AssetStandard = AssetStandard.ERC1155
    method: str = BALANCE_METHOD

    @property
    def parameters(self) -> Tuple[str, str]:
        return (CALLER_PLACEHOLDER, self.asset_id)

    def evaluate(self, balance: int) -> bool:
        """Apply the return-value test to a balance."""
        return self.comparator.compare(int(balance), int(self.threshold))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contractAddress": self.contract_address,
            "standardContractType": self.standard.value,
            "chain": self.chain,
            "method": self.method,
            "parameters": list(self.parameters),
            "returnValueTest": {
                "comparator": self.comparator.value,
                "value": self.threshold,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Clause":
        try:
            params = data["parameters"]
            test = data["returnValueTest"]
            return cls(
                contract_address=data["contractAddress"],
                asset_id=normalize_asset_id(params[1]),
                chain=data["chain"],
                comparator=Comparator(test["comparator"]),
                threshold=str(test["value"]),
                standard=AssetStandard(data.get("standardContractType", "ERC1155")),
                method=data.get("method", BALANCE_METHOD),
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise PredicateBuildError(f"Malformed predicate clause: {e}")


@dataclass(frozen=True)
class AccessPredicate:
    """Ordered, immutable sequence of clauses (all must hold)."""
    clauses: Tuple[Clause, ...]

    def __post_init__(self) -> None:
        if not self.clauses:
            raise PredicateBuildError("Predicate needs at least one clause")

    @property
    def chain(self) -> str:
        return self.clauses[0].chain

    @property
    def asset_id(self) -> str:
        return self.clauses[0].asset_id

    @property
    def contract_address(self) -> str:
        return self.clauses[0].contract_address

    def to_list(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self.clauses]

    def to_json(self) -> str:
        """Canonical JSON form."""
        return json.dumps(self.to_list(), sort_keys=True, separators=(",", ":"))

    def canonical_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")

    @classmethod
    def from_list(cls, data: Iterable[Dict[str, Any]]) -> "AccessPredicate":
        if not isinstance(data, (list, tuple)):
            raise PredicateBuildError("Predicate must be a list of clauses")
        return cls(clauses=tuple(Clause.from_dict(d) for d in data))

    @classmethod
    def from_json(cls, text: str) -> "AccessPredicate":
        try:
            return cls.from_list(json.loads(text))
        except json.JSONDecodeError as e:
            raise PredicateBuildError(f"Predicate is not valid JSON: {e}")


# =============================================================================
# Builder
# =============================================================================

def build_access_predicate(
    contract_address: str,
    asset_id: Union[int, str],
    chain: Optional[str] = None,
) -> AccessPredicate:
    """
    Build the ownership predicate for one asset.

    balanceOf(:userAddress, asset_id) > 0 on ``contract_address``.

    Args:
        contract_address: Gating ERC-1155 contract
        asset_id: Integer or integer-like string
        chain: Chain identifier (default: configured default chain)

    Returns:
        AccessPredicate with exactly one clause
    """
    if not contract_address or not str(contract_address).strip():
        raise PredicateBuildError("Contract address is required")

    clause = Clause(
        contract_address=str(contract_address).strip(),
        asset_id=normalize_asset_id(asset_id),
        chain=chain or default_lit_chain(),
    )
    return AccessPredicate(clauses=(clause,))


# =============================================================================
# Test
# =============================================================================

def run_tests() -> bool:
    """Self-check for predicate construction and serialization."""
    print("=" * 70)
    print("TokenGate Access: Predicate Test")
    print("=" * 70)

    results = {}

    predicate = build_access_predicate("0xABC", 42, chain="sepolia")
    results["single_clause"] = len(predicate.clauses) == 1
    results["normalized"] = predicate.asset_id == "42"

    restored = AccessPredicate.from_json(predicate.to_json())
    results["canonical"] = restored.canonical_bytes() == predicate.canonical_bytes()

    other = build_access_predicate("0xABC", "43", chain="sepolia")
    results["binding"] = other.canonical_bytes() != predicate.canonical_bytes()

    clause = predicate.clauses[0]
    results["evaluate"] = clause.evaluate(1) and not clause.evaluate(0)

    for name, passed in results.items():
        print(f"  {name}: {'PASS ✓' if passed else 'FAIL ✗'}")

    all_pass = all(results.values())
    print(f"\nResult: {sum(results.values())}/{len(results)} tests passed")
    return all_pass


if __name__ == "__main__":
    run_tests()
