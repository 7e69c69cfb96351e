# tokengate/access/__init__.py
"""
TokenGate Access Layer

Ownership predicates bound into ciphertexts at encrypt time and evaluated
by the threshold network at decrypt time.

Usage:
    from tokengate.access import build_access_predicate

    predicate = build_access_predicate("0xABC", 42, chain="sepolia")
    predicate.to_json()
"""

from .predicate import (
    AccessPredicate,
    AssetStandard,
    Clause,
    Comparator,
    CALLER_PLACEHOLDER,
    build_access_predicate,
    normalize_asset_id,
)

__all__ = [
    "AccessPredicate",
    "AssetStandard",
    "Clause",
    "Comparator",
    "CALLER_PLACEHOLDER",
    "build_access_predicate",
    "normalize_asset_id",
]
