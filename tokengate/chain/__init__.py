# tokengate/chain/__init__.py
"""
TokenGate Chain Layer

Ledger access and ownership checks for ERC-1155 content tokens.

Components:
    LedgerClient: Abstract ledger RPC surface
    Web3Ledger: AsyncWeb3 implementation
    MockLedger: In-memory ledger for tests
    OwnershipVerifier: Balance gate and owned-asset discovery

Usage:
    from tokengate.chain import Web3Ledger, OwnershipVerifier

    ledger = Web3Ledger(rpc_url="https://rpc.sepolia.org")
    verifier = OwnershipVerifier(ledger)
    owns = await verifier.check_ownership("0x...", 42, "0x...")
"""

from .ledger import (
    LedgerClient,
    LedgerEvent,
    MockLedger,
    TokenInfo,
    TransferLog,
    TxReceipt,
    Web3Ledger,
    CONTRACT_ABI,
)

from .ownership import (
    AssetRecord,
    OwnershipFact,
    OwnershipVerifier,
    ScanResult,
)

__all__ = [
    # Ledger
    "LedgerClient",
    "LedgerEvent",
    "MockLedger",
    "TokenInfo",
    "TransferLog",
    "TxReceipt",
    "Web3Ledger",
    "CONTRACT_ABI",
    # Ownership
    "AssetRecord",
    "OwnershipFact",
    "OwnershipVerifier",
    "ScanResult",
]
