# tokengate/__init__.py
"""
TokenGate: Token-Gated Content Encryption

Content is encrypted so that only holders of an ERC-1155 asset can read
it. A threshold network enforces the ownership predicate at decrypt
time; local AES-GCM is the fallback when the network is unreachable.

Architecture:
    tokengate
    ├── access/        # Ownership predicates (canonical wire form)
    ├── crypto/        # Envelope, symmetric cipher, threshold client, orchestrator
    ├── chain/         # ERC-1155 ledger client, ownership verifier, scans
    ├── adapters/      # Wallets: EIP-1193 browser, local key, mock
    ├── storage/       # IPFS / Arweave metadata gateway
    ├── resolver.py    # Scheme-dispatching decryption
    ├── lifecycle.py   # Burn state machine
    ├── context.py     # Session / provider / metadata caches
    └── gate.py        # ContentGate service (Result-returning)

Usage:
    from tokengate import ContentGate, GateContext, MockLedger, MockThresholdNetwork

    ledger = MockLedger()
    gate = ContentGate(ledger, MockThresholdNetwork(ledger), GateContext.from_config())
    result = await gate.protect_content("secret", asset_id=42, contract_address="0xABC")
"""

__version__ = "0.1.0"

# =============================================================================
# Foundations
# =============================================================================

from .config import GateConfig, default_lit_chain, chain_id_for
from .context import GateContext, TTLCache, SessionCache, metadata_key
from .errors import (
    TokenGateError,
    PredicateBuildError,
    MalformedEnvelopeError,
    ThresholdError,
    ThresholdConnectError,
    ThresholdEncryptError,
    ThresholdDecryptError,
    AuthenticationError,
    DecryptionDenied,
    RpcError,
    UserCancelled,
    WalletError,
    TransactionError,
    StorageError,
)
from .result import ErrorKind, Ok, Err, Result, err_from_exception, unwrap

# =============================================================================
# Components
# =============================================================================

from .access import AccessPredicate, Clause, Comparator, build_access_predicate
from .adapters import (
    WalletAdapter,
    MockWalletAdapter,
    BrowserWalletAdapter,
    MockEthereumProvider,
    LocalAccountAdapter,
)
from .chain import LedgerClient, Web3Ledger, MockLedger, OwnershipVerifier, AssetRecord
from .crypto import (
    EncryptionEnvelope,
    EncryptionScheme,
    EncryptionOrchestrator,
    ThresholdClient,
    ThresholdNetwork,
    MockThresholdNetwork,
    extract_envelope,
)
from .storage import MetadataGateway, MockHTTPTransport, RequestsTransport, resolve_token_uri
from .resolver import DecryptionResolver, DecryptedContent, ContentKind
from .lifecycle import BurnCoordinator, BurnTarget, BurnState, BurnOutcome, burn_gas_limit
from .gate import ContentGate, ProtectedContent, OwnedAssets, ledger_for

__all__ = [
    "__version__",
    # Foundations
    "GateConfig",
    "default_lit_chain",
    "chain_id_for",
    "GateContext",
    "TTLCache",
    "SessionCache",
    "metadata_key",
    "TokenGateError",
    "PredicateBuildError",
    "MalformedEnvelopeError",
    "ThresholdError",
    "ThresholdConnectError",
    "ThresholdEncryptError",
    "ThresholdDecryptError",
    "AuthenticationError",
    "DecryptionDenied",
    "RpcError",
    "UserCancelled",
    "WalletError",
    "TransactionError",
    "StorageError",
    "ErrorKind",
    "Ok",
    "Err",
    "Result",
    "err_from_exception",
    "unwrap",
    # Components
    "AccessPredicate",
    "Clause",
    "Comparator",
    "build_access_predicate",
    "WalletAdapter",
    "MockWalletAdapter",
    "BrowserWalletAdapter",
    "MockEthereumProvider",
    "LocalAccountAdapter",
    "LedgerClient",
    "Web3Ledger",
    "MockLedger",
    "OwnershipVerifier",
    "AssetRecord",
    "EncryptionEnvelope",
    "EncryptionScheme",
    "EncryptionOrchestrator",
    "ThresholdClient",
    "ThresholdNetwork",
    "MockThresholdNetwork",
    "extract_envelope",
    "MetadataGateway",
    "MockHTTPTransport",
    "RequestsTransport",
    "resolve_token_uri",
    "DecryptionResolver",
    "DecryptedContent",
    "ContentKind",
    "BurnCoordinator",
    "BurnTarget",
    "BurnState",
    "BurnOutcome",
    "burn_gas_limit",
    "ContentGate",
    "ProtectedContent",
    "OwnedAssets",
    "ledger_for",
]
