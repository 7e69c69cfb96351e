# tokengate/crypto/__init__.py
"""
TokenGate Crypto Layer

Encryption of gated content: threshold-network encryption bound to an
access predicate, with a local AES-GCM fallback.

Components:
    SymmetricCipher: AES-256-GCM adapter
    ThresholdClient: Threshold network session and calls
    EncryptionEnvelope: Tagged, persisted ciphertext container
    EncryptionOrchestrator: Strategy selection with fallback

Usage:
    from tokengate.crypto import EncryptionOrchestrator, ThresholdClient

    client = ThresholdClient(network, ctx)
    envelope = await EncryptionOrchestrator.default(client).encrypt_content("hi", predicate)
"""

from .symmetric import (
    SymmetricCipher,
    wrap_key,
    unwrap_key,
    KEY_SIZE,
    NONCE_SIZE,
)

from .envelope import (
    ContentEncoding,
    EncryptionEnvelope,
    EncryptionScheme,
    FileMetadata,
    extract_envelope,
)

from .threshold import (
    AuthSig,
    MockThresholdNetwork,
    ThresholdClient,
    ThresholdNetwork,
    ThresholdSession,
    build_auth_message,
    create_auth_sig,
)

from .orchestrator import (
    ContentPayload,
    EncryptionOrchestrator,
    EncryptionStrategy,
    SymmetricStrategy,
    ThresholdStrategy,
)

__all__ = [
    # Symmetric
    "SymmetricCipher",
    "wrap_key",
    "unwrap_key",
    "KEY_SIZE",
    "NONCE_SIZE",
    # Envelope
    "ContentEncoding",
    "EncryptionEnvelope",
    "EncryptionScheme",
    "FileMetadata",
    "extract_envelope",
    # Threshold
    "AuthSig",
    "MockThresholdNetwork",
    "ThresholdClient",
    "ThresholdNetwork",
    "ThresholdSession",
    "build_auth_message",
    "create_auth_sig",
    # Orchestrator
    "ContentPayload",
    "EncryptionOrchestrator",
    "EncryptionStrategy",
    "SymmetricStrategy",
    "ThresholdStrategy",
]
