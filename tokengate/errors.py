# tokengate/errors.py
"""
TokenGate: Error Taxonomy

All exceptions raised by the engine derive from TokenGateError.

Propagation:
    - Encrypt-path network failures (ThresholdConnectError,
      ThresholdEncryptError) are recovered locally by falling back to
      symmetric encryption.
    - Decrypt-path and transaction-path failures are surfaced to the
      caller with a specific message.
    - UserCancelled is an aborted user action, not a failure.
"""

from __future__ import annotations

from typing import Optional


class TokenGateError(Exception):
    """Base error."""
    pass


class PredicateBuildError(TokenGateError):
    """Malformed asset id or address supplied for a predicate or ledger call."""
    pass


class MalformedEnvelopeError(TokenGateError):
    """Envelope has no determinable encryption scheme or is missing fields."""
    pass


# =============================================================================
# Threshold Network
# =============================================================================

class ThresholdError(TokenGateError):
    """Base threshold-network error."""
    pass


class ThresholdConnectError(ThresholdError):
    """Handshake with the threshold network failed or no session exists."""
    pass


class ThresholdEncryptError(ThresholdError):
    """Threshold encryption failed."""
    pass


class ThresholdDecryptError(ThresholdError):
    """Threshold decryption failed for a reason other than access denial."""
    pass


# =============================================================================
# Access / Crypto
# =============================================================================

class AuthenticationError(TokenGateError):
    """AEAD tag verification failed (corrupted data or wrong key)."""
    pass


class DecryptionDenied(TokenGateError):
    """Access predicate not satisfied at decrypt time."""

    def __init__(self, message: str = "Access predicate not satisfied", reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class RpcError(TokenGateError):
    """Ledger RPC unreachable. Distinct from a legitimate zero balance."""

    def __init__(self, message: str, method: Optional[str] = None):
        super().__init__(message)
        self.method = method


# =============================================================================
# Wallet / Transactions
# =============================================================================

class UserCancelled(TokenGateError):
    """User dismissed a wallet prompt."""
    pass


class WalletError(TokenGateError):
    """Wallet unavailable or returned an unexpected response."""
    pass


class TransactionError(TokenGateError):
    """On-chain transaction failed or reverted."""

    def __init__(self, message: str, tx_hash: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.reason = reason


class StorageError(TokenGateError):
    """Metadata or content fetch failed."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status
