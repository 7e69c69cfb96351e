# tokengate/crypto/threshold.py
"""
TokenGate Crypto: Threshold Encryption Client

Client for a distributed threshold-decryption network (Lit-style). The
network encrypts under an access predicate and releases the plaintext
only to a caller whose signed auth message satisfies that predicate at
decrypt time.

Components:
    ThresholdNetwork: Abstract SDK surface
    MockThresholdNetwork: In-memory network for tests
    ThresholdClient: Session caching, timeouts and error mapping
    create_auth_sig: Signed proof of address control

Session lifecycle:
    absent -> connect() -> ready -> (TTL expiry | not ready) -> absent

Usage:
    client = ThresholdClient(network, ctx)
    ciphertext, data_hash = await client.encrypt("secret", predicate)

    auth_sig = await create_auth_sig(wallet, chain="sepolia")
    text = await client.decrypt(ciphertext, data_hash, predicate, "sepolia", auth_sig)
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from eth_account import Account
from eth_account.messages import encode_defunct

from ..access.predicate import AccessPredicate
from ..adapters.base import WalletAdapter
from ..chain.ledger import LedgerClient
from ..config import DEFAULT_LIT_NETWORK, chain_id_for
from ..context import GateContext, SessionCache
from ..errors import (
    DecryptionDenied,
    RpcError,
    ThresholdConnectError,
    ThresholdDecryptError,
    ThresholdEncryptError,
)

logger = logging.getLogger("tokengate.threshold")


# =============================================================================
# Types
# =============================================================================

@dataclass
class ThresholdSession:
    """Handle to a connected threshold network."""
    network: str
    session_id: str
    created_at: float = field(default_factory=time.time)
    ready: bool = True


@dataclass
class AuthSig:
    """Signed statement proving control of ``address``."""
    sig: str
    signed_message: str
    address: str
    derived_via: str = "web3.eth.personal.sign"

    def to_dict(self) -> Dict[str, str]:
        return {
            "sig": self.sig,
            "derivedVia": self.derived_via,
            "signedMessage": self.signed_message,
            "address": self.address,
        }


def build_auth_message(
    address: str,
    chain: str,
    domain: str = "localhost",
    uri: str = "https://localhost/",
    ttl: float = 86400.0,
) -> str:
    """EIP-4361 style sign-in message with a fresh nonce."""
    try:
        chain_id = chain_id_for(chain)
    except ValueError:
        chain_id = 1
    issued = datetime.now(timezone.utc)
    expires = issued + timedelta(seconds=ttl)
    return (
        f"{domain} wants you to sign in with your Ethereum account:\n"
        f"{address}\n"
        f"\n"
        f"Authorize decryption of token-gated content.\n"
        f"\n"
        f"URI: {uri}\n"
        f"Version: 1\n"
        f"Chain ID: {chain_id}\n"
        f"Nonce: {secrets.token_hex(8)}\n"
        f"Issued At: {issued.isoformat(timespec='seconds')}\n"
        f"Expiration Time: {expires.isoformat(timespec='seconds')}"
    )


async def create_auth_sig(signer: WalletAdapter, chain: str, domain: str = "localhost") -> AuthSig:
    """
    Build and sign a fresh auth message.

    Raises:
        UserCancelled: User dismissed the signing prompt
        WalletError: Wallet failed
    """
    address = await signer.ensure_connected()
    message = build_auth_message(address, chain, domain=domain)
    signature = await signer.sign_message(message)
    return AuthSig(sig=signature, signed_message=message, address=address)


# =============================================================================
# Network Interface
# =============================================================================

class ThresholdNetwork(ABC):
    """Abstract threshold network SDK."""

    @abstractmethod
    async def connect(self, network: str) -> ThresholdSession:
        pass

    @abstractmethod
    async def encrypt_string(
        self,
        plaintext: str,
        predicate: AccessPredicate,
        session: ThresholdSession,
    ) -> Tuple[str, str]:
        """Returns (ciphertext, data_to_encrypt_hash)."""
        pass

    @abstractmethod
    async def decrypt_to_string(
        self,
        ciphertext: str,
        data_hash: str,
        predicate: AccessPredicate,
        auth_sig: AuthSig,
        chain: str,
        session: ThresholdSession,
    ) -> str:
        pass


class MockThresholdNetwork(ThresholdNetwork):
    """
    In-memory threshold network for testing.

    Ciphertexts are real AES-GCM under a network key with the canonical
    predicate bytes as associated data, so any change to the predicate
    breaks decryption. At decrypt time each clause is re-evaluated
    against ``ledger`` for the auth-sig address.
    """

    def __init__(
        self,
        ledger: Optional[LedgerClient] = None,
        verify_signatures: bool = False,
        fail_connect: bool = False,
        fail_encrypt: bool = False,
        connect_delay: float = 0.0,
        decrypt_delay: float = 0.0,
    ):
        self.ledger = ledger
        self.verify_signatures = verify_signatures
        self.fail_connect = fail_connect
        self.fail_encrypt = fail_encrypt
        self.connect_delay = connect_delay
        self.decrypt_delay = decrypt_delay
        self.connect_count = 0
        self._key = AESGCM.generate_key(bit_length=256)
        self._bindings: Dict[str, bytes] = {}

    async def connect(self, network: str) -> ThresholdSession:
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail_connect:
            raise ConnectionError(f"Unable to reach {network} nodes")
        self.connect_count += 1
        return ThresholdSession(network=network, session_id=secrets.token_hex(16))

    async def encrypt_string(
        self,
        plaintext: str,
        predicate: AccessPredicate,
        session: ThresholdSession,
    ) -> Tuple[str, str]:
        if self.fail_encrypt:
            raise RuntimeError("Node encryption request failed")
        data = plaintext.encode("utf-8")
        nonce = secrets.token_bytes(12)
        blob = nonce + AESGCM(self._key).encrypt(nonce, data, predicate.canonical_bytes())
        ciphertext = base64.b64encode(blob).decode("ascii")
        self._bindings[ciphertext] = predicate.canonical_bytes()
        return ciphertext, hashlib.sha256(data).hexdigest()

    async def decrypt_to_string(
        self,
        ciphertext: str,
        data_hash: str,
        predicate: AccessPredicate,
        auth_sig: AuthSig,
        chain: str,
        session: ThresholdSession,
    ) -> str:
        if self.decrypt_delay:
            await asyncio.sleep(self.decrypt_delay)
        bound = self._bindings.get(ciphertext)
        if bound is not None and bound != predicate.canonical_bytes():
            raise DecryptionDenied("Access conditions differ from those bound at encryption", reason="predicate_mismatch")

        if self.verify_signatures:
            try:
                recovered = Account.recover_message(
                    encode_defunct(text=auth_sig.signed_message), signature=auth_sig.sig
                )
            except Exception as e:
                raise DecryptionDenied(f"Auth signature could not be recovered: {e}", reason="bad_signature")
            if recovered.lower() != auth_sig.address.lower():
                raise DecryptionDenied("Auth signature does not match address", reason="bad_signature")

        if self.ledger is not None:
            for clause in predicate.clauses:
                balance = await self.ledger.balance_of(
                    clause.contract_address, auth_sig.address, int(clause.asset_id)
                )
                if not clause.evaluate(balance):
                    raise DecryptionDenied("NodeAccessControlConditionsReturnedNotAuthorized", reason="not_authorized")

        try:
            blob = base64.b64decode(ciphertext)
            plaintext = AESGCM(self._key).decrypt(blob[:12], blob[12:], predicate.canonical_bytes())
        except (InvalidTag, ValueError) as e:
            raise ThresholdDecryptError(f"Ciphertext rejected by network: {str(e) or 'invalid tag'}")
        if hashlib.sha256(plaintext).hexdigest() != data_hash:
            raise ThresholdDecryptError("dataToEncryptHash mismatch")
        return plaintext.decode("utf-8")


# =============================================================================
# ThresholdClient
# =============================================================================

class ThresholdClient:
    """
    Session-caching wrapper around a ThresholdNetwork.

    Connection failures on the encrypt path are reported as
    ThresholdConnectError so the orchestrator can fall back.
    """

    def __init__(
        self,
        network: ThresholdNetwork,
        ctx: Optional[GateContext] = None,
    ):
        ctx = ctx or GateContext.from_config()
        self.network = network
        self.network_name = ctx.config.lit_network or DEFAULT_LIT_NETWORK
        self.connect_timeout = ctx.config.connect_timeout
        self.encrypt_timeout = ctx.config.encrypt_timeout
        self.decrypt_timeout = ctx.config.decrypt_timeout
        self._sessions: SessionCache = ctx.sessions
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def _cached(self) -> Optional[ThresholdSession]:
        session = self._sessions.get()
        if session is not None and session.ready:
            return session
        return None

    async def connect(self) -> Optional[ThresholdSession]:
        """Return a ready session, creating one if needed. None on failure."""
        session = self._cached()
        if session is not None:
            return session

        # One lock per event loop; a Lock cannot be shared across loops.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        async with self._lock:
            session = self._cached()
            if session is not None:
                return session
            try:
                session = await asyncio.wait_for(
                    self.network.connect(self.network_name), timeout=self.connect_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(f"Threshold network {self.network_name} connect timed out after {self.connect_timeout}s")
                return None
            except Exception as e:
                logger.warning(f"Threshold network {self.network_name} connect failed: {e}")
                return None

            self._sessions.put(session)
            logger.info(f"Connected to threshold network {self.network_name}")
            return session

    def disconnect(self) -> None:
        self._sessions.clear()

    async def encrypt(self, plaintext: str, predicate: AccessPredicate) -> Tuple[str, str]:
        """
        Encrypt under ``predicate``.

        Raises:
            ThresholdConnectError: No session
            ThresholdEncryptError: SDK failure or timeout
        """
        session = await self.connect()
        if session is None:
            raise ThresholdConnectError(f"Not connected to threshold network {self.network_name}")
        try:
            return await asyncio.wait_for(
                self.network.encrypt_string(plaintext, predicate, session),
                timeout=self.encrypt_timeout,
            )
        except asyncio.TimeoutError:
            raise ThresholdEncryptError(f"Threshold encryption timed out after {self.encrypt_timeout}s")
        except Exception as e:
            raise ThresholdEncryptError(f"Threshold encryption failed: {e}")

    async def decrypt(
        self,
        ciphertext: str,
        data_hash: str,
        predicate: AccessPredicate,
        chain: str,
        auth_sig: AuthSig,
    ) -> str:
        """
        Decrypt a threshold ciphertext.

        Raises:
            DecryptionDenied: Predicate not satisfied or differs from the bound one
            ThresholdConnectError: No session
            ThresholdDecryptError: Any other failure, including timeout
        """
        session = await self.connect()
        if session is None:
            raise ThresholdConnectError(f"Not connected to threshold network {self.network_name}")
        try:
            return await asyncio.wait_for(
                self.network.decrypt_to_string(ciphertext, data_hash, predicate, auth_sig, chain, session),
                timeout=self.decrypt_timeout,
            )
        except (DecryptionDenied, ThresholdDecryptError):
            raise
        except asyncio.TimeoutError:
            raise ThresholdDecryptError(f"Threshold decryption timed out after {self.decrypt_timeout}s")
        except RpcError as e:
            raise ThresholdDecryptError(f"Network could not evaluate access conditions: {e}")
        except Exception as e:
            if "not authorized" in str(e).lower() or "access control" in str(e).lower():
                raise DecryptionDenied(str(e), reason="not_authorized")
            raise ThresholdDecryptError(f"Threshold decryption failed: {e}")
