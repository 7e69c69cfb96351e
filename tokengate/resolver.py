# tokengate/resolver.py
"""
TokenGate: Decryption Resolver

Turns an envelope back into content. Dispatch is on the envelope tag:

    THRESHOLD: sign a fresh auth message, ask the network to decrypt.
               On failure, use symmetric fallback data if the envelope
               carries it, otherwise raise DecryptionDenied.
    SYMMETRIC: unwrap the stored key and AES-GCM decrypt.

A cancelled signing prompt propagates as UserCancelled and never
triggers the fallback. Output is all-or-nothing: no partial plaintext
is returned on any error.

Usage:
    resolver = DecryptionResolver(threshold_client)
    content = await resolver.decrypt_content(envelope, caller, wallet)
    if content.kind is ContentKind.IMAGE:
        show_image(content.data, content.mime_type)
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .adapters.base import WalletAdapter
from .crypto.envelope import ContentEncoding, EncryptionEnvelope, EncryptionScheme
from .crypto.symmetric import SymmetricCipher, unwrap_key
from .crypto.threshold import ThresholdClient, create_auth_sig
from .errors import (
    DecryptionDenied,
    MalformedEnvelopeError,
    ThresholdError,
    UserCancelled,
)

logger = logging.getLogger("tokengate.decryption")


# =============================================================================
# Presentation
# =============================================================================

class ContentKind(Enum):
    """How decrypted content should be presented."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    PDF = "pdf"
    TEXT = "text"
    BINARY = "binary"


def classify_media(mime_type: Optional[str]) -> ContentKind:
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return ContentKind.IMAGE
    if mime.startswith("video/"):
        return ContentKind.VIDEO
    if mime.startswith("audio/"):
        return ContentKind.AUDIO
    if mime == "application/pdf":
        return ContentKind.PDF
    if mime.startswith("text/"):
        return ContentKind.TEXT
    return ContentKind.BINARY


@dataclass
class DecryptedContent:
    """Plaintext plus presentation hints."""
    data: bytes
    mime_type: str
    kind: ContentKind
    text: Optional[str] = None
    file_name: Optional[str] = None
    scheme: Optional[EncryptionScheme] = None


# =============================================================================
# Resolver
# =============================================================================

class DecryptionResolver:
    """Scheme-dispatching decryptor."""

    def __init__(self, client: ThresholdClient):
        self.client = client

    async def decrypt_content(
        self,
        envelope: EncryptionEnvelope,
        caller_address: Optional[str],
        signer: WalletAdapter,
    ) -> DecryptedContent:
        """
        Decrypt ``envelope`` for ``caller_address``.

        Raises:
            UserCancelled: Signing prompt dismissed
            DecryptionDenied: Threshold refused and no fallback data
            AuthenticationError: Symmetric data tampered or key wrong
            MalformedEnvelopeError: Plaintext does not match declared encoding
        """
        if envelope.scheme is EncryptionScheme.SYMMETRIC:
            return self._build(envelope, self._decrypt_symmetric(envelope), EncryptionScheme.SYMMETRIC)

        try:
            data = await self._decrypt_threshold(envelope, caller_address, signer)
        except UserCancelled:
            raise
        except (DecryptionDenied, ThresholdError) as e:
            if not envelope.has_fallback:
                if isinstance(e, DecryptionDenied):
                    raise
                raise DecryptionDenied(f"Threshold decryption failed: {e}", reason="threshold_error")
            logger.warning(f"Threshold decryption failed ({e}); using symmetric fallback data")
            return self._build(envelope, self._decrypt_symmetric(envelope), EncryptionScheme.SYMMETRIC)

        return self._build(envelope, data, EncryptionScheme.THRESHOLD)

    async def _decrypt_threshold(
        self,
        envelope: EncryptionEnvelope,
        caller_address: Optional[str],
        signer: WalletAdapter,
    ) -> bytes:
        predicate = envelope.predicate
        auth_sig = await create_auth_sig(signer, predicate.chain)
        if caller_address and auth_sig.address.lower() != caller_address.lower():
            raise DecryptionDenied(
                f"Signer {auth_sig.address} is not the caller {caller_address}", reason="signer_mismatch"
            )

        plaintext = await self.client.decrypt(
            envelope.ciphertext, envelope.data_hash, predicate, predicate.chain, auth_sig
        )
        if envelope.encoding is ContentEncoding.BASE64:
            try:
                return base64.b64decode(plaintext, validate=True)
            except (binascii.Error, ValueError) as e:
                raise MalformedEnvelopeError(f"Decrypted payload is not base64: {e}")
        return plaintext.encode("utf-8")

    def _decrypt_symmetric(self, envelope: EncryptionEnvelope) -> bytes:
        if not envelope.has_fallback:
            raise MalformedEnvelopeError("Envelope has no symmetric data")
        key = unwrap_key(envelope.wrapped_key)
        # Raw payload bytes; the envelope encoding describes the threshold ciphertext only.
        return SymmetricCipher.decrypt(envelope.encrypted_file, key)

    def _build(self, envelope: EncryptionEnvelope, data: bytes, scheme: EncryptionScheme) -> DecryptedContent:
        kind = classify_media(envelope.mime_type)
        text = None
        if envelope.encoding is ContentEncoding.UTF8:
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedEnvelopeError(f"Decrypted text is not valid utf-8: {e}")
        elif kind is ContentKind.TEXT:
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                logger.info(f"{envelope.mime_type} content is not utf-8; returning bytes only")
        file_name = envelope.file_metadata.name if envelope.file_metadata else None
        return DecryptedContent(
            data=data,
            mime_type=envelope.mime_type,
            kind=kind,
            text=text,
            file_name=file_name,
            scheme=scheme,
        )
