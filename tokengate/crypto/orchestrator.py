# tokengate/crypto/orchestrator.py
"""
TokenGate Crypto: Encryption Orchestrator

Encrypts content under an access predicate, preferring the threshold
network and falling back to local AES-GCM when the network cannot be
reached. The returned envelope is tagged with the scheme actually used.

Strategy order (default):
    1. ThresholdStrategy  - predicate enforced by the network
    2. SymmetricStrategy  - key stored beside ciphertext, predicate carried only

Payload encoding:
    text  -> utf-8 (both schemes)
    bytes -> base64 (threshold) / raw, "binary" (symmetric)

Usage:
    orchestrator = EncryptionOrchestrator.default(threshold_client)
    envelope = await orchestrator.encrypt_content(
        image_bytes, predicate, file_name="cover.png", mime_type="image/png",
    )
    if envelope.scheme is EncryptionScheme.SYMMETRIC:
        notify_user_of_fallback()
"""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .envelope import ContentEncoding, EncryptionEnvelope, EncryptionScheme, FileMetadata
from .symmetric import SymmetricCipher, wrap_key
from .threshold import ThresholdClient
from ..access.predicate import AccessPredicate
from ..errors import ThresholdConnectError, ThresholdEncryptError

logger = logging.getLogger("tokengate.encryption")

TEXT_MIME = "text/plain"
DEFAULT_MIME = "application/octet-stream"

# Failures that trigger the next strategy
RECOVERABLE = (ThresholdConnectError, ThresholdEncryptError, asyncio.TimeoutError)


@dataclass
class ContentPayload:
    """Normalized content handed to strategies."""
    data: bytes
    mime_type: str
    text: Optional[str] = None
    file_name: Optional[str] = None
    last_modified: Optional[int] = None

    @property
    def is_text(self) -> bool:
        return self.text is not None

    @property
    def file_metadata(self) -> Optional[FileMetadata]:
        if self.is_text:
            return None
        return FileMetadata(
            name=self.file_name or "file",
            size=len(self.data),
            type=self.mime_type,
            last_modified=self.last_modified,
        )

    @classmethod
    def build(
        cls,
        content: Union[str, bytes],
        file_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        last_modified: Optional[int] = None,
    ) -> "ContentPayload":
        if isinstance(content, str):
            return cls(
                data=content.encode("utf-8"),
                mime_type=mime_type or TEXT_MIME,
                text=content,
                file_name=file_name,
                last_modified=last_modified,
            )
        if not mime_type and file_name:
            mime_type = mimetypes.guess_type(file_name)[0]
        return cls(
            data=bytes(content),
            mime_type=mime_type or DEFAULT_MIME,
            file_name=file_name,
            last_modified=last_modified,
        )


# =============================================================================
# Strategies
# =============================================================================

class EncryptionStrategy(ABC):
    """One way of producing an envelope."""

    scheme: EncryptionScheme

    @property
    def name(self) -> str:
        return self.scheme.value

    @abstractmethod
    async def encrypt(self, payload: ContentPayload, predicate: AccessPredicate) -> EncryptionEnvelope:
        pass


class ThresholdStrategy(EncryptionStrategy):
    """Encrypt through the threshold network."""

    scheme = EncryptionScheme.THRESHOLD

    def __init__(self, client: ThresholdClient):
        self.client = client

    async def encrypt(self, payload: ContentPayload, predicate: AccessPredicate) -> EncryptionEnvelope:
        if payload.is_text:
            plaintext, encoding = payload.text, ContentEncoding.UTF8
        else:
            plaintext = base64.b64encode(payload.data).decode("ascii")
            encoding = ContentEncoding.BASE64

        ciphertext, data_hash = await self.client.encrypt(plaintext, predicate)
        return EncryptionEnvelope(
            scheme=self.scheme,
            mime_type=payload.mime_type,
            encoding=encoding,
            predicate=predicate,
            ciphertext=ciphertext,
            data_hash=data_hash,
            file_metadata=payload.file_metadata,
        )


class SymmetricStrategy(EncryptionStrategy):
    """
    Local AES-256-GCM with a fresh random key.

    The wrapped key is stored in the envelope, so this path gives no
    access control. Text envelopes keep a plaintext preview.
    """

    scheme = EncryptionScheme.SYMMETRIC

    async def encrypt(self, payload: ContentPayload, predicate: AccessPredicate) -> EncryptionEnvelope:
        key = SymmetricCipher.generate_key()
        blob = SymmetricCipher.encrypt(payload.data, key)
        logger.warning(
            "Symmetric fallback: content key stored beside ciphertext; "
            "access conditions will not be enforced"
        )
        return EncryptionEnvelope(
            scheme=self.scheme,
            mime_type=payload.mime_type,
            encoding=ContentEncoding.UTF8 if payload.is_text else ContentEncoding.BINARY,
            predicate=predicate,
            encrypted_file=blob,
            wrapped_key=wrap_key(key),
            file_metadata=payload.file_metadata,
            original_content=payload.text,
        )


# =============================================================================
# Orchestrator
# =============================================================================

class EncryptionOrchestrator:
    """Tries strategies in order until one produces an envelope."""

    def __init__(self, strategies: Sequence[EncryptionStrategy]):
        if not strategies:
            raise ValueError("At least one encryption strategy is required")
        self.strategies: List[EncryptionStrategy] = list(strategies)

    @classmethod
    def default(cls, client: ThresholdClient) -> "EncryptionOrchestrator":
        return cls([ThresholdStrategy(client), SymmetricStrategy()])

    async def encrypt_content(
        self,
        content: Union[str, bytes],
        predicate: AccessPredicate,
        *,
        file_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        last_modified: Optional[int] = None,
    ) -> EncryptionEnvelope:
        """
        Encrypt text or file bytes under ``predicate``.

        Raises:
            The last strategy's error if every strategy fails
        """
        payload = ContentPayload.build(content, file_name, mime_type, last_modified)

        for index, strategy in enumerate(self.strategies):
            try:
                envelope = await strategy.encrypt(payload, predicate)
            except RECOVERABLE as e:
                if index == len(self.strategies) - 1:
                    raise
                fallback = self.strategies[index + 1].name
                logger.warning(f"{strategy.name} encryption unavailable ({e}); falling back to {fallback}")
                continue
            logger.info(f"Encrypted {len(payload.data)} bytes with {strategy.name}")
            return envelope
