# tokengate/crypto/envelope.py
"""
TokenGate Crypto: Encryption Envelope

Self-describing container for encrypted content, tagged with the scheme
that produced it. Persisted inside token metadata.

Persisted layout:
    {
      "encryptionType": "lit-protocol" | "web-crypto",
      "ciphertext": str,                 # threshold
      "dataToEncryptHash": str,          # threshold
      "encryptedFile": [int, ...],       # symmetric (nonce-prefixed)
      "encryptedSymmetricKey": str,      # symmetric (base64)
      "accessControlConditions": [...],
      "fileMetadata": {name, size, type, lastModified},
      "mimeType": str,
      "encoding": "utf-8" | "base64" | "binary",
      "originalContent": str | null
    }

A threshold-tagged envelope may also carry symmetric fields (mixed
envelope); the resolver uses them if threshold decryption fails.

Lookup order inside token metadata:
    properties.encryptionData
    properties.encryption.encryptionData
    encryptionData

Usage:
    envelope = extract_envelope(token_metadata)
    if envelope.scheme is EncryptionScheme.THRESHOLD:
        ...
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..access.predicate import AccessPredicate
from ..errors import MalformedEnvelopeError, PredicateBuildError


# =============================================================================
# Enums
# =============================================================================

class EncryptionScheme(str, Enum):
    """Envelope tag."""
    THRESHOLD = "lit-protocol"
    SYMMETRIC = "web-crypto"


class ContentEncoding(str, Enum):
    """How the plaintext bytes were encoded before encryption."""
    UTF8 = "utf-8"
    BASE64 = "base64"
    BINARY = "binary"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class FileMetadata:
    """Original file attributes."""
    name: str
    size: int
    type: str
    last_modified: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "type": self.type,
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileMetadata":
        return cls(
            name=str(data.get("name") or ""),
            size=int(data.get("size") or 0),
            type=str(data.get("type") or ""),
            last_modified=data.get("lastModified"),
        )


@dataclass
class EncryptionEnvelope:
    """
    Encrypted content plus everything needed to decrypt it.

    Attributes:
        scheme: Scheme actually used at encrypt time
        mime_type: MIME type of the plaintext
        encoding: Plaintext encoding before encryption
        predicate: Access predicate (enforced only for THRESHOLD)
        ciphertext: Threshold ciphertext
        data_hash: Threshold integrity hash
        encrypted_file: Nonce-prefixed AES-GCM blob
        wrapped_key: Base64 fallback key
        file_metadata: Original file attributes
        original_content: Optional plaintext preview
    """
    scheme: EncryptionScheme
    mime_type: str
    encoding: ContentEncoding
    predicate: Optional[AccessPredicate] = None
    ciphertext: Optional[str] = None
    data_hash: Optional[str] = None
    encrypted_file: Optional[bytes] = None
    wrapped_key: Optional[str] = None
    file_metadata: Optional[FileMetadata] = None
    original_content: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    @property
    def has_fallback(self) -> bool:
        """Symmetric data is present."""
        return self.encrypted_file is not None and bool(self.wrapped_key)

    @property
    def is_mixed(self) -> bool:
        return self.scheme is EncryptionScheme.THRESHOLD and self.has_fallback

    def validate(self) -> None:
        if self.scheme is EncryptionScheme.THRESHOLD:
            if not self.ciphertext or not self.data_hash:
                raise MalformedEnvelopeError("Threshold envelope needs ciphertext and dataToEncryptHash")
            if self.predicate is None:
                raise MalformedEnvelopeError("Threshold envelope needs accessControlConditions")
        elif self.scheme is EncryptionScheme.SYMMETRIC:
            if not self.has_fallback:
                raise MalformedEnvelopeError("Symmetric envelope needs encryptedFile and encryptedSymmetricKey")
        else:
            raise MalformedEnvelopeError(f"Unknown scheme: {self.scheme!r}")

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "encryptionType": self.scheme.value,
            "accessControlConditions": self.predicate.to_list() if self.predicate else None,
            "fileMetadata": self.file_metadata.to_dict() if self.file_metadata else None,
            "mimeType": self.mime_type,
            "encoding": self.encoding.value,
            "originalContent": self.original_content,
        }
        if self.ciphertext is not None:
            data["ciphertext"] = self.ciphertext
            data["dataToEncryptHash"] = self.data_hash
        if self.encrypted_file is not None:
            data["encryptedFile"] = list(self.encrypted_file)
            data["encryptedSymmetricKey"] = self.wrapped_key
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptionEnvelope":
        if not isinstance(data, dict):
            raise MalformedEnvelopeError("Envelope must be an object")

        scheme = _resolve_scheme(data)
        encoding = _resolve_encoding(data.get("encoding"), scheme)

        predicate = None
        conditions = data.get("accessControlConditions")
        if conditions:
            try:
                if isinstance(conditions, str):
                    predicate = AccessPredicate.from_json(conditions)
                else:
                    predicate = AccessPredicate.from_list(conditions)
            except PredicateBuildError as e:
                raise MalformedEnvelopeError(f"Invalid accessControlConditions: {e}")

        file_meta = data.get("fileMetadata")
        return cls(
            scheme=scheme,
            mime_type=data.get("mimeType") or (file_meta or {}).get("type") or "application/octet-stream",
            encoding=encoding,
            predicate=predicate,
            ciphertext=data.get("ciphertext"),
            data_hash=data.get("dataToEncryptHash"),
            encrypted_file=_decode_file(data.get("encryptedFile")),
            wrapped_key=data.get("encryptedSymmetricKey"),
            file_metadata=FileMetadata.from_dict(file_meta) if isinstance(file_meta, dict) else None,
            original_content=data.get("originalContent"),
        )


# =============================================================================
# Helpers
# =============================================================================

def _resolve_scheme(data: Dict[str, Any]) -> EncryptionScheme:
    tag = data.get("encryptionType")
    if tag:
        try:
            return EncryptionScheme(tag)
        except ValueError:
            raise MalformedEnvelopeError(f"Unknown encryptionType: {tag}")

    # Untagged envelopes
    if data.get("ciphertext") and data.get("dataToEncryptHash"):
        return EncryptionScheme.THRESHOLD
    if data.get("encryptedFile") is not None and data.get("encryptedSymmetricKey"):
        return EncryptionScheme.SYMMETRIC
    raise MalformedEnvelopeError("Cannot determine encryption scheme")


def _resolve_encoding(value: Optional[str], scheme: EncryptionScheme) -> ContentEncoding:
    if not value:
        return ContentEncoding.BINARY if scheme is EncryptionScheme.SYMMETRIC else ContentEncoding.UTF8
    try:
        return ContentEncoding(value)
    except ValueError:
        raise MalformedEnvelopeError(f"Unknown encoding: {value}")


def _decode_file(value: Union[None, bytes, List[int]]) -> Optional[bytes]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes(value)
    except (TypeError, ValueError) as e:
        raise MalformedEnvelopeError(f"encryptedFile is not a byte list: {e}")


def extract_envelope(metadata: Dict[str, Any]) -> EncryptionEnvelope:
    """
    Locate and parse the envelope inside a token metadata document.

    Raises:
        MalformedEnvelopeError: No envelope present or envelope invalid
    """
    if not isinstance(metadata, dict):
        raise MalformedEnvelopeError("Token metadata must be an object")

    properties = metadata.get("properties") or {}
    candidates = [
        properties.get("encryptionData"),
        (properties.get("encryption") or {}).get("encryptionData"),
        metadata.get("encryptionData"),
    ]
    for candidate in candidates:
        if candidate:
            return EncryptionEnvelope.from_dict(candidate)
    raise MalformedEnvelopeError("No encrypted content in token metadata")
