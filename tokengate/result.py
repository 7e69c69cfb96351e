# tokengate/result.py
"""
TokenGate: Tagged Operation Results

Service-level operations return ``Ok(value)`` or ``Err(kind, message)``
instead of raising, so callers branch on a tag rather than probing
optional fields.

Usage:
    result = await gate.access_content(contract, asset_id, caller, wallet)
    if result.ok:
        render(result.value)
    elif result.kind is ErrorKind.RPC_UNAVAILABLE:
        show_retry_banner(result.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

from .errors import (
    AuthenticationError,
    DecryptionDenied,
    MalformedEnvelopeError,
    PredicateBuildError,
    RpcError,
    StorageError,
    ThresholdError,
    TransactionError,
    UserCancelled,
    WalletError,
)

T = TypeVar("T")


class ErrorKind(Enum):
    """Failure categories surfaced to callers."""
    INVALID_INPUT = "invalid_input"
    NOT_OWNER = "not_owner"
    RPC_UNAVAILABLE = "rpc_unavailable"
    METADATA_UNAVAILABLE = "metadata_unavailable"
    NO_ENCRYPTED_CONTENT = "no_encrypted_content"
    DECRYPTION_DENIED = "decryption_denied"
    TAMPERED = "tampered"
    THRESHOLD_UNAVAILABLE = "threshold_unavailable"
    CANCELLED = "cancelled"
    WALLET = "wallet"
    TRANSACTION = "transaction"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


# Most specific classes first.
_KIND_BY_ERROR = (
    (UserCancelled, ErrorKind.CANCELLED),
    (DecryptionDenied, ErrorKind.DECRYPTION_DENIED),
    (AuthenticationError, ErrorKind.TAMPERED),
    (RpcError, ErrorKind.RPC_UNAVAILABLE),
    (StorageError, ErrorKind.METADATA_UNAVAILABLE),
    (MalformedEnvelopeError, ErrorKind.NO_ENCRYPTED_CONTENT),
    (PredicateBuildError, ErrorKind.INVALID_INPUT),
    (ThresholdError, ErrorKind.THRESHOLD_UNAVAILABLE),
    (TransactionError, ErrorKind.TRANSACTION),
    (WalletError, ErrorKind.WALLET),
)


def err_from_exception(exc: BaseException) -> Err:
    """Map a library exception onto an Err with the matching kind."""
    for cls, kind in _KIND_BY_ERROR:
        if isinstance(exc, cls):
            return Err(kind=kind, message=str(exc) or cls.__name__, error=exc)
    raise exc


def unwrap(result: "Result[Any]") -> Any:
    """Return the Ok value or re-raise the original error."""
    if isinstance(result, Ok):
        return result.value
    if result.error is not None:
        raise result.error
    raise RuntimeError(f"{result.kind.value}: {result.message}")
