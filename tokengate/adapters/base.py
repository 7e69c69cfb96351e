# tokengate/adapters/base.py
"""
TokenGate Adapters: Abstract Wallet Interface

Unified signer interface used by the decrypt path (auth signatures) and
the burn path (chain checks and transaction submission).

Wallet Implementations:
    - BrowserWalletAdapter: EIP-1193 provider (window.ethereum)
    - LocalAccountAdapter: Private-key service wallet
    - MockWalletAdapter: In-memory wallet for tests

Rejected prompts always surface as UserCancelled so callers can tell an
aborted action from a failure.

Usage:
    wallet = MockWalletAdapter(chain_id=11155111)
    address = await wallet.connect()
    signature = await wallet.sign_message("hello")
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..errors import UserCancelled, WalletError

if TYPE_CHECKING:
    from ..chain.ledger import MockLedger


# =============================================================================
# Enums
# =============================================================================

class WalletState(Enum):
    """Wallet connection state."""
    DISCONNECTED = auto()
    CONNECTED = auto()


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class WalletInfo:
    """Connected wallet details."""
    name: str
    address: str
    chain_id: int
    metadata: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Abstract Base Class
# =============================================================================

class WalletAdapter(ABC):
    """
    Abstract base class for wallet adapters.

    Subclasses must raise UserCancelled when the user declines a prompt
    and WalletError for any other wallet-side failure.
    """

    def __init__(self, chain_id: int = 1):
        self._chain_id = chain_id
        self._state = WalletState.DISCONNECTED
        self._info: Optional[WalletInfo] = None

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == WalletState.CONNECTED

    @property
    def address(self) -> Optional[str]:
        """Connected address, or None before connect()."""
        return self._info.address if self._info else None

    @abstractmethod
    async def connect(self) -> str:
        """
        Connect and return the active address.

        Raises:
            UserCancelled: User declined the connection prompt
            WalletError: Wallet unavailable
        """
        pass

    @abstractmethod
    async def chain_id(self) -> int:
        """Chain id the wallet is currently on."""
        pass

    @abstractmethod
    async def sign_message(self, message: str) -> str:
        """
        Sign a text message (personal_sign).

        Returns:
            0x-prefixed signature hex
        """
        pass

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to move to another chain."""
        pass

    @abstractmethod
    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        """
        Sign and submit a transaction.

        Returns:
            0x-prefixed transaction hash
        """
        pass

    async def ensure_connected(self) -> str:
        if self.address is None:
            return await self.connect()
        return self.address


# =============================================================================
# Mock Adapter (for testing)
# =============================================================================

class MockWalletAdapter(WalletAdapter):
    """
    Mock wallet adapter for testing.

    Signatures are not cryptographically valid. Transactions are routed
    to a MockLedger when one is attached.
    """

    def __init__(
        self,
        chain_id: int = 1,
        address: str = "0x" + "1" * 40,
        auto_approve: bool = True,
        approve_switch: bool = True,
        ledger: Optional["MockLedger"] = None,
    ):
        super().__init__(chain_id)
        self._mock_address = address.lower()
        self._auto_approve = auto_approve
        self._approve_switch = approve_switch
        self._ledger = ledger
        self.signed_messages: List[str] = []
        self.sent_transactions: List[Dict[str, Any]] = []
        self.switch_requests: List[int] = []

    @property
    def name(self) -> str:
        return "MockWallet"

    async def connect(self) -> str:
        self._info = WalletInfo(
            name=self.name,
            address=self._mock_address,
            chain_id=self._chain_id,
        )
        self._state = WalletState.CONNECTED
        return self._mock_address

    async def chain_id(self) -> int:
        return self._chain_id

    async def sign_message(self, message: str) -> str:
        if not self._auto_approve:
            raise UserCancelled("User rejected signature")

        self.signed_messages.append(message)
        sig_hash = hashlib.sha256(
            b"mock_sign" + message.encode("utf-8") + self._mock_address.encode()
        ).digest()
        # 65-byte signature: r(32) + s(32) + v(1)
        return "0x" + (sig_hash + sig_hash + b"\x1b").hex()

    async def switch_chain(self, chain_id: int) -> None:
        self.switch_requests.append(chain_id)
        if not self._approve_switch:
            raise UserCancelled("User rejected network switch")
        self._chain_id = chain_id
        if self._info:
            self._info.chain_id = chain_id

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        if not self._auto_approve:
            raise UserCancelled("User rejected transaction")
        self.sent_transactions.append(dict(tx))
        if self._ledger is None:
            raise WalletError("No ledger attached to mock wallet")
        return await self._ledger.submit_transaction(tx)
