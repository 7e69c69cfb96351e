# tokengate/adapters/browser.py
"""
TokenGate Adapters: EIP-1193 Browser Wallet

Adapter over an injected Ethereum provider (window.ethereum, bridged into
Python by the host) or a mock provider for testing.

Error codes (EIP-1193):
    4001  User rejected the request   -> UserCancelled
    4902  Unrecognized chain          -> wallet_addEthereumChain, then retry

Usage:
    provider = MockEthereumProvider(accounts=["0x" + "a" * 40], chain_id=1)
    wallet = BrowserWalletAdapter(provider)
    await wallet.connect()
    await wallet.switch_chain(11155111)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .base import WalletAdapter, WalletInfo, WalletState
from ..config import DEFAULT_RPC_URLS
from ..errors import UserCancelled, WalletError

logger = logging.getLogger("tokengate.wallet")


# =============================================================================
# Constants
# =============================================================================

ETH_REQUEST_ACCOUNTS = "eth_requestAccounts"
ETH_CHAIN_ID = "eth_chainId"
ETH_SEND_TRANSACTION = "eth_sendTransaction"
PERSONAL_SIGN = "personal_sign"
WALLET_SWITCH_CHAIN = "wallet_switchEthereumChain"
WALLET_ADD_CHAIN = "wallet_addEthereumChain"

USER_REJECTED = 4001
UNRECOGNIZED_CHAIN = 4902

# Parameters for wallet_addEthereumChain
CHAIN_PARAMS: Dict[int, Dict[str, Any]] = {
    1: {
        "chainName": "Ethereum Mainnet",
        "nativeCurrency": {"name": "Ether", "symbol": "ETH", "decimals": 18},
        "rpcUrls": [DEFAULT_RPC_URLS["mainnet"]],
        "blockExplorerUrls": ["https://etherscan.io"],
    },
    11155111: {
        "chainName": "Sepolia",
        "nativeCurrency": {"name": "Sepolia Ether", "symbol": "ETH", "decimals": 18},
        "rpcUrls": [DEFAULT_RPC_URLS["sepolia"]],
        "blockExplorerUrls": ["https://sepolia.etherscan.io"],
    },
    31337: {
        "chainName": "Localhost",
        "nativeCurrency": {"name": "Ether", "symbol": "ETH", "decimals": 18},
        "rpcUrls": [DEFAULT_RPC_URLS["localnet"]],
    },
}


class ProviderRpcError(Exception):
    """Error raised by an EIP-1193 provider."""

    def __init__(self, message: str, code: int = -32603, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


def _is_rejection(e: Exception) -> bool:
    return getattr(e, "code", None) == USER_REJECTED or "rejected" in str(e).lower()


# =============================================================================
# Provider Interface
# =============================================================================

class EthereumProvider(ABC):
    """
    Abstract Ethereum provider interface.

    Represents window.ethereum in browser or mock for testing.
    """

    @abstractmethod
    async def request(self, method: str, params: Any = None) -> Any:
        """Send JSON-RPC request."""
        pass

    @abstractmethod
    def on(self, event: str, callback: Callable) -> None:
        """Subscribe to events."""
        pass


class MockEthereumProvider(EthereumProvider):
    """
    Mock Ethereum provider for testing.

    Only chains in ``known_chains`` can be switched to directly; others
    answer 4902 until added.
    """

    def __init__(
        self,
        accounts: Optional[List[str]] = None,
        chain_id: int = 1,
        known_chains: Optional[List[int]] = None,
        auto_approve: bool = True,
    ):
        self._accounts = accounts or ["0x" + "1" * 40]
        self._chain_id = chain_id
        self._known_chains = set(known_chains or [chain_id])
        self._auto_approve = auto_approve
        self._event_handlers: Dict[str, List[Callable]] = {}
        self._tx_count = 0
        self.calls: List[Dict[str, Any]] = []

    async def request(self, method: str, params: Any = None) -> Any:
        self.calls.append({"method": method, "params": params})

        if method == ETH_REQUEST_ACCOUNTS:
            if not self._auto_approve:
                raise ProviderRpcError("User rejected the request.", USER_REJECTED)
            return self._accounts

        elif method == ETH_CHAIN_ID:
            return hex(self._chain_id)

        elif method == PERSONAL_SIGN:
            if not self._auto_approve:
                raise ProviderRpcError("User rejected the request.", USER_REJECTED)
            return "0x" + "ab" * 65

        elif method == WALLET_SWITCH_CHAIN:
            chain_id = int(params[0]["chainId"], 16)
            if chain_id not in self._known_chains:
                raise ProviderRpcError("Unrecognized chain ID", UNRECOGNIZED_CHAIN)
            if not self._auto_approve:
                raise ProviderRpcError("User rejected the request.", USER_REJECTED)
            self._chain_id = chain_id
            self._emit("chainChanged", hex(chain_id))
            return None

        elif method == WALLET_ADD_CHAIN:
            self._known_chains.add(int(params[0]["chainId"], 16))
            return None

        elif method == ETH_SEND_TRANSACTION:
            if not self._auto_approve:
                raise ProviderRpcError("User rejected the request.", USER_REJECTED)
            self._tx_count += 1
            return "0x" + format(self._tx_count, "064x")

        raise ProviderRpcError(f"Unsupported method: {method}", -32601)

    def on(self, event: str, callback: Callable) -> None:
        self._event_handlers.setdefault(event, []).append(callback)

    def _emit(self, event: str, data: Any) -> None:
        for callback in self._event_handlers.get(event, []):
            callback(data)


# =============================================================================
# BrowserWalletAdapter
# =============================================================================

class BrowserWalletAdapter(WalletAdapter):
    """Wallet adapter over an EIP-1193 provider."""

    def __init__(self, provider: Optional[EthereumProvider] = None, chain_id: int = 1):
        super().__init__(chain_id)
        self._provider = provider

    @property
    def name(self) -> str:
        return "BrowserWallet"

    def _require_provider(self) -> EthereumProvider:
        if self._provider is None:
            raise WalletError("No Ethereum provider available")
        return self._provider

    async def _request(self, method: str, params: Any = None) -> Any:
        provider = self._require_provider()
        try:
            return await provider.request(method, params)
        except ProviderRpcError as e:
            if _is_rejection(e):
                raise UserCancelled(f"User rejected {method}")
            raise
        except Exception as e:
            if _is_rejection(e):
                raise UserCancelled(f"User rejected {method}")
            raise WalletError(f"{method} failed: {e}")

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self) -> str:
        try:
            accounts = await self._request(ETH_REQUEST_ACCOUNTS)
            chain_id = int(await self._request(ETH_CHAIN_ID), 16)
        except ProviderRpcError as e:
            raise WalletError(f"Failed to connect: {e}")
        if not accounts:
            raise WalletError("No accounts available")

        self._info = WalletInfo(name=self.name, address=accounts[0].lower(), chain_id=chain_id)
        self._chain_id = chain_id
        self._state = WalletState.CONNECTED

        self._provider.on("accountsChanged", self._on_accounts_changed)
        self._provider.on("chainChanged", self._on_chain_changed)
        logger.info(f"Wallet connected: {self._info.address} on chain {chain_id}")
        return self._info.address

    def _on_accounts_changed(self, accounts: List[str]) -> None:
        if self._info and accounts:
            self._info.address = accounts[0].lower()
        elif not accounts:
            self._info = None
            self._state = WalletState.DISCONNECTED

    def _on_chain_changed(self, chain_id_hex: str) -> None:
        self._chain_id = int(chain_id_hex, 16)
        if self._info:
            self._info.chain_id = self._chain_id

    async def chain_id(self) -> int:
        try:
            self._chain_id = int(await self._request(ETH_CHAIN_ID), 16)
        except ProviderRpcError as e:
            raise WalletError(f"eth_chainId failed: {e}")
        return self._chain_id

    async def switch_chain(self, chain_id: int) -> None:
        """Switch networks, registering the chain first when the wallet lacks it."""
        params = [{"chainId": hex(chain_id)}]
        try:
            await self._request(WALLET_SWITCH_CHAIN, params)
        except ProviderRpcError as e:
            if e.code != UNRECOGNIZED_CHAIN:
                raise WalletError(f"Network switch failed: {e}")
            if chain_id not in CHAIN_PARAMS:
                raise WalletError(f"Chain {chain_id} unknown to wallet and no parameters to add it")
            logger.info(f"Adding chain {chain_id} to wallet")
            await self._request(WALLET_ADD_CHAIN, [{"chainId": hex(chain_id), **CHAIN_PARAMS[chain_id]}])
            try:
                await self._request(WALLET_SWITCH_CHAIN, params)
            except ProviderRpcError as e2:
                raise WalletError(f"Network switch failed: {e2}")

        self._chain_id = chain_id
        if self._info:
            self._info.chain_id = chain_id

    # =========================================================================
    # Signing
    # =========================================================================

    async def sign_message(self, message: str) -> str:
        address = await self.ensure_connected()
        message_hex = "0x" + message.encode("utf-8").hex()
        try:
            return await self._request(PERSONAL_SIGN, [message_hex, address])
        except ProviderRpcError as e:
            raise WalletError(f"Signing failed: {e}")

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        address = await self.ensure_connected()
        payload = {"from": address}
        for key, value in tx.items():
            if key in ("from", "chainId", "nonce"):
                continue
            payload[key] = hex(value) if isinstance(value, int) else value
        try:
            return await self._request(ETH_SEND_TRANSACTION, [payload])
        except ProviderRpcError as e:
            raise WalletError(f"Transaction submission failed: {e}")
