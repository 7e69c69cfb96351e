# tokengate/adapters/__init__.py
"""
TokenGate Wallet Adapters

Signer implementations behind one interface.

Components:
    WalletAdapter: Abstract signer
    BrowserWalletAdapter: EIP-1193 provider (MetaMask and compatibles)
    LocalAccountAdapter: Private-key service wallet
    MockWalletAdapter: In-memory wallet for tests

Usage:
    from tokengate.adapters import BrowserWalletAdapter, MockEthereumProvider

    wallet = BrowserWalletAdapter(MockEthereumProvider(chain_id=11155111))
    await wallet.connect()
"""

from .base import (
    WalletAdapter,
    WalletInfo,
    WalletState,
    MockWalletAdapter,
)

from .browser import (
    BrowserWalletAdapter,
    EthereumProvider,
    MockEthereumProvider,
    ProviderRpcError,
    CHAIN_PARAMS,
)

from .local import LocalAccountAdapter

__all__ = [
    "WalletAdapter",
    "WalletInfo",
    "WalletState",
    "MockWalletAdapter",
    "BrowserWalletAdapter",
    "EthereumProvider",
    "MockEthereumProvider",
    "ProviderRpcError",
    "CHAIN_PARAMS",
    "LocalAccountAdapter",
]
