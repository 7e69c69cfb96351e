# tokengate/adapters/local.py
"""
TokenGate Adapters: Local Service Wallet

Private-key wallet for backend services (scripted decryption, automated
burns). Signs locally with eth-account and submits through an AsyncWeb3
provider when one is attached.

Requirements:
    pip install web3 eth-account

Usage:
    wallet = LocalAccountAdapter(private_key="0x...", rpc_url="https://...")
    await wallet.connect()
    sig = await wallet.sign_message("hello")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import AsyncHTTPProvider, AsyncWeb3

from .base import WalletAdapter, WalletInfo, WalletState
from ..errors import WalletError

logger = logging.getLogger("tokengate.wallet")


class LocalAccountAdapter(WalletAdapter):
    """Wallet backed by a raw private key."""

    def __init__(
        self,
        private_key: str,
        rpc_url: Optional[str] = None,
        chain_id: int = 1,
        w3: Optional[AsyncWeb3] = None,
    ):
        """
        Args:
            private_key: Hex private key
            rpc_url: Endpoint for transaction submission (optional)
            chain_id: Chain used when no provider is attached
            w3: Pre-built AsyncWeb3 instance (overrides rpc_url)
        """
        super().__init__(chain_id)
        self._account = Account.from_key(private_key)
        if w3 is None and rpc_url:
            w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._w3 = w3

    @property
    def name(self) -> str:
        return "LocalAccount"

    async def connect(self) -> str:
        if self._w3 is not None:
            self._chain_id = await self._w3.eth.chain_id
        self._info = WalletInfo(name=self.name, address=self._account.address.lower(), chain_id=self._chain_id)
        self._state = WalletState.CONNECTED
        return self._info.address

    async def chain_id(self) -> int:
        return self._chain_id

    async def sign_message(self, message: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=message))
        return "0x" + bytes(signed.signature).hex()

    async def switch_chain(self, chain_id: int) -> None:
        if self._w3 is not None:
            rpc_chain = await self._w3.eth.chain_id
            if rpc_chain != chain_id:
                raise WalletError(f"Service wallet RPC is on chain {rpc_chain}, not {chain_id}")
        self._chain_id = chain_id
        if self._info:
            self._info.chain_id = chain_id

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        if self._w3 is None:
            raise WalletError("No RPC provider attached to service wallet")

        tx = dict(tx)
        tx.setdefault("from", self._account.address)
        tx.setdefault("chainId", self._chain_id)
        if "nonce" not in tx:
            tx["nonce"] = await self._w3.eth.get_transaction_count(self._account.address)
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tx["gasPrice"] = await self._w3.eth.gas_price

        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Service wallet submitted tx {bytes(tx_hash).hex()}")
        return "0x" + bytes(tx_hash).hex()
