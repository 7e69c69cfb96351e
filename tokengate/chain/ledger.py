# tokengate/chain/ledger.py
"""
TokenGate Chain: Ledger Client

Read and write access to the ERC-1155 content-token contract.

Interface (LedgerClient):
    balance_of, get_token_info, uri         contract reads
    get_transfer_logs                       TransferSingle/TransferBatch/ContentCreated
    estimate_burn_gas, build_burn_transaction, wait_for_receipt
    get_chain_id, get_block_number

Connectivity failures raise RpcError; they never read as a zero balance.

Implementations:
    Web3Ledger: AsyncWeb3 over JSON-RPC
    MockLedger: In-memory state for tests

Requirements:
    pip install web3

Usage:
    ledger = Web3Ledger(rpc_url="https://rpc.sepolia.org")
    balance = await ledger.balance_of("0x...", "0x...", 42)
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from ..errors import PredicateBuildError, RpcError, TransactionError

logger = logging.getLogger("tokengate.chain")


# =============================================================================
# Constants
# =============================================================================

ABI_PATH = Path(__file__).parent / "abi" / "ContentToken1155.json"


def _load_abi() -> List[Dict]:
    """Load contract ABI from JSON file."""
    with open(ABI_PATH) as f:
        data = json.load(f)
    return data.get("abi", data)


CONTRACT_ABI = _load_abi()

EVENT_SIGNATURES = {
    "TransferSingle": "TransferSingle(address,address,address,uint256,uint256)",
    "TransferBatch": "TransferBatch(address,address,address,uint256[],uint256[])",
    "ContentCreated": "ContentCreated(uint256,address,string)",
}


class LedgerEvent(str, Enum):
    TRANSFER_SINGLE = "TransferSingle"
    TRANSFER_BATCH = "TransferBatch"
    CONTENT_CREATED = "ContentCreated"


# =============================================================================
# Types
# =============================================================================

@dataclass
class TokenInfo:
    """Result of getTokenInfo(uint256)."""
    content_hash: str
    creator: str
    creation_time: int


@dataclass
class TransferLog:
    """Decoded event touching an account."""
    event: LedgerEvent
    asset_ids: List[int]
    account: str
    block_number: int
    tx_hash: str = ""


@dataclass
class TxReceipt:
    """Mined transaction outcome."""
    tx_hash: str
    status: int
    block_number: int = 0
    gas_used: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == 1


def _topic_address(address: str) -> str:
    return "0x" + "0" * 24 + address.lower()[2:]


def _checksum(address: str) -> str:
    """Checksummed form of ``address``; PredicateBuildError if malformed."""
    try:
        return AsyncWeb3.to_checksum_address(address)
    except (TypeError, ValueError) as e:
        raise PredicateBuildError(f"Invalid address {address!r}: {e}")


def _decode_log(decoder, event: LedgerEvent, raw: Any, account: str) -> TransferLog:
    """Decode one raw log; a log that does not match the ABI raises RpcError."""
    try:
        decoded = decoder.process_log(raw)
        args = decoded["args"]
        if event is LedgerEvent.TRANSFER_SINGLE:
            ids = [int(args["id"])]
        elif event is LedgerEvent.TRANSFER_BATCH:
            ids = [int(i) for i in args["ids"]]
        else:
            ids = [int(args["tokenId"])]
        return TransferLog(
            event=event,
            asset_ids=ids,
            account=account.lower(),
            block_number=int(decoded["blockNumber"]),
            tx_hash=AsyncWeb3.to_hex(decoded["transactionHash"]),
        )
    except Exception as e:
        raise RpcError(f"Undecodable {event.value} log: {e}", method="eth_getLogs")


# =============================================================================
# Abstract Interface
# =============================================================================

class LedgerClient(ABC):
    """Abstract ledger RPC surface."""

    @abstractmethod
    async def balance_of(self, contract: str, owner: str, asset_id: int) -> int:
        pass

    @abstractmethod
    async def get_token_info(self, contract: str, asset_id: int) -> TokenInfo:
        pass

    @abstractmethod
    async def uri(self, contract: str, asset_id: int) -> str:
        pass

    @abstractmethod
    async def get_transfer_logs(
        self,
        contract: str,
        account: str,
        from_block: int,
        to_block: int,
    ) -> List[TransferLog]:
        """Logs in [from_block, to_block] where ``account`` received or created tokens."""
        pass

    @abstractmethod
    async def estimate_burn_gas(self, contract: str, owner: str, asset_id: int, amount: int) -> int:
        pass

    @abstractmethod
    async def build_burn_transaction(
        self,
        contract: str,
        owner: str,
        asset_id: int,
        amount: int,
        gas: int,
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Optional[TxReceipt]:
        """Receipt, or None if not mined within ``timeout``."""
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        pass

    @abstractmethod
    async def get_block_number(self) -> int:
        pass


# =============================================================================
# Web3Ledger
# =============================================================================

class Web3Ledger(LedgerClient):
    """LedgerClient over AsyncWeb3."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: float = 20.0,
        w3: Optional[AsyncWeb3] = None,
    ):
        """
        Args:
            rpc_url: JSON-RPC endpoint
            timeout: Per-request bound in seconds
            w3: Pre-built AsyncWeb3 instance (overrides rpc_url)
        """
        if w3 is None:
            if not rpc_url:
                raise ValueError("rpc_url or w3 is required")
            w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._w3 = w3
        self._contracts: Dict[str, Any] = {}
        self._topics = {
            name: AsyncWeb3.to_hex(AsyncWeb3.keccak(text=sig))
            for name, sig in EVENT_SIGNATURES.items()
        }

    def _contract(self, address: str):
        checksum = _checksum(address)
        if checksum not in self._contracts:
            self._contracts[checksum] = self._w3.eth.contract(address=checksum, abi=CONTRACT_ABI)
        return self._contracts[checksum]

    async def _rpc(self, method: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise RpcError(f"{method} timed out after {self.timeout}s", method=method)
        except ContractLogicError as e:
            raise RpcError(f"{method} reverted: {e}", method=method)
        except Exception as e:
            raise RpcError(f"{method} failed: {e}", method=method)

    # =========================================================================
    # Reads
    # =========================================================================

    async def balance_of(self, contract: str, owner: str, asset_id: int) -> int:
        fn = self._contract(contract).functions.balanceOf(
            _checksum(owner), int(asset_id)
        )
        return int(await self._rpc("balanceOf", fn.call()))

    async def get_token_info(self, contract: str, asset_id: int) -> TokenInfo:
        fn = self._contract(contract).functions.getTokenInfo(int(asset_id))
        content_hash, creator, creation_time = await self._rpc("getTokenInfo", fn.call())
        return TokenInfo(content_hash=content_hash, creator=creator, creation_time=int(creation_time))

    async def uri(self, contract: str, asset_id: int) -> str:
        fn = self._contract(contract).functions.uri(int(asset_id))
        return await self._rpc("uri", fn.call())

    async def get_chain_id(self) -> int:
        return int(await self._rpc("eth_chainId", self._w3.eth.chain_id))

    async def get_block_number(self) -> int:
        return int(await self._rpc("eth_blockNumber", self._w3.eth.block_number))

    async def get_transfer_logs(
        self,
        contract: str,
        account: str,
        from_block: int,
        to_block: int,
    ) -> List[TransferLog]:
        address = _checksum(contract)
        target = _topic_address(_checksum(account))
        token = self._contract(contract)

        queries = [
            # to is the third indexed argument
            (LedgerEvent.TRANSFER_SINGLE, [self._topics["TransferSingle"], None, None, target]),
            (LedgerEvent.TRANSFER_BATCH, [self._topics["TransferBatch"], None, None, target]),
            # creator is the second indexed argument
            (LedgerEvent.CONTENT_CREATED, [self._topics["ContentCreated"], None, target]),
        ]

        results: List[TransferLog] = []
        for event, topics in queries:
            raw_logs = await self._rpc("eth_getLogs", self._w3.eth.get_logs({
                "address": address,
                "fromBlock": from_block,
                "toBlock": to_block,
                "topics": topics,
            }))
            decoder = getattr(token.events, event.value)()
            results.extend(_decode_log(decoder, event, raw, account) for raw in raw_logs)
        logger.debug(f"eth_getLogs {from_block}-{to_block}: {len(results)} events")
        return results

    # =========================================================================
    # Burn
    # =========================================================================

    async def estimate_burn_gas(self, contract: str, owner: str, asset_id: int, amount: int) -> int:
        owner = _checksum(owner)
        fn = self._contract(contract).functions.burn(owner, int(asset_id), int(amount))
        try:
            return int(await asyncio.wait_for(fn.estimate_gas({"from": owner}), timeout=self.timeout))
        except ContractLogicError as e:
            raise TransactionError(f"Burn would revert: {e}", reason="revert")
        except asyncio.TimeoutError:
            raise RpcError("estimateGas timed out", method="estimateGas")
        except Exception as e:
            raise RpcError(f"estimateGas failed: {e}", method="estimateGas")

    async def build_burn_transaction(
        self,
        contract: str,
        owner: str,
        asset_id: int,
        amount: int,
        gas: int,
    ) -> Dict[str, Any]:
        owner = _checksum(owner)
        fn = self._contract(contract).functions.burn(owner, int(asset_id), int(amount))
        tx = await self._rpc("buildTransaction", fn.build_transaction({"from": owner, "gas": int(gas)}))
        return dict(tx)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Optional[TxReceipt]:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except (TimeExhausted, asyncio.TimeoutError):
            return None
        except Exception as e:
            raise RpcError(f"Receipt lookup failed: {e}", method="eth_getTransactionReceipt")
        return TxReceipt(
            tx_hash=tx_hash,
            status=int(receipt["status"]),
            block_number=int(receipt.get("blockNumber") or 0),
            gas_used=int(receipt.get("gasUsed") or 0),
        )


# =============================================================================
# Mock Ledger (for testing)
# =============================================================================

@dataclass
class _MockToken:
    info: TokenInfo
    uri: str


class MockLedger(LedgerClient):
    """
    In-memory ERC-1155 ledger for testing.

    Failure injection:
        fail_methods: Method names that raise RpcError
        failing_ranges: (from_block, to_block) log queries that raise RpcError
        confirm_transactions: False leaves submitted transactions unmined
        revert_transactions: True mines with status 0
    """

    def __init__(self, chain_id: int = 11155111, block_number: int = 1000):
        self.chain_id = chain_id
        self.block_number = block_number
        self.gas_estimate = 60000
        self.fail_methods: Set[str] = set()
        self.failing_ranges: Set[Tuple[int, int]] = set()
        self.confirm_transactions = True
        self.revert_transactions = False
        self.calls: List[str] = []
        self.log_queries: List[Tuple[int, int]] = []
        self._balances: Dict[Tuple[str, str, int], int] = {}
        self._tokens: Dict[Tuple[str, int], _MockToken] = {}
        self._logs: List[Tuple[str, TransferLog]] = []
        self._receipts: Dict[str, TxReceipt] = {}
        self._nonce = 0

    def _check(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_methods:
            raise RpcError(f"{method} failed: connection refused", method=method)

    # =========================================================================
    # State Setup
    # =========================================================================

    def set_balance(self, contract: str, owner: str, asset_id: int, amount: int) -> None:
        self._balances[(contract.lower(), owner.lower(), int(asset_id))] = int(amount)

    def mint(
        self,
        contract: str,
        to: str,
        asset_id: int,
        amount: int = 1,
        uri: str = "",
        content_hash: str = "",
        block: Optional[int] = None,
    ) -> None:
        """Credit tokens and record the matching events."""
        block = self.block_number if block is None else block
        key = (contract.lower(), to.lower(), int(asset_id))
        self._balances[key] = self._balances.get(key, 0) + int(amount)
        self._tokens[(contract.lower(), int(asset_id))] = _MockToken(
            info=TokenInfo(content_hash=content_hash, creator=to, creation_time=1700000000 + block),
            uri=uri,
        )
        for event in (LedgerEvent.TRANSFER_SINGLE, LedgerEvent.CONTENT_CREATED):
            self._logs.append((contract.lower(), TransferLog(
                event=event, asset_ids=[int(asset_id)], account=to.lower(), block_number=block,
            )))

    # =========================================================================
    # LedgerClient
    # =========================================================================

    async def balance_of(self, contract: str, owner: str, asset_id: int) -> int:
        self._check("balanceOf")
        return self._balances.get((contract.lower(), owner.lower(), int(asset_id)), 0)

    async def get_token_info(self, contract: str, asset_id: int) -> TokenInfo:
        self._check("getTokenInfo")
        token = self._tokens.get((contract.lower(), int(asset_id)))
        if token is None:
            raise RpcError(f"getTokenInfo reverted: token {asset_id} does not exist", method="getTokenInfo")
        return token.info

    async def uri(self, contract: str, asset_id: int) -> str:
        self._check("uri")
        token = self._tokens.get((contract.lower(), int(asset_id)))
        return token.uri if token else ""

    async def get_transfer_logs(
        self,
        contract: str,
        account: str,
        from_block: int,
        to_block: int,
    ) -> List[TransferLog]:
        self._check("eth_getLogs")
        self.log_queries.append((from_block, to_block))
        if (from_block, to_block) in self.failing_ranges:
            raise RpcError(f"eth_getLogs failed for {from_block}-{to_block}", method="eth_getLogs")
        return [
            log for addr, log in self._logs
            if addr == contract.lower()
            and log.account == account.lower()
            and from_block <= log.block_number <= to_block
        ]

    async def estimate_burn_gas(self, contract: str, owner: str, asset_id: int, amount: int) -> int:
        self._check("estimateGas")
        return self.gas_estimate

    async def build_burn_transaction(
        self,
        contract: str,
        owner: str,
        asset_id: int,
        amount: int,
        gas: int,
    ) -> Dict[str, Any]:
        self._check("buildTransaction")
        return {
            "to": contract,
            "from": owner,
            "gas": int(gas),
            "chainId": self.chain_id,
            "data": {"function": "burn", "args": [owner, int(asset_id), int(amount)]},
        }

    async def submit_transaction(self, tx: Dict[str, Any]) -> str:
        """Accept a transaction built by build_burn_transaction."""
        self._nonce += 1
        tx_hash = "0x" + hashlib.sha256(f"{self._nonce}:{tx['to']}".encode()).hexdigest()

        owner, asset_id, amount = tx["data"]["args"]
        key = (tx["to"].lower(), owner.lower(), int(asset_id))
        status = 1
        if self.revert_transactions or self._balances.get(key, 0) < amount:
            status = 0
        elif self.confirm_transactions:
            self._balances[key] -= amount

        if self.confirm_transactions or status == 0:
            self.block_number += 1
            self._receipts[tx_hash] = TxReceipt(
                tx_hash=tx_hash, status=status, block_number=self.block_number, gas_used=int(tx["gas"]),
            )
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Optional[TxReceipt]:
        self._check("eth_getTransactionReceipt")
        return self._receipts.get(tx_hash)

    async def get_chain_id(self) -> int:
        self._check("eth_chainId")
        return self.chain_id

    async def get_block_number(self) -> int:
        self._check("eth_blockNumber")
        return self.block_number
