# tokengate/chain/ownership.py
"""
TokenGate Chain: Ownership Verifier

Answers "does this address hold at least one unit of this asset" against
the ledger, and discovers which assets an address holds.

Ownership facts are read fresh on every call. An unreachable ledger
raises RpcError; it is never reported as "not owner".

Scans are chunked. A chunk that fails is recorded in ScanResult.failed
and the scan moves on, so callers can show partial results.

Usage:
    verifier = OwnershipVerifier(ledger, config)
    if await verifier.check_ownership(contract, 42, caller):
        ...
    result = await verifier.discover_asset_ids(contract, caller)
    owned = await verifier.scan_balances(contract, caller, result.found)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .ledger import LedgerClient
from ..access.predicate import normalize_asset_id
from ..config import GateConfig
from ..errors import RpcError

logger = logging.getLogger("tokengate.ownership")


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class OwnershipFact:
    """One balance observation. Not cached."""
    contract_address: str
    asset_id: int
    caller_address: str
    balance: int

    @property
    def is_owner(self) -> bool:
        return self.balance > 0


@dataclass
class AssetRecord:
    """Read-only view of one asset held by an account."""
    asset_id: int
    contract_address: str
    creator_address: str
    content_hash: str
    token_metadata_uri: str
    creation_timestamp: int
    balance: int


@dataclass
class ScanResult:
    """
    Outcome of a chunked scan.

    Attributes:
        found: Asset ids found (held ids for balance scans, candidate ids
            for event discovery)
        balances: Balance per held id (balance scans only)
        failed: Inclusive (start, end) spans whose chunk failed
    """
    found: List[int] = field(default_factory=list)
    balances: Dict[int, int] = field(default_factory=dict)
    failed: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


# =============================================================================
# OwnershipVerifier
# =============================================================================

class OwnershipVerifier:
    """Balance checks and owned-asset discovery."""

    def __init__(self, ledger: LedgerClient, config: Optional[GateConfig] = None):
        self.ledger = ledger
        self.config = config or GateConfig()

    async def get_ownership_fact(
        self,
        contract_address: str,
        asset_id: Union[int, str],
        caller_address: str,
    ) -> OwnershipFact:
        """
        Read the caller's balance.

        Raises:
            RpcError: Ledger unreachable
            PredicateBuildError: asset_id is not a non-negative integer
        """
        token_id = int(normalize_asset_id(asset_id))
        balance = await self.ledger.balance_of(contract_address, caller_address, token_id)
        return OwnershipFact(
            contract_address=contract_address,
            asset_id=token_id,
            caller_address=caller_address.lower(),
            balance=int(balance),
        )

    async def check_ownership(
        self,
        contract_address: str,
        asset_id: Union[int, str],
        caller_address: str,
    ) -> bool:
        """True iff balance > 0. Raises RpcError rather than returning False on failure."""
        fact = await self.get_ownership_fact(contract_address, asset_id, caller_address)
        return fact.is_owner

    # =========================================================================
    # Scans
    # =========================================================================

    async def scan_balances(
        self,
        contract_address: str,
        caller_address: str,
        asset_ids: Iterable[int],
        chunk_size: Optional[int] = None,
    ) -> ScanResult:
        """
        Read balances for many ids, chunk by chunk.

        Reads inside a chunk run concurrently, bounded by
        ``config.max_concurrent_rpc``. Any failed read fails its chunk.
        """
        ids = list(dict.fromkeys(int(i) for i in asset_ids))
        chunk_size = chunk_size or self.config.balance_chunk_size
        semaphore = asyncio.Semaphore(self.config.max_concurrent_rpc)
        result = ScanResult()

        async def read(token_id: int) -> Tuple[int, int]:
            async with semaphore:
                return token_id, await self.ledger.balance_of(contract_address, caller_address, token_id)

        for offset in range(0, len(ids), chunk_size):
            chunk = ids[offset:offset + chunk_size]
            if offset and self.config.chunk_delay:
                await asyncio.sleep(self.config.chunk_delay)
            outcomes = await asyncio.gather(*(read(i) for i in chunk), return_exceptions=True)
            errors = [o for o in outcomes if isinstance(o, BaseException)]
            for error in errors:
                if not isinstance(error, RpcError):
                    raise error
            if errors:
                logger.warning(f"Balance chunk {chunk[0]}-{chunk[-1]} failed: {errors[0]}")
                result.failed.append((chunk[0], chunk[-1]))
                continue
            for token_id, balance in outcomes:
                if balance > 0:
                    result.found.append(token_id)
                    result.balances[token_id] = int(balance)

        return result

    async def discover_asset_ids(
        self,
        contract_address: str,
        caller_address: str,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> ScanResult:
        """
        Collect candidate asset ids from transfer and creation events.

        Default range: deployment block (or latest - lookback) to latest.
        Candidates still need a balance check; the account may have
        transferred or burned them since.
        """
        if to_block is None:
            to_block = await self.ledger.get_block_number()
        if from_block is None:
            if self.config.deployment_block:
                from_block = self.config.deployment_block
            else:
                from_block = max(0, to_block - self.config.event_lookback)
        chunk_size = chunk_size or self.config.event_chunk_size

        result = ScanResult()
        seen: Dict[int, None] = {}
        start = from_block
        while start <= to_block:
            end = min(start + chunk_size - 1, to_block)
            if start != from_block and self.config.chunk_delay:
                await asyncio.sleep(self.config.chunk_delay)
            try:
                logs = await self.ledger.get_transfer_logs(contract_address, caller_address, start, end)
            except RpcError as e:
                logger.warning(f"Event chunk {start}-{end} failed: {e}")
                result.failed.append((start, end))
            else:
                for log in logs:
                    for token_id in log.asset_ids:
                        seen.setdefault(token_id, None)
            start = end + 1

        result.found = sorted(seen)
        logger.info(
            f"Discovered {len(result.found)} candidate assets in blocks "
            f"{from_block}-{to_block} ({len(result.failed)} failed chunks)"
        )
        return result
