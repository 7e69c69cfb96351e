# tokengate/lifecycle.py
"""
TokenGate: Asset Lifecycle Coordinator (burn)

State machine for destroying held units of an asset.

    idle --open()--> idle (target set, nothing sent)
    idle --cancel()--> idle (target cleared, no transaction ever created)
    idle --confirm()--> validating -> signing -> pending -> success | error

Validating:
    - signer address equals the owner (case-insensitive)
    - wallet chain equals the configured chain; a switch is requested once
    - on-chain balance >= amount
Signing:
    - gas limit = estimate + estimate // 10 + 10_000
Pending:
    - tx hash is recorded as soon as the wallet returns it
    - receipt status 1 -> success: metadata cache entry dropped, refresh hook called
    - receipt status 0 -> error
    - no receipt within receipt_timeout -> stays pending, confirmed=False

Every transition is appended to ``history``.

Usage:
    burn = BurnCoordinator(ledger, wallet, ctx, refresh=reload_assets)
    burn.open(BurnTarget(contract, 42, owner))
    outcome = await burn.confirm()
    if outcome.state is BurnState.PENDING and not outcome.confirmed:
        show_check_explorer(outcome.tx_hash)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from .adapters.base import WalletAdapter
from .chain.ledger import LedgerClient
from .context import GateContext, metadata_key
from .errors import (
    RpcError,
    TokenGateError,
    TransactionError,
    UserCancelled,
    WalletError,
)

logger = logging.getLogger("tokengate.lifecycle")

RefreshHook = Callable[[str], Awaitable[None]]


def burn_gas_limit(estimate: int) -> int:
    """Gas limit with a 10% margin plus a fixed 10k buffer."""
    return estimate + estimate // 10 + 10_000


# =============================================================================
# Types
# =============================================================================

class BurnState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SIGNING = "signing"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


TERMINAL_STATES = (BurnState.SUCCESS, BurnState.ERROR)


@dataclass(frozen=True)
class BurnTarget:
    contract_address: str
    asset_id: int
    owner_address: str
    amount: int = 1


@dataclass
class BurnTransition:
    state: BurnState
    detail: str = ""
    at: float = field(default_factory=time.time)


@dataclass
class BurnOutcome:
    """
    Result of confirm().

    ``confirmed`` is False only for a pending burn whose receipt did not
    arrive in time; the transaction may still be mined.
    """
    state: BurnState
    target: BurnTarget
    tx_hash: Optional[str] = None
    confirmed: bool = False
    message: str = ""
    reason: Optional[str] = None
    error: Optional[BaseException] = None


class _Abort(Exception):
    def __init__(self, message: str, reason: str, error: Optional[BaseException] = None):
        super().__init__(message)
        self.reason = reason
        self.error = error


# =============================================================================
# BurnCoordinator
# =============================================================================

class BurnCoordinator:
    """Drives one burn at a time."""

    def __init__(
        self,
        ledger: LedgerClient,
        wallet: WalletAdapter,
        ctx: Optional[GateContext] = None,
        refresh: Optional[RefreshHook] = None,
    ):
        self.ledger = ledger
        self.wallet = wallet
        self.ctx = ctx or GateContext.from_config()
        self.refresh = refresh
        self.target: Optional[BurnTarget] = None
        self.tx_hash: Optional[str] = None
        self.history: List[BurnTransition] = [BurnTransition(BurnState.IDLE, "created")]

    @property
    def state(self) -> BurnState:
        return self.history[-1].state

    def _transition(self, state: BurnState, detail: str = "") -> None:
        self.history.append(BurnTransition(state, detail))
        logger.info(f"Burn {self.state.value}: {detail}" if detail else f"Burn {self.state.value}")

    # =========================================================================
    # Dialog
    # =========================================================================

    def open(self, target: BurnTarget) -> None:
        """Select what to burn. Sends nothing."""
        if self.state not in (BurnState.IDLE,) + TERMINAL_STATES:
            raise TransactionError(f"Burn already {self.state.value}")
        if target.amount < 1:
            raise ValueError("Burn amount must be at least 1")
        if self.state is not BurnState.IDLE:
            self._transition(BurnState.IDLE, "reopened")
        self.target = target
        self.tx_hash = None

    def cancel(self) -> None:
        """Dismiss before confirming."""
        if self.state is not BurnState.IDLE:
            raise TransactionError(f"Cannot cancel a burn that is {self.state.value}")
        self.target = None

    # =========================================================================
    # Confirm
    # =========================================================================

    async def confirm(self) -> BurnOutcome:
        """Run validation, signing and confirmation for the open target."""
        if self.target is None:
            raise TransactionError("No burn target selected")
        if self.state is not BurnState.IDLE:
            raise TransactionError(f"Burn already {self.state.value}")
        target = self.target

        try:
            self._transition(BurnState.VALIDATING)
            await self._validate(target)

            self._transition(BurnState.SIGNING)
            self.tx_hash = await self._sign_and_send(target)

            self._transition(BurnState.PENDING, self.tx_hash)
            return await self._await_receipt(target)
        except _Abort as e:
            return self._fail(target, e)

    async def resume(self) -> BurnOutcome:
        """Wait again for the receipt of a burn left pending."""
        if self.state is not BurnState.PENDING or self.target is None:
            raise TransactionError(f"No pending burn (state is {self.state.value})")
        try:
            return await self._await_receipt(self.target)
        except _Abort as e:
            return self._fail(self.target, e)

    def _fail(self, target: BurnTarget, e: _Abort) -> BurnOutcome:
        self._transition(BurnState.ERROR, str(e))
        logger.error(f"Burn of {target.contract_address}#{target.asset_id} failed: {e}")
        return BurnOutcome(
            state=BurnState.ERROR,
            target=target,
            tx_hash=self.tx_hash,
            message=str(e),
            reason=e.reason,
            error=e.error,
        )

    async def _validate(self, target: BurnTarget) -> None:
        try:
            address = await self.wallet.ensure_connected()
        except UserCancelled as e:
            raise _Abort("Wallet connection was cancelled", "cancelled", e)
        except WalletError as e:
            raise _Abort(f"Wallet unavailable: {e}", "wallet", e)

        if address.lower() != target.owner_address.lower():
            raise _Abort(
                f"Connected wallet {address} is not the owner {target.owner_address}", "not_owner"
            )

        required = self.ctx.config.chain_id
        try:
            current = await self.wallet.chain_id()
            if current != required:
                logger.info(f"Wallet on chain {current}, requesting switch to {required}")
                await self.wallet.switch_chain(required)
                current = await self.wallet.chain_id()
        except UserCancelled as e:
            raise _Abort("Network switch was cancelled", "cancelled", e)
        except WalletError as e:
            raise _Abort(f"Network switch failed: {e}", "wrong_network", e)
        if current != required:
            raise _Abort(f"Wallet is on chain {current}; switch to chain {required}", "wrong_network")

        try:
            balance = await self.ledger.balance_of(target.contract_address, target.owner_address, target.asset_id)
        except RpcError as e:
            raise _Abort(f"Could not read balance: {e}", "rpc", e)
        if balance < target.amount:
            raise _Abort(f"Balance {balance} is less than burn amount {target.amount}", "insufficient_balance")

    async def _sign_and_send(self, target: BurnTarget) -> str:
        try:
            estimate = await self.ledger.estimate_burn_gas(
                target.contract_address, target.owner_address, target.asset_id, target.amount
            )
            tx = await self.ledger.build_burn_transaction(
                target.contract_address,
                target.owner_address,
                target.asset_id,
                target.amount,
                burn_gas_limit(estimate),
            )
        except TransactionError as e:
            raise _Abort(str(e), e.reason or "revert", e)
        except RpcError as e:
            raise _Abort(f"Could not prepare transaction: {e}", "rpc", e)

        try:
            return await self.wallet.send_transaction(tx)
        except UserCancelled as e:
            raise _Abort("Transaction was rejected in the wallet", "cancelled", e)
        except WalletError as e:
            raise _Abort(f"Transaction submission failed: {e}", "wallet", e)

    async def _await_receipt(self, target: BurnTarget) -> BurnOutcome:
        try:
            receipt = await self.ledger.wait_for_receipt(self.tx_hash, self.ctx.config.receipt_timeout)
        except RpcError as e:
            receipt = None
            logger.warning(f"Receipt lookup for {self.tx_hash} failed: {e}")

        if receipt is None:
            logger.warning(f"Burn {self.tx_hash} not confirmed within {self.ctx.config.receipt_timeout}s")
            return BurnOutcome(
                state=BurnState.PENDING,
                target=target,
                tx_hash=self.tx_hash,
                confirmed=False,
                message="Transaction submitted; confirmation status unknown",
            )

        if not receipt.succeeded:
            error = TransactionError("Burn transaction reverted", tx_hash=self.tx_hash, reason="reverted")
            raise _Abort(str(error), "reverted", error)

        self._transition(BurnState.SUCCESS, self.tx_hash)
        self.ctx.metadata.invalidate(metadata_key(target.contract_address, target.asset_id))
        if self.refresh is not None:
            try:
                await self.refresh(target.owner_address)
            except TokenGateError as e:
                logger.warning(f"Asset refresh after burn failed: {e}")

        return BurnOutcome(
            state=BurnState.SUCCESS,
            target=target,
            tx_hash=self.tx_hash,
            confirmed=True,
            message="Burn confirmed",
        )
