# tokengate/gate.py
"""
TokenGate: Content Gate Service

High-level create and read paths. Each operation returns a tagged
Result (Ok | Err) instead of raising library errors.

Create path:
    predicate -> encrypt (threshold, else symmetric) -> token metadata
    (upload and mint are done by the caller)

Read path:
    ownership gate -> token URI -> gateway fetch -> envelope -> decrypt

Discovery:
    event scan -> balance scan -> token info

Usage:
    gate = ContentGate(ledger, MockThresholdNetwork(ledger), ctx)
    protected = await gate.protect_content("secret", asset_id=42)
    document = gate.build_token_metadata(protected.value.envelope, name="Issue #1",
                                         contract_address=contract, asset_id=42)
    ...
    result = await gate.access_content(contract, 42, caller, wallet)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .access.predicate import AccessPredicate, build_access_predicate, normalize_asset_id
from .adapters.base import WalletAdapter
from .chain.ledger import LedgerClient, Web3Ledger
from .chain.ownership import AssetRecord, OwnershipVerifier
from .config import GateConfig
from .context import GateContext
from .crypto.envelope import EncryptionEnvelope, EncryptionScheme, extract_envelope
from .crypto.orchestrator import EncryptionOrchestrator
from .crypto.threshold import ThresholdClient, ThresholdNetwork
from .errors import RpcError, StorageError, TokenGateError
from .lifecycle import BurnCoordinator, RefreshHook
from .resolver import DecryptedContent, DecryptionResolver
from .result import Err, ErrorKind, Ok, Result, err_from_exception
from .storage.gateway import HTTPTransport, MetadataGateway

logger = logging.getLogger("tokengate.gate")

# Ids scanned when event discovery finds nothing
FALLBACK_SCAN_IDS = range(1, 1001)


def ledger_for(ctx: GateContext, rpc_url: Optional[str] = None) -> LedgerClient:
    """Web3Ledger for ``rpc_url``, reused while the provider cache entry lives."""
    rpc_url = rpc_url or ctx.config.rpc_url
    ledger = ctx.providers.get(rpc_url)
    if ledger is None:
        ledger = Web3Ledger(rpc_url=rpc_url, timeout=ctx.config.rpc_timeout)
        ctx.providers.put(rpc_url, ledger)
    return ledger


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class ProtectedContent:
    envelope: EncryptionEnvelope
    predicate: AccessPredicate

    @property
    def used_fallback(self) -> bool:
        return self.envelope.scheme is EncryptionScheme.SYMMETRIC


@dataclass
class OwnedAssets:
    records: List[AssetRecord] = field(default_factory=list)
    complete: bool = True


# =============================================================================
# ContentGate
# =============================================================================

class ContentGate:
    """Create, read and discovery operations over one context."""

    def __init__(
        self,
        ledger: LedgerClient,
        network: ThresholdNetwork,
        ctx: Optional[GateContext] = None,
        transport: Optional[HTTPTransport] = None,
    ):
        self.ctx = ctx or GateContext.from_config()
        self.ledger = ledger
        self.threshold = ThresholdClient(network, self.ctx)
        self.orchestrator = EncryptionOrchestrator.default(self.threshold)
        self.verifier = OwnershipVerifier(ledger, self.ctx.config)
        self.resolver = DecryptionResolver(self.threshold)
        self.gateway = MetadataGateway(transport, self.ctx, timeout=self.ctx.config.rpc_timeout)

    @classmethod
    def from_config(
        cls,
        network: ThresholdNetwork,
        config: Optional[GateConfig] = None,
        transport: Optional[HTTPTransport] = None,
    ) -> "ContentGate":
        ctx = GateContext.from_config(config or GateConfig.from_env())
        return cls(ledger_for(ctx), network, ctx, transport)

    @property
    def config(self) -> GateConfig:
        return self.ctx.config

    # =========================================================================
    # Create
    # =========================================================================

    async def protect_content(
        self,
        content: Union[str, bytes],
        asset_id: Union[int, str],
        contract_address: Optional[str] = None,
        chain: Optional[str] = None,
        file_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        last_modified: Optional[int] = None,
    ) -> Result[ProtectedContent]:
        """Encrypt content so only holders of ``asset_id`` can read it."""
        try:
            predicate = build_access_predicate(
                contract_address or self.config.contract_address,
                asset_id,
                chain or self.config.lit_chain,
            )
            envelope = await self.orchestrator.encrypt_content(
                content,
                predicate,
                file_name=file_name,
                mime_type=mime_type,
                last_modified=last_modified,
            )
        except TokenGateError as e:
            logger.error(f"Protecting content for asset {asset_id} failed: {e}")
            return err_from_exception(e)

        if envelope.scheme is EncryptionScheme.SYMMETRIC:
            logger.warning(f"Asset {asset_id} content protected with symmetric fallback")
        return Ok(ProtectedContent(envelope=envelope, predicate=predicate))

    def build_token_metadata(
        self,
        envelope: EncryptionEnvelope,
        name: str,
        contract_address: str,
        asset_id: Union[int, str],
        description: str = "",
        image: Optional[str] = None,
        creator: Optional[str] = None,
        content_hash: Optional[str] = None,
        content_url: Optional[str] = None,
        include_preview: bool = False,
    ) -> Dict[str, Any]:
        """
        Token metadata document carrying the envelope.

        The plaintext preview is dropped unless ``include_preview`` is set.
        """
        token_id = normalize_asset_id(asset_id)
        encryption_data = envelope.to_dict()
        if not include_preview:
            encryption_data["originalContent"] = None

        attributes = [
            {"trait_type": "Token ID", "value": token_id},
            {"trait_type": "Creator", "value": creator or ""},
            {"trait_type": "Contract", "value": contract_address},
            {"trait_type": "Encrypted", "value": "Yes"},
        ]
        if content_hash:
            attributes.append({"trait_type": "Content Hash", "value": content_hash})

        return {
            "name": name.strip() or f"Token #{token_id}",
            "description": description,
            "image": image,
            "external_url": image,
            "attributes": attributes,
            "properties": {
                "contractAddress": contract_address,
                "tokenId": token_id,
                "creator": creator or "",
                "contentHash": content_hash,
                "contentUrl": content_url,
                "encrypted": True,
                "encryptionType": envelope.scheme.value,
                "encryptionData": encryption_data,
            },
        }

    # =========================================================================
    # Read
    # =========================================================================

    async def access_content(
        self,
        contract_address: str,
        asset_id: Union[int, str],
        caller_address: str,
        signer: WalletAdapter,
    ) -> Result[DecryptedContent]:
        """Gate on ownership, then fetch and decrypt the asset's content."""
        try:
            token_id = int(normalize_asset_id(asset_id))
            fact = await self.verifier.get_ownership_fact(contract_address, token_id, caller_address)
            if not fact.is_owner:
                return Err(ErrorKind.NOT_OWNER, f"{caller_address} does not hold asset {token_id}")

            uri = await self.ledger.uri(contract_address, token_id)
            if not uri:
                return Err(ErrorKind.METADATA_UNAVAILABLE, f"Asset {token_id} has no token URI")
            metadata = await self.gateway.fetch_token_metadata(contract_address, token_id, uri)
            envelope = extract_envelope(metadata)
            content = await self.resolver.decrypt_content(envelope, caller_address, signer)
        except TokenGateError as e:
            result = err_from_exception(e)
            logger.error(f"Access to {contract_address}#{asset_id} failed ({result.kind.value}): {e}")
            return result

        logger.info(f"Decrypted asset {token_id} for {caller_address} via {content.scheme.value}")
        return Ok(content)

    # =========================================================================
    # Discovery
    # =========================================================================

    async def list_owned_assets(
        self,
        caller_address: str,
        contract_address: Optional[str] = None,
    ) -> Result[OwnedAssets]:
        """
        Assets ``caller_address`` currently holds.

        ``complete`` is False when any scan chunk or token lookup failed.
        """
        contract_address = contract_address or self.config.contract_address
        try:
            discovery = await self.verifier.discover_asset_ids(contract_address, caller_address)
            candidates = discovery.found
            if not candidates:
                logger.info("No transfer events found; scanning ids by balance")
                candidates = list(FALLBACK_SCAN_IDS)
            scan = await self.verifier.scan_balances(contract_address, caller_address, candidates)
        except TokenGateError as e:
            logger.error(f"Listing assets for {caller_address} failed: {e}")
            return err_from_exception(e)

        owned = OwnedAssets(complete=discovery.complete and scan.complete)
        for token_id in scan.found:
            try:
                info = await self.ledger.get_token_info(contract_address, token_id)
                uri = await self.ledger.uri(contract_address, token_id)
            except (RpcError, StorageError) as e:
                logger.warning(f"Token info for {token_id} unavailable: {e}")
                owned.complete = False
                continue
            owned.records.append(AssetRecord(
                asset_id=token_id,
                contract_address=contract_address,
                creator_address=info.creator,
                content_hash=info.content_hash,
                token_metadata_uri=uri,
                creation_timestamp=info.creation_time,
                balance=scan.balances[token_id],
            ))
        return Ok(owned)

    # =========================================================================
    # Burn
    # =========================================================================

    def burn_coordinator(
        self,
        wallet: WalletAdapter,
        refresh: Optional[RefreshHook] = None,
    ) -> BurnCoordinator:
        """Coordinator sharing this gate's ledger and caches.

        Without ``refresh``, a confirmed burn reloads the owner's assets.
        """
        async def reload(owner: str) -> None:
            await self.list_owned_assets(owner)

        return BurnCoordinator(self.ledger, wallet, self.ctx, refresh=refresh or reload)
