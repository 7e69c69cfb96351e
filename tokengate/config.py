# tokengate/config.py
"""
TokenGate: Configuration

Network, gateway and timing parameters. Defaults target the Sepolia
testnet and the "datil" threshold network; ``GateConfig.from_env()``
reads overrides from the process environment.

Environment:
    NETWORK_MODE          testnet | sepolia | mainnet | localnet
    CHAIN_ID              numeric chain id ("1" selects mainnet defaults)
    LIT_CHAIN             predicate chain identifier
    LIT_NETWORK           threshold network name
    SEPOLIA_RPC_URL       (also TESTNET_RPC_URL)
    MAINNET_RPC_URL
    LOCALNET_RPC_URL
    SAU_CONTRACT_ADDRESS  default token contract
    SAU_DEPLOYMENT_BLOCK  first block for event scans
    NFT_EVENT_LOOKBACK    blocks scanned when no deployment block is set
    NFT_EVENT_CHUNK_SIZE  blocks per log query
    IPFS_GATEWAY, ARWEAVE_GATEWAY

Usage:
    config = GateConfig.from_env()
    predicate = build_access_predicate(contract, 42, chain=config.lit_chain)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional


# =============================================================================
# Constants
# =============================================================================

DEFAULT_LIT_NETWORK = "datil"
DEFAULT_TESTNET_CHAIN = "sepolia"

# Predicate chain identifier -> EVM chain id
CHAIN_IDS: Dict[str, int] = {
    "ethereum": 1,
    "sepolia": 11155111,
    "localhost": 31337,
    "hardhat": 31337,
}

DEFAULT_RPC_URLS: Dict[str, str] = {
    "sepolia": "https://rpc.sepolia.org",
    "mainnet": "https://eth-mainnet.g.alchemy.com/v2/demo",
    "localnet": "http://localhost:8545",
}

DEFAULT_CONTRACT_ADDRESS = "0xaF2ee6a63814052e52093E41E5eB2d06Bb53F6C9"


def default_lit_chain(env: Optional[Mapping[str, str]] = None) -> str:
    """Chain used in predicates when the caller does not name one."""
    env = os.environ if env is None else env
    explicit = (env.get("LIT_CHAIN") or "").strip()
    if explicit:
        return explicit
    if env.get("CHAIN_ID") == "1" or env.get("NETWORK_MODE") == "mainnet":
        return "ethereum"
    return DEFAULT_TESTNET_CHAIN


def chain_id_for(chain: str) -> int:
    """EVM chain id for a predicate chain identifier."""
    try:
        return CHAIN_IDS[chain]
    except KeyError:
        raise ValueError(f"Unknown chain identifier: {chain}")


# =============================================================================
# GateConfig
# =============================================================================

@dataclass
class GateConfig:
    """
    Runtime configuration.

    Attributes:
        network_mode: testnet/sepolia, mainnet or localnet
        rpc_url: Ledger JSON-RPC endpoint
        chain_id: Required EVM chain id for write operations
        lit_chain: Chain identifier embedded in access predicates
        lit_network: Threshold network name
        contract_address: Default token contract
        ipfs_gateway: Base URL for ipfs:// resolution
        arweave_gateway: Base URL for ar:// resolution
        connect_timeout: Threshold handshake bound (seconds)
        encrypt_timeout: Threshold encrypt bound (seconds)
        decrypt_timeout: Threshold decrypt bound (seconds)
        rpc_timeout: Per-request ledger bound (seconds)
        receipt_timeout: Wait for transaction confirmation (seconds)
        session_ttl: Threshold session reuse window (seconds)
        provider_ttl: Ledger provider reuse window (seconds)
        metadata_ttl: Token metadata cache lifetime (seconds)
        metadata_cache_size: Maximum cached metadata documents
        event_chunk_size: Blocks per log query
        event_lookback: Blocks scanned when deployment_block is 0
        deployment_block: First block to scan for events
        balance_chunk_size: Asset ids per balance-scan chunk
        max_concurrent_rpc: Parallel ledger reads inside a chunk
        chunk_delay: Pause between scan chunks (seconds)
    """
    network_mode: str = "testnet"
    rpc_url: str = DEFAULT_RPC_URLS["sepolia"]
    chain_id: int = CHAIN_IDS["sepolia"]
    lit_chain: str = DEFAULT_TESTNET_CHAIN
    lit_network: str = DEFAULT_LIT_NETWORK
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    ipfs_gateway: str = "https://ipfs.io"
    arweave_gateway: str = "https://arweave.net"
    connect_timeout: float = 15.0
    encrypt_timeout: float = 30.0
    decrypt_timeout: float = 30.0
    rpc_timeout: float = 20.0
    receipt_timeout: float = 180.0
    session_ttl: float = 300.0
    provider_ttl: float = 300.0
    metadata_ttl: float = 60.0
    metadata_cache_size: int = 100
    event_chunk_size: int = 6000
    event_lookback: int = 120000
    deployment_block: int = 0
    balance_chunk_size: int = 100
    max_concurrent_rpc: int = 10
    chunk_delay: float = 0.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GateConfig":
        """Build configuration from environment variables."""
        env = os.environ if env is None else env
        mode = (env.get("NETWORK_MODE") or "testnet").lower()

        if mode in ("testnet", "sepolia"):
            rpc_url = (
                env.get("TESTNET_RPC_URL")
                or env.get("SEPOLIA_RPC_URL")
                or DEFAULT_RPC_URLS["sepolia"]
            )
            chain_id = CHAIN_IDS["sepolia"]
        elif mode == "mainnet":
            rpc_url = env.get("MAINNET_RPC_URL") or DEFAULT_RPC_URLS["mainnet"]
            chain_id = CHAIN_IDS["ethereum"]
        else:
            rpc_url = env.get("LOCALNET_RPC_URL") or DEFAULT_RPC_URLS["localnet"]
            chain_id = CHAIN_IDS["localhost"]

        if env.get("CHAIN_ID"):
            chain_id = int(env["CHAIN_ID"])

        lit_network = (env.get("LIT_NETWORK") or "").strip() or DEFAULT_LIT_NETWORK

        return cls(
            network_mode=mode,
            rpc_url=rpc_url,
            chain_id=chain_id,
            lit_chain=default_lit_chain(env),
            lit_network=lit_network,
            contract_address=env.get("SAU_CONTRACT_ADDRESS") or DEFAULT_CONTRACT_ADDRESS,
            ipfs_gateway=(env.get("IPFS_GATEWAY") or "https://ipfs.io").rstrip("/"),
            arweave_gateway=(env.get("ARWEAVE_GATEWAY") or "https://arweave.net").rstrip("/"),
            deployment_block=int(env.get("SAU_DEPLOYMENT_BLOCK") or 0),
            event_lookback=int(env.get("NFT_EVENT_LOOKBACK") or 120000),
            event_chunk_size=int(env.get("NFT_EVENT_CHUNK_SIZE") or 6000),
        )
