# tests/test_config.py
"""
TokenGate: Configuration, Cache and Result Tests
"""

import pytest

from tokengate.config import GateConfig, chain_id_for
from tokengate.context import GateContext, SessionCache, TTLCache
from tokengate.errors import (
    DecryptionDenied,
    RpcError,
    ThresholdConnectError,
    TokenGateError,
    UserCancelled,
)
from tokengate.result import Err, ErrorKind, Ok, err_from_exception, unwrap


# =============================================================================
# GateConfig
# =============================================================================

def test_defaults_target_sepolia():
    config = GateConfig.from_env({})
    assert config.chain_id == 11155111
    assert config.lit_chain == "sepolia"
    assert config.lit_network == "datil"
    assert config.rpc_url == "https://rpc.sepolia.org"


def test_mainnet_mode():
    config = GateConfig.from_env({"NETWORK_MODE": "mainnet", "MAINNET_RPC_URL": "https://rpc.example"})
    assert config.chain_id == 1
    assert config.lit_chain == "ethereum"
    assert config.rpc_url == "https://rpc.example"


def test_environment_overrides():
    config = GateConfig.from_env({
        "NETWORK_MODE": "localnet",
        "LIT_CHAIN": "hardhat",
        "SAU_CONTRACT_ADDRESS": "0xabc",
        "SAU_DEPLOYMENT_BLOCK": "1234",
        "NFT_EVENT_CHUNK_SIZE": "50",
        "IPFS_GATEWAY": "https://gw.example/",
    })
    assert config.chain_id == 31337
    assert config.rpc_url == "http://localhost:8545"
    assert config.lit_chain == "hardhat"
    assert config.contract_address == "0xabc"
    assert config.deployment_block == 1234
    assert config.event_chunk_size == 50
    assert config.ipfs_gateway == "https://gw.example"


def test_chain_id_lookup():
    assert chain_id_for("sepolia") == 11155111
    with pytest.raises(ValueError):
        chain_id_for("unknown")


# =============================================================================
# Caches
# =============================================================================

def test_ttl_expiry():
    now = [0.0]
    cache = TTLCache(ttl=10, clock=lambda: now[0])
    cache.put("a", 1)
    now[0] = 10
    assert cache.get("a") == 1
    now[0] = 10.5
    assert cache.get("a") is None
    assert len(cache) == 0


def test_size_bound_evicts_oldest():
    cache = TTLCache(ttl=60, max_size=2)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("c", 3)
    assert "a" not in cache
    assert cache.get("b") == 2 and cache.get("c") == 3


def test_invalidate():
    cache = TTLCache(ttl=60)
    cache.put("a", 1)
    assert cache.invalidate("a") is True
    assert cache.invalidate("a") is False


def test_session_cache_single_slot():
    sessions = SessionCache(ttl=60)
    sessions.put("first")
    sessions.put("second")
    assert sessions.get() == "second"
    sessions.clear()
    assert sessions.get() is None


def test_context_uses_config_bounds():
    ctx = GateContext.from_config(GateConfig(metadata_ttl=5, metadata_cache_size=3))
    assert ctx.metadata.ttl == 5
    assert ctx.metadata.max_size == 3


# =============================================================================
# Result
# =============================================================================

@pytest.mark.parametrize("error,kind", [
    (UserCancelled("no"), ErrorKind.CANCELLED),
    (DecryptionDenied("denied"), ErrorKind.DECRYPTION_DENIED),
    (RpcError("down"), ErrorKind.RPC_UNAVAILABLE),
    (ThresholdConnectError("offline"), ErrorKind.THRESHOLD_UNAVAILABLE),
])
def test_error_mapping(error, kind):
    result = err_from_exception(error)
    assert isinstance(result, Err)
    assert result.kind is kind
    assert result.error is error
    assert not result.ok


def test_unmapped_errors_reraised():
    with pytest.raises(KeyError):
        err_from_exception(KeyError("x"))
    with pytest.raises(TokenGateError):
        err_from_exception(TokenGateError("generic"))


def test_unwrap():
    assert unwrap(Ok(3)) == 3
    with pytest.raises(RpcError):
        unwrap(err_from_exception(RpcError("down")))
    with pytest.raises(RuntimeError):
        unwrap(Err(ErrorKind.NOT_OWNER, "not owner"))
