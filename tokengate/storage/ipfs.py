# tokengate/storage/ipfs.py
"""
TokenGate Storage: IPFS Node Source

Reads content straight from a local or remote IPFS daemon instead of a
public gateway. Optional; requires the ``ipfs`` extra.

Requirements:
    pip install tokengate[ipfs]

Usage:
    source = IPFSContentSource("/ip4/127.0.0.1/tcp/5001")
    source.connect()
    data = await source.fetch_bytes("ipfs://Qm...")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..errors import StorageError

logger = logging.getLogger("tokengate.storage")

IPFS_AVAILABLE = False
try:
    import ipfshttpclient
    IPFS_AVAILABLE = True
except ImportError:
    logger.debug("IPFS not available: pip install ipfshttpclient")


def _cid_path(id_or_uri: str) -> str:
    value = id_or_uri.strip()
    if value.startswith("ipfs://"):
        value = value[len("ipfs://"):]
    if value.startswith("ipfs/"):
        value = value[len("ipfs/"):]
    if not value:
        raise StorageError("Empty IPFS path")
    return value


class IPFSContentSource:
    """IPFS daemon client wrapper."""

    def __init__(self, api_addr: str = "/ip4/127.0.0.1/tcp/5001", timeout: float = 30.0):
        self.api_addr = api_addr
        self.timeout = timeout
        self.client = None

    @property
    def connected(self) -> bool:
        return self.client is not None

    def connect(self) -> None:
        """
        Connect to the daemon.

        Raises:
            StorageError: Client library missing or daemon unreachable
        """
        if not IPFS_AVAILABLE:
            raise StorageError("ipfshttpclient is not installed")
        try:
            self.client = ipfshttpclient.connect(self.api_addr, timeout=self.timeout)
        except Exception as e:
            raise StorageError(f"IPFS connection to {self.api_addr} failed: {e}")
        logger.info(f"Connected to IPFS: {self.api_addr}")

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    def get_bytes(self, id_or_uri: str) -> bytes:
        if self.client is None:
            raise StorageError("IPFS client not connected")
        path = _cid_path(id_or_uri)
        try:
            return self.client.cat(path)
        except Exception as e:
            raise StorageError(f"IPFS cat {path} failed: {e}", url=f"ipfs://{path}")

    async def fetch_bytes(self, id_or_uri: str) -> bytes:
        return await asyncio.to_thread(self.get_bytes, id_or_uri)
