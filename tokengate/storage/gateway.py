# tokengate/storage/gateway.py
"""
TokenGate Storage: Metadata Gateway

Read-side access to token metadata and content stored on IPFS or
Arweave, through public HTTP(S) gateways.

URI resolution:
    ipfs://<cid>[/path]       -> {ipfs_gateway}/ipfs/<cid>[/path]
    ar://<id>                 -> {arweave_gateway}/<id>
    bare CIDv0 / CIDv1        -> {ipfs_gateway}/ipfs/<cid>
    bare id of 43+ [A-Za-z0-9_-] chars -> {arweave_gateway}/<id>
    anything else             -> unchanged
    "{id}" in a URI is replaced with the 64-hex asset id (ERC-1155).

Arweave reads retry on a mirror gateway when the primary answers with an
error.

Usage:
    gateway = MetadataGateway(RequestsTransport(), ctx)
    metadata = await gateway.fetch_token_metadata(contract, 42, "ipfs://Qm...")
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import requests

from ..context import GateContext, metadata_key
from ..errors import StorageError

logger = logging.getLogger("tokengate.storage")


# =============================================================================
# Constants
# =============================================================================

ARWEAVE_ID = re.compile(r"^[a-zA-Z0-9_-]{43,}$")
CID_V0 = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
CID_V1 = re.compile(r"^b[a-z2-7]{58,}$")

ARWEAVE_MIRRORS = ("https://gateway.irys.xyz",)


def resolve_token_uri(
    uri: str,
    ipfs_gateway: str = "https://ipfs.io",
    arweave_gateway: str = "https://arweave.net",
    asset_id: Optional[int] = None,
) -> str:
    """Map a token URI or bare content id onto an HTTP(S) URL."""
    value = (uri or "").strip()
    if not value:
        raise StorageError("Empty token URI")

    if asset_id is not None and "{id}" in value:
        value = value.replace("{id}", format(int(asset_id), "064x"))

    if value.startswith("ipfs://"):
        path = value[len("ipfs://"):]
        if path.startswith("ipfs/"):
            path = path[len("ipfs/"):]
        return f"{ipfs_gateway.rstrip('/')}/ipfs/{path}"
    if value.startswith("ar://"):
        return f"{arweave_gateway.rstrip('/')}/{value[len('ar://'):]}"
    if CID_V0.match(value) or CID_V1.match(value):
        return f"{ipfs_gateway.rstrip('/')}/ipfs/{value}"
    if ARWEAVE_ID.match(value):
        return f"{arweave_gateway.rstrip('/')}/{value}"
    return value


# =============================================================================
# HTTP Transport
# =============================================================================

@dataclass
class HTTPResponse:
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HTTPTransport(ABC):
    """Abstract HTTP transport for gateway reads."""

    @abstractmethod
    async def get(self, url: str, timeout: float) -> HTTPResponse:
        """
        Fetch ``url``.

        Raises:
            StorageError: Connection failure or timeout
        """
        pass


class RequestsTransport(HTTPTransport):
    """HTTP transport on a requests.Session, run in a worker thread."""

    def __init__(self, session: Optional[requests.Session] = None):
        self._session = session or requests.Session()

    def _get(self, url: str, timeout: float) -> HTTPResponse:
        try:
            resp = self._session.get(url, timeout=timeout)
        except requests.RequestException as e:
            raise StorageError(f"GET {url} failed: {e}", url=url)
        return HTTPResponse(status=resp.status_code, body=resp.content, headers=dict(resp.headers))

    async def get(self, url: str, timeout: float) -> HTTPResponse:
        return await asyncio.to_thread(self._get, url, timeout)


class MockHTTPTransport(HTTPTransport):
    """Mock HTTP transport for testing."""

    def __init__(self):
        self.requests: List[str] = []
        self._routes: Dict[str, HTTPResponse] = {}
        self.fail_urls: List[str] = []

    def add_json(self, url: str, document: Any, status: int = 200) -> None:
        self._routes[url] = HTTPResponse(status=status, body=json.dumps(document).encode())

    def add_bytes(self, url: str, body: bytes, status: int = 200) -> None:
        self._routes[url] = HTTPResponse(status=status, body=body)

    async def get(self, url: str, timeout: float) -> HTTPResponse:
        self.requests.append(url)
        if url in self.fail_urls:
            raise StorageError(f"GET {url} failed: connection reset", url=url)
        return self._routes.get(url, HTTPResponse(status=404, body=b"not found"))


# =============================================================================
# MetadataGateway
# =============================================================================

class MetadataGateway:
    """Fetches token metadata documents and stored content."""

    def __init__(
        self,
        transport: Optional[HTTPTransport] = None,
        ctx: Optional[GateContext] = None,
        timeout: float = 15.0,
    ):
        self.ctx = ctx or GateContext.from_config()
        self.transport = transport or RequestsTransport()
        self.timeout = timeout

    def resolve(self, uri: str, asset_id: Optional[int] = None) -> str:
        config = self.ctx.config
        return resolve_token_uri(uri, config.ipfs_gateway, config.arweave_gateway, asset_id)

    def _candidates(self, url: str) -> List[str]:
        primary = self.ctx.config.arweave_gateway.rstrip("/")
        if url.startswith(primary + "/"):
            suffix = url[len(primary):]
            return [url] + [mirror + suffix for mirror in ARWEAVE_MIRRORS]
        return [url]

    async def _fetch(self, url: str) -> HTTPResponse:
        last_error: Optional[StorageError] = None
        for candidate in self._candidates(url):
            try:
                resp = await self.transport.get(candidate, self.timeout)
            except StorageError as e:
                last_error = e
                continue
            if resp.ok:
                return resp
            last_error = StorageError(f"GET {candidate} returned {resp.status}", url=candidate, status=resp.status)
            logger.debug(str(last_error))
        raise last_error

    async def fetch_bytes(self, id_or_uri: str, asset_id: Optional[int] = None) -> bytes:
        """Raw content for a URI or bare content id."""
        return (await self._fetch(self.resolve(id_or_uri, asset_id))).body

    async def fetch_json(self, uri: str, asset_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch and parse a JSON document.

        Raises:
            StorageError: Unreachable, non-2xx, or not a JSON object
        """
        url = self.resolve(uri, asset_id)
        body = (await self._fetch(url)).body
        try:
            document = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"Invalid JSON at {url}: {e}", url=url)
        if not isinstance(document, dict):
            raise StorageError(f"Expected JSON object at {url}", url=url)
        return document

    async def fetch_token_metadata(
        self,
        contract_address: str,
        asset_id: Union[int, str],
        uri: str,
    ) -> Dict[str, Any]:
        """Metadata document for one asset, cached per contract and asset id."""
        key = metadata_key(contract_address, asset_id)
        cached = self.ctx.metadata.get(key)
        if cached is not None:
            return cached

        document = await self.fetch_json(uri, int(asset_id))
        self.ctx.metadata.put(key, document)
        return document

    def media_url(self, uri: Optional[str]) -> Optional[str]:
        """Display URL for an image or animation field; None when absent."""
        if not uri or not uri.strip():
            return None
        return self.resolve(uri)
