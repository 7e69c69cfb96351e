# tokengate/storage/__init__.py
"""
TokenGate Storage Layer

Read-side access to token metadata and content on IPFS and Arweave.

Components:
    MetadataGateway: URI resolution and HTTP fetch with caching
    HTTPTransport: Abstract transport (RequestsTransport, MockHTTPTransport)
    IPFSContentSource: Direct IPFS daemon reads (optional extra)

Usage:
    from tokengate.storage import MetadataGateway, resolve_token_uri

    resolve_token_uri("ipfs://QmHash")   # https://ipfs.io/ipfs/QmHash
"""

from .gateway import (
    HTTPResponse,
    HTTPTransport,
    MetadataGateway,
    MockHTTPTransport,
    RequestsTransport,
    resolve_token_uri,
)

from .ipfs import IPFSContentSource, IPFS_AVAILABLE

__all__ = [
    "HTTPResponse",
    "HTTPTransport",
    "MetadataGateway",
    "MockHTTPTransport",
    "RequestsTransport",
    "resolve_token_uri",
    "IPFSContentSource",
    "IPFS_AVAILABLE",
]
