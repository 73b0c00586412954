"""Gateways: the REST collection client protocol and its httpx implementation.

Usage:
    >>> from resource_console.gateway import AsyncCrudGateway, ResourceClient, ListPage
"""

from resource_console.gateway.base import ProgressCallback, ResourceClient
from resource_console.gateway.envelope import (
    ListPage,
    extract_error_message,
    extract_upload_path,
    normalize_list_response,
    unwrap_collection,
)
from resource_console.gateway.http import AsyncCrudGateway, BearerTokenAuth

__all__ = [
    "ResourceClient",
    "ProgressCallback",
    "AsyncCrudGateway",
    "BearerTokenAuth",
    "ListPage",
    "normalize_list_response",
    "unwrap_collection",
    "extract_error_message",
    "extract_upload_path",
]
