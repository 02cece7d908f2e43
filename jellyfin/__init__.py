"""
Jellyfin/Emby API module for JellyScan.

This module provides the interface for communicating with Jellyfin and Emby
servers: the REST client, its payload models, library matching and the
paginated item stream.

Classes:
    JellyfinClient: Async httpx client with token auth
    LibraryCatalog: Per-run snapshot of configured libraries
    ItemStream: Cancellable page-by-page iterator over a library's items
    Library, Item, ScanPathResult: Payload models
    ScanStatus, ScanOutcome, RefreshMode: Enums parsed from/sent to the server

Exceptions:
    JellyfinError: Base for every client failure
    JellyfinConnectionError: Server unreachable or timed out
    JellyfinRequestError: Non-2xx response without a usable body
    JellyfinResponseError: Payload did not match the expected shape

Functions:
    translate_http_error: Convert httpx exceptions to our hierarchy
    match_libraries: Libraries whose locations contain a path
"""

from jellyfin.exceptions import (
    JellyfinError,
    JellyfinConnectionError,
    JellyfinRequestError,
    JellyfinResponseError,
    translate_http_error,
)
from jellyfin.models import (
    Library,
    Item,
    ScanPathResult,
    ScanStatus,
    ScanOutcome,
    RefreshMode,
)
from jellyfin.client import JellyfinClient
from jellyfin.catalog import LibraryCatalog, match_libraries
from jellyfin.pager import ItemStream

__all__ = [
    # Client
    'JellyfinClient',
    # Exceptions
    'JellyfinError',
    'JellyfinConnectionError',
    'JellyfinRequestError',
    'JellyfinResponseError',
    'translate_http_error',
    # Models
    'Library',
    'Item',
    'ScanPathResult',
    'ScanStatus',
    'ScanOutcome',
    'RefreshMode',
    # Catalog / enumeration
    'LibraryCatalog',
    'match_libraries',
    'ItemStream',
]
