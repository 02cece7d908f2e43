"""
jellyfin.client — Async Jellyfin/Emby REST client.

Design notes:
- Async-only: all public methods are coroutines. The CLI calls via asyncio.run().
- Uses httpx.AsyncClient for async HTTP. Caller must call close() (or use
  ``async with``) when done.
- Returns typed Pydantic models (Library, Item, ScanPathResult) so callers
  never touch raw PascalCase dict shapes.
- The targeted-scan endpoints (POST /Library/ScanPath, /Library/ScanPaths)
  come from a server-side plugin that may not be installed. They answer
  PathNotFound/ParentNotFound with HTTP 404 *and* a valid JSON body, so their
  bodies are parsed before the status code is considered.

Exports:
    JellyfinClient -- async REST client
"""

from __future__ import annotations

import logging
from typing import Optional, TypeVar

import httpx
import pydantic

from jellyfin.exceptions import (
    JellyfinRequestError,
    JellyfinResponseError,
    translate_http_error,
)
from jellyfin.models import (
    Item,
    ItemsPage,
    Library,
    RefreshMode,
    ScanPathResult,
    ScanPathsResult,
    item_type_filter,
)

log = logging.getLogger("JellyScan.client")

_Model = TypeVar("_Model", bound=pydantic.BaseModel)

_LIBRARIES_ENDPOINT = "Library/VirtualFolders"
_ITEMS_ENDPOINT = "Items"
_SCAN_PATH_ENDPOINT = "Library/ScanPath"
_SCAN_PATHS_ENDPOINT = "Library/ScanPaths"

_libraries_adapter = pydantic.TypeAdapter(list[Library])


class JellyfinClient:
    """
    Async REST client for a Jellyfin or Emby server.

    Usage (synchronous context)::

        import asyncio
        from jellyfin.client import JellyfinClient

        client = JellyfinClient("http://localhost:8096", token="api-key")
        libraries = asyncio.run(client.get_libraries())
        asyncio.run(client.close())

    Usage (async context)::

        async with JellyfinClient(url, token) as client:
            result = await client.scan_path("/media/movies/x.mkv")
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Create the async REST client.

        Args:
            url:             Base URL of the server, e.g. ``http://localhost:8096``.
                             Trailing slashes are stripped automatically.
            token:           API key. Sent both as ``X-Emby-Token`` and in the
                             ``MediaBrowser`` Authorization header so Jellyfin
                             and Emby both accept it.
            timeout:         Total request timeout in seconds (default 30).
            connect_timeout: Connect timeout in seconds (default 5).
            transport:       Optional httpx transport (tests, proxies).
        """
        self._base_url = url.rstrip("/") + "/"

        headers = {
            "X-Emby-Token": token,
            "Authorization": f'MediaBrowser Token="{token}"',
            "Accept": "application/json",
        }

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
        )
        log.debug("JellyfinClient initialised, url=%s", self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        """Close the underlying httpx client and release connections."""
        await self._client.aclose()

    async def __aenter__(self) -> "JellyfinClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """Send a request, translating transport failures into JellyfinError."""
        try:
            return await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as exc:
            raise translate_http_error(exc) from exc

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        body = resp.text[:200]
        raise JellyfinRequestError(
            f"{resp.request.method} {resp.request.url.path} failed with HTTP {resp.status_code}: {body}",
            status_code=resp.status_code,
        )

    @staticmethod
    def _parse(resp: httpx.Response, model: type[_Model]) -> _Model:
        try:
            return model.model_validate_json(resp.content)
        except pydantic.ValidationError as exc:
            raise JellyfinResponseError(
                f"Unexpected {model.__name__} payload (HTTP {resp.status_code}): {exc}",
                status_code=resp.status_code,
            ) from exc

    async def get_libraries(self) -> list[Library]:
        """
        Fetch the configured libraries (virtual folders).

        Raises:
            JellyfinError: on transport failure, non-2xx status or bad payload.
        """
        resp = await self._request("GET", _LIBRARIES_ENDPOINT)
        self._raise_for_status(resp)
        try:
            libraries = _libraries_adapter.validate_json(resp.content)
        except pydantic.ValidationError as exc:
            raise JellyfinResponseError(
                f"Unexpected library list payload: {exc}", status_code=resp.status_code
            ) from exc
        log.debug("Fetched %d libraries", len(libraries))
        return libraries

    async def get_items_page(self, library: Library, start_index: int, limit: int) -> list[Item]:
        """
        Fetch one page of a library's items with their file paths.

        Args:
            library:     Library whose items to list (``ParentId``).
            start_index: Offset of the first item in the page.
            limit:       Page size.

        Raises:
            JellyfinError: on transport failure, non-2xx status or bad payload.
        """
        params = {
            "Recursive": "true",
            "Fields": "Path",
            "EnableImages": "false",
            "ParentId": library.item_id,
            "EnableTotalRecordCount": "false",
            "Limit": str(limit),
            "StartIndex": str(start_index),
        }
        include_types = item_type_filter(library.collection_type)
        if include_types:
            params["IncludeItemTypes"] = include_types

        resp = await self._request("GET", _ITEMS_ENDPOINT, params=params)
        self._raise_for_status(resp)
        return self._parse(resp, ItemsPage).items

    async def scan_path(self, path: str) -> ScanPathResult:
        """
        Ask the server to resolve a single path (targeted scan).

        A non-2xx response whose body parses is returned as a result; the
        plugin reports PathNotFound/ParentNotFound with HTTP 404.

        Raises:
            JellyfinError: transport failure, or a body that does not parse
                           (plugin missing, server error page).
        """
        resp = await self._request("POST", _SCAN_PATH_ENDPOINT, json={"Path": path})
        try:
            return ScanPathResult.model_validate_json(resp.content)
        except pydantic.ValidationError as exc:
            raise JellyfinRequestError(
                f"ScanPath failed with HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from exc

    async def scan_paths(self, paths: list[str]) -> list[ScanPathResult]:
        """
        Ask the server to resolve many paths in one round-trip.

        Raises:
            JellyfinError: transport failure or unparseable body (endpoint absent).
        """
        resp = await self._request("POST", _SCAN_PATHS_ENDPOINT, json={"Paths": paths})
        try:
            return ScanPathsResult.model_validate_json(resp.content).results
        except pydantic.ValidationError as exc:
            raise JellyfinRequestError(
                f"ScanPaths failed with HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from exc

    async def refresh_item(self, item_id: str, mode: RefreshMode = RefreshMode.FULL_REFRESH) -> None:
        """
        Queue a metadata and image refresh for an item.

        Metadata is always fully replaced and the refresh is recursive; images
        are not replaced and trickplay data is not regenerated.

        Raises:
            JellyfinError: transport failure or non-2xx status.
        """
        params = {
            "MetadataRefreshMode": mode.value,
            "ImageRefreshMode": mode.value,
            "ReplaceAllMetadata": "true",
            "Recursive": "true",
            "ReplaceAllImages": "false",
            "RegenerateTrickplay": "false",
        }
        resp = await self._request("POST", f"Items/{item_id}/Refresh", params=params)
        self._raise_for_status(resp)

