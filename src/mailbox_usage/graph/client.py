"""Async Microsoft Graph API client that follows OData pagination."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mailbox_usage.config import DEFAULT_GRAPH_BASE_URL
from mailbox_usage.errors import HTTP_BAD_GATEWAY, UpstreamError
from mailbox_usage.graph.models import ODATA_NEXT_LINK, ODATA_VALUE

logger = logging.getLogger(__name__)


class GraphClient:
    """Issues delegated GET requests against Graph on behalf of a caller.

    The caller's Graph token is passed per call; the client itself holds no
    credentials, only the shared ``httpx.AsyncClient`` connection pool.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str = DEFAULT_GRAPH_BASE_URL) -> None:
        """Initialise the Graph client.

        Args:
            http: Open async HTTP client owned by the caller.
            base_url: Graph API root that relative paths are resolved against.
        """
        self._http = http
        self._base_url = base_url.rstrip("/")

    def url(self, path: str) -> str:
        """Resolve a path (starting with '/') or absolute URL to a full URL."""
        if path.startswith(("https://", "http://")):
            return path
        return f"{self._base_url}{path}"

    async def get(self, path: str, token: str) -> dict[str, Any]:
        """Perform an authenticated GET request to the Graph API.

        Args:
            path: URL path relative to the base URL, or an absolute next link.
            token: Graph access token for the signed-in user.

        Returns:
            Parsed JSON response body as a dict.

        Raises:
            UpstreamError: If the API returns a non-2xx status or cannot be reached.
        """
        url = self.url(path)
        try:
            resp = await self._http.get(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            logger.error("[get] graph request failed; url:%s;error:%s", url, type(exc).__name__)
            raise UpstreamError(HTTP_BAD_GATEWAY, str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            detail = resp.text
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                detail = body["error"].get("message") or detail
            logger.error("[get] graph returned error; status:%d;url:%s", resp.status_code, url)
            raise UpstreamError(resp.status_code, detail)
        return resp.json()  # type: ignore[no-any-return]

    async def get_all_pages(self, path: str, token: str) -> list[dict[str, Any]]:
        """Fetch a collection and every page after it.

        Follows ``@odata.nextLink`` until it is absent, concatenating each
        page's ``value`` list in order. A failure on any page discards the
        items collected so far.

        Args:
            path: Collection path or URL for the first page.
            token: Graph access token for the signed-in user.

        Returns:
            All items across all pages.
        """
        items: list[dict[str, Any]] = []
        next_path: str | None = path
        pages = 0
        while next_path is not None:
            page = await self.get(next_path, token)
            value = page.get(ODATA_VALUE)
            if isinstance(value, list):
                items.extend(value)
            next_path = page.get(ODATA_NEXT_LINK) or None
            pages += 1
        logger.debug("[get_all_pages] collection fetched; pages:%d;items:%d", pages, len(items))
        return items
