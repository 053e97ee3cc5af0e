"""Recursive mail-folder size aggregation under a shared concurrency limit."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mailbox_usage.graph.client import GraphClient
from mailbox_usage.graph.models import FIELD_DISPLAY_NAME, FIELD_ID, FolderNode

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4
DEFAULT_PAGE_SIZE = 50


class FolderAggregator:
    """Builds a size-annotated folder tree by walking child folders on Graph.

    A single semaphore is shared by every level of the recursion, so no more
    than ``concurrency`` child-folder listings are in flight at once no matter
    how wide or deep the tree is. The permit covers the listing call only;
    it is released before descending into the children, so parents never hold
    a slot while waiting on their subtree.
    """

    def __init__(
        self,
        graph_client: GraphClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialise the aggregator.

        Args:
            graph_client: Client used to list child folders.
            concurrency: Max child-folder listings in flight at once.
            page_size: Folders requested per Graph page.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._graph = graph_client
        self._page_size = page_size
        self._limiter = asyncio.Semaphore(concurrency)

    def child_folders_path(self, folder_id: str) -> str:
        return f"/me/mailFolders/{folder_id}/childFolders?$top={self._page_size}"

    async def list_children(self, folder_id: str, token: str) -> list[dict[str, Any]]:
        """List every direct child of a folder while holding a limiter permit."""
        async with self._limiter:
            return await self._graph.get_all_pages(self.child_folders_path(folder_id), token)

    async def aggregate(self, folder: dict[str, Any], token: str) -> FolderNode:
        """Aggregate one folder and its whole subtree.

        Args:
            folder: Raw Graph mailFolder dict.
            token: Graph access token for the signed-in user.

        Returns:
            FolderNode whose ``cumulative_bytes`` covers the folder and all descendants.

        Raises:
            UpstreamError: If listing any folder in the subtree fails. Listings
                still pending elsewhere in the subtree are cancelled and no
                partial tree is returned.
        """
        folder_id = folder.get(FIELD_ID, "")
        try:
            raw_children = await self.list_children(folder_id, token)
        except Exception:
            logger.error(
                "[aggregate] child folder listing failed; folder_id:%s;display_name:%s",
                folder_id,
                folder.get(FIELD_DISPLAY_NAME),
            )
            raise
        # A failing subtree cancels its siblings before the error leaves this level.
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self.aggregate(child, token)) for child in raw_children
                ]
        except ExceptionGroup as failures:
            raise failures.exceptions[0] from None
        return FolderNode.from_graph(folder, [task.result() for task in tasks])

    async def aggregate_all(self, folders: list[dict[str, Any]], token: str) -> list[FolderNode]:
        """Aggregate top-level folders one after another, preserving their order."""
        results: list[FolderNode] = []
        for folder in folders:
            node = await self.aggregate(folder, token)
            logger.info(
                "[aggregate_all] folder aggregated; folder_id:%s;cumulative_bytes:%d",
                node.id,
                node.cumulative_bytes,
            )
            results.append(node)
        return results
