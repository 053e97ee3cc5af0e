"""Mailbox reporter: orchestrates token exchange, folder walk and flattening."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mailbox_usage.aggregation.aggregator import FolderAggregator
from mailbox_usage.aggregation.flatten import bytes_to_gib, flatten_all, total_bytes
from mailbox_usage.auth.broker import CredentialBroker
from mailbox_usage.graph.client import GraphClient
from mailbox_usage.graph.models import FlatFolderEntry

if TYPE_CHECKING:
    import httpx

    from mailbox_usage.config import AppConfig

logger = logging.getLogger(__name__)


class ReportStage(enum.Enum):
    """Progress of a single report request."""

    UNAUTHENTICATED = "unauthenticated"
    TOKEN_EXCHANGED = "token_exchanged"
    FOLDERS_LISTED = "folders_listed"
    AGGREGATED = "aggregated"
    FLATTENED = "flattened"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass
class MailboxReport:
    """Response envelope for a mailbox size report."""

    total_bytes: int
    folders: list[FlatFolderEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Render the JSON body returned to the caller."""
        return {
            "totalMailboxBytes": self.total_bytes,
            "totalMailboxGB": bytes_to_gib(self.total_bytes),
            "folders": [
                {
                    "id": entry.id,
                    "displayName": entry.display_name,
                    "folderPath": entry.folder_path,
                    "bytes": entry.own_bytes,
                    "cumulativeBytes": entry.cumulative_bytes,
                    "bytesGB": bytes_to_gib(entry.own_bytes),
                    "cumulativeGB": bytes_to_gib(entry.cumulative_bytes),
                    "totalItemCount": entry.total_item_count,
                    "unreadItemCount": entry.unread_item_count,
                }
                for entry in self.folders
            ],
        }


class MailboxReporter:
    """Runs one request through exchange, listing, aggregation and flattening."""

    def __init__(
        self,
        broker: CredentialBroker,
        graph_client: GraphClient,
        aggregator: FolderAggregator,
        page_size: int = 50,
    ) -> None:
        """Initialise the reporter.

        Args:
            broker: Process-wide credential broker (its caches outlive the request).
            graph_client: Graph client bound to this request's HTTP session.
            aggregator: Folder aggregator owning this request's concurrency limit.
            page_size: Folders requested per Graph page for the root listing.
        """
        self._broker = broker
        self._graph = graph_client
        self._aggregator = aggregator
        self._page_size = page_size
        self.stage = ReportStage.UNAUTHENTICATED

    def _advance(self, stage: ReportStage) -> None:
        logger.debug("[build_report] stage change; from:%s;to:%s", self.stage.value, stage.value)
        self.stage = stage

    async def build_report(self, inbound_token: str) -> MailboxReport:
        """Produce the full folder size report for the token's owner.

        Steps:
            1. Exchange the inbound token for a Graph token (on-behalf-of).
            2. List the mailbox's top-level folders (all pages).
            3. Aggregate each top-level folder in turn; subtrees fan out
               concurrently under the aggregator's shared limit.
            4. Flatten the trees and total them.

        Any failure marks the request FAILED and is re-raised unchanged; no
        partial report is ever returned.

        Args:
            inbound_token: Delegated access token presented by the caller.

        Returns:
            MailboxReport for the whole mailbox.
        """
        try:
            graph_token = await self._broker.acquire_downstream_token(inbound_token)
            self._advance(ReportStage.TOKEN_EXCHANGED)

            top_folders = await self._graph.get_all_pages(
                f"/me/mailFolders?$top={self._page_size}", graph_token
            )
            self._advance(ReportStage.FOLDERS_LISTED)
            logger.info("[build_report] listed top-level folders; folder_count:%d", len(top_folders))

            roots = await self._aggregator.aggregate_all(top_folders, graph_token)
            self._advance(ReportStage.AGGREGATED)

            report = MailboxReport(total_bytes=total_bytes(roots), folders=flatten_all(roots))
            self._advance(ReportStage.FLATTENED)
        except Exception:
            logger.warning("[build_report] report failed; stage:%s", self.stage.value)
            self._advance(ReportStage.FAILED)
            raise

        logger.info(
            "[build_report] report complete; folder_count:%d;total_bytes:%d",
            len(report.folders),
            report.total_bytes,
        )
        self._advance(ReportStage.RESPONDED)
        return report


def mailbox_reporter_from_config(
    config: AppConfig, broker: CredentialBroker, http: httpx.AsyncClient
) -> MailboxReporter:
    """Construct a MailboxReporter for one request.

    Creates a GraphClient over the given HTTP session and a FolderAggregator
    with a fresh concurrency limit, then wires them to the shared broker.

    Args:
        config: Application configuration instance.
        broker: Process-wide credential broker.
        http: Open async HTTP client for this request.

    Returns:
        Configured MailboxReporter instance.
    """
    graph = GraphClient(http, base_url=config.graph_base_url)
    aggregator = FolderAggregator(graph, concurrency=config.concurrency, page_size=config.page_size)
    return MailboxReporter(
        broker=broker,
        graph_client=graph,
        aggregator=aggregator,
        page_size=config.page_size,
    )
