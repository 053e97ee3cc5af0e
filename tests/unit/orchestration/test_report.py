"""Unit tests for orchestration/report.py: MailboxReporter pipeline."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from mailbox_usage.aggregation.aggregator import FolderAggregator
from mailbox_usage.config import AppConfig
from mailbox_usage.errors import AuthenticationError, UpstreamError
from mailbox_usage.graph.client import GraphClient
from mailbox_usage.graph.models import FlatFolderEntry
from mailbox_usage.orchestration.report import (
    MailboxReport,
    MailboxReporter,
    ReportStage,
    mailbox_reporter_from_config,
)

BASE = "https://graph.microsoft.com/v1.0"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _folder(id: str, name: str, size: int, items: int = 0) -> dict[str, Any]:
    return {
        "id": id,
        "displayName": name,
        "sizeInBytes": size,
        "totalItemCount": items,
        "unreadItemCount": 0,
    }


# Mailbox: Inbox(100) -> Archive(50); Sent Items(70), root list split over two pages.
_ROUTES: dict[str, dict[str, Any]] = {
    "/v1.0/me/mailFolders": {
        "value": [_folder("inbox", "Inbox", 100, 3)],
        "@odata.nextLink": f"{BASE}/me/mailFolders/page2",
    },
    "/v1.0/me/mailFolders/page2": {"value": [_folder("sent", "Sent Items", 70, 1)]},
    "/v1.0/me/mailFolders/inbox/childFolders": {"value": [_folder("archive", "Archive", 50, 2)]},
    "/v1.0/me/mailFolders/archive/childFolders": {"value": []},
    "/v1.0/me/mailFolders/sent/childFolders": {"value": []},
}


def _graph_handler(overrides: dict[str, httpx.Response] | None = None):  # type: ignore[no-untyped-def]
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        path = request.url.path
        if overrides and path in overrides:
            return overrides[path]
        return httpx.Response(200, json=_ROUTES[path])

    return handler, calls


def _make_broker(token: str = "graph-token") -> MagicMock:
    broker = MagicMock()
    broker.acquire_downstream_token = AsyncMock(return_value=token)
    return broker


def _run_report(
    broker: MagicMock,
    handler: Any,
    concurrency: int = 4,
) -> tuple[MailboxReport | BaseException, MailboxReporter]:
    holder: dict[str, MailboxReporter] = {}

    async def _go() -> MailboxReport:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            graph = GraphClient(http, base_url=BASE)
            reporter = MailboxReporter(
                broker=broker,
                graph_client=graph,
                aggregator=FolderAggregator(graph, concurrency=concurrency),
            )
            holder["reporter"] = reporter
            return await reporter.build_report("inbound-token")

    try:
        result: MailboxReport | BaseException = asyncio.run(_go())
    except Exception as exc:
        result = exc
    return result, holder["reporter"]


# ---------------------------------------------------------------------------
# build_report tests
# ---------------------------------------------------------------------------


class TestBuildReport:
    def test_builds_flat_report_with_totals(self) -> None:
        handler, _ = _graph_handler()
        report, reporter = _run_report(_make_broker(), handler)

        assert isinstance(report, MailboxReport)
        assert report.total_bytes == 220
        assert [(f.folder_path, f.cumulative_bytes) for f in report.folders] == [
            ("Inbox", 150),
            ("Inbox/Archive", 50),
            ("Sent Items", 70),
        ]
        assert reporter.stage is ReportStage.RESPONDED

    def test_uses_exchanged_token_for_graph_calls(self) -> None:
        broker = _make_broker("obo-graph-token")
        handler, calls = _graph_handler()

        _run_report(broker, handler)

        broker.acquire_downstream_token.assert_awaited_once_with("inbound-token")
        assert calls
        assert all(c.headers["Authorization"] == "Bearer obo-graph-token" for c in calls)

    def test_root_listing_requests_page_size(self) -> None:
        handler, calls = _graph_handler()
        _run_report(_make_broker(), handler)

        assert calls[0].url.params["$top"] == "50"

    def test_exchange_failure_stops_before_graph(self) -> None:
        broker = _make_broker()
        broker.acquire_downstream_token.side_effect = AuthenticationError("OBO failed")
        handler, calls = _graph_handler()

        result, reporter = _run_report(broker, handler)

        assert isinstance(result, AuthenticationError)
        assert calls == []
        assert reporter.stage is ReportStage.FAILED

    def test_upstream_failure_in_subtree_fails_whole_report(self) -> None:
        handler, _ = _graph_handler(
            {
                "/v1.0/me/mailFolders/archive/childFolders": httpx.Response(
                    403, json={"error": {"message": "Access is denied"}}
                )
            }
        )

        result, reporter = _run_report(_make_broker(), handler)

        assert isinstance(result, UpstreamError)
        assert result.status_code == 403
        assert reporter.stage is ReportStage.FAILED


# ---------------------------------------------------------------------------
# MailboxReport.to_dict tests
# ---------------------------------------------------------------------------


class TestMailboxReportToDict:
    def test_renders_response_envelope(self) -> None:
        gib = 1024**3
        report = MailboxReport(
            total_bytes=3 * gib,
            folders=[
                FlatFolderEntry(
                    id="inbox",
                    display_name="Inbox",
                    folder_path="Inbox",
                    own_bytes=gib,
                    cumulative_bytes=3 * gib,
                    total_item_count=12,
                    unread_item_count=4,
                )
            ],
        )

        body = report.to_dict()

        assert body == {
            "totalMailboxBytes": 3 * gib,
            "totalMailboxGB": 3.0,
            "folders": [
                {
                    "id": "inbox",
                    "displayName": "Inbox",
                    "folderPath": "Inbox",
                    "bytes": gib,
                    "cumulativeBytes": 3 * gib,
                    "bytesGB": 1.0,
                    "cumulativeGB": 3.0,
                    "totalItemCount": 12,
                    "unreadItemCount": 4,
                }
            ],
        }

    def test_empty_mailbox(self) -> None:
        assert MailboxReport(total_bytes=0).to_dict() == {
            "totalMailboxBytes": 0,
            "totalMailboxGB": 0.0,
            "folders": [],
        }


# ---------------------------------------------------------------------------
# Factory tests
# ---------------------------------------------------------------------------


class TestMailboxReporterFromConfig:
    def test_wires_graph_base_url_and_limits(self) -> None:
        config = AppConfig(
            backend_client_id="cid",
            graph_base_url="https://graph.example.test/beta",
            concurrency=2,
            page_size=10,
        )
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"value": []})

        async def _go() -> MailboxReport:
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                reporter = mailbox_reporter_from_config(config, _make_broker(), http)
                return await reporter.build_report("inbound-token")

        report = asyncio.run(_go())

        assert report.total_bytes == 0
        assert seen[0].startswith("https://graph.example.test/beta/me/mailFolders")
        assert "top=10" in seen[0]


@pytest.mark.parametrize("concurrency", [1, 3])
def test_report_is_independent_of_concurrency(concurrency: int) -> None:
    handler, _ = _graph_handler()
    report, _ = _run_report(_make_broker(), handler, concurrency=concurrency)
    assert isinstance(report, MailboxReport)
    assert report.total_bytes == 220
