"""HTTP trigger blueprint: mailbox folder size report and health check endpoints."""

import json
import logging
from typing import Any

import azure.functions as func
import httpx

from mailbox_usage import __version__
from mailbox_usage.auth.broker import shared_credential_broker
from mailbox_usage.auth.claims import bearer_token_from_header
from mailbox_usage.config import AppConfig, load_allowed_origins, load_config
from mailbox_usage.errors import HTTP_SERVER_ERROR, MailboxUsageError
from mailbox_usage.orchestration.report import mailbox_reporter_from_config

logger = logging.getLogger(__name__)

bp = func.Blueprint()

CORS_ALLOW_METHODS = "GET, OPTIONS"
CORS_ALLOW_HEADERS = "Authorization, Content-Type"


def cors_headers(origin: str | None, allowed_origins: tuple[str, ...]) -> dict[str, str]:
    """Build CORS response headers, echoing the origin only if it is allow-listed."""
    if not origin or origin not in allowed_origins:
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Vary": "Origin",
    }


def _json_response(
    body: dict[str, Any], status_code: int, headers: dict[str, str] | None = None
) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body),
        status_code=status_code,
        mimetype="application/json",
        headers=headers,
    )


def _error_response(exc: Exception, headers: dict[str, str]) -> func.HttpResponse:
    """Map an exception to ``{"error": message}`` with the status it carries."""
    if isinstance(exc, MailboxUsageError):
        status_code = exc.status_code
        message = exc.message
    else:
        status_code = HTTP_SERVER_ERROR
        message = str(exc) or "Server error"
    return _json_response({"error": message}, status_code, headers)


@bp.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint.

    Returns service status and version.
    """
    logger.info("[health_check] health check requested")

    try:
        body = json.dumps({"status": "ok", "version": __version__})
        return func.HttpResponse(body, status_code=200, mimetype="application/json")

    except Exception:
        logger.error("[health_check] health check failed", exc_info=True)
        error_body = json.dumps({"status": "error", "message": "Internal server error"})
        return func.HttpResponse(error_body, status_code=500, mimetype="application/json")


async def _build_report_body(config: AppConfig, inbound_token: str) -> dict[str, Any]:
    broker = shared_credential_broker(config)
    async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as http:
        reporter = mailbox_reporter_from_config(config, broker, http)
        report = await reporter.build_report(inbound_token)
    return report.to_dict()


@bp.route(route="mail-folders", methods=["GET", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
async def mail_folders(req: func.HttpRequest) -> func.HttpResponse:
    """Mailbox size endpoint: per-folder and total storage for the caller.

    Expects ``Authorization: Bearer <token>`` issued for this API. The token
    is exchanged on-behalf-of the user for a Graph token, the whole folder
    tree is walked, and a flattened report is returned. CORS preflight
    requests are answered before any of that happens.
    """
    origin = req.headers.get("Origin")

    if req.method == "OPTIONS":
        return func.HttpResponse(
            status_code=204, headers=cors_headers(origin, load_allowed_origins())
        )

    try:
        config = load_config()
    except MailboxUsageError as exc:
        logger.error("[mail_folders] configuration invalid; error:%s", exc.message)
        return _error_response(exc, cors_headers(origin, load_allowed_origins()))

    headers = cors_headers(origin, config.allowed_origins)

    logger.info("[mail_folders] mailbox size report requested")

    try:
        inbound_token = bearer_token_from_header(req.headers.get("Authorization"))
        body = await _build_report_body(config, inbound_token)
        return _json_response(body, 200, headers)

    except MailboxUsageError as exc:
        logger.error(
            "[mail_folders] report failed; status:%d;error_type:%s;error:%s",
            exc.status_code,
            type(exc).__name__,
            exc.message,
            exc_info=exc.status_code >= HTTP_SERVER_ERROR,
        )
        return _error_response(exc, headers)

    except Exception as exc:
        logger.error("[mail_folders] report failed unexpectedly", exc_info=True)
        return _error_response(exc, headers)
