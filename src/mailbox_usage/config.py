"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from mailbox_usage.errors import ConfigurationError

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_KEY_VAULT_SECRET_NAME = "backend-client-secret"


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Only the backend client ID is strictly required. The client secret may be
    supplied directly or read from Key Vault on first use; the default tenant
    is used when an inbound token carries no tenant claim.
    """

    # Required: no default, fail at startup if missing
    backend_client_id: str

    # Credential sources: all optional
    backend_client_secret: str | None = None
    default_tenant_id: str | None = None
    key_vault_url: str | None = None
    key_vault_secret_name: str = DEFAULT_KEY_VAULT_SECRET_NAME

    # Domain constants: defaults provided, overridable via env
    concurrency: int = 4
    page_size: int = 50
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    http_timeout_seconds: float = 30.0
    allowed_origins: tuple[str, ...] = field(default_factory=tuple)


def _optional(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _positive_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def load_allowed_origins() -> tuple[str, ...]:
    """Read the CORS allow-list from MU_ALLOWED_ORIGINS (comma-separated).

    Readable on its own so preflight requests are answered even when the
    rest of the configuration is incomplete.
    """
    return tuple(
        origin.strip()
        for origin in os.environ.get("MU_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    )


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Required environment variables:
        MU_BACKEND_CLIENT_ID: Azure AD application (client) ID of this API.

    Optional environment variables (with defaults):
        MU_BACKEND_CLIENT_SECRET: Client secret; when unset it is read from Key Vault.
        MU_DEFAULT_TENANT_ID: Tenant used when the inbound token has no tid claim.
        MU_KEY_VAULT_URL: Key Vault holding the client secret.
        MU_KEY_VAULT_SECRET_NAME: Secret name in Key Vault (default: backend-client-secret).
        MU_CONCURRENCY: Max in-flight child-folder listings per request (default: 4).
        MU_PAGE_SIZE: Folders requested per Graph page (default: 50).
        MU_GRAPH_BASE_URL: Graph API root (default: https://graph.microsoft.com/v1.0).
        MU_HTTP_TIMEOUT_SECONDS: Timeout for each Graph request (default: 30).
        MU_ALLOWED_ORIGINS: Comma-separated origins allowed for browser callers.

    Returns:
        Configured AppConfig instance.

    Raises:
        ConfigurationError: If a required variable is missing or a value is invalid.
    """
    client_id = _optional("MU_BACKEND_CLIENT_ID")
    if client_id is None:
        raise ConfigurationError("MU_BACKEND_CLIENT_ID is not configured")

    return AppConfig(
        backend_client_id=client_id,
        backend_client_secret=_optional("MU_BACKEND_CLIENT_SECRET"),
        default_tenant_id=_optional("MU_DEFAULT_TENANT_ID"),
        key_vault_url=_optional("MU_KEY_VAULT_URL"),
        key_vault_secret_name=os.environ.get(
            "MU_KEY_VAULT_SECRET_NAME", DEFAULT_KEY_VAULT_SECRET_NAME
        ),
        concurrency=_positive_int("MU_CONCURRENCY", 4),
        page_size=_positive_int("MU_PAGE_SIZE", 50),
        graph_base_url=os.environ.get("MU_GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL).rstrip("/"),
        http_timeout_seconds=_positive_float("MU_HTTP_TIMEOUT_SECONDS", 30.0),
        allowed_origins=load_allowed_origins(),
    )
