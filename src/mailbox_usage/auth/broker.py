"""Multi-tenant on-behalf-of token broker using MSAL."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING, Any

import msal

from mailbox_usage.auth.claims import audience_matches, parse_token_claims, tenant_hint
from mailbox_usage.auth.secret_source import SecretProvider, secret_provider_from_config
from mailbox_usage.errors import HTTP_SERVER_ERROR, AuthenticationError

if TYPE_CHECKING:
    from mailbox_usage.config import AppConfig

logger = logging.getLogger(__name__)

GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]
AUTHORITY_BASE_URL = "https://login.microsoftonline.com"


class CredentialBroker:
    """Exchanges inbound delegated tokens for Graph tokens, one tenant at a time.

    Holds one ``msal.ConfidentialClientApplication`` per tenant. Clients are
    created on first use and kept for the life of the process. Two requests
    racing on a new tenant may both build a client; the first one stored wins
    and the other is discarded.
    """

    def __init__(
        self,
        client_id: str,
        secret_provider: SecretProvider,
        default_tenant_id: str | None = None,
    ) -> None:
        """Initialise the broker.

        Args:
            client_id: Azure AD application (client) ID of this backend API.
            secret_provider: Source of the backend client secret.
            default_tenant_id: Tenant used when the inbound token has no tid claim.
        """
        self._client_id = client_id
        self._secrets = secret_provider
        self._default_tenant_id = default_tenant_id
        self._tenant_clients: dict[str, msal.ConfidentialClientApplication] = {}

    def resolve_tenant(self, inbound_token: str) -> str:
        """Pick the tenant to exchange against from the token's tid claim.

        Raises:
            AuthenticationError: If the token names no tenant and no default is set.
        """
        claims = parse_token_claims(inbound_token)
        if not audience_matches(claims, self._client_id):
            logger.warning(
                "[resolve_tenant] token audience does not name this API; expected:api://%s",
                self._client_id,
            )
        tenant_id = tenant_hint(claims) or self._default_tenant_id
        if tenant_id is None:
            raise AuthenticationError(
                "No tenant available (tid missing and no default tenant configured)"
            )
        return tenant_id

    async def client_for_tenant(self, tenant_id: str) -> msal.ConfidentialClientApplication:
        """Return the cached MSAL client for a tenant, creating it on first use."""
        cached = self._tenant_clients.get(tenant_id)
        if cached is not None:
            return cached

        secret = await self._secrets.get_client_secret()
        try:
            client = await asyncio.to_thread(self._build_client, tenant_id, secret)
        except Exception as exc:
            logger.error(
                "[client_for_tenant] MSAL client creation failed; tenant:%s;error:%s",
                tenant_id,
                exc,
            )
            raise AuthenticationError(
                f"Identity platform unavailable: {exc}", HTTP_SERVER_ERROR
            ) from exc
        return self._tenant_clients.setdefault(tenant_id, client)

    def _build_client(self, tenant_id: str, secret: str) -> msal.ConfidentialClientApplication:
        logger.info("[client_for_tenant] creating MSAL client; tenant:%s", tenant_id)
        return msal.ConfidentialClientApplication(
            client_id=self._client_id,
            client_credential=secret,
            authority=f"{AUTHORITY_BASE_URL}/{tenant_id}",
        )

    async def acquire_downstream_token(self, inbound_token: str) -> str:
        """Exchange the caller's token for a Graph token on behalf of the user.

        Args:
            inbound_token: Delegated access token presented to this API.

        Returns:
            Graph access token string.

        Raises:
            AuthenticationError: If no tenant can be resolved, the secret source
                fails, or MSAL returns no access token (e.g. consent missing).
                MSAL raising (e.g. network failure) maps to status 500.
            ConfigurationError: If no client secret source is configured.
        """
        tenant_id = self.resolve_tenant(inbound_token)
        client = await self.client_for_tenant(tenant_id)
        try:
            result: dict[str, Any] = (
                await asyncio.to_thread(
                    client.acquire_token_on_behalf_of,
                    user_assertion=inbound_token,
                    scopes=GRAPH_SCOPES,
                )
                or {}
            )
        except Exception as exc:
            logger.error(
                "[acquire_downstream_token] on-behalf-of call raised; tenant:%s;error:%s",
                tenant_id,
                exc,
            )
            raise AuthenticationError(
                f"Identity platform unavailable: {exc}", HTTP_SERVER_ERROR
            ) from exc
        if "access_token" not in result:
            error = result.get("error", "unknown_error")
            description = result.get("error_description", "No description provided")
            logger.error(
                "[acquire_downstream_token] on-behalf-of exchange failed; tenant:%s;error:%s",
                tenant_id,
                error,
            )
            raise AuthenticationError(f"OBO failed: {error}: {description}")
        return str(result["access_token"])


def credential_broker_from_config(config: AppConfig) -> CredentialBroker:
    """Construct a CredentialBroker from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured CredentialBroker instance with empty caches.
    """
    return CredentialBroker(
        client_id=config.backend_client_id,
        secret_provider=secret_provider_from_config(config),
        default_tenant_id=config.default_tenant_id,
    )


@functools.lru_cache(maxsize=1)
def shared_credential_broker(config: AppConfig) -> CredentialBroker:
    """Return the process-wide broker whose caches persist across requests."""
    return credential_broker_from_config(config)
