"""Backend client secret source backed by Azure Key Vault."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient

from mailbox_usage.errors import AuthenticationError, ConfigurationError

if TYPE_CHECKING:
    from mailbox_usage.config import AppConfig

logger = logging.getLogger(__name__)


class SecretProvider:
    """Supplies the backend application's client secret.

    A secret passed in configuration is always used as-is. Otherwise the
    secret is read from Key Vault on first use and kept for the lifetime of
    the process; it is never refreshed, so a rotated secret requires a restart.
    """

    def __init__(
        self,
        configured_secret: str | None,
        key_vault_url: str | None,
        secret_name: str,
    ) -> None:
        """Initialise the secret provider.

        Args:
            configured_secret: Secret from local configuration, if any.
            key_vault_url: Vault URL used when no secret is configured.
            secret_name: Name of the secret inside the vault.
        """
        self._configured_secret = configured_secret
        self._key_vault_url = key_vault_url
        self._secret_name = secret_name
        self._cached_secret: str | None = None

    async def get_client_secret(self) -> str:
        """Return the client secret, reading Key Vault at most once.

        Raises:
            ConfigurationError: If neither a secret nor a vault URL is configured,
                or the vault holds an empty secret.
            AuthenticationError: If Key Vault cannot be reached or refuses access.
        """
        if self._configured_secret:
            return self._configured_secret
        if self._cached_secret is not None:
            return self._cached_secret
        if not self._key_vault_url:
            raise ConfigurationError("MU_KEY_VAULT_URL not configured")

        secret = await asyncio.to_thread(self._read_from_vault, self._key_vault_url)
        self._cached_secret = secret
        return secret

    def _read_from_vault(self, vault_url: str) -> str:
        logger.info(
            "[get_client_secret] reading client secret from key vault; vault:%s;secret:%s",
            vault_url,
            self._secret_name,
        )
        try:
            client = SecretClient(vault_url=vault_url, credential=DefaultAzureCredential())
            value = client.get_secret(self._secret_name).value
        except AzureError as exc:
            logger.error(
                "[get_client_secret] key vault read failed; vault:%s;error:%s",
                vault_url,
                type(exc).__name__,
            )
            raise AuthenticationError(f"Secret source unreachable: {exc}", 500) from exc
        if not value:
            raise ConfigurationError(f"Key Vault secret {self._secret_name!r} is empty")
        return value


def secret_provider_from_config(config: AppConfig) -> SecretProvider:
    """Construct a SecretProvider from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured SecretProvider instance.
    """
    return SecretProvider(
        configured_secret=config.backend_client_secret,
        key_vault_url=config.key_vault_url,
        secret_name=config.key_vault_secret_name,
    )
