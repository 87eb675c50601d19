"""Key Vault secret lookup."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from azure.keyvault.secrets.aio import SecretClient

from core.clients.base import dependency_call
from core.types import TokenProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecretValue:
    """A fetched secret. The value is kept out of repr so it never lands in logs."""

    name: str
    value: Optional[str] = field(default=None, repr=False)

    @property
    def exists(self) -> bool:
        return bool(self.value)


class SecretStoreClient:
    """
    Reads secrets from one Key Vault.

    The provider is handed to the SDK as its credential, so the vault token
    comes out of the shared per-audience cache.
    """

    capability = "secret-lookup"
    dependency = "keyvault"

    def __init__(self, vault_url: str, provider: TokenProvider):
        self.vault_url = vault_url
        self._provider = provider

    @classmethod
    def with_credential(
        cls, endpoint: str, provider: TokenProvider, **options: Any
    ) -> "SecretStoreClient":
        return cls(endpoint, provider)

    async def get_secret(self, name: str) -> SecretValue:
        """
        Fetch the latest version of a secret.

        Raises:
            AuthenticationError: If no token could be obtained for the vault
            DependencyError: If Key Vault rejects the request or the secret is missing
        """
        async with dependency_call(
            self.dependency, "get_secret", endpoint=self.vault_url, secret_name=name
        ):
            async with SecretClient(vault_url=self.vault_url, credential=self._provider) as client:
                secret = await client.get_secret(name)

        return SecretValue(name=secret.name, value=secret.value)
