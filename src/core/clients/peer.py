"""Authenticated HTTP calls to a peer service on the private network."""

import logging
from typing import Any, Optional

import aiohttp

from core.auth.credentials import MANAGEMENT_RESOURCE
from core.clients.base import dependency_call
from core.errors.exceptions import (
    AuthenticationError,
    DependencyError,
    ErrorCategory,
    classify_http_status,
)
from core.types import TokenProvider

logger = logging.getLogger(__name__)

MAX_ERROR_BODY_CHARS = 200


class PeerServiceClient:
    """
    Calls another service with a bearer token from the shared identity.

    Args:
        base_url: Root URL of the peer, e.g. "https://func-private.azurewebsites.net"
        provider: Token provider
        audience: Audience of the bearer token presented to the peer
        timeout_seconds: Total request timeout
    """

    capability = "http-call"
    dependency = "peer"

    def __init__(
        self,
        base_url: str,
        provider: TokenProvider,
        audience: str = MANAGEMENT_RESOURCE,
        timeout_seconds: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.audience = audience
        self.timeout_seconds = timeout_seconds
        self._provider = provider

    @classmethod
    def with_credential(
        cls, endpoint: str, provider: TokenProvider, **options: Any
    ) -> "PeerServiceClient":
        return cls(
            endpoint,
            provider,
            audience=options.get("audience") or MANAGEMENT_RESOURCE,
            timeout_seconds=options.get("timeout_seconds", 30),
        )

    def url_for(self, path: str) -> str:
        if path.startswith(("https://", "http://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def call(
        self,
        path: str,
        token: Optional[str] = None,
        method: str = "GET",
        payload: Any = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            path: Path relative to base_url, or an absolute URL
            token: Bearer token to present; acquired for ``audience`` when omitted
            method: HTTP method
            payload: Optional JSON request body

        Raises:
            AuthenticationError: If no token could be obtained or the peer rejects it (401)
            DependencyError: On transport failure, non-2xx status or a non-JSON body
        """
        url = self.url_for(path)
        async with dependency_call(self.dependency, "call", url=url, http_method=method) as op:
            if token is None:
                token = (await self._provider.acquire_token(self.audience)).token

            headers = {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            }
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, headers=headers, json=payload) as response:
                    op.add_context(http_status=response.status)
                    if response.status >= 400:
                        body = await response.text()
                        if classify_http_status(response.status) == ErrorCategory.AUTH:
                            raise AuthenticationError(
                                f"{url} rejected the bearer token: HTTP {response.status}",
                                context={"dependency": self.dependency, "http_status": response.status},
                            )
                        raise DependencyError(
                            f"{url} returned HTTP {response.status}: {body[:MAX_ERROR_BODY_CHARS]}",
                            dependency=self.dependency,
                            status_code=response.status,
                        )
                    return await response.json(content_type=None)
