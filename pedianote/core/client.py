"""HTTP and OpenAI client management for AI calls.

This module owns the shared httpx client used by every gateway call and
the OpenAI SDK client built on top of it. Calls are never retried
automatically: a failed call is reported and the user triggers it again.
"""

import httpx
from httpx import AsyncClient
from openai import AsyncOpenAI
from typing import Optional
from loguru import logger

from .config import Config
from .exceptions import MissingApiKeyError


def create_http_client(config: Config) -> AsyncClient:
    """Create the shared async HTTP client with reasonable timeouts.

    Args:
        config: Service configuration containing the request timeout

    Returns:
        Configured async HTTP client
    """
    client = AsyncClient(
        timeout=httpx.Timeout(
            connect=10.0,
            read=config.request_timeout,  # Long AI responses
            write=30.0,                   # Audio and image uploads
            pool=10.0
        ),
        limits=httpx.Limits(
            max_keepalive_connections=10,
            max_connections=20
        )
    )

    logger.info(f"Created HTTP client with {config.request_timeout}s read timeout")

    return client


def create_openai_client(config: Config, http_client: AsyncClient) -> AsyncOpenAI:
    """Create the OpenAI SDK client used by the gateways.

    Args:
        config: Service configuration
        http_client: Shared HTTP client

    Returns:
        OpenAI client with retries disabled

    Raises:
        MissingApiKeyError: If no API key is configured
    """
    if not config.openai_api_key:
        raise MissingApiKeyError()

    return AsyncOpenAI(
        api_key=config.openai_api_key,
        http_client=http_client,
        max_retries=0
    )


class HTTPClientManager:
    """Manager for HTTP client lifecycle."""

    def __init__(self, config: Config):
        self.config = config
        self._client: Optional[AsyncClient] = None

    async def get_client(self) -> AsyncClient:
        """Get or create HTTP client instance.

        Returns:
            Configured async HTTP client
        """
        if self._client is None:
            self._client = create_http_client(self.config)
        return self._client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed")


# Global client manager instance
_client_manager: Optional[HTTPClientManager] = None


def get_client_manager(config: Config) -> HTTPClientManager:
    """Get global client manager instance.

    Args:
        config: Service configuration

    Returns:
        HTTP client manager
    """
    global _client_manager
    if _client_manager is None:
        _client_manager = HTTPClientManager(config)
    return _client_manager


async def get_http_client(config: Config) -> AsyncClient:
    """Get configured HTTP client for dependency injection.

    Args:
        config: Service configuration

    Returns:
        Configured async HTTP client
    """
    manager = get_client_manager(config)
    return await manager.get_client()
