"""Caller-owned registry of Apso clients."""

import logging
from collections.abc import Callable

from .client import ApsoClient
from .types import ApsoClientConfig

logger = logging.getLogger(__name__)


class ClientRegistry:
    """Reuse one :class:`ApsoClient` per base URL and API key.

    The registry holds no global state: construct one where the application
    starts and pass it to the code that needs clients.

    Args:
        factory: Builds a client for a config not seen before.

    Example:
        >>> registry = ClientRegistry()
        >>> client = registry.get(ApsoClientConfig("https://api.example.com", "key"))
        >>> client is registry.get(ApsoClientConfig("https://api.example.com", "key"))
        True
    """

    def __init__(self, factory: Callable[[ApsoClientConfig], ApsoClient] = ApsoClient):
        self._factory = factory
        self._clients: dict[tuple[str, str], ApsoClient] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, config: ApsoClientConfig) -> bool:
        return config.identity in self._clients

    def get(self, config: ApsoClientConfig) -> ApsoClient:
        """Return the client for ``config``'s connection, creating it once.

        Only the base URL and API key identify a connection; other settings
        of a later config with the same identity are ignored.
        """
        client = self._clients.get(config.identity)
        if client is None:
            logger.debug("Creating client for %s", config.base_url)
            client = self._factory(config)
            self._clients[config.identity] = client
        return client

    def clear(self) -> None:
        """Forget every client without closing it."""
        self._clients.clear()

    async def aclose(self) -> None:
        """Close and forget every client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()
