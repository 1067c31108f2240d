"""Apso Python Client.

An async client for Apso-generated REST APIs with a fluent, entity-scoped
query builder.

Usage:
    from apso import ApsoClient, ApsoClientConfig

    config = ApsoClientConfig("https://api.example.com", api_key="secret", retry=True)

    async with ApsoClient(config) as client:
        # Query entities
        users = await client.entity("User").where({"status": "active"}).limit(10).find_many()

        # Fetch one entity
        user = await client.entity("User").where({"id": "123"}).find_one()

        # Create entity
        created = await client.entity("User").create({"name": "Alice"})

        # Update entity
        await client.entity("User").where({"id": created["id"]}).update({"status": "inactive"})

        # Delete entity
        await client.entity("User").where({"id": created["id"]}).remove()
"""

from .cache import ResponseCache
from .client import ApsoClient
from .entity import EntityClient, QueryBuilder
from .exceptions import (
    ApsoError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    TransportError,
    UnsupportedConfigurationError,
    ValidationError,
)
from .executors import Executor, ExecutorResponse, FetchExecutor, HttpxExecutor, create_executor
from .query import serialize_query
from .registry import ClientRegistry
from .types import ApsoClientConfig, CacheEntry, QueryParams, RetryConfig

__version__ = "0.1.0"
__all__ = [
    "ApsoClient",
    "ApsoClientConfig",
    "ApsoError",
    "CacheEntry",
    "ClientRegistry",
    "ConfigurationError",
    "EntityClient",
    "Executor",
    "ExecutorResponse",
    "FetchExecutor",
    "HttpxExecutor",
    "NetworkError",
    "NotFoundError",
    "QueryBuilder",
    "QueryParams",
    "RequestTimeoutError",
    "ResponseCache",
    "RetryConfig",
    "TransportError",
    "UnsupportedConfigurationError",
    "ValidationError",
    "create_executor",
    "serialize_query",
]
