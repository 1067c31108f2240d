"""Type definitions for the Apso client."""

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Generic, Literal, TypeVar

from .exceptions import ConfigurationError, ValidationError

T = TypeVar("T")

SortDirection = Literal["ASC", "DESC"]
ClientName = Literal["fetch", "httpx"]
QueryStyle = Literal["crud", "bracket"]

DEFAULT_TIMEOUT = 30.0
DEFAULT_CACHE_DURATION = 60.0
DEFAULT_RETRY_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass
class QueryParams:
    """Filter, sort, pagination and selection intent for a list request.

    ``filter`` values are either a literal (implicit equality) or a mapping
    of operator symbol to value. ``or_`` has the same shape and is sent under
    the ``or`` key. Pagination fields are kept independently; resolving a
    limit/offset versus page conflict is left to the server.
    """

    fields: list[str] | None = None
    filter: dict[str, Any] | None = None  # noqa: A003
    or_: dict[str, Any] | None = None
    join: list[str] | None = None
    sort: dict[str, SortDirection] | None = None
    limit: int | None = None
    offset: int | None = None
    page: int | None = None

    def is_empty(self) -> bool:
        """Return True when no field is set."""
        return all(getattr(self, f.name) in (None, [], {}) for f in dataclasses.fields(self))

    def copy(self, **changes: Any) -> "QueryParams":
        """Return a shallow copy with containers duplicated."""
        duplicated = QueryParams(
            fields=list(self.fields) if self.fields is not None else None,
            filter=dict(self.filter) if self.filter is not None else None,
            or_=dict(self.or_) if self.or_ is not None else None,
            join=list(self.join) if self.join is not None else None,
            sort=dict(self.sort) if self.sort is not None else None,
            limit=self.limit,
            offset=self.offset,
            page=self.page,
        )
        return replace(duplicated, **changes)


@dataclass
class CacheEntry(Generic[T]):
    """Cached payload and the absolute time it stops being valid."""

    data: T
    expiry: float

    def is_valid(self, now: float) -> bool:
        return now < self.expiry


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for transient failures.

    Args:
        attempts: Total attempts including the first one.
        delay: Base backoff in seconds; attempt ``n`` waits ``delay * n``.
        status_codes: HTTP statuses that trigger a retry.
    """

    attempts: int = 3
    delay: float = 1.0
    status_codes: frozenset[int] = DEFAULT_RETRY_STATUS_CODES

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValidationError(f"Retry attempts must be >= 1, got {self.attempts}")
        if self.delay < 0:
            raise ValidationError(f"Retry delay must be >= 0, got {self.delay}")
        object.__setattr__(self, "status_codes", frozenset(self.status_codes))

    def should_retry(self, status: int) -> bool:
        return status in self.status_codes

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        return self.delay * attempt

    @classmethod
    def resolve(
        cls, value: "RetryConfig | Mapping[str, Any] | bool | None"
    ) -> "RetryConfig | None":
        """Normalize the ``retry`` config shorthand.

        ``True`` enables the default policy, ``False`` and ``None`` disable
        retries, and a mapping overrides individual default fields.
        """
        if value is None or value is False:
            return None
        if value is True:
            return cls()
        if isinstance(value, RetryConfig):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(**dict(value))
            except TypeError as e:
                raise ValidationError(f"Invalid retry configuration: {e}")
        raise ValidationError(f"Invalid retry configuration: {value!r}")


@dataclass
class ApsoClientConfig:
    """Connection settings for an :class:`~apso.client.ApsoClient`.

    Args:
        base_url: API root, e.g. "https://api.example.com".
        api_key: Sent as the ``x-api-key`` header.
        client: HTTP executor, "fetch" (low-level transport) or "httpx".
        timeout: Per-attempt timeout in seconds.
        retry: Retry policy, ``True`` for the default one, or ``None``.
        headers: Extra headers; they win over the defaults.
        query_style: Wire syntax for query strings, "crud" or "bracket".
    """

    base_url: str
    api_key: str
    client: ClientName = "fetch"
    timeout: float = DEFAULT_TIMEOUT
    retry: RetryConfig | Mapping[str, Any] | bool | None = None
    headers: dict[str, str] = field(default_factory=dict)
    query_style: QueryStyle = "crud"

    @property
    def retry_config(self) -> RetryConfig | None:
        return RetryConfig.resolve(self.retry)

    @property
    def identity(self) -> tuple[str, str]:
        """Key identifying the connection (base URL and API key)."""
        return (self.base_url, self.api_key)

    @classmethod
    def from_env(
        cls, prefix: str = "APSO_", environ: Mapping[str, str] | None = None
    ) -> "ApsoClientConfig":
        """Create config from environment variables.

        Reads ``<prefix>BASE_URL`` and ``<prefix>API_KEY`` (required) and
        ``CLIENT``, ``TIMEOUT``, ``RETRY`` and ``QUERY_STYLE`` (optional).
        """
        env = os.environ if environ is None else environ
        base_url = env.get(f"{prefix}BASE_URL")
        api_key = env.get(f"{prefix}API_KEY")
        if not base_url or not api_key:
            raise ConfigurationError(
                f"{prefix}BASE_URL and {prefix}API_KEY must be set"
            )

        config = cls(base_url=base_url, api_key=api_key)
        if env.get(f"{prefix}CLIENT"):
            config.client = env[f"{prefix}CLIENT"]  # type: ignore[assignment]
        timeout = env.get(f"{prefix}TIMEOUT")
        if timeout:
            try:
                config.timeout = float(timeout)
            except ValueError:
                raise ConfigurationError(
                    f"{prefix}TIMEOUT must be a number, got {timeout!r}"
                )
        if env.get(f"{prefix}RETRY"):
            config.retry = env[f"{prefix}RETRY"].strip().lower() in ("1", "true", "yes", "on")
        if env.get(f"{prefix}QUERY_STYLE"):
            config.query_style = env[f"{prefix}QUERY_STYLE"]  # type: ignore[assignment]
        return config
