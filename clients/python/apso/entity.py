"""Fluent, entity-scoped query builder."""

import warnings
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from .exceptions import NotFoundError, ValidationError
from .types import DEFAULT_CACHE_DURATION, QueryParams, SortDirection

if TYPE_CHECKING:
    from .client import ApsoClient

SORT_DIRECTIONS = ("ASC", "DESC")


@dataclass
class BuiltQuery:
    """Query state resolved from a :class:`QueryBuilder`."""

    params: QueryParams
    use_cache: bool = False
    cache_duration: float = DEFAULT_CACHE_DURATION


def _non_negative(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
    return value


class QueryBuilder:
    """Accumulates query params through chained calls.

    Every mutator returns the builder itself. ``where`` merges into the
    existing filter; the other mutators replace their part of the query.
    """

    def __init__(self) -> None:
        self.params = QueryParams()
        self.use_cache = False
        self.cache_duration = DEFAULT_CACHE_DURATION

    def select(self, fields: Iterable[str]) -> "QueryBuilder":
        # dict.fromkeys drops duplicates and keeps the first position
        self.params.fields = list(dict.fromkeys(fields))
        return self

    def where(self, filter: Mapping[str, Any]) -> "QueryBuilder":  # noqa: A002
        self.params.filter = {**(self.params.filter or {}), **filter}
        return self

    def or_(self, filter: Mapping[str, Any]) -> "QueryBuilder":  # noqa: A002
        self.params.or_ = dict(filter)
        return self

    def join(self, targets: Iterable[str]) -> "QueryBuilder":
        self.params.join = list(targets)
        return self

    def order_by(self, sort: Mapping[str, str]) -> "QueryBuilder":
        ordered: dict[str, SortDirection] = {}
        for field_name, direction in sort.items():
            normalized = str(direction).upper()
            if normalized not in SORT_DIRECTIONS:
                raise ValidationError(
                    f"Sort direction for {field_name!r} must be ASC or DESC, got {direction!r}"
                )
            ordered[field_name] = normalized  # type: ignore[assignment]
        self.params.sort = ordered
        return self

    def limit(self, limit: int) -> "QueryBuilder":
        self.params.limit = _non_negative("limit", limit)
        return self

    def offset(self, offset: int) -> "QueryBuilder":
        self.params.offset = _non_negative("offset", offset)
        return self

    def page(self, page: int) -> "QueryBuilder":
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError(f"page must be a positive integer, got {page!r}")
        self.params.page = page
        return self

    def cache(self, use_cache: bool = True, duration: float = DEFAULT_CACHE_DURATION) -> "QueryBuilder":
        if duration < 0:
            raise ValidationError(f"Cache duration must be >= 0, got {duration!r}")
        self.use_cache = use_cache
        self.cache_duration = duration
        return self

    def build(self) -> BuiltQuery:
        return BuiltQuery(
            params=self.params.copy(),
            use_cache=self.use_cache,
            cache_duration=self.cache_duration,
        )


class EntityClient:
    """CRUD operations on one resource collection, e.g. ``/users``.

    Obtain one per query through :meth:`ApsoClient.entity`; the accumulated
    state is not meant to be reused after a terminal call.

    Example:
        >>> products = await (
        ...     client.entity("Product")
        ...     .where({"status": "active"})
        ...     .order_by({"created_at": "DESC"})
        ...     .limit(10)
        ...     .find_many()
        ... )
    """

    def __init__(self, client: "ApsoClient", name: str):
        self.client = client
        self.name = name
        self._query = QueryBuilder()

    def __repr__(self) -> str:
        return f"EntityClient({self.name!r})"

    @property
    def path(self) -> str:
        return f"/{self.name}"

    def _record_path(self, record_id: Any) -> str:
        return f"{self.path}/{quote(str(record_id), safe='')}"

    def select(self, fields: Iterable[str]) -> "EntityClient":
        self._query.select(fields)
        return self

    def where(self, filter: Mapping[str, Any]) -> "EntityClient":  # noqa: A002
        self._query.where(filter)
        return self

    def or_(self, filter: Mapping[str, Any]) -> "EntityClient":  # noqa: A002
        self._query.or_(filter)
        return self

    def join(self, targets: Iterable[str]) -> "EntityClient":
        self._query.join(targets)
        return self

    def order_by(self, sort: Mapping[str, str]) -> "EntityClient":
        self._query.order_by(sort)
        return self

    def limit(self, limit: int) -> "EntityClient":
        self._query.limit(limit)
        return self

    def offset(self, offset: int) -> "EntityClient":
        self._query.offset(offset)
        return self

    def page(self, page: int) -> "EntityClient":
        self._query.page(page)
        return self

    def cache(self, use_cache: bool = True, duration: float = DEFAULT_CACHE_DURATION) -> "EntityClient":
        self._query.cache(use_cache, duration)
        return self

    def build(self) -> BuiltQuery:
        return self._query.build()

    async def find_many(self) -> Any:
        """Fetch records matching the accumulated query.

        Returns:
            Decoded response; a list or a paginated ``{"data": [...]}``
            envelope, depending on the server.
        """
        query = self.build()
        return await self.client.get(
            self.path, query.params, query.use_cache, query.cache_duration
        )

    async def find_one(self, required: bool = False) -> Any:
        """Fetch a single record.

        A filter made only of a literal ``id`` becomes a point lookup on
        ``/{name}/{id}``. Any other filter is sent as a list request with
        ``limit=1`` and the first record is returned.

        Args:
            required: Raise :class:`NotFoundError` instead of returning None
                when the list request matches nothing.

        Returns:
            The record, or None when nothing matched.
        """
        query = self.build()
        params = query.params
        record_id = _literal_id(params.filter)

        if record_id is not None and len(params.filter or {}) == 1:
            return await self.client.get(
                self._record_path(record_id),
                params.copy(filter=None),
                query.use_cache,
                query.cache_duration,
            )

        result = await self.client.get(
            self.path, params.copy(limit=1), query.use_cache, query.cache_duration
        )
        record = _first_record(result)
        if record is None and required:
            raise NotFoundError(f"No {self.name} record matches {params.filter!r}")
        return record

    async def create(self, data: Mapping[str, Any]) -> Any:
        """Create a record. Query state is ignored."""
        return await self.client.post(self.path, dict(data))

    async def update(self, data: Mapping[str, Any]) -> Any:
        """Update the record selected with ``.where({"id": ...})``.

        Raises:
            ValidationError: If no ``id`` filter was set; nothing is sent.
        """
        record_id = self._require_id("update")
        return await self.client.put(self._record_path(record_id), dict(data))

    async def remove(self) -> Any:
        """Delete the record selected with ``.where({"id": ...})``.

        Raises:
            ValidationError: If no ``id`` filter was set; nothing is sent.
        """
        record_id = self._require_id("remove")
        return await self.client.delete(self._record_path(record_id))

    def _require_id(self, operation: str) -> Any:
        record_id = _literal_id(self._query.params.filter)
        if record_id is None:
            raise ValidationError(
                f"ID is required for {operation}. "
                f"Use .where({{'id': record_id}}) before .{operation}()",
                code="missing_id",
            )
        return record_id

    # Legacy HTTP-verb aliases

    async def get(self) -> Any:
        """Deprecated alias of :meth:`find_many`."""
        _deprecated("get", "find_many")
        return await self.find_many()

    async def post(self, data: Mapping[str, Any]) -> Any:
        """Deprecated alias of :meth:`create`."""
        _deprecated("post", "create")
        return await self.create(data)

    async def put(self, data: Mapping[str, Any]) -> Any:
        """Deprecated. PUT on the collection path, without an id."""
        _deprecated("put", "where({'id': ...}).update")
        return await self.client.put(self.path, dict(data))

    async def delete(self) -> Any:
        """Deprecated. DELETE on the collection path, without an id."""
        _deprecated("delete", "where({'id': ...}).remove")
        return await self.client.delete(self.path)


def _literal_id(filter: Mapping[str, Any] | None) -> Any:  # noqa: A002
    """Return the plain ``id`` filter value, or None."""
    if not filter:
        return None
    record_id = filter.get("id")
    if record_id is None or isinstance(record_id, Mapping) or record_id == "":
        return None
    return record_id


def _first_record(result: Any) -> Any:
    if isinstance(result, list):
        return result[0] if result else None
    if isinstance(result, Mapping):
        data = result.get("data")
        if isinstance(data, list) and data:
            return data[0]
    return None


def _deprecated(name: str, replacement: str) -> None:
    warnings.warn(
        f"EntityClient.{name}() is deprecated, use .{replacement}() instead",
        DeprecationWarning,
        stacklevel=3,
    )
