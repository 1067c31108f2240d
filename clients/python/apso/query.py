"""Query string serialization.

Two wire syntaxes are supported and they are NOT interchangeable:

``crud`` (default)
    Operator syntax used by CRUD request builders::

        filter=status||$eq||active&or=role||$in||admin,owner
        &sort=created_at,DESC&join=owner&fields=id,name&limit=10&page=1

``bracket``
    Legacy bracket notation of earlier client releases::

        filter[status]=active&sort[created_at]=DESC&join=owner,team

Pick the one the target API server parses; a server expecting one will
silently ignore or misread the other.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote, urlencode

from .exceptions import UnsupportedConfigurationError
from .types import QueryParams, QueryStyle

EQ = "$eq"
OPERATORS = ("$eq", "$ne", "$gt", "$gte", "$lt", "$lte")

_SAFE = "|$,[]"


def format_value(value: Any) -> str:
    """Render a filter value for the wire."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(format_value(v) for v in value)
    return str(value)


def _conditions(conditions: Mapping[str, Any]) -> Iterable[tuple[str, str, Any]]:
    """Expand a filter mapping into (field, operator, value) clauses."""
    for field_name, condition in conditions.items():
        if isinstance(condition, Mapping):
            for operator, value in condition.items():
                yield field_name, operator, value
        else:
            yield field_name, EQ, condition


def _crud_pairs(params: QueryParams) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []

    if params.fields:
        pairs.append(("fields", ",".join(params.fields)))
    for key, conditions in (("filter", params.filter), ("or", params.or_)):
        if not conditions:
            continue
        for field_name, operator, value in _conditions(conditions):
            pairs.append((key, f"{field_name}||{operator}||{format_value(value)}"))
    for target in params.join or ():
        pairs.append(("join", target))
    for field_name, direction in (params.sort or {}).items():
        pairs.append(("sort", f"{field_name},{direction}"))

    return pairs


def _bracket_pairs(params: QueryParams) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []

    if params.fields:
        pairs.append(("fields", ",".join(params.fields)))
    for key, conditions in (("filter", params.filter), ("or", params.or_)):
        for field_name, condition in (conditions or {}).items():
            if isinstance(condition, Mapping):
                for operator, value in condition.items():
                    pairs.append((f"{key}[{field_name}][{operator}]", format_value(value)))
            else:
                pairs.append((f"{key}[{field_name}]", format_value(condition)))
    if params.join:
        pairs.append(("join", ",".join(params.join)))
    for field_name, direction in (params.sort or {}).items():
        pairs.append((f"sort[{field_name}]", direction))

    return pairs


_STYLES = {
    "crud": _crud_pairs,
    "bracket": _bracket_pairs,
}


def query_pairs(params: QueryParams | None, style: QueryStyle = "crud") -> list[tuple[str, str]]:
    """Return the ordered (key, value) directives for ``params``."""
    try:
        build = _STYLES[style]
    except KeyError:
        raise UnsupportedConfigurationError(f"Unsupported query style: {style!r}")
    if params is None:
        return []

    pairs = build(params)
    for key in ("limit", "offset", "page"):
        value = getattr(params, key)
        if value is not None:
            pairs.append((key, str(value)))
    return pairs


def serialize_query(params: QueryParams | None, style: QueryStyle = "crud") -> str:
    """Serialize query params into a query string without a leading ``?``.

    The output only depends on the content of ``params`` and the insertion
    order of its mappings, so it is stable enough to be used as a cache key.

    Example:
        >>> serialize_query(QueryParams(filter={"status": "active"}, limit=10))
        'filter=status||$eq||active&limit=10'
    """
    return urlencode(query_pairs(params, style), safe=_SAFE, quote_via=quote)
