"""Query language for filtering and shaping records.

Queries are written as MongoDB-style mappings::

    {"age": {"$gte": 18}, "$or": [{"role": "admin"}, {"role": "owner"}],
     "$sort": {"age": -1}, "$limit": 10, "$select": ["name"]}

and parsed into a small tree of nodes (field equality, operator sets and
logical groups) that is evaluated against plain record dictionaries.
"""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from crudkit.exceptions import QueryError

DIRECTIVES = frozenset({"$limit", "$skip", "$sort", "$select"})

ASCENDING = 1
DESCENDING = -1

_MISSING = object()


class Operator(Enum):
    """Field operators."""

    NE = "$ne"
    IN = "$in"
    NIN = "$nin"
    LT = "$lt"
    LTE = "$lte"
    GT = "$gt"
    GTE = "$gte"
    SEARCH = "$search"


def _strict_equal(left: Any, right: Any) -> bool:
    """Equality that treats a missing field as unequal and bools as distinct."""
    if left is _MISSING or right is _MISSING:
        return False
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _ordered(left: Any, right: Any, test) -> bool:
    if left is _MISSING or left is None or right is None:
        return False
    try:
        return bool(test(left, right))
    except TypeError:
        return False


@dataclass(frozen=True)
class Comparison:
    """A single operator applied to a field value."""

    operator: Operator
    value: Any

    def holds(self, field_value: Any) -> bool:
        """Check if the field value satisfies this comparison."""
        op = self.operator
        if op == Operator.NE:
            return not _strict_equal(field_value, self.value)
        if op == Operator.IN:
            return any(_strict_equal(field_value, v) for v in self.value)
        if op == Operator.NIN:
            return not any(_strict_equal(field_value, v) for v in self.value)
        if op == Operator.LT:
            return _ordered(field_value, self.value, lambda a, b: a < b)
        if op == Operator.LTE:
            return _ordered(field_value, self.value, lambda a, b: a <= b)
        if op == Operator.GT:
            return _ordered(field_value, self.value, lambda a, b: a > b)
        if op == Operator.GTE:
            return _ordered(field_value, self.value, lambda a, b: a >= b)
        if op == Operator.SEARCH:
            if not isinstance(field_value, str):
                return False
            return str(self.value).lower() in field_value.lower()
        return True


@dataclass(frozen=True)
class FieldEquals:
    """Field must equal a literal value."""

    field: str
    value: Any

    def matches(self, record: Mapping[str, Any]) -> bool:
        return _strict_equal(record.get(self.field, _MISSING), self.value)


@dataclass(frozen=True)
class FieldOperators:
    """Field must satisfy every comparison."""

    field: str
    comparisons: tuple[Comparison, ...]

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = record.get(self.field, _MISSING)
        return all(c.holds(value) for c in self.comparisons)


@dataclass(frozen=True)
class AllOf:
    """Every child must match."""

    children: tuple["Node", ...] = ()

    def matches(self, record: Mapping[str, Any]) -> bool:
        return all(child.matches(record) for child in self.children)


@dataclass(frozen=True)
class AnyOf:
    """At least one child must match."""

    children: tuple["Node", ...] = ()

    def matches(self, record: Mapping[str, Any]) -> bool:
        return any(child.matches(record) for child in self.children)


Node = Union[FieldEquals, FieldOperators, AllOf, AnyOf]


@dataclass(frozen=True)
class Query:
    """A parsed query: a filter tree plus result shaping."""

    where: AllOf = field(default_factory=AllOf)
    limit: int | None = None
    skip: int = 0
    sort: tuple[tuple[str, int], ...] = ()
    select: tuple[str, ...] | None = None

    def matches(self, record: Mapping[str, Any]) -> bool:
        """Check if a record passes the filter."""
        return self.where.matches(record)

    def apply(self, records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Filter, sort, paginate and project records, in that order."""
        results = [record for record in records if self.matches(record)]

        if self.sort:
            results = _sort_records(results, self.sort)

        if self.limit is None:
            results = results[self.skip :]
        else:
            results = results[self.skip : self.skip + self.limit]

        if self.select is not None:
            results = [_project(record, self.select) for record in results]

        return results


def _sort_records(
    records: list[dict[str, Any]], sort: tuple[tuple[str, int], ...]
) -> list[dict[str, Any]]:
    # Successive stable sorts, last key first, so the first key is primary.
    for name, direction in reversed(sort):
        present = [r for r in records if r.get(name) is not None]
        missing = [r for r in records if r.get(name) is None]
        try:
            present.sort(key=lambda r: r[name], reverse=direction == DESCENDING)
        except TypeError as e:
            raise QueryError(f"Cannot sort on {name!r}: {e}") from e
        records = present + missing
    return records


def _project(record: Mapping[str, Any], select: tuple[str, ...]) -> dict[str, Any]:
    projected = {"id": record.get("id")}
    for name in select:
        if name in record:
            projected[name] = record[name]
    return projected


def _is_operator_set(value: Any) -> bool:
    return isinstance(value, Mapping) and any(
        isinstance(key, str) and key.startswith("$") for key in value
    )


def _parse_comparisons(name: str, operators: Mapping[str, Any]) -> FieldOperators:
    comparisons = []
    for key, value in operators.items():
        try:
            operator = Operator(key)
        except ValueError:
            # Unknown operators are ignored
            continue
        if operator in (Operator.IN, Operator.NIN):
            if not isinstance(value, (list, tuple, set, frozenset)):
                raise QueryError(f"{key} on {name!r} requires a list, got {value!r}")
            value = tuple(value)
        comparisons.append(Comparison(operator, value))
    return FieldOperators(name, tuple(comparisons))


def _parse_group(key: str, value: Any) -> tuple[Node, ...]:
    if not isinstance(value, (list, tuple)) or not value:
        raise QueryError(f"{key} requires a non-empty list of queries")
    return tuple(_parse_filter(item) for item in value)


def _parse_filter(query: Any) -> AllOf:
    if not isinstance(query, Mapping):
        raise QueryError(f"Query must be a mapping, got {type(query).__name__}")

    children: list[Node] = []
    for key, value in query.items():
        if key in DIRECTIVES:
            continue
        if key == "$or":
            children.append(AnyOf(_parse_group(key, value)))
        elif key == "$and":
            children.append(AllOf(_parse_group(key, value)))
        elif _is_operator_set(value):
            children.append(_parse_comparisons(key, value))
        else:
            children.append(FieldEquals(key, value))
    return AllOf(tuple(children))


def _parse_count(key: str, value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise QueryError(f"{key} must be an integer, got {value!r}")
    if value < 0:
        raise QueryError(f"{key} must not be negative, got {value}")
    return value


def _parse_sort(value: Any) -> tuple[tuple[str, int], ...]:
    if value is None:
        return ()
    if not isinstance(value, Mapping):
        raise QueryError(f"$sort must be a mapping, got {value!r}")
    sort = []
    for name, direction in value.items():
        if isinstance(direction, bool) or direction not in (ASCENDING, DESCENDING):
            raise QueryError(f"$sort direction for {name!r} must be 1 or -1")
        sort.append((name, int(direction)))
    return tuple(sort)


def _parse_select(value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise QueryError(f"$select must be a list of field names, got {value!r}")
    if not all(isinstance(name, str) for name in value):
        raise QueryError("$select entries must be strings")
    return tuple(value)


def parse_query(query: Mapping[str, Any] | Query | None = None) -> Query:
    """Parse a query mapping into a Query.

    Raises:
        QueryError: If a directive or combinator is malformed.
    """
    if query is None:
        return Query()
    if isinstance(query, Query):
        return query
    if not isinstance(query, Mapping):
        raise QueryError(f"Query must be a mapping, got {type(query).__name__}")

    return Query(
        where=_parse_filter(query),
        limit=_parse_count("$limit", query.get("$limit")),
        skip=_parse_count("$skip", query.get("$skip")) or 0,
        sort=_parse_sort(query.get("$sort")),
        select=_parse_select(query.get("$select")),
    )


def apply_query(
    records: Iterable[dict[str, Any]],
    query: Mapping[str, Any] | Query | None = None,
) -> list[dict[str, Any]]:
    """Apply a query to records."""
    if query is None:
        return list(records)
    return parse_query(query).apply(records)


def flatten_query(query: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """Flatten a query mapping into bracketed query-string pairs.

    ``{"age": {"$gte": 15}, "$select": ["name"]}`` becomes
    ``[("age[$gte]", "15"), ("$select[0]", "name")]``.
    """
    pairs: list[tuple[str, str]] = []
    if query:
        _flatten(query, "", pairs)
    return pairs


def _flatten(value: Any, prefix: str, pairs: list[tuple[str, str]]) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(item, f"{prefix}[{key}]" if prefix else str(key), pairs)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _flatten(item, f"{prefix}[{index}]", pairs)
    else:
        pairs.append((prefix, value if isinstance(value, str) else json.dumps(value)))
