"""Generic CRUD contract shared by every adapter.

Each adapter implements the same five keyword-only operations with the
same error semantics, so adapters are interchangeable:

- ``find`` / ``update`` / ``remove`` raise ``RecordNotFoundError`` when the
  table or record is absent
- ``create`` always assigns a fresh ``id``
- ``list`` never fails for an empty or missing table
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from crudkit.exceptions import InvalidNameError
from crudkit.query import Query

Record = dict[str, Any]


class CRUD(ABC):
    """Abstract base class for CRUD adapters."""

    @abstractmethod
    def find(self, *, table: str, id: str) -> Record:
        """Find a record by id."""
        pass

    @abstractmethod
    def create(self, *, table: str, data: Mapping[str, Any]) -> Record:
        """Create a record with a new id."""
        pass

    @abstractmethod
    def update(self, *, table: str, id: str, data: Mapping[str, Any]) -> Record:
        """Merge data into an existing record."""
        pass

    @abstractmethod
    def remove(self, *, table: str, id: str) -> Record:
        """Remove a record, returning its prior state."""
        pass

    @abstractmethod
    def list(
        self, *, table: str, query: Mapping[str, Any] | Query | None = None
    ) -> list[Record]:
        """List records matching a query."""
        pass

    def close(self) -> None:
        """Release adapter resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def validate_name(kind: str, value: Any) -> str:
    """Ensure a table name or id is a single, non-empty path segment."""
    if (
        not isinstance(value, str)
        or not value
        or value in (".", "..")
        or "/" in value
        or "\\" in value
        or "\x00" in value
    ):
        raise InvalidNameError(kind, value)
    return value


def merge_record(existing: Mapping[str, Any], data: Mapping[str, Any]) -> Record:
    """Shallow-merge submitted fields over a record.

    Submitted fields win, unspecified fields are kept, and the id of the
    existing record cannot be overwritten. Nested values are replaced whole.
    """
    merged = {**existing, **data}
    merged["id"] = existing["id"]
    return merged


def new_id() -> str:
    """Generate a fresh record id."""
    return uuid.uuid4().hex
