"""In-memory CRUD adapter for testing."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from copy import deepcopy
from typing import Any

from crudkit.core import CRUD, Record, merge_record, new_id, validate_name
from crudkit.exceptions import RecordNotFoundError
from crudkit.query import Query, apply_query


class MemoryCRUD(CRUD):
    """CRUD adapter keeping records in process memory."""

    def __init__(self, id_factory: Callable[[], str] | None = None):
        self._tables: dict[str, dict[str, Record]] = {}
        self._lock = threading.RLock()
        self.id_factory = id_factory or new_id

    def _get(self, table: str, id: str) -> Record:
        validate_name("table", table)
        validate_name("id", id)
        try:
            return self._tables[table][id]
        except KeyError:
            raise RecordNotFoundError(table, id) from None

    def find(self, *, table: str, id: str) -> Record:
        with self._lock:
            return deepcopy(self._get(table, id))

    def create(self, *, table: str, data: Mapping[str, Any]) -> Record:
        validate_name("table", table)
        id = validate_name("id", self.id_factory())
        record = {"id": id, **{k: deepcopy(v) for k, v in data.items() if k != "id"}}
        with self._lock:
            self._tables.setdefault(table, {})[id] = record
            return deepcopy(record)

    def update(self, *, table: str, id: str, data: Mapping[str, Any]) -> Record:
        with self._lock:
            record = merge_record(self._get(table, id), deepcopy(dict(data)))
            self._tables[table][id] = record
            return deepcopy(record)

    def remove(self, *, table: str, id: str) -> Record:
        with self._lock:
            self._get(table, id)
            return self._tables[table].pop(id)

    def list(
        self, *, table: str, query: Mapping[str, Any] | Query | None = None
    ) -> list[Record]:
        validate_name("table", table)
        with self._lock:
            records = deepcopy(list(self._tables.get(table, {}).values()))
        return apply_query(records, query)

    def clear(self) -> None:
        """Remove every table."""
        with self._lock:
            self._tables.clear()

    def get_size(self, table: str | None = None) -> int:
        """Get the number of stored records, in one table or overall."""
        with self._lock:
            if table is not None:
                return len(self._tables.get(table, {}))
            return sum(len(records) for records in self._tables.values())
