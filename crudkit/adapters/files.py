"""File-backed CRUD adapter.

Directory structure::

    database_path/
        {table}/
            {id}.yaml    # one record per file (or .json)

Tables are created on first write. Writes go through a per-table write
gate and land atomically (temporary file, then rename), so readers see
either the old record or the new one.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from crudkit.codecs import RecordCodec, get_codec
from crudkit.core import CRUD, Record, merge_record, new_id, validate_name
from crudkit.exceptions import (
    CorruptRecordError,
    CrudError,
    RecordNotFoundError,
    StorageError,
)
from crudkit.gate import WriteGates
from crudkit.query import Query, apply_query, parse_query

logger = logging.getLogger(__name__)


def default_database_path() -> Path:
    """Default storage root: ``database`` under the working directory."""
    return Path.cwd() / "database"


class FileCRUD(CRUD):
    """CRUD adapter storing one record per file."""

    def __init__(
        self,
        database_path: Path | str | None = None,
        codec: str | RecordCodec = "yaml",
        gates: WriteGates | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.database_path = (
            Path(database_path) if database_path else default_database_path()
        )
        self.codec = get_codec(codec)
        self.gates = gates if gates is not None else WriteGates()
        self._owns_gates = gates is None
        self.id_factory = id_factory or new_id

    def _table_path(self, table: str) -> Path:
        return self.database_path / validate_name("table", table)

    def _record_path(self, table: str, id: str) -> Path:
        filename = f"{validate_name('id', id)}.{self.codec.extension}"
        return self._table_path(table) / filename

    def _read_record(self, table: str, id: str) -> Record:
        """Read and decode a record file."""
        path = self._record_path(table, id)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise RecordNotFoundError(table, id) from None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

        try:
            record = self.codec.decode(data)
        except ValueError as e:
            raise CorruptRecordError(str(path), str(e)) from e

        # The file name is the id
        record["id"] = id
        return record

    def _write_file(self, path: Path, data: bytes) -> None:
        """Write file contents atomically."""
        temp_fd, temp_path = tempfile.mkstemp(
            dir=path.parent, prefix=".", suffix=".tmp"
        )
        try:
            with open(temp_fd, "wb") as f:
                f.write(data)
            os.replace(temp_path, path)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def _persist(self, table: str, path: Path, record: Record) -> Record:
        """Write a record through the table's gate and return it as stored."""
        data = self.codec.encode(record)
        future = self.gates.run(
            str(self._table_path(table)), lambda: self._write_file(path, data)
        )
        try:
            future.result()
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e
        return self.codec.decode(data)

    def find(self, *, table: str, id: str) -> Record:
        return self._read_record(table, id)

    def create(self, *, table: str, data: Mapping[str, Any]) -> Record:
        table_path = self._table_path(table)
        try:
            table_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create table {table}: {e}") from e

        id = validate_name("id", self.id_factory())
        record = {"id": id, **{k: v for k, v in data.items() if k != "id"}}
        record = self._persist(table, self._record_path(table, id), record)

        logger.debug(f"Created record {table}/{id}")
        return record

    def update(self, *, table: str, id: str, data: Mapping[str, Any]) -> Record:
        existing = self._read_record(table, id)
        record = merge_record(existing, data)
        record = self._persist(table, self._record_path(table, id), record)

        logger.debug(f"Updated record {table}/{id}")
        return record

    def remove(self, *, table: str, id: str) -> Record:
        path = self._record_path(table, id)
        record = self._read_record(table, id)

        future = self.gates.run(str(self._table_path(table)), path.unlink)
        try:
            future.result()
        except FileNotFoundError:
            # Removed by someone else between the read and the delete
            raise RecordNotFoundError(table, id) from None
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}") from e

        logger.debug(f"Removed record {table}/{id}")
        return record

    def list(
        self, *, table: str, query: Mapping[str, Any] | Query | None = None
    ) -> list[Record]:
        table_path = self._table_path(table)
        query = parse_query(query)
        if not table_path.is_dir():
            return []

        suffix = f".{self.codec.extension}"
        records = []
        for path in sorted(table_path.glob(f"*{suffix}")):
            id = path.name[: -len(suffix)]
            try:
                records.append(self._read_record(table, id))
            except CrudError as e:
                logger.warning(f"Skipping record {id} in table {table}: {e}")

        return apply_query(records, query)

    def close(self) -> None:
        """Stop the write gates this adapter created."""
        if self._owns_gates:
            self.gates.close()
