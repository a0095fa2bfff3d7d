"""Schema-bound tables.

A ``Database`` maps table names to msgspec struct types: the *readable*
shape the storage hands back and the *writable* shape callers submit.
Binding a table to any adapter yields a ``TableCRUD`` that validates
input before it reaches storage and converts output into structs::

    class User(msgspec.Struct):
        id: str
        name: str
        age: int = 0

    class NewUser(msgspec.Struct):
        name: str
        age: int = 0

    db = Database({"users": TableSchema(readable=User, writable=NewUser)})
    users = db.table("users", FileCRUD())
    user = users.create(NewUser(name="Ada"))   # -> User
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from functools import cached_property
from typing import Any

import msgspec

from crudkit.core import CRUD, Record, validate_name
from crudkit.exceptions import SchemaValidationError
from crudkit.query import Query


@dataclass(frozen=True)
class TableSchema:
    """Readable and writable struct types for one table."""

    readable: type[msgspec.Struct]
    writable: type[msgspec.Struct] | None = None

    @cached_property
    def writable_type(self) -> type[msgspec.Struct]:
        """Input type; without a writable type, the readable one minus ``id``."""
        if self.writable is not None:
            return self.writable
        return _without_id(self.readable)

    def writable_fields(self) -> dict[str, msgspec.structs.FieldInfo]:
        """Writable fields keyed by their encoded name."""
        return {f.encode_name: f for f in msgspec.structs.fields(self.writable_type)}


class TableCRUD:
    """CRUD operations bound to a single table."""

    def __init__(self, crud: CRUD, table: str, schema: TableSchema | None = None):
        self.crud = crud
        self.table = validate_name("table", table)
        self.schema = schema

    def _invalid(self, message: str, error: Exception) -> SchemaValidationError:
        return SchemaValidationError(self.table, f"{message}: {error}")

    def _to_writable(self, data: Mapping[str, Any] | msgspec.Struct) -> Record:
        if isinstance(data, msgspec.Struct):
            data = msgspec.to_builtins(data)
        if self.schema is None:
            return dict(data)
        if self.schema.writable is None:
            data = {k: v for k, v in data.items() if k != "id"}

        try:
            validated = msgspec.convert(data, self.schema.writable_type)
        except msgspec.ValidationError as e:
            raise self._invalid("invalid record", e) from e
        return msgspec.to_builtins(validated)

    def _to_partial(self, data: Mapping[str, Any]) -> Record:
        if self.schema is None:
            return dict(data)

        fields = self.schema.writable_fields()
        partial = {}
        for name, value in data.items():
            if name == "id":
                raise SchemaValidationError(self.table, "id cannot be updated")
            info = fields.get(name)
            if info is None:
                raise SchemaValidationError(self.table, f"unknown field {name!r}")
            try:
                converted = msgspec.convert(value, info.type)
            except msgspec.ValidationError as e:
                raise self._invalid(f"invalid value for {name!r}", e) from e
            partial[name] = msgspec.to_builtins(converted)
        return partial

    def _to_readable(self, record: Record) -> Any:
        if self.schema is None:
            return record
        try:
            return msgspec.convert(record, self.schema.readable)
        except msgspec.ValidationError as e:
            raise self._invalid("stored record does not match schema", e) from e

    def find(self, id: str) -> Any:
        """Find a record by id."""
        return self._to_readable(self.crud.find(table=self.table, id=id))

    def create(self, data: Mapping[str, Any] | msgspec.Struct) -> Any:
        """Validate and create a record."""
        record = self.crud.create(table=self.table, data=self._to_writable(data))
        return self._to_readable(record)

    def update(self, id: str, data: Mapping[str, Any]) -> Any:
        """Validate the supplied fields and merge them into a record."""
        record = self.crud.update(
            table=self.table, id=id, data=self._to_partial(data)
        )
        return self._to_readable(record)

    def remove(self, id: str) -> Any:
        """Remove a record, returning its prior state."""
        return self._to_readable(self.crud.remove(table=self.table, id=id))

    def list(self, query: Mapping[str, Any] | Query | None = None) -> list[Any]:
        """List records matching a query."""
        records = self.crud.list(table=self.table, query=query)
        if self.schema is not None and self._is_projection(query):
            # Projected records are partial, so they stay as dicts
            return records
        return [self._to_readable(record) for record in records]

    @staticmethod
    def _is_projection(query: Mapping[str, Any] | Query | None) -> bool:
        """Whether the query projects records down to selected fields."""
        if isinstance(query, Query):
            return query.select is not None
        return bool(query) and query.get("$select") is not None


class Database:
    """A set of table schemas that can be bound to adapters."""

    def __init__(self, schemas: Mapping[str, TableSchema]):
        self.schemas = dict(schemas)
        for name in self.schemas:
            validate_name("table", name)

    @property
    def tables(self) -> list[str]:
        return sorted(self.schemas)

    def table(self, name: str, crud: CRUD) -> TableCRUD:
        """Bind a table to an adapter.

        Raises:
            KeyError: If the table has no schema.
        """
        if name not in self.schemas:
            raise KeyError(f"Unknown table: {name}")
        return TableCRUD(crud, name, self.schemas[name])


def _without_id(readable: type[msgspec.Struct]) -> type[msgspec.Struct]:
    """Derive an input struct from a readable struct by dropping ``id``."""
    fields = []
    rename = {}
    for info in msgspec.structs.fields(readable):
        if info.encode_name == "id":
            continue
        rename[info.name] = info.encode_name
        if info.required:
            fields.append((info.name, info.type))
        elif info.default is not msgspec.NODEFAULT:
            fields.append((info.name, info.type, info.default))
        else:
            default = msgspec.field(default_factory=info.default_factory)
            fields.append((info.name, info.type, default))

    return msgspec.defstruct(
        f"{readable.__name__}Input",
        fields,
        kw_only=True,
        rename=rename,
        forbid_unknown_fields=readable.__struct_config__.forbid_unknown_fields,
    )
