"""Generic record storage behind one CRUD interface.

Provides a single find/create/update/remove/list contract with a
MongoDB-style query language and interchangeable adapters:

- **FileCRUD**: one YAML or JSON file per record, serialized writes
- **MemoryCRUD**: in-process dictionaries, for tests
- **HttpCRUD**: REST client for a compatible server
- **Database / TableCRUD**: msgspec schemas bound to any adapter
"""

__version__ = "0.1.0"

from crudkit.adapters import FileCRUD, HttpCRUD, MemoryCRUD
from crudkit.core import CRUD, Record, merge_record
from crudkit.exceptions import (
    ConfigError,
    CorruptRecordError,
    CrudError,
    GateClosedError,
    InvalidNameError,
    QueryError,
    RecordNotFoundError,
    SchemaValidationError,
    StorageError,
    TransportError,
)
from crudkit.gate import WriteGate, WriteGates
from crudkit.query import Query, apply_query, flatten_query, parse_query
from crudkit.schema import Database, TableCRUD, TableSchema

__all__ = [
    "__version__",
    # Contract
    "CRUD",
    "Record",
    "merge_record",
    # Adapters
    "FileCRUD",
    "HttpCRUD",
    "MemoryCRUD",
    # Schemas
    "Database",
    "TableCRUD",
    "TableSchema",
    # Query
    "Query",
    "apply_query",
    "flatten_query",
    "parse_query",
    # Write gates
    "WriteGate",
    "WriteGates",
    # Errors
    "CrudError",
    "RecordNotFoundError",
    "StorageError",
    "CorruptRecordError",
    "TransportError",
    "QueryError",
    "InvalidNameError",
    "SchemaValidationError",
    "ConfigError",
    "GateClosedError",
]
