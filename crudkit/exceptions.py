"""Exception classes for crudkit adapters."""


class CrudError(Exception):
    """Base exception for all crudkit errors."""

    pass


class RecordNotFoundError(CrudError):
    """Raised when a table or record does not exist."""

    def __init__(self, table: str, id: str):
        """Initialize with table name and record id."""
        self.table = table
        self.id = id
        super().__init__(f"Record not found: {table}/{id}")


class StorageError(CrudError):
    """Raised when the underlying storage fails to read or write."""

    pass


class CorruptRecordError(StorageError):
    """Raised when a stored record cannot be decoded."""

    def __init__(self, path: str, details: str = ""):
        """Initialize with path and details."""
        self.path = path
        message = f"Corrupt record at {path}"
        if details:
            message += f": {details}"
        super().__init__(message)


class TransportError(CrudError):
    """Raised when an HTTP request fails or returns an unusable response."""

    def __init__(
        self,
        url: str,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ):
        """Initialize with request details."""
        self.url = url
        self.status_code = status_code
        self.response_text = response_text
        code = status_code if status_code is not None else "unknown"
        super().__init__(f"HTTP {code} for {url}: {message}")


class QueryError(CrudError, ValueError):
    """Raised when a query is malformed."""

    pass


class InvalidNameError(CrudError, ValueError):
    """Raised when a table name or record id is not a single path segment."""

    def __init__(self, kind: str, value: object):
        """Initialize with the kind of name and the rejected value."""
        self.kind = kind
        self.value = value
        super().__init__(f"Invalid {kind}: {value!r}")


class SchemaValidationError(CrudError, ValueError):
    """Raised when data does not conform to a table schema."""

    def __init__(self, table: str, message: str):
        """Initialize with table and message."""
        self.table = table
        super().__init__(f"Validation error for {table}: {message}")


class ConfigError(CrudError):
    """Raised when configuration cannot be loaded."""

    pass


class GateClosedError(CrudError, RuntimeError):
    """Raised when scheduling work on a closed write gate."""

    def __init__(self, name: str):
        """Initialize with the gate name."""
        self.name = name
        super().__init__(f"Write gate is closed: {name}")
