"""Pluggable CRUD adapters.

All adapters implement the same contract:

- **FileCRUD**: record-per-file storage with atomic, serialized writes
- **MemoryCRUD**: in-memory storage for testing
- **HttpCRUD**: REST client against a compatible server
"""

from .files import FileCRUD
from .http import HttpCRUD
from .memory import MemoryCRUD

__all__ = [
    "FileCRUD",
    "HttpCRUD",
    "MemoryCRUD",
]
