"""Shared fixtures for adapter tests."""

import itertools
import threading

import pytest


class SequentialIds:
    """Thread-safe id factory producing ids in creation order."""

    def __init__(self, prefix: str = "rec"):
        self.prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            return f"{self.prefix}{next(self._counter):04d}"


@pytest.fixture
def id_factory():
    """Ids that sort in creation order."""
    return SequentialIds()


@pytest.fixture
def database_path(tmp_path):
    """Storage root for file adapters."""
    return tmp_path / "database"
