"""Pytest configuration and fixtures."""

import os

import pytest


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Isolate environment variables and user config for each test.

    This prevents a developer's own crudkit configuration or environment
    from leaking into test runs.
    """
    original_env = os.environ.copy()
    for var in ("CRUDKIT_DATABASE_PATH", "CRUDKIT_FORMAT", "CRUDKIT_BASE_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def people():
    """Three records differing by age."""
    return [
        {"id": "a", "name": "Ann", "age": 10},
        {"id": "b", "name": "bob", "age": 20},
        {"id": "c", "name": "Cid", "age": 30},
    ]
