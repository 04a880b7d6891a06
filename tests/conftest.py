"""Pytest configuration and fixtures for sqlite_access tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from sqlite_access.application import DatabaseManager
from sqlite_access.infrastructure.config import Config, ObservabilityConfig, StoreConfig
from sqlite_access.infrastructure.container import Container, reset_container
from sqlite_access.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Provide a test configuration backed by a temporary file."""
    return Config(
        store=StoreConfig(
            db_path=str(temp_dir / "data" / "test.db"),
            busy_timeout_ms=1000,
        ),
        observability=ObservabilityConfig(log_level="DEBUG", log_format="console"),
    )


@pytest.fixture
def container() -> Generator[Container, None, None]:
    """Provide a fresh DI container for each test."""
    reset_container()
    c = Container()
    yield c
    c.clear()


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def manager(
    test_config: Config, metrics_registry: MetricsRegistry
) -> Generator[DatabaseManager, None, None]:
    """Provide a file-backed manager with a people table."""
    db = DatabaseManager(config=test_config, metrics=metrics_registry)
    assert db.execute_update(
        "CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT NOT NULL UNIQUE, age INTEGER)"
    )
    yield db
    if not db.is_closed:
        db.close()


@pytest.fixture
def memory_manager(
    test_config: Config, metrics_registry: MetricsRegistry
) -> Generator[DatabaseManager, None, None]:
    """Provide an in-memory manager."""
    db = DatabaseManager(":memory:", config=test_config, metrics=metrics_registry)
    yield db
    if not db.is_closed:
        db.close()


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
