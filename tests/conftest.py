"""
Pytest fixtures and configuration for the test suite.

Provides temporary directories, temporary configurations and open
databases so that tests are isolated and never touch a real store.
"""

import json
import pytest
import pytest_asyncio
import tempfile
import shutil
from pathlib import Path
from typing import AsyncGenerator, Generator

import sys
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from locostore.database import Database  # noqa: E402


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory, cleaned up after test.
    """
    tmp = tempfile.mkdtemp(prefix="locostore_test_")
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_config(temp_dir: Path) -> Generator[Path, None, None]:
    """
    Create a temporary config.json for testing.

    Args:
        temp_dir: Temporary directory fixture.

    Yields:
        Path to temporary config file.
    """
    config_dir = temp_dir / "config"
    config_dir.mkdir()

    output_dir = temp_dir / "output"
    output_dir.mkdir()

    logs_dir = output_dir / "logs"
    logs_dir.mkdir()

    config_data = {
        "paths": {
            "database_path": str(output_dir / "test.sqlite3"),
            "logs_directory": str(logs_dir)
        },
        "database": {
            "foreign_keys": True,
            "journal_mode": "wal",
            "busy_timeout_ms": 1000
        },
        "search": {
            "tokenizer": "unicode61",
            "prefix_matching": False
        },
        "logging": {
            "level": "DEBUG",
            "format": "%(levelname)s - %(message)s",
            "max_file_size_mb": 1,
            "backup_count": 1
        }
    }

    config_path = config_dir / "config.json"
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config_data, f)

    yield config_path


@pytest.fixture
def temp_database(temp_dir: Path) -> Path:
    """
    Create path for a temporary database file.

    Args:
        temp_dir: Temporary directory fixture.

    Returns:
        Path where test database should be created.
    """
    return temp_dir / "test.sqlite3"


@pytest.fixture
def reset_config_singleton():
    """
    Reset the config singleton between tests.

    This ensures each test gets a fresh config instance.
    """
    from locostore.core import config_loader
    config_loader._config_instance = None
    yield
    config_loader._config_instance = None


@pytest.fixture
def reset_logger_singleton():
    """
    Reset the logger initialization flag between tests.
    """
    import logging
    from locostore.core import logger

    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level

    logger._logger_initialized = False
    yield
    logger._logger_initialized = False

    for handler in root_logger.handlers[:]:
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[Database, None]:
    """
    Open an in-memory database, closing it after the test unless the test
    already did.
    """
    database = await Database.open(":memory:")
    yield database
    if not database.closed:
        await database.close()


@pytest_asyncio.fixture
async def file_db(temp_database: Path) -> AsyncGenerator[Database, None]:
    """Open a file-backed database in a temporary directory."""
    database = await Database.open(temp_database)
    yield database
    if not database.closed:
        await database.close()
