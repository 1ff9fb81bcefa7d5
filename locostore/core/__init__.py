"""
Core module providing foundational components.

This module contains the configuration loader, centralized logging setup,
and custom exception hierarchy. It has no internal dependencies.
"""

from .config_loader import (
    get_config,
    reload_config,
    Config,
    PathsConfig,
    DatabaseConfig,
    SearchConfig,
    LoggingConfig
)
from .logger import get_logger, setup_logging
from .exceptions import (
    LocoStoreError,
    ConfigurationError,
    DatabaseError,
    DatabaseIOError,
    SchemaError,
    SchemaVersionError,
    StatementPreparationError,
    QueryError,
    ConstraintViolationError,
    RecordNotFoundError,
    ValueDecodeError,
    DatabaseClosedError,
    StatementReleasedError,
    ViewNotFoundError
)

__all__ = [
    "get_config",
    "reload_config",
    "Config",
    "PathsConfig",
    "DatabaseConfig",
    "SearchConfig",
    "LoggingConfig",
    "get_logger",
    "setup_logging",
    "LocoStoreError",
    "ConfigurationError",
    "DatabaseError",
    "DatabaseIOError",
    "SchemaError",
    "SchemaVersionError",
    "StatementPreparationError",
    "QueryError",
    "ConstraintViolationError",
    "RecordNotFoundError",
    "ValueDecodeError",
    "DatabaseClosedError",
    "StatementReleasedError",
    "ViewNotFoundError"
]
