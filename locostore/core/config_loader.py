"""
Configuration loader for the loco store.

Loads settings from config.json and provides typed access via dataclasses.
Supports singleton pattern for global access and runtime reload capability.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError


@dataclass
class PathsConfig:
    """Configuration for file system paths."""
    database_path: Path
    logs_directory: Path


@dataclass
class DatabaseConfig:
    """Configuration for SQLite connection settings."""
    foreign_keys: bool = True
    journal_mode: str = "DELETE"
    busy_timeout_ms: int = 5000


@dataclass
class SearchConfig:
    """Configuration for full-text search on repositories."""
    tokenizer: str = "unicode61"
    prefix_matching: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""
    level: str
    format: str
    max_file_size_mb: int
    backup_count: int


@dataclass
class Config:
    """
    Main configuration container holding all config sections.

    Provides singleton access via get_config() function.
    """
    paths: PathsConfig
    database: DatabaseConfig
    search: SearchConfig
    logging: LoggingConfig
    project_root: Path = field(default_factory=Path)

    @classmethod
    def from_file(cls, config_path: Path) -> "Config":
        """
        Load configuration from a JSON file.

        Args:
            config_path: Path to the config.json file.

        Returns:
            Populated Config instance.

        Raises:
            ConfigurationError: If file is missing or invalid.
        """
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                {"path": str(config_path)}
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {e}",
                {"path": str(config_path)}
            )

        project_root = config_path.parent.parent

        return cls._parse_config(data, project_root)

    @classmethod
    def defaults(cls, project_root: Path = None) -> "Config":
        """Build a Config from built-in defaults only."""
        return cls._parse_config({}, project_root or Path.cwd())

    @classmethod
    def _parse_config(cls, data: dict, project_root: Path) -> "Config":
        """Parse raw config dict into typed Config object."""
        paths_data = data.get("paths", {})
        paths = PathsConfig(
            database_path=cls._resolve_path(paths_data.get("database_path", "data/locos.sqlite3"), project_root),
            logs_directory=cls._resolve_path(paths_data.get("logs_directory", "data/logs"), project_root)
        )

        db_data = data.get("database", {})
        journal_mode = db_data.get("journal_mode", "DELETE")
        if not isinstance(journal_mode, str) or not journal_mode.isalpha():
            raise ConfigurationError(
                f"Invalid journal mode: {journal_mode!r}",
                {"section": "database"}
            )
        database = DatabaseConfig(
            foreign_keys=db_data.get("foreign_keys", True),
            journal_mode=journal_mode.upper(),
            busy_timeout_ms=db_data.get("busy_timeout_ms", 5000)
        )

        search_data = data.get("search", {})
        search = SearchConfig(
            tokenizer=search_data.get("tokenizer", "unicode61"),
            prefix_matching=search_data.get("prefix_matching", True)
        )

        log_data = data.get("logging", {})
        logging_cfg = LoggingConfig(
            level=log_data.get("level", "INFO"),
            format=log_data.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            max_file_size_mb=log_data.get("max_file_size_mb", 10),
            backup_count=log_data.get("backup_count", 5)
        )

        return cls(
            paths=paths,
            database=database,
            search=search,
            logging=logging_cfg,
            project_root=project_root
        )

    @staticmethod
    def _resolve_path(path_str: str, project_root: Path) -> Path:
        """Resolve a path string, making relative paths absolute."""
        path = Path(path_str)
        if path.is_absolute():
            return path
        return project_root / path


_config_instance: Optional[Config] = None


def get_config(config_path: Path = None) -> Config:
    """
    Get the singleton Config instance.

    Args:
        config_path: Optional path to config file. If not provided,
                    searches upward from current directory.

    Returns:
        The global Config instance.

    Raises:
        ConfigurationError: If config cannot be loaded.
    """
    global _config_instance

    if _config_instance is None or config_path is not None:
        if config_path is None:
            config_path = _find_config_file()
        _config_instance = Config.from_file(config_path)

    return _config_instance


def _find_config_file() -> Path:
    """Search upward from current directory to find config/config.json."""
    current = Path.cwd()

    for _ in range(10):
        config_path = current / "config" / "config.json"
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    raise ConfigurationError(
        "Could not find config/config.json in current directory or parents"
    )


def reload_config(config_path: Path = None) -> Config:
    """
    Force reload of configuration.

    Args:
        config_path: Optional path to config file.

    Returns:
        Fresh Config instance.
    """
    global _config_instance
    _config_instance = None
    return get_config(config_path)
