"""
Configuration helpers for relstore.
Supports environment variables and YAML files for deployment configuration.
"""

import os
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigurationError


SQLITE_URL_PREFIX = "sqlite:///"

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def db_path_from_url(url: str) -> str:
    """
    Convert a ``sqlite:///`` URL into a filesystem path.

    Plain paths (and ``:memory:``) are returned unchanged.
    """
    if url.startswith(SQLITE_URL_PREFIX):
        return url[len(SQLITE_URL_PREFIX):]
    if "://" in url:
        raise ConfigurationError(f"Unsupported database URL '{url}': only sqlite:/// is supported")
    return url


class Config:
    """
    Configuration helper that reads from environment variables or YAML.

    Environment variables:
        RELSTORE_DB_PATH: SQLite database path (or sqlite:/// URL)
        DATABASE_URL: Fallback sqlite:/// URL when RELSTORE_DB_PATH is unset
        RELSTORE_DROP_DATABASE: Drop and recreate all tables on connect
        RELSTORE_ENV: Deployment environment ('production' disables dropping)
    """

    KEYS = ('db_path', 'drop_database', 'environment')

    @staticmethod
    def from_env() -> Dict[str, Any]:
        """
        Create configuration from environment variables.

        Returns:
            Dict with keyword arguments for DatabaseAdapter

        Example:
            from relstore import DatabaseAdapter
            from relstore.config import Config

            adapter = DatabaseAdapter(**Config.from_env())
        """
        config: Dict[str, Any] = {
            "drop_database": _parse_bool(os.getenv("RELSTORE_DROP_DATABASE", "")),
            "environment": os.getenv("RELSTORE_ENV", "development"),
        }

        db_path = os.getenv("RELSTORE_DB_PATH") or os.getenv("DATABASE_URL")
        if db_path:
            config["db_path"] = db_path_from_url(db_path)
        # else: the adapter derives a path from the application name

        return config

    @staticmethod
    def from_yaml(path: str) -> Dict[str, Any]:
        """
        Load configuration from a YAML file.

        The file may hold the keys ``db_path``, ``drop_database`` and
        ``environment``, either at the top level or under ``relstore:``.

        Args:
            path: Path to the YAML file

        Returns:
            Dict with keyword arguments for DatabaseAdapter
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        data = data.get('relstore', data)

        unknown = set(data) - set(Config.KEYS)
        if unknown:
            raise ConfigurationError(f"Unknown config keys in {path}: {sorted(unknown)}")

        config: Dict[str, Any] = {}
        if data.get('db_path'):
            config['db_path'] = db_path_from_url(str(data['db_path']))
        if 'drop_database' in data:
            config['drop_database'] = _parse_bool(data['drop_database'])
        if 'environment' in data:
            config['environment'] = str(data['environment'])
        return config

    @staticmethod
    def for_memory() -> Dict[str, Any]:
        """
        Configuration for a throwaway in-memory database.

        Returns:
            Configuration dict that always builds the schema
        """
        return {
            "db_path": ":memory:",
            "drop_database": True,
        }

    @staticmethod
    def for_file(db_path: str, drop_database: Optional[bool] = False) -> Dict[str, Any]:
        """
        Configuration for a local database file.

        Args:
            db_path: Path to the SQLite file
            drop_database: Recreate all tables on connect

        Returns:
            Configuration dict for local setup
        """
        return {
            "db_path": db_path,
            "drop_database": bool(drop_database),
        }
