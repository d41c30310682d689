#!/usr/bin/env python3
"""
Logging manager for relstore.

Loggers are namespaced under ``relstore.`` and propagate to whatever handlers
the host application configures. Set RELSTORE_LOG_DIR to also write rotating
log files, and RELSTORE_DEBUG=1 for DEBUG level output.
"""

import os
import logging
import logging.handlers
from pathlib import Path
from typing import Dict, Optional


class LoggingManager:
    """
    Hands out component loggers for relstore.

    Features:
    - One logger per (component, name) pair, cached
    - Optional rotating file output via RELSTORE_LOG_DIR
    - Debug mode support via RELSTORE_DEBUG
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the logging manager (singleton)"""
        if not self._initialized:
            log_dir = os.environ.get('RELSTORE_LOG_DIR')
            self.log_dir = Path(log_dir) if log_dir else None
            self.debug_mode = os.environ.get('RELSTORE_DEBUG', '').lower() in ('1', 'true', 'yes')
            self.loggers: Dict[str, logging.Logger] = {}
            self._initialized = True

            if self.log_dir:
                self.log_dir.mkdir(parents=True, exist_ok=True)

    def get_logger(self, name: str, component: Optional[str] = None) -> logging.Logger:
        """
        Get or create a logger for a specific component.

        Args:
            name: Logger name (e.g., 'ListAdapter')
            component: Component category ('adapter', 'query', None for main)

        Returns:
            Configured logger instance
        """
        logger_key = f"{component}.{name}" if component else name

        if logger_key in self.loggers:
            return self.loggers[logger_key]

        logger = logging.getLogger(f"relstore.{logger_key}")
        if self.debug_mode:
            logger.setLevel(logging.DEBUG)

        if self.log_dir:
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / f"{(component or name).lower()}.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            if self.debug_mode:
                formatter = logging.Formatter(
                    '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
                    datefmt='%Y-%m-%d %H:%M:%S'
                )
            else:
                formatter = logging.Formatter(
                    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                    datefmt='%Y-%m-%d %H:%M:%S'
                )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        self.loggers[logger_key] = logger
        return logger


# Singleton instance
_logging_manager = None


def get_logging_manager() -> LoggingManager:
    """Get the singleton LoggingManager instance"""
    global _logging_manager
    if _logging_manager is None:
        _logging_manager = LoggingManager()
    return _logging_manager


def get_logger(name: str, component: Optional[str] = None) -> logging.Logger:
    """
    Convenience function to get a logger.

    Args:
        name: Logger name
        component: Component type ('adapter', 'query', or None)

    Returns:
        Configured logger
    """
    return get_logging_manager().get_logger(name, component)


# Library default: stay silent unless the application configures logging
logging.getLogger('relstore').addHandler(logging.NullHandler())
