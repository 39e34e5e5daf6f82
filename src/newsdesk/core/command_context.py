"""
Command context for shared initialization across CLI commands.

Provides a unified way to initialize config, database, and common parameters
to reduce boilerplate code in command implementations.
"""

from __future__ import annotations

import logging
from typing import Optional, Any

from .config import ConfigManager
from .database import DatabaseManager


logger = logging.getLogger(__name__)


class CommandContext:
    """Encapsulates shared initialization logic for CLI commands.

    Example:
        ```python
        ctx = CommandContext(config_path)
        rows = ctx.db.get_articles(category="Deportes")
        outlet = ctx.get_setting('outlet', default='Newsdesk')
        ```
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize command context with config and database.

        Raises:
            ValueError: If configuration is invalid
        """
        self.config_manager = ConfigManager(config_path)

        if not self.config_manager.validate_config():
            raise ValueError("Invalid configuration. Run 'newsdesk status' for details.")

        self.config = self.config_manager.load_config()
        self.db = DatabaseManager(self.config)

        logger.debug(f"CommandContext initialized with config from {self.config_manager.config_path}")

    def get_setting(self, *keys: str, default: Any = None) -> Any:
        """Get a nested config value.

        Example:
            ```python
            timeout = ctx.get_setting('ingestion', 'timeout', default=10)
            ```
        """
        value: Any = self.config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
        return value if value is not None else default

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass
