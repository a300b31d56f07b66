"""
Configuration Manager Module
Handles loading and accessing application configuration from YAML files and environment variables.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv


class ConfigManager:
    """Manages application configuration from YAML files and environment variables."""

    _instance = None
    _config: Dict = None

    def __new__(cls):
        """Singleton pattern for configuration."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize configuration if not already loaded."""
        if self._config is None:
            self._load_configuration()

    def _load_configuration(self) -> None:
        """Load the main configuration file."""
        # Load environment variables from .env file
        load_dotenv()

        self._config_dir = self._find_config_dir()
        self._config = self._load_yaml_with_env(self._config_dir / 'config.yaml')

    def _find_config_dir(self) -> Path:
        """Find the configuration directory."""
        env_config_dir = os.getenv('CONFIG_DIR')
        if env_config_dir:
            return Path(env_config_dir)

        possible_paths = [
            Path(__file__).parent.parent / 'config',  # Project root
            Path.cwd() / 'config',
            Path('/app/config'),  # Docker container
        ]

        for path in possible_paths:
            if path.exists():
                return path

        raise FileNotFoundError("Configuration directory not found")

    def _load_yaml_with_env(self, file_path: Path) -> Dict:
        """
        Load YAML file with environment variable substitution.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.
        """
        if not file_path.exists():
            return {}

        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()

        content = self._substitute_env_vars(content)

        return yaml.safe_load(content) or {}

    def _substitute_env_vars(self, content: str) -> str:
        """
        Substitute environment variables in string.

        Supports:
        - ${VAR_NAME} - Required variable
        - ${VAR_NAME:-default} - Variable with default value
        """
        pattern = r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}'

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2)

            value = os.getenv(var_name)
            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                return match.group(0)  # Return original if not found

        return re.sub(pattern, replacer, content)

    # ========================================
    # Configuration Getters
    # ========================================

    def get_dockmaster_config(self) -> Dict:
        """Get Dockmaster API configuration."""
        return self._config.get('dockmaster', {})

    def get_database_config(self) -> Dict:
        """Get database configuration."""
        return self._config.get('database', {})

    def get_sync_config(self) -> Dict:
        """Get incremental sync configuration."""
        return self._config.get('sync', {})

    def get_logging_config(self) -> Dict:
        """Get logging configuration."""
        return self._config.get('logging', {})

    def get_scheduler_config(self) -> Dict:
        """Get scheduler configuration."""
        return self._config.get('scheduler', {})


@dataclass(frozen=True)
class SyncSettings:
    """
    Immutable knobs for one incremental sync engine.

    Built once from the ``sync`` config section and handed to the engine so
    tests can vary them without touching process-wide state.
    """

    job_name: str = 'internal_workorders'
    internal_customer_id: str = '3112'
    lookback_minutes: int = 15
    page_size: int = 100
    max_pages: Optional[int] = 1
    timezone: str = 'America/New_York'

    @classmethod
    def from_config(cls, sync_config: Dict) -> 'SyncSettings':
        """Build settings from a ``sync`` config section, keeping defaults for missing keys."""
        defaults = cls()
        max_pages = sync_config.get('max_pages', defaults.max_pages)

        return cls(
            job_name=sync_config.get('job_name', defaults.job_name),
            internal_customer_id=str(sync_config.get('internal_customer_id', defaults.internal_customer_id)),
            lookback_minutes=int(sync_config.get('lookback_minutes', defaults.lookback_minutes)),
            page_size=int(sync_config.get('page_size', defaults.page_size)),
            # 0 or null in YAML means "fetch every page"
            max_pages=int(max_pages) if max_pages else None,
            timezone=sync_config.get('timezone', defaults.timezone)
        )
