"""
Centralized environment configuration.

Values are layered, later sources overriding earlier ones:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EnvironConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        root = Path(__file__).parent.parent.parent

        example_path = root / "env.example"
        if example_path.exists():
            self._config.update(dotenv_values(example_path))
            logger.info("Loaded environment variables from {}", example_path)

        local_path = root / "env.local"
        if local_path.exists():
            self._config.update(dotenv_values(local_path))
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def __getitem__(self, key):
        if key not in self._config:
            raise KeyError(f"Configuration key '{key}' not found")

        return self._config[key]

    def get(self, key, default=None):
        """
        Get configuration value by key with optional default.

        Empty values are returned as-is; callers strip and fall back themselves.
        """
        return self._config.get(key, default)

    def reload(self):
        """
        Reload configuration from files and environment.
        Useful for testing or when configuration files change.
        """
        self._config.clear()
        self._load_config()
        logger.info("Configuration reloaded")

    def __contains__(self, key):
        return key in self._config

    def __iter__(self):
        return iter(self._config)

    def keys(self):
        return self._config.keys()

    def items(self):
        return self._config.items()

    def get_postgres_url(self) -> str:
        """
        Get the registry Postgres connection URL.

        Priority: POSTGRES_URL_DEFAULT > POSTGRES_URL > libpq PG* parts > localhost.

        Returns:
            str: Postgres connection URL
        """
        for key in ("POSTGRES_URL_DEFAULT", "POSTGRES_URL"):
            url = (self.get(key) or "").strip()
            if url:
                return url

        database = (self.get("PGDATABASE") or "").strip()
        if database:
            user = (self.get("PGUSER") or "postgres").strip()
            password = (self.get("PGPASSWORD") or "").strip()
            host = (self.get("PGHOST") or "localhost").strip()
            port = (self.get("PGPORT") or "5432").strip()
            auth = f"{user}:{password}" if password else user
            return f"postgresql://{auth}@{host}:{port}/{database}"

        return "postgresql://localhost:5432/postgres"


def hide_password_in_dsn(url: str) -> str:
    """Mask the password part of a connection URL for logging."""
    if "://" not in url or "@" not in url:
        return url
    proto, rest = url.split("://", 1)
    at = rest.rfind("@")
    auth, host = rest[:at], rest[at + 1 :]
    if ":" in auth:
        user, pwd = auth.split(":", 1)
        if user and pwd:
            return f"{proto}://{user}:***@{host}"
    return url


# Global configuration instance
config = EnvironConfig()
