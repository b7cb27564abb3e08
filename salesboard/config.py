# salesboard/config.py
"""
Centralized Configuration Management

Version: 1.0.0
Features:
- Local .env loading (working directory first, then project root)
- Singleton pattern for efficiency
- Type-safe getters with defaults
- DATABASE_URL, MySQL (DB_* variables) or local SQLite fallback
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from typing import Dict, Any, Optional
from dataclasses import dataclass
from urllib.parse import quote_plus

# Initialize logger
logger = logging.getLogger(__name__)

DEFAULT_SQLITE_FILE = "salesboard.db"


@dataclass
class DatabaseConfig:
    """Database configuration container"""
    url: Optional[str] = None
    host: str = ""
    port: int = 3306
    user: str = ""
    password: str = ""
    database: str = "salesboard"

    def is_mysql(self) -> bool:
        return bool(self.host and self.user)

    def build_url(self) -> str:
        """Resolve the SQLAlchemy URL: explicit URL > MySQL settings > SQLite file."""
        if self.url:
            return self.url
        if self.is_mysql():
            password = quote_plus(str(self.password))
            return f"mysql+pymysql://{self.user}:{password}@{self.host}:{self.port}/{self.database}"
        return f"sqlite:///{DEFAULT_SQLITE_FILE}"

    def safe_url(self) -> str:
        """URL with the password masked, for logging."""
        if self.url:
            if "@" not in self.url:
                return self.url
            scheme, _, rest = self.url.partition("://")
            return f"{scheme}://***@{rest.rsplit('@', 1)[-1]}"
        if self.is_mysql():
            return f"mysql+pymysql://{self.user}:***@{self.host}:{self.port}/{self.database}"
        return f"sqlite:///{DEFAULT_SQLITE_FILE}"


class Config:
    """
    Centralized configuration management

    Usage:
        from salesboard.config import config

        # Get database URL (password masked for logs)
        url = config.get_safe_database_url()

        # Get app settings
        threshold = config.get_app_setting("BILLING_THRESHOLD_LITERS", 9.0)

        # Check feature flags
        if config.is_feature_enabled("DEBUG_MODE"):
            ...
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._load_config()
        self._initialized = True

    def _load_config(self):
        """Load configuration from environment"""
        self._load_env_file()
        self._load_db_config()
        self._load_app_config()
        self._log_config_status()

    def _load_env_file(self):
        """Find and load .env file"""
        env_paths = [
            Path.cwd() / ".env",
            Path(__file__).parent.parent / ".env",
        ]

        for env_path in env_paths:
            if env_path.exists():
                load_dotenv(env_path)
                logger.info(f"Loaded .env from: {env_path}")
                break

    def _load_db_config(self):
        self._db_config = DatabaseConfig(
            url=os.getenv("DATABASE_URL") or None,
            host=os.getenv("DB_HOST", ""),
            port=int(os.getenv("DB_PORT", "3306")),
            user=os.getenv("DB_USER", ""),
            password=os.getenv("DB_PASSWORD", ""),
            database=os.getenv("DB_NAME", os.getenv("DB_DATABASE", "salesboard"))
        )

    def _load_app_config(self):
        """Load application-specific settings"""
        self._app_config = {
            # Business logic
            "BILLING_THRESHOLD_LITERS": float(os.getenv("BILLING_THRESHOLD_LITERS", "9")),
            "QUALIFICATION_THRESHOLD_LITERS": float(os.getenv("QUALIFICATION_THRESHOLD_LITERS", "5")),
            "TOP_CUSTOMERS_LIMIT": int(os.getenv("TOP_CUSTOMERS_LIMIT", "10")),

            # Ingestion / aggregation
            "INSERT_BATCH_SIZE": int(os.getenv("INSERT_BATCH_SIZE", "500")),
            "AGGREGATION_CHUNK_SIZE": int(os.getenv("AGGREGATION_CHUNK_SIZE", "5000")),

            # Database pool
            "DB_POOL_SIZE": int(os.getenv("DB_POOL_SIZE", "5")),
            "DB_POOL_RECYCLE": int(os.getenv("DB_POOL_RECYCLE", "3600")),

            # Logging
            "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),

            # Feature flags
            "ENABLE_DEBUG_MODE": os.getenv("ENABLE_DEBUG_MODE", "false").lower() == "true",
        }

    def _log_config_status(self):
        """Log configuration status"""
        logger.info(f"Database: {self._db_config.safe_url()}")
        logger.info(
            f"Thresholds: billing={self._app_config['BILLING_THRESHOLD_LITERS']}L, "
            f"qualification={self._app_config['QUALIFICATION_THRESHOLD_LITERS']}L"
        )

    # ==================== PUBLIC GETTERS ====================

    def get_database_url(self) -> str:
        return self._db_config.build_url()

    def get_safe_database_url(self) -> str:
        return self._db_config.safe_url()

    def get_app_setting(self, key: str, default: Any = None) -> Any:
        """Get application setting with default"""
        return self._app_config.get(key, default)

    def is_feature_enabled(self, feature: str) -> bool:
        """Check if feature is enabled"""
        key = f"ENABLE_{feature.upper()}"
        return self._app_config.get(key, False)

    # ==================== PROPERTIES ====================

    @property
    def app_config(self) -> Dict[str, Any]:
        return self._app_config.copy()


# ==================== SINGLETON INSTANCE ====================

config = Config()

APP_CONFIG = config.app_config

__all__ = [
    'config',
    'Config',
    'DatabaseConfig',
    'APP_CONFIG',
]
