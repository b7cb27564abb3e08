# salesboard/__init__.py
"""
Shared infrastructure for the distributor sales board.

This package contains:
- config: Configuration management (.env + environment)
- db: Database connection management with pooling
- distributor_kpi: KPI ingestion, classification, aggregation and reporting
- cli: Command line entry point

Usage:
    from salesboard.config import config
    from salesboard.db import get_db_engine, get_transaction

    # Or import commonly used items directly
    from salesboard import get_db_engine, config
"""

# Configuration
from .config import (
    config,
    Config,
    APP_CONFIG,
)

# Database
from .db import (
    get_db_engine,
    check_db_connection,
    get_transaction,
)

__all__ = [
    # Config
    'config',
    'Config',
    'APP_CONFIG',

    # Database
    'get_db_engine',
    'check_db_connection',
    'get_transaction',
]

__version__ = '1.0.0'
