"""
Database Infrastructure Package for Mira Oracle

Exports database utilities and table models.
"""

from mira_oracle.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    init_db,
    normalize_database_url,
)


__all__ = [
    "DatabaseManager",
    "get_db_manager",
    "init_db",
    "normalize_database_url",
]
