"""
SQLite storage for two-factor credentials.

Implements the credential repository contract of ``twofactor_core`` on top of
the standard library ``sqlite3`` module.
"""

from .db_manager import SQLiteCredentialRepository
from .setup_database import DATABASE_FILE, setup_database

__all__ = ['DATABASE_FILE', 'SQLiteCredentialRepository', 'setup_database']
