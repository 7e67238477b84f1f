"""
Flask JSON API hosting the two-factor engine.

Wraps ``twofactor_core.Authenticator`` with an SQLite credential repository.
"""

from .app import create_app

__all__ = ['create_app']
