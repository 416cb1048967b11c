"""
Remote tree database backends.

Provides the TreeDatabase protocol, its sentinels, and two backends:
- InMemoryTreeDatabase: for tests and local development
- RestTreeDatabase: httpx client for hosted tree databases
"""

from .base import (
    DELETE,
    SERVER_TIMESTAMP,
    DatabaseConnectionError,
    DatabaseError,
    TreeDatabase,
    create_database,
    is_delete,
    is_server_timestamp,
)
from .memory import InMemoryTreeDatabase
from .rest import RestTreeDatabase

__all__ = [
    "DELETE",
    "SERVER_TIMESTAMP",
    "DatabaseConnectionError",
    "DatabaseError",
    "TreeDatabase",
    "create_database",
    "is_delete",
    "is_server_timestamp",
    "InMemoryTreeDatabase",
    "RestTreeDatabase",
]
