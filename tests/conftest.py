"""
Shared fixtures for the treeorm test suite.
"""

import pytest

from treeorm import InMemoryTreeDatabase, Store

# Registers the shared models
from tests import models  # noqa: F401


@pytest.fixture
def database():
    """Create a fresh in-memory database."""
    return InMemoryTreeDatabase()


@pytest.fixture
def store(database):
    """Create a store over the in-memory database."""
    return Store(database)
