"""
treeorm Test Suite.

This package contains:
- models.py: Model definitions shared by all tests
- unit/: Unit tests (no database, or the in-memory database only)
- integration/: Integration tests (stores over the in-memory database)
"""
