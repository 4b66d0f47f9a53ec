"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/unit/ - Fast, isolated tests of the archive core, store and utilities
- tests/integration/ - Collector jobs wired to a real registry and SQLite store
- tests/conftest.py - Shared fixtures and fakes (search client, Redis)
"""
