"""
Integration test configuration.

Integration tests drive several reconciliation passes through the
orchestrator against the in-memory provisioning client and the SQLite
test database.
"""

import pytest

pytest_markers = [
    "integration: marks tests as integration tests",
    "database: marks tests that require database",
]


def pytest_configure(config):
    """Configure pytest with integration-specific markers."""
    for marker in pytest_markers:
        config.addinivalue_line("markers", marker)


def pytest_collection_modifyitems(config, items):
    """Automatically mark integration tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.database)
