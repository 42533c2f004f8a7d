"""
Test configuration and fixtures for the sheets_harness project.

This file is the root pytest configuration file that sets up pytest
markers and imports fixtures from the fixtures modules to make them
available to all tests.
"""

# Import fixtures from the fixtures modules to make them available to all tests
from tests.fixtures.base import (
    auth_headers,
    mock_requests_session,
    mock_sheets_api,
    options_file,
    resources_dir,
    sheets_client,
    sheets_context,
    sheets_options,
    temp_dir,
)

# Import integration test fixtures; these settings replace the environment based default
from tests.fixtures.integration import sheets_harness_settings, session_keystore

# The shared server lifecycle comes from the library
from sheets_harness.test_support import sheets_server_lifecycle


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line("markers", "integration: mark a test as an integration test")
