"""
Fixtures package for the Sheets Harness test suite.

This package provides reusable fixtures shared by unit and integration tests.
"""

# Export base fixtures
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

# Export integration test fixtures
from tests.fixtures.integration import sheets_harness_settings, session_keystore

__all__ = [
    "auth_headers",
    "mock_requests_session",
    "mock_sheets_api",
    "options_file",
    "resources_dir",
    "sheets_client",
    "sheets_context",
    "sheets_harness_settings",
    "sheets_options",
    "temp_dir",
    "session_keystore",
]
