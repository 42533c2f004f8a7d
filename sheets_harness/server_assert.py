"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""Fluent assertions about a running Sheets API test server."""

from sheets_harness.sheets_api_server import SheetsApiTestServer


class SheetsApiServerAssert:
    """Assertions about a :class:`SheetsApiTestServer`."""

    def __init__(self, server: SheetsApiTestServer):
        self.server = server

    def is_running(self) -> "SheetsApiServerAssert":
        """Assert that the server accepts requests."""
        if not self.server.is_running():
            raise AssertionError(
                f"Expected Sheets API test server on port {self.server.port} to be running"
            )
        return self

    def received_requests(
        self, count: int, method: str | None = None, path: str | None = None
    ) -> "SheetsApiServerAssert":
        """
        Assert how many recorded requests match the given filters.

        Args:
            count: Expected number of matching requests
            method: Optional HTTP method filter
            path: Optional path pattern filter
        """
        requests = self.server.get_requests(method, path)
        if len(requests) != count:
            described = " ".join(part for part in (method, path) if part) or "any"
            seen = [f"{req['method']} {req['path']}" for req in requests]
            raise AssertionError(
                f"Expected {count} request(s) matching {described}, got {len(requests)}: {seen}"
            )
        return self

    def received_no_requests(self) -> "SheetsApiServerAssert":
        """Assert that nothing has been recorded since the last reset."""
        return self.received_requests(0)


def assert_that_sheets_api(server: SheetsApiTestServer) -> SheetsApiServerAssert:
    """Start a fluent assertion about a Sheets API test server."""
    return SheetsApiServerAssert(server)
