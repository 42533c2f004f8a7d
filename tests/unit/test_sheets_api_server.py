"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Unit tests for the FastAPI application of the Sheets API test server.

The application is exercised in process with FastAPI's TestClient; TLS and
the uvicorn thread are covered by the integration tests.
"""

import pytest
from fastapi.testclient import TestClient

from sheets_harness.server_assert import assert_that_sheets_api
from sheets_harness.sheets_api_server import SheetsApiTestServer


@pytest.mark.unit
class TestSheetsApiTestServerApp:
    """Tests for request translation in the FastAPI application."""

    @pytest.fixture
    def server(self, sheets_options, temp_dir):
        """A server that is configured but never started."""
        return SheetsApiTestServer(
            port=8443,
            keystore_path=temp_dir / "unused.p12",
            keystore_password="secret",
            client_id=sheets_options.client_id,
            client_secret=sheets_options.client_secret,
            access_token=sheets_options.access_token,
            refresh_token=sheets_options.refresh_token,
        )

    @pytest.fixture
    def client(self, server):
        """Create a test client for the FastAPI application."""
        return TestClient(server.app)

    def _create(self, client, auth_headers):
        response = client.post(
            "/v4/spreadsheets",
            json={"properties": {"title": "camel-sheets-1"}, "sheets": [{"properties": {"title": "TestData"}}]},
            headers=auth_headers,
        )
        assert response.status_code == 200
        return response.json()["spreadsheetId"]

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_base_url(self, server):
        assert server.base_url == "https://localhost:8443/"

    def test_requires_bearer_token(self, client):
        response = client.get("/v4/spreadsheets/abc")
        assert response.status_code == 401
        assert response.json()["error"]["status"] == "UNAUTHENTICATED"

    def test_create_and_read_values(self, client, auth_headers):
        spreadsheet_id = self._create(client, auth_headers)

        response = client.put(
            f"/v4/spreadsheets/{spreadsheet_id}/values/TestData!A1:B2",
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": [["a1", "b1"], ["a2", "b2"]]},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["updatedCells"] == 4

        response = client.get(
            f"/v4/spreadsheets/{spreadsheet_id}/values/TestData%21A1%3AB2", headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["values"] == [["a1", "b1"], ["a2", "b2"]]

    def test_repeated_query_parameters(self, client, server, auth_headers):
        spreadsheet_id = self._create(client, auth_headers)

        response = client.get(
            f"/v4/spreadsheets/{spreadsheet_id}/values:batchGet",
            params={"ranges": ["TestData!A1", "TestData!B1"]},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert len(response.json()["valueRanges"]) == 2

        (request,) = server.get_requests(method="GET", path=r".*values:batchGet$")
        assert request["params"] == {"ranges": ["TestData!A1", "TestData!B1"]}

    def test_form_encoded_token_request(self, client, sheets_options):
        response = client.post(
            "/oauth2/v4/token",
            data={
                "grant_type": "refresh_token",
                "client_id": sheets_options.client_id,
                "client_secret": sheets_options.client_secret,
                "refresh_token": sheets_options.refresh_token,
            },
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = client.get(
            "/v4/spreadsheets/unknown", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 404

    def test_invalid_json_body(self, client, auth_headers):
        response = client.post(
            "/v4/spreadsheets",
            content=b"{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid JSON payload received."

    def test_expectations_and_reset(self, client, server, auth_headers):
        server.expect("GET", "/v4/spreadsheets/abc", {"spreadsheetId": "abc"})

        response = client.get("/v4/spreadsheets/abc", headers=auth_headers)
        assert response.json() == {"spreadsheetId": "abc"}

        server.reset()
        response = client.get("/v4/spreadsheets/abc", headers=auth_headers)
        assert response.status_code == 404

    def test_not_running_until_started(self, server):
        assert server.is_running() is False


@pytest.mark.unit
class TestSheetsApiServerAssert:
    """Tests for the fluent server assertions."""

    @pytest.fixture
    def server(self, sheets_options, temp_dir):
        return SheetsApiTestServer(
            port=8443,
            keystore_path=temp_dir / "unused.p12",
            keystore_password="secret",
            client_id=sheets_options.client_id,
            client_secret=sheets_options.client_secret,
            access_token=sheets_options.access_token,
            refresh_token=sheets_options.refresh_token,
        )

    def test_is_running_fails_for_stopped_server(self, server):
        with pytest.raises(AssertionError, match="port 8443 to be running"):
            assert_that_sheets_api(server).is_running()

    def test_received_requests(self, server, auth_headers):
        client = TestClient(server.app)
        client.post("/v4/spreadsheets", json={}, headers=auth_headers)
        client.get("/v4/spreadsheets/abc", headers=auth_headers)

        (
            assert_that_sheets_api(server)
            .received_requests(2)
            .received_requests(1, method="POST", path=r"^/v4/spreadsheets$")
        )

    def test_received_requests_mismatch(self, server, auth_headers):
        TestClient(server.app).get("/v4/spreadsheets/abc", headers=auth_headers)

        with pytest.raises(AssertionError, match=r"Expected 0 request\(s\) matching any, got 1"):
            assert_that_sheets_api(server).received_no_requests()
