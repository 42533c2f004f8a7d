"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

import pytest

from sheets_harness.sheets_mock_server import (
    SheetsMockServer,
    parse_user_entered,
    render_value,
)
from sheets_harness.models import ValueRenderOption


@pytest.mark.unit
class TestSheetsMockServer:
    """Test suite for the simulated Sheets API."""

    def setup_method(self):
        """Set up test method by creating a fresh server instance."""
        self.server = SheetsMockServer(
            client_id="abc", client_secret="xyz", access_token="t1", refresh_token="t2"
        )
        self.headers = {"Authorization": "Bearer t1"}

    def _call(self, method, path, params=None, data=None):
        return self.server.handle_request(method, path, params, data, self.headers)

    def _create(self, title="camel-sheets-1", sheets=("TestData",)):
        body, status = self._call(
            "POST",
            "/v4/spreadsheets",
            data={
                "properties": {"title": title},
                "sheets": [{"properties": {"title": sheet}} for sheet in sheets],
            },
        )
        assert status == 200
        return body

    def _write(self, spreadsheet_id, range_, values, option="USER_ENTERED"):
        return self._call(
            "PUT",
            f"/v4/spreadsheets/{spreadsheet_id}/values/{range_}",
            params={"valueInputOption": option},
            data={"values": values},
        )

    def _read(self, spreadsheet_id, range_, **params):
        return self._call("GET", f"/v4/spreadsheets/{spreadsheet_id}/values/{range_}", params=params)

    # Authentication

    def test_requests_without_token_are_rejected(self):
        body, status = self.server.handle_request("GET", "/v4/spreadsheets/abc")
        assert status == 401
        assert body["error"]["code"] == 401
        assert body["error"]["status"] == "UNAUTHENTICATED"

    def test_requests_with_unknown_token_are_rejected(self):
        _, status = self.server.handle_request(
            "GET", "/v4/spreadsheets/abc", headers={"Authorization": "Bearer wrong"}
        )
        assert status == 401

    def test_header_names_are_case_insensitive(self):
        spreadsheet = self._create()
        _, status = self.server.handle_request(
            "GET",
            f"/v4/spreadsheets/{spreadsheet['spreadsheetId']}",
            headers={"authorization": "Bearer t1"},
        )
        assert status == 200

    def test_refresh_token(self):
        body, status = self.server.handle_request(
            "POST",
            "/oauth2/v4/token",
            data={
                "grant_type": "refresh_token",
                "client_id": "abc",
                "client_secret": "xyz",
                "refresh_token": "t2",
            },
        )
        assert status == 200
        assert body["token_type"] == "Bearer"
        assert body["access_token"] in self.server.valid_tokens

        spreadsheet = self._create()
        _, status = self.server.handle_request(
            "GET",
            f"/v4/spreadsheets/{spreadsheet['spreadsheetId']}",
            headers={"Authorization": f"Bearer {body['access_token']}"},
        )
        assert status == 200

    def test_refresh_with_wrong_refresh_token(self):
        body, status = self.server.handle_request(
            "POST",
            "/oauth2/v4/token",
            data={
                "grant_type": "refresh_token",
                "client_id": "abc",
                "client_secret": "xyz",
                "refresh_token": "nope",
            },
        )
        assert status == 400
        assert body["error"] == "invalid_grant"

    def test_refresh_with_wrong_client(self):
        body, status = self.server.handle_request(
            "POST",
            "/oauth2/v4/token",
            data={
                "grant_type": "refresh_token",
                "client_id": "abc",
                "client_secret": "wrong",
                "refresh_token": "t2",
            },
        )
        assert status == 401
        assert body["error"] == "invalid_client"

    def test_unsupported_grant(self):
        body, status = self.server.handle_request(
            "POST", "/oauth2/v4/token", data={"grant_type": "password"}
        )
        assert status == 400
        assert body["error"] == "unsupported_grant_type"

    # Spreadsheets

    def test_create_spreadsheet(self):
        spreadsheet = self._create(title="camel-sheets-42")

        assert spreadsheet["spreadsheetId"]
        assert spreadsheet["properties"]["title"] == "camel-sheets-42"
        assert spreadsheet["properties"]["locale"] == "en_US"
        assert spreadsheet["spreadsheetUrl"] == (
            f"https://docs.google.com/spreadsheets/d/{spreadsheet['spreadsheetId']}/edit"
        )

        (sheet,) = spreadsheet["sheets"]
        assert sheet["properties"]["title"] == "TestData"
        assert sheet["properties"]["sheetId"] == 0
        assert sheet["properties"]["index"] == 0
        assert sheet["properties"]["gridProperties"] == {"rowCount": 1000, "columnCount": 26}

    def test_create_spreadsheet_defaults(self):
        body, status = self._call("POST", "/v4/spreadsheets", data={})
        assert status == 200
        assert body["properties"]["title"] == "Untitled spreadsheet"
        assert body["sheets"][0]["properties"]["title"] == "Sheet1"

    def test_create_spreadsheet_ids_are_unique(self):
        first = self._create()
        second = self._create()
        assert first["spreadsheetId"] != second["spreadsheetId"]

    def test_create_spreadsheet_duplicate_sheets(self):
        body, status = self._call(
            "POST",
            "/v4/spreadsheets",
            data={"sheets": [{"properties": {"title": "A"}}, {"properties": {"title": "A"}}]},
        )
        assert status == 400
        assert body["error"]["status"] == "INVALID_ARGUMENT"

    def test_get_spreadsheet(self):
        created = self._create()
        body, status = self._call("GET", f"/v4/spreadsheets/{created['spreadsheetId']}")
        assert status == 200
        assert body == created

    def test_get_unknown_spreadsheet(self):
        body, status = self._call("GET", "/v4/spreadsheets/does-not-exist")
        assert status == 404
        assert body["error"]["status"] == "NOT_FOUND"

    # Values

    def test_update_and_get_values(self):
        spreadsheet_id = self._create()["spreadsheetId"]

        body, status = self._write(spreadsheet_id, "TestData!A1:B2", [["a1", "b1"], ["a2", "b2"]])
        assert status == 200
        assert body == {
            "spreadsheetId": spreadsheet_id,
            "updatedRange": "TestData!A1:B2",
            "updatedRows": 2,
            "updatedColumns": 2,
            "updatedCells": 4,
        }

        body, status = self._read(spreadsheet_id, "TestData!A1:B2")
        assert status == 200
        assert body == {
            "range": "TestData!A1:B2",
            "majorDimension": "ROWS",
            "values": [["a1", "b1"], ["a2", "b2"]],
        }

    def test_user_entered_values_are_parsed(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1", [["42", "3.5", "true", "'007", "=A1*2"]])

        body, _ = self._read(spreadsheet_id, "TestData!A1:E1", valueRenderOption="UNFORMATTED_VALUE")
        assert body["values"] == [[42, 3.5, True, "007", "=A1*2"]]

        body, _ = self._read(spreadsheet_id, "TestData!A1:E1")
        assert body["values"] == [["42", "3.5", "TRUE", "007", "=A1*2"]]

    def test_out_of_range_numbers_stay_text(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1", [["1e999"]])

        body, _ = self._read(spreadsheet_id, "TestData!A1", valueRenderOption="UNFORMATTED_VALUE")
        assert body["values"] == [["1e999"]]

        body, _ = self._read(spreadsheet_id, "TestData!A1")
        assert body["values"] == [["1e999"]]

    def test_raw_values_are_literal(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1", [["42", "'007"]], option="RAW")

        body, _ = self._read(spreadsheet_id, "TestData!A1:B1", valueRenderOption="UNFORMATTED_VALUE")
        assert body["values"] == [["42", "'007"]]

    def test_value_input_option_is_required(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._call(
            "PUT",
            f"/v4/spreadsheets/{spreadsheet_id}/values/TestData!A1",
            data={"values": [["x"]]},
        )
        assert status == 400
        assert "valueInputOption" in body["error"]["message"]

    def test_invalid_value_input_option(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        _, status = self._write(spreadsheet_id, "TestData!A1", [["x"]], option="PARSED")
        assert status == 400

    def test_unknown_sheet(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._read(spreadsheet_id, "Missing!A1:B2")
        assert status == 400
        assert body["error"]["message"] == "Unable to parse range: Missing!A1:B2"

    def test_range_without_sheet_uses_first_sheet(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "B2", [["x"]])
        body, _ = self._read(spreadsheet_id, "TestData!B2")
        assert body["values"] == [["x"]]

    def test_update_outside_grid(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._write(spreadsheet_id, "TestData!Z1", [["x", "y"]])
        assert status == 400
        assert "exceeds grid limits" in body["error"]["message"]

    def test_null_leaves_cell_and_empty_string_clears(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1", [["a", "b", "c"]])
        self._write(spreadsheet_id, "TestData!A1", [[None, "", "z"]])

        body, _ = self._read(spreadsheet_id, "TestData!A1:C1")
        assert body["values"] == [["a", "", "z"]]

    def test_get_trims_trailing_empty_cells(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1", [["a1", "b1"], ["a2"]])

        body, _ = self._read(spreadsheet_id, "TestData")
        assert body["range"] == "TestData!A1:Z1000"
        assert body["values"] == [["a1", "b1"], ["a2"]]

    def test_get_empty_range_has_no_values(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._read(spreadsheet_id, "TestData!A1:B2")
        assert status == 200
        assert "values" not in body

    def test_get_by_columns(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1:B2", [["a1", "b1"], ["a2", "b2"]])

        body, _ = self._read(spreadsheet_id, "TestData!A1:B2", majorDimension="COLUMNS")
        assert body["majorDimension"] == "COLUMNS"
        assert body["values"] == [["a1", "a2"], ["b1", "b2"]]

    def test_update_by_columns(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._call(
            "PUT",
            f"/v4/spreadsheets/{spreadsheet_id}/values/TestData!A1",
            params={"valueInputOption": "RAW"},
            data={"majorDimension": "COLUMNS", "values": [["a1", "a2"], ["b1", "b2"]]},
        )
        body, _ = self._read(spreadsheet_id, "TestData!A1:B2")
        assert body["values"] == [["a1", "b1"], ["a2", "b2"]]

    def test_append_values(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        path = f"/v4/spreadsheets/{spreadsheet_id}/values/TestData!A1:append"

        body, status = self._call(
            "POST", path, params={"valueInputOption": "RAW"}, data={"values": [["h1", "h2"]]}
        )
        assert status == 200
        assert "tableRange" not in body
        assert body["updates"]["updatedRange"] == "TestData!A1:B1"

        body, _ = self._call(
            "POST", path, params={"valueInputOption": "RAW"}, data={"values": [["r1", "r2"]]}
        )
        assert body["tableRange"] == "TestData!A1:B1"
        assert body["updates"]["updatedRange"] == "TestData!A2:B2"

        body, _ = self._read(spreadsheet_id, "TestData")
        assert body["values"] == [["h1", "h2"], ["r1", "r2"]]

    def test_append_grows_the_grid(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1000", [["last"]])

        _, status = self._call(
            "POST",
            f"/v4/spreadsheets/{spreadsheet_id}/values/TestData!A1:append",
            params={"valueInputOption": "RAW"},
            data={"values": [["beyond"]]},
        )
        assert status == 200

        body, _ = self._call("GET", f"/v4/spreadsheets/{spreadsheet_id}")
        assert body["sheets"][0]["properties"]["gridProperties"]["rowCount"] == 1001

    def test_clear_values(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1:B2", [["a1", "b1"], ["a2", "b2"]])

        body, status = self._call(
            "POST", f"/v4/spreadsheets/{spreadsheet_id}/values/TestData!A1:B1:clear", data={}
        )
        assert status == 200
        assert body == {"spreadsheetId": spreadsheet_id, "clearedRange": "TestData!A1:B1"}

        body, _ = self._read(spreadsheet_id, "TestData!A1:B2")
        assert body["values"] == [[], ["a2", "b2"]]

    def test_batch_get_values(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1:B2", [["a1", "b1"], ["a2", "b2"]])

        body, status = self._call(
            "GET",
            f"/v4/spreadsheets/{spreadsheet_id}/values:batchGet",
            params={"ranges": ["TestData!A1:A2", "TestData!B2"]},
        )
        assert status == 200
        assert [value_range["values"] for value_range in body["valueRanges"]] == [
            [["a1"], ["a2"]],
            [["b2"]],
        ]

    def test_batch_get_single_range(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, _ = self._call(
            "GET",
            f"/v4/spreadsheets/{spreadsheet_id}/values:batchGet",
            params={"ranges": "TestData!A1"},
        )
        assert len(body["valueRanges"]) == 1

    # Batch update

    def _batch_update(self, spreadsheet_id, *requests, include=False):
        return self._call(
            "POST",
            f"/v4/spreadsheets/{spreadsheet_id}:batchUpdate",
            data={"requests": list(requests), "includeSpreadsheetInResponse": include},
        )

    def test_add_sheet(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._batch_update(
            spreadsheet_id, {"addSheet": {"properties": {"title": "More"}}}, include=True
        )
        assert status == 200
        properties = body["replies"][0]["addSheet"]["properties"]
        assert properties["title"] == "More"
        assert properties["index"] == 1
        assert [s["properties"]["title"] for s in body["updatedSpreadsheet"]["sheets"]] == [
            "TestData",
            "More",
        ]

        self._write(spreadsheet_id, "More!A1", [["x"]])
        values, _ = self._read(spreadsheet_id, "More!A1")
        assert values["values"] == [["x"]]

    def test_batch_update_is_atomic(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._batch_update(
            spreadsheet_id,
            {"addSheet": {"properties": {"title": "More"}}},
            {"addSheet": {"properties": {"title": "TestData"}}},
        )
        assert status == 400
        assert "already exists" in body["error"]["message"]

        spreadsheet, _ = self._call("GET", f"/v4/spreadsheets/{spreadsheet_id}")
        assert [s["properties"]["title"] for s in spreadsheet["sheets"]] == ["TestData"]

    def test_delete_sheet(self):
        spreadsheet = self._create(sheets=("TestData", "Other"))
        other_id = spreadsheet["sheets"][1]["properties"]["sheetId"]

        _, status = self._batch_update(
            spreadsheet["spreadsheetId"], {"deleteSheet": {"sheetId": other_id}}
        )
        assert status == 200

        body, _ = self._call("GET", f"/v4/spreadsheets/{spreadsheet['spreadsheetId']}")
        assert [s["properties"]["title"] for s in body["sheets"]] == ["TestData"]

    def test_delete_last_sheet(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._batch_update(spreadsheet_id, {"deleteSheet": {"sheetId": 0}})
        assert status == 400
        assert "remove all the sheets" in body["error"]["message"]

    def test_delete_unknown_sheet(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        _, status = self._batch_update(spreadsheet_id, {"deleteSheet": {"sheetId": 99}})
        assert status == 400

    def test_update_spreadsheet_properties(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._batch_update(
            spreadsheet_id,
            {
                "updateSpreadsheetProperties": {
                    "properties": {"title": "Renamed", "locale": "de_DE"},
                    "fields": "title",
                }
            },
        )
        body, _ = self._call("GET", f"/v4/spreadsheets/{spreadsheet_id}")
        assert body["properties"]["title"] == "Renamed"
        assert body["properties"]["locale"] == "en_US"

    def test_update_sheet_properties(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1", [["kept"]])
        self._batch_update(
            spreadsheet_id,
            {"updateSheetProperties": {"properties": {"sheetId": 0, "title": "Data"}, "fields": "title"}},
        )

        body, status = self._read(spreadsheet_id, "Data!A1")
        assert status == 200
        assert body["values"] == [["kept"]]

    def test_update_without_fields(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        _, status = self._batch_update(
            spreadsheet_id, {"updateSpreadsheetProperties": {"properties": {"title": "x"}}}
        )
        assert status == 400

    def test_unsupported_request_kind(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        body, status = self._batch_update(spreadsheet_id, {"mergeCells": {}})
        assert status == 400
        assert "mergeCells" in body["error"]["message"]

    # Routing

    def test_unknown_endpoint(self):
        _, status = self._call("GET", "/v4/unknown")
        assert status == 404

    def test_method_not_allowed(self):
        _, status = self._call("DELETE", "/v4/spreadsheets/abc")
        assert status == 405

    # Expectations and request log

    def test_expectation_overrides_response(self):
        self.server.expect(
            "GET", "v4/spreadsheets/abc", {"error": {"code": 503, "message": "down"}}, 503
        )
        body, status = self._call("GET", "/v4/spreadsheets/abc")
        assert status == 503
        assert body["error"]["message"] == "down"

    def test_request_history(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self._write(spreadsheet_id, "TestData!A1", [["x"]])

        assert len(self.server.get_requests()) == 2
        assert len(self.server.get_requests(method="POST")) == 1
        (update,) = self.server.get_requests(method="PUT", path=r"^/v4/spreadsheets/.+/values/")
        assert update["params"] == {"valueInputOption": "USER_ENTERED"}
        assert update["data"] == {"values": [["x"]]}

    def test_init_clears_log_and_expectations(self):
        self.server.expect("GET", "/v4/spreadsheets/abc", {}, 200)
        self._create()

        self.server.init()

        assert self.server.get_requests() == []
        assert self.server.expectations == {}

    def test_reset_keeps_spreadsheets(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        token, _ = self.server.handle_request(
            "POST",
            "/oauth2/v4/token",
            data={
                "grant_type": "refresh_token",
                "client_id": "abc",
                "client_secret": "xyz",
                "refresh_token": "t2",
            },
        )

        self.server.reset()

        assert self.server.get_requests() == []
        assert self.server.valid_tokens == ["t1"]
        assert token["access_token"] not in self.server.valid_tokens
        _, status = self._call("GET", f"/v4/spreadsheets/{spreadsheet_id}")
        assert status == 200

    def test_clear_data(self):
        spreadsheet_id = self._create()["spreadsheetId"]
        self.server.clear_data()
        _, status = self._call("GET", f"/v4/spreadsheets/{spreadsheet_id}")
        assert status == 404


@pytest.mark.unit
class TestValueConversion:
    """Tests for value parsing and rendering."""

    @pytest.mark.parametrize(
        "raw, parsed",
        [
            ("12", 12),
            ("-3", -3),
            ("1.25", 1.25),
            ("1e3", 1000.0),
            ("1e999", "1e999"),
            ("-1e999", "-1e999"),
            ("FALSE", False),
            ("True", True),
            ("'123", "123"),
            ("=SUM(A1:A2)", "=SUM(A1:A2)"),
            ("hello", "hello"),
            (7, 7),
        ],
    )
    def test_parse_user_entered(self, raw, parsed):
        assert parse_user_entered(raw) == parsed
        assert type(parse_user_entered(raw)) is type(parsed)

    def test_render_formatted(self):
        assert render_value(True, ValueRenderOption.FORMATTED_VALUE) == "TRUE"
        assert render_value(2.0, ValueRenderOption.FORMATTED_VALUE) == "2"
        assert render_value(2.5, ValueRenderOption.FORMATTED_VALUE) == "2.5"
        assert render_value(12, ValueRenderOption.FORMATTED_VALUE) == "12"

    def test_render_unformatted(self):
        assert render_value(2.5, ValueRenderOption.UNFORMATTED_VALUE) == 2.5
        assert render_value("=A1", ValueRenderOption.FORMULA) == "=A1"
