"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Mock server for Google Sheets API testing.

This module simulates the Sheets v4 API in memory: the OAuth token endpoint,
spreadsheet creation and structural batch updates, and the values endpoints
(get, update, append, clear, batchGet). It also records every request it
receives and lets tests configure canned responses for exact paths.
"""

import logging
import math
import re
import secrets
import random
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from sheets_harness.a1_notation import GridRange, format_a1, parse_a1
from sheets_harness.models import (
    AccessToken,
    AppendValuesResponse,
    BatchGetValuesResponse,
    BatchUpdateSpreadsheetRequest,
    BatchUpdateSpreadsheetResponse,
    ClearValuesResponse,
    GridProperties,
    MajorDimension,
    Sheet,
    SheetProperties,
    Spreadsheet,
    SpreadsheetProperties,
    UpdateValuesResponse,
    ValueInputOption,
    ValueRange,
    ValueRenderOption,
    to_wire,
)

logger = logging.getLogger("sheets_harness.sheets_mock_server")

TOKEN_PATH = "/oauth2/v4/token"

_STATUS_NAMES = {
    400: "INVALID_ARGUMENT",
    401: "UNAUTHENTICATED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    500: "INTERNAL",
}

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")

Cells = dict[tuple[int, int], Any]


class ApiError(Exception):
    """An error the simulated API reports to the caller."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def parse_user_entered(value: Any) -> Any:
    """
    Interpret a value the way the Sheets UI interprets typed input.

    Numbers and booleans typed as text become typed values, formulas are kept
    verbatim, and a leading apostrophe forces the rest to stay text.
    """
    if not isinstance(value, str):
        return value
    if value.startswith("'"):
        return value[1:]
    if value.startswith("="):
        return value

    stripped = value.strip()
    if stripped.upper() in ("TRUE", "FALSE"):
        return stripped.upper() == "TRUE"
    if _INT_PATTERN.match(stripped):
        return int(stripped)
    if _FLOAT_PATTERN.match(stripped):
        number = float(stripped)
        # Out of range numbers stay text
        return number if math.isfinite(number) else value
    return value


def render_value(value: Any, render_option: ValueRenderOption) -> Any:
    """Render a stored cell value for a read response."""
    if render_option != ValueRenderOption.FORMATTED_VALUE:
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class SheetsMockServer:
    """Mock server for the Google Sheets v4 API."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        access_token: str,
        refresh_token: str,
    ):
        """
        Initialize the mock server with empty data stores.

        Args:
            client_id: OAuth client id accepted by the token endpoint
            client_secret: OAuth client secret accepted by the token endpoint
            access_token: Bearer token accepted without a refresh
            refresh_token: Refresh token accepted by the token endpoint
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.access_token = access_token
        self.refresh_token = refresh_token

        # Simulated API data
        self.spreadsheets: dict[str, Spreadsheet] = {}
        self.cells: dict[str, dict[int, Cells]] = {}

        # Per-test state
        self.request_history: list[dict[str, Any]] = []
        self.expectations: dict[str, dict[str, Any]] = {}
        self.valid_tokens: list[str] = [access_token]

        # The event loop thread serves requests while the test thread resets state
        self._lock = threading.RLock()

        self._routes: list[tuple[str, re.Pattern, Callable[..., tuple[dict[str, Any], int]]]] = [
            ("POST", re.compile(r"^/v4/spreadsheets$"), self._create_spreadsheet),
            ("GET", re.compile(r"^/v4/spreadsheets/([^/:]+)$"), self._get_spreadsheet),
            ("POST", re.compile(r"^/v4/spreadsheets/([^/:]+):batchUpdate$"), self._batch_update),
            (
                "GET",
                re.compile(r"^/v4/spreadsheets/([^/:]+)/values:batchGet$"),
                self._batch_get_values,
            ),
            (
                "POST",
                re.compile(r"^/v4/spreadsheets/([^/:]+)/values/(.+):append$"),
                self._append_values,
            ),
            (
                "POST",
                re.compile(r"^/v4/spreadsheets/([^/:]+)/values/(.+):clear$"),
                self._clear_values,
            ),
            ("GET", re.compile(r"^/v4/spreadsheets/([^/:]+)/values/(.+)$"), self._get_values),
            ("PUT", re.compile(r"^/v4/spreadsheets/([^/:]+)/values/(.+)$"), self._update_values),
        ]

    # Per-test state management

    def init(self) -> None:
        """Start a test from a clean expectation and request log state."""
        with self._lock:
            self.request_history = []
            self.expectations = {}
        logger.debug("Mock server state initialized")

    def reset(self) -> None:
        """Clear everything recorded or configured during a test.

        Spreadsheet data is kept so memoized fixtures stay valid; use
        ``clear_data`` to drop it.
        """
        with self._lock:
            self.request_history = []
            self.expectations = {}
            self.valid_tokens = [self.access_token]
        logger.debug("Mock server state reset")

    def clear_data(self) -> None:
        """Drop all simulated spreadsheets."""
        with self._lock:
            self.spreadsheets = {}
            self.cells = {}

    def expect(
        self, method: str, path: str, response: dict[str, Any], status_code: int = 200
    ) -> None:
        """
        Configure a specific response for an exact method and path.

        Args:
            method: HTTP method (GET, POST, PUT)
            path: Path relative to the root URL (e.g., "/v4/spreadsheets/abc")
            response: Response body to return
            status_code: HTTP status code to return
        """
        key = f"{method.upper()}:/{path.lstrip('/')}"
        with self._lock:
            self.expectations[key] = {"data": response, "status_code": status_code}

    def get_requests(self, method: str | None = None, path: str | None = None) -> list[dict[str, Any]]:
        """
        Get a filtered list of recorded requests.

        Args:
            method: Filter by HTTP method
            path: Filter by a regular expression matched against the path

        Returns:
            List of matching request dictionaries
        """
        with self._lock:
            filtered = list(self.request_history)

        if method is not None:
            filtered = [req for req in filtered if req["method"] == method.upper()]

        if path is not None:
            pattern = re.compile(path)
            filtered = [req for req in filtered if pattern.match(req["path"])]

        return filtered

    # Request dispatch

    def handle_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[dict[str, Any], int]:
        """
        Process a request and generate the simulated API response.

        Args:
            method: HTTP method
            path: Path relative to the root URL
            params: Query parameters (repeated parameters as lists)
            data: Decoded JSON or form body
            headers: Request headers

        Returns:
            Tuple of (response_data, status_code)
        """
        method = method.upper()
        path = "/" + path.lstrip("/")
        params = params or {}
        data = data or {}
        headers = {key.lower(): value for key, value in (headers or {}).items()}

        with self._lock:
            self._track_request(method, path, params, data)

            key = f"{method}:{path}"
            if key in self.expectations:
                expectation = self.expectations[key]
                return expectation["data"], expectation["status_code"]

            try:
                if path == TOKEN_PATH:
                    if method != "POST":
                        raise ApiError(405, f"Method {method} not allowed for {path}")
                    return self._issue_token(data)

                if not self._is_authorized(headers):
                    raise ApiError(
                        401,
                        "Request had invalid authentication credentials. "
                        "Expected OAuth 2 access token.",
                    )

                return self._dispatch(method, path, params, data)
            except ApiError as e:
                logger.debug(f"{method} {path} -> {e.status_code}: {e.message}")
                return self.format_error_response(e.message, e.status_code), e.status_code

    def _track_request(
        self, method: str, path: str, params: dict[str, Any], data: dict[str, Any]
    ) -> None:
        self.request_history.append(
            {
                "timestamp": time.time(),
                "method": method,
                "path": path,
                "params": params,
                "data": data,
            }
        )

    def _dispatch(
        self, method: str, path: str, params: dict[str, Any], data: dict[str, Any]
    ) -> tuple[dict[str, Any], int]:
        path_matched = False
        for route_method, pattern, handler in self._routes:
            match = pattern.match(path)
            if not match:
                continue
            path_matched = True
            if route_method == method:
                return handler(params, data, *match.groups())

        if path_matched:
            raise ApiError(405, f"Method {method} not allowed for {path}")
        raise ApiError(404, f"Unknown endpoint: {method} {path}")

    def format_error_response(self, message: str, status_code: int) -> dict[str, Any]:
        return {
            "error": {
                "code": status_code,
                "message": message,
                "status": _STATUS_NAMES.get(status_code, "UNKNOWN"),
                "timestamp": datetime.now().isoformat(),
            }
        }

    # Authentication

    def _is_authorized(self, headers: dict[str, str]) -> bool:
        auth_header = headers.get("authorization", "")
        if not auth_header.startswith("Bearer "):
            return False
        return auth_header[len("Bearer ") :] in self.valid_tokens

    def _issue_token(self, data: dict[str, Any]) -> tuple[dict[str, Any], int]:
        if data.get("grant_type") != "refresh_token":
            return {"error": "unsupported_grant_type"}, 400
        if data.get("client_id") != self.client_id or data.get("client_secret") != self.client_secret:
            return {"error": "invalid_client", "error_description": "Unauthorized"}, 401
        if data.get("refresh_token") != self.refresh_token:
            return {"error": "invalid_grant", "error_description": "Bad Request"}, 400

        token = f"ya29.mock-{secrets.token_urlsafe(24)}"
        self.valid_tokens.append(token)
        logger.debug("Issued refreshed access token")
        return AccessToken(access_token=token).model_dump(), 200

    # Spreadsheets

    def _create_spreadsheet(
        self, params: dict[str, Any], data: dict[str, Any]
    ) -> tuple[dict[str, Any], int]:
        try:
            requested = Spreadsheet.model_validate(data)
        except ValidationError as e:
            raise ApiError(400, f"Invalid spreadsheet: {e}") from e

        spreadsheet_id = secrets.token_urlsafe(33)
        requested_sheets = requested.sheets or [Sheet(properties=SheetProperties(title="Sheet1"))]

        sheets: list[Sheet] = []
        used_ids: set[int] = set()
        for index, sheet in enumerate(requested_sheets):
            properties = sheet.properties
            title = properties.title or f"Sheet{index + 1}"
            if any(existing.properties.title == title for existing in sheets):
                raise ApiError(
                    400,
                    f'A sheet with the name "{title}" already exists. Please enter another name.',
                )

            if properties.sheet_id is not None:
                sheet_id = properties.sheet_id
            elif index == 0:
                sheet_id = 0
            else:
                sheet_id = self._new_sheet_id(used_ids)
            used_ids.add(sheet_id)

            sheets.append(
                Sheet(
                    properties=SheetProperties(
                        sheet_id=sheet_id,
                        title=title,
                        index=index,
                        sheet_type="GRID",
                        grid_properties=properties.grid_properties or GridProperties(),
                    )
                )
            )

        spreadsheet = Spreadsheet(
            spreadsheet_id=spreadsheet_id,
            properties=SpreadsheetProperties(
                title=requested.properties.title or "Untitled spreadsheet",
                locale=requested.properties.locale or "en_US",
                time_zone=requested.properties.time_zone or "Etc/GMT",
            ),
            sheets=sheets,
            spreadsheet_url=f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit",
        )

        self.spreadsheets[spreadsheet_id] = spreadsheet
        self.cells[spreadsheet_id] = {sheet.properties.sheet_id: {} for sheet in sheets}

        logger.info(
            f"Created spreadsheet '{spreadsheet.properties.title}' ({spreadsheet_id}) "
            f"with {len(sheets)} sheet(s)"
        )
        return to_wire(spreadsheet), 200

    def _get_spreadsheet(
        self, params: dict[str, Any], data: dict[str, Any], spreadsheet_id: str
    ) -> tuple[dict[str, Any], int]:
        return to_wire(self._get_stored(spreadsheet_id)), 200

    def _batch_update(
        self, params: dict[str, Any], data: dict[str, Any], spreadsheet_id: str
    ) -> tuple[dict[str, Any], int]:
        stored = self._get_stored(spreadsheet_id)
        try:
            batch = BatchUpdateSpreadsheetRequest.model_validate(data)
        except ValidationError as e:
            raise ApiError(400, f"Invalid batch update: {e}") from e

        # Requests apply atomically: work on copies and commit at the end
        working = stored.model_copy(deep=True)
        working_cells = {sheet_id: dict(cells) for sheet_id, cells in self.cells[spreadsheet_id].items()}

        handlers = {
            "addSheet": self._add_sheet,
            "deleteSheet": self._delete_sheet,
            "updateSpreadsheetProperties": self._update_spreadsheet_properties,
            "updateSheetProperties": self._update_sheet_properties,
        }

        replies = []
        for request in batch.requests:
            if len(request) != 1:
                raise ApiError(400, "Invalid requests: each request must set exactly one kind")
            kind, payload = next(iter(request.items()))
            handler = handlers.get(kind)
            if handler is None:
                raise ApiError(400, f"Unsupported request kind: {kind}")
            replies.append(handler(working, working_cells, payload or {}))

        self.spreadsheets[spreadsheet_id] = working
        self.cells[spreadsheet_id] = working_cells

        response = BatchUpdateSpreadsheetResponse(
            spreadsheet_id=spreadsheet_id,
            replies=replies,
            updated_spreadsheet=working if batch.include_spreadsheet_in_response else None,
        )
        return to_wire(response), 200

    def _add_sheet(
        self, spreadsheet: Spreadsheet, cells: dict[int, Cells], payload: dict[str, Any]
    ) -> dict[str, Any]:
        properties = SheetProperties.model_validate(payload.get("properties", {}))
        used_ids = {sheet.properties.sheet_id for sheet in spreadsheet.sheets}

        title = properties.title or f"Sheet{len(spreadsheet.sheets) + 1}"
        if spreadsheet.get_sheet(title) is not None:
            raise ApiError(
                400, f'A sheet with the name "{title}" already exists. Please enter another name.'
            )

        sheet_id = properties.sheet_id
        if sheet_id is None:
            sheet_id = self._new_sheet_id(used_ids)
        elif sheet_id in used_ids:
            raise ApiError(400, f"A sheet with the id {sheet_id} already exists")

        index = properties.index if properties.index is not None else len(spreadsheet.sheets)
        index = max(0, min(index, len(spreadsheet.sheets)))
        sheet = Sheet(
            properties=SheetProperties(
                sheet_id=sheet_id,
                title=title,
                index=index,
                sheet_type="GRID",
                grid_properties=properties.grid_properties or GridProperties(),
            )
        )
        spreadsheet.sheets.insert(index, sheet)
        self._reindex(spreadsheet)
        cells[sheet_id] = {}

        return {"addSheet": {"properties": to_wire(sheet.properties)}}

    def _delete_sheet(
        self, spreadsheet: Spreadsheet, cells: dict[int, Cells], payload: dict[str, Any]
    ) -> dict[str, Any]:
        sheet_id = payload.get("sheetId")
        sheet = self._find_sheet_by_id(spreadsheet, sheet_id)
        if len(spreadsheet.sheets) == 1:
            raise ApiError(400, "You can't remove all the sheets in a document.")

        spreadsheet.sheets.remove(sheet)
        self._reindex(spreadsheet)
        cells.pop(sheet_id, None)
        return {}

    def _update_spreadsheet_properties(
        self, spreadsheet: Spreadsheet, cells: dict[int, Cells], payload: dict[str, Any]
    ) -> dict[str, Any]:
        spreadsheet.properties = self._apply_fields(
            spreadsheet.properties, payload.get("properties", {}), payload.get("fields")
        )
        return {}

    def _update_sheet_properties(
        self, spreadsheet: Spreadsheet, cells: dict[int, Cells], payload: dict[str, Any]
    ) -> dict[str, Any]:
        requested = payload.get("properties", {})
        sheet = self._find_sheet_by_id(spreadsheet, requested.get("sheetId"))

        new_title = requested.get("title")
        if new_title and new_title != sheet.properties.title and spreadsheet.get_sheet(new_title):
            raise ApiError(
                400,
                f'A sheet with the name "{new_title}" already exists. Please enter another name.',
            )

        sheet.properties = self._apply_fields(sheet.properties, requested, payload.get("fields"))
        return {}

    def _apply_fields(self, current: Any, requested: dict[str, Any], fields: str | None) -> Any:
        if not fields:
            raise ApiError(400, "At least one field must be updated, but 'fields' is empty")

        merged = to_wire(current)
        names = list(requested) if fields.strip() == "*" else [f.strip() for f in fields.split(",")]
        for name in names:
            if name in requested:
                merged[name] = requested[name]
            else:
                merged.pop(name, None)

        try:
            return type(current).model_validate(merged)
        except ValidationError as e:
            raise ApiError(400, f"Invalid properties: {e}") from e

    # Values

    def _get_values(
        self, params: dict[str, Any], data: dict[str, Any], spreadsheet_id: str, range_text: str
    ) -> tuple[dict[str, Any], int]:
        spreadsheet = self._get_stored(spreadsheet_id)
        value_range = self._read_range(
            spreadsheet,
            range_text,
            self._enum_param(params, "majorDimension", MajorDimension, MajorDimension.ROWS),
            self._enum_param(
                params, "valueRenderOption", ValueRenderOption, ValueRenderOption.FORMATTED_VALUE
            ),
        )
        return to_wire(value_range), 200

    def _batch_get_values(
        self, params: dict[str, Any], data: dict[str, Any], spreadsheet_id: str
    ) -> tuple[dict[str, Any], int]:
        spreadsheet = self._get_stored(spreadsheet_id)
        ranges = params.get("ranges", [])
        if isinstance(ranges, str):
            ranges = [ranges]

        major_dimension = self._enum_param(params, "majorDimension", MajorDimension, MajorDimension.ROWS)
        render_option = self._enum_param(
            params, "valueRenderOption", ValueRenderOption, ValueRenderOption.FORMATTED_VALUE
        )
        response = BatchGetValuesResponse(
            spreadsheet_id=spreadsheet_id,
            value_ranges=[
                self._read_range(spreadsheet, range_text, major_dimension, render_option)
                for range_text in ranges
            ],
        )
        return to_wire(response), 200

    def _update_values(
        self, params: dict[str, Any], data: dict[str, Any], spreadsheet_id: str, range_text: str
    ) -> tuple[dict[str, Any], int]:
        spreadsheet = self._get_stored(spreadsheet_id)
        input_option = self._value_input_option(params)
        rows = self._rows_from_body(data)
        sheet, grid = self._resolve_range(spreadsheet, range_text)
        start_row, _, start_column, _ = grid.bounded(0, 0)

        response = self._write_rows(
            spreadsheet, sheet, start_row, start_column, rows, input_option, expand=False
        )
        return to_wire(response), 200

    def _append_values(
        self, params: dict[str, Any], data: dict[str, Any], spreadsheet_id: str, range_text: str
    ) -> tuple[dict[str, Any], int]:
        spreadsheet = self._get_stored(spreadsheet_id)
        input_option = self._value_input_option(params)
        rows = self._rows_from_body(data)
        sheet, grid = self._resolve_range(spreadsheet, range_text)
        grid_properties = sheet.properties.grid_properties or GridProperties()
        start_row, _, start_column, _ = grid.bounded(
            grid_properties.row_count, grid_properties.column_count
        )

        # The table is the occupied block below and right of the range start
        cells = self.cells[spreadsheet_id][sheet.properties.sheet_id]
        occupied = [
            (row, column) for row, column in cells if row >= start_row and column >= start_column
        ]

        table_range = None
        target_row = start_row
        if occupied:
            first_row = min(row for row, _ in occupied)
            last_row = max(row for row, _ in occupied)
            first_column = min(column for _, column in occupied)
            last_column = max(column for _, column in occupied)
            table_range = format_a1(
                sheet.properties.title, first_row, last_row + 1, first_column, last_column + 1
            )
            target_row = last_row + 1

        updates = self._write_rows(
            spreadsheet, sheet, target_row, start_column, rows, input_option, expand=True
        )
        response = AppendValuesResponse(
            spreadsheet_id=spreadsheet_id, table_range=table_range, updates=updates
        )
        return to_wire(response), 200

    def _clear_values(
        self, params: dict[str, Any], data: dict[str, Any], spreadsheet_id: str, range_text: str
    ) -> tuple[dict[str, Any], int]:
        spreadsheet = self._get_stored(spreadsheet_id)
        sheet, grid = self._resolve_range(spreadsheet, range_text)
        grid_properties = sheet.properties.grid_properties or GridProperties()
        start_row, end_row, start_column, end_column = grid.bounded(
            grid_properties.row_count, grid_properties.column_count
        )

        cells = self.cells[spreadsheet_id][sheet.properties.sheet_id]
        for row, column in list(cells):
            if start_row <= row < end_row and start_column <= column < end_column:
                del cells[(row, column)]

        response = ClearValuesResponse(
            spreadsheet_id=spreadsheet_id,
            cleared_range=format_a1(sheet.properties.title, start_row, end_row, start_column, end_column),
        )
        return to_wire(response), 200

    def _read_range(
        self,
        spreadsheet: Spreadsheet,
        range_text: str,
        major_dimension: MajorDimension,
        render_option: ValueRenderOption,
    ) -> ValueRange:
        sheet, grid = self._resolve_range(spreadsheet, range_text)
        grid_properties = sheet.properties.grid_properties or GridProperties()
        start_row, end_row, start_column, end_column = grid.bounded(
            grid_properties.row_count, grid_properties.column_count
        )

        cells = self.cells[spreadsheet.spreadsheet_id][sheet.properties.sheet_id]
        in_range = {
            (row, column): value
            for (row, column), value in cells.items()
            if start_row <= row < end_row and start_column <= column < end_column
        }

        rows: list[list[Any]] = []
        if in_range:
            last_row = max(row for row, _ in in_range)
            last_column = max(column for _, column in in_range)
            for row in range(start_row, last_row + 1):
                rows.append([in_range.get((row, column)) for column in range(start_column, last_column + 1)])

        if major_dimension == MajorDimension.COLUMNS:
            rows = [list(column) for column in zip(*rows)] if rows else []

        values = [self._trim_row(row, render_option) for row in rows]
        while values and not values[-1]:
            values.pop()

        return ValueRange(
            range=format_a1(sheet.properties.title, start_row, end_row, start_column, end_column),
            major_dimension=major_dimension,
            values=values or None,
        )

    def _trim_row(self, row: list[Any], render_option: ValueRenderOption) -> list[Any]:
        while row and row[-1] is None:
            row = row[:-1]
        return ["" if value is None else render_value(value, render_option) for value in row]

    def _write_rows(
        self,
        spreadsheet: Spreadsheet,
        sheet: Sheet,
        start_row: int,
        start_column: int,
        rows: list[list[Any]],
        input_option: ValueInputOption,
        expand: bool,
    ) -> UpdateValuesResponse:
        spreadsheet_id = spreadsheet.spreadsheet_id
        if not rows:
            return UpdateValuesResponse(spreadsheet_id=spreadsheet_id)

        height = len(rows)
        width = max(len(row) for row in rows)
        grid_properties = sheet.properties.grid_properties or GridProperties()
        end_row = start_row + height
        end_column = start_column + max(width, 1)

        if end_row > grid_properties.row_count or end_column > grid_properties.column_count:
            if not expand:
                raise ApiError(
                    400,
                    f"Range ('{format_a1(sheet.properties.title, start_row, end_row, start_column, end_column)}') "
                    f"exceeds grid limits. Max rows: {grid_properties.row_count}, "
                    f"max columns: {grid_properties.column_count}",
                )
            sheet.properties.grid_properties = GridProperties(
                row_count=max(end_row, grid_properties.row_count),
                column_count=max(end_column, grid_properties.column_count),
            )

        cells = self.cells[spreadsheet_id][sheet.properties.sheet_id]
        updated_cells = 0
        for row_offset, row in enumerate(rows):
            for column_offset, value in enumerate(row):
                if value is None:
                    # null leaves the cell unchanged
                    continue
                key = (start_row + row_offset, start_column + column_offset)
                if value == "":
                    cells.pop(key, None)
                elif input_option == ValueInputOption.USER_ENTERED:
                    cells[key] = parse_user_entered(value)
                else:
                    cells[key] = value
                updated_cells += 1

        logger.debug(
            f"Wrote {updated_cells} cell(s) to {sheet.properties.title} of {spreadsheet_id} "
            f"using {input_option.value}"
        )
        return UpdateValuesResponse(
            spreadsheet_id=spreadsheet_id,
            updated_range=format_a1(sheet.properties.title, start_row, end_row, start_column, end_column),
            updated_rows=height,
            updated_columns=width,
            updated_cells=updated_cells,
        )

    # Helpers

    def _get_stored(self, spreadsheet_id: str) -> Spreadsheet:
        spreadsheet = self.spreadsheets.get(spreadsheet_id)
        if spreadsheet is None:
            raise ApiError(404, "Requested entity was not found.")
        return spreadsheet

    def _resolve_range(self, spreadsheet: Spreadsheet, range_text: str) -> tuple[Sheet, GridRange]:
        try:
            grid = parse_a1(range_text)
        except ValueError as e:
            raise ApiError(400, str(e)) from e

        if grid.sheet_title is None:
            return spreadsheet.sheets[0], grid

        sheet = spreadsheet.get_sheet(grid.sheet_title)
        if sheet is None:
            raise ApiError(400, f"Unable to parse range: {range_text}")
        return sheet, grid

    def _find_sheet_by_id(self, spreadsheet: Spreadsheet, sheet_id: Any) -> Sheet:
        for sheet in spreadsheet.sheets:
            if sheet.properties.sheet_id == sheet_id:
                return sheet
        raise ApiError(400, f"No grid with id: {sheet_id}")

    def _reindex(self, spreadsheet: Spreadsheet) -> None:
        for index, sheet in enumerate(spreadsheet.sheets):
            sheet.properties.index = index

    def _new_sheet_id(self, used_ids: set[int]) -> int:
        while True:
            candidate = random.randint(1, 2**31 - 1)
            if candidate not in used_ids:
                return candidate

    def _rows_from_body(self, data: dict[str, Any]) -> list[list[Any]]:
        try:
            value_range = ValueRange.model_validate(data)
        except ValidationError as e:
            raise ApiError(400, f"Invalid value range: {e}") from e

        rows = value_range.values or []
        if value_range.major_dimension == MajorDimension.COLUMNS and rows:
            height = max(len(column) for column in rows)
            rows = [
                [column[index] if index < len(column) else None for column in rows]
                for index in range(height)
            ]
        return rows

    def _value_input_option(self, params: dict[str, Any]) -> ValueInputOption:
        if not params.get("valueInputOption"):
            raise ApiError(400, "'valueInputOption' is required but not specified")
        return self._enum_param(params, "valueInputOption", ValueInputOption, ValueInputOption.RAW)

    def _enum_param(self, params: dict[str, Any], name: str, enum_class: Any, default: Any) -> Any:
        value = params.get(name)
        if value is None:
            return default
        try:
            return enum_class(value)
        except ValueError as e:
            raise ApiError(400, f"Invalid value at '{name}': \"{value}\"") from e
