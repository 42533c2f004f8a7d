"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# Wire names are camelCase; Python attribute names are snake_case
_CAMEL_CONFIG = {"populate_by_name": True}


class ValueInputOption(str, Enum):
    """How input values are interpreted on write."""

    RAW = "RAW"
    USER_ENTERED = "USER_ENTERED"


class ValueRenderOption(str, Enum):
    """How values are rendered on read."""

    FORMATTED_VALUE = "FORMATTED_VALUE"
    UNFORMATTED_VALUE = "UNFORMATTED_VALUE"
    FORMULA = "FORMULA"


class MajorDimension(str, Enum):
    """Whether a value block is organized by rows or columns."""

    ROWS = "ROWS"
    COLUMNS = "COLUMNS"


class GridProperties(BaseModel):
    """Size of a grid sheet."""

    row_count: int = Field(1000, alias="rowCount")
    column_count: int = Field(26, alias="columnCount")

    model_config = _CAMEL_CONFIG


class SheetProperties(BaseModel):
    """Properties of a single sheet (tab)."""

    sheet_id: int | None = Field(None, alias="sheetId")
    title: str | None = None
    index: int | None = None
    sheet_type: str | None = Field(None, alias="sheetType")
    grid_properties: GridProperties | None = Field(None, alias="gridProperties")

    model_config = _CAMEL_CONFIG


class Sheet(BaseModel):
    """A sheet within a spreadsheet."""

    properties: SheetProperties = Field(default_factory=SheetProperties)

    model_config = _CAMEL_CONFIG


class SpreadsheetProperties(BaseModel):
    """Spreadsheet level properties."""

    title: str | None = None
    locale: str | None = None
    time_zone: str | None = Field(None, alias="timeZone")

    model_config = _CAMEL_CONFIG


class Spreadsheet(BaseModel):
    """A spreadsheet resource."""

    spreadsheet_id: str | None = Field(None, alias="spreadsheetId")
    properties: SpreadsheetProperties = Field(default_factory=SpreadsheetProperties)
    sheets: list[Sheet] = Field(default_factory=list)
    spreadsheet_url: str | None = Field(None, alias="spreadsheetUrl")

    model_config = _CAMEL_CONFIG

    def get_sheet(self, title: str) -> Sheet | None:
        """Find a sheet by its title."""
        for sheet in self.sheets:
            if sheet.properties.title == title:
                return sheet
        return None


class ValueRange(BaseModel):
    """A block of values in a range."""

    range: str | None = None
    major_dimension: MajorDimension | None = Field(None, alias="majorDimension")
    values: list[list[Any]] | None = None

    model_config = _CAMEL_CONFIG


class UpdateValuesResponse(BaseModel):
    """Result of a values update."""

    spreadsheet_id: str = Field(..., alias="spreadsheetId")
    updated_range: str | None = Field(None, alias="updatedRange")
    updated_rows: int = Field(0, alias="updatedRows")
    updated_columns: int = Field(0, alias="updatedColumns")
    updated_cells: int = Field(0, alias="updatedCells")

    model_config = _CAMEL_CONFIG


class AppendValuesResponse(BaseModel):
    """Result of a values append."""

    spreadsheet_id: str = Field(..., alias="spreadsheetId")
    table_range: str | None = Field(None, alias="tableRange")
    updates: UpdateValuesResponse | None = None

    model_config = _CAMEL_CONFIG


class ClearValuesResponse(BaseModel):
    """Result of a values clear."""

    spreadsheet_id: str = Field(..., alias="spreadsheetId")
    cleared_range: str | None = Field(None, alias="clearedRange")

    model_config = _CAMEL_CONFIG


class BatchGetValuesResponse(BaseModel):
    """Result of reading several ranges at once."""

    spreadsheet_id: str = Field(..., alias="spreadsheetId")
    value_ranges: list[ValueRange] = Field(default_factory=list, alias="valueRanges")

    model_config = _CAMEL_CONFIG


class BatchUpdateSpreadsheetRequest(BaseModel):
    """A list of structural changes applied to a spreadsheet."""

    requests: list[dict[str, Any]] = Field(default_factory=list)
    include_spreadsheet_in_response: bool = Field(False, alias="includeSpreadsheetInResponse")

    model_config = _CAMEL_CONFIG


class BatchUpdateSpreadsheetResponse(BaseModel):
    """Replies to a batch update, one per request."""

    spreadsheet_id: str = Field(..., alias="spreadsheetId")
    replies: list[dict[str, Any]] = Field(default_factory=list)
    updated_spreadsheet: Spreadsheet | None = Field(None, alias="updatedSpreadsheet")

    model_config = _CAMEL_CONFIG


class AccessToken(BaseModel):
    """OAuth token endpoint response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600


def to_wire(model: BaseModel) -> dict[str, Any]:
    """Serialize a model with wire (camelCase) names, dropping unset fields."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
