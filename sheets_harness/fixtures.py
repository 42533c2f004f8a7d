"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Lazily created spreadsheet fixtures.

A :class:`SpreadsheetFixtureBuilder` creates at most one spreadsheet, seeds it
with test data at most once, and returns the memoized representation on
every later call.
"""

import random
from enum import Enum

from sheets_harness.connector import IntegrationContext
from sheets_harness.core.logging import get_logger
from sheets_harness.models import (
    Sheet,
    SheetProperties,
    Spreadsheet,
    SpreadsheetProperties,
    ValueInputOption,
    ValueRange,
)

logger = get_logger(__name__)

TEST_SHEET = "TestData"
TEST_DATA_RANGE = f"{TEST_SHEET}!A1:B2"
TEST_DATA = [["a1", "b1"], ["a2", "b2"]]


class FixtureState(str, Enum):
    """Provisioning state of the fixture."""

    ABSENT = "absent"
    SPREADSHEET_ONLY = "spreadsheet-only"
    SPREADSHEET_WITH_DATA = "spreadsheet-with-data"


class SpreadsheetFixtureBuilder:
    """Creates and memoizes the test spreadsheet for one test class."""

    def __init__(
        self,
        context: IntegrationContext,
        component_name: str = "google-sheets",
        sheet_title: str = TEST_SHEET,
        title_prefix: str = "camel-sheets-",
    ):
        self.context = context
        self.component_name = component_name
        self.sheet_title = sheet_title
        self.title_prefix = title_prefix
        self.state = FixtureState.ABSENT
        self._spreadsheet: Spreadsheet | None = None

    @property
    def data_range(self) -> str:
        return f"{self.sheet_title}!A1:B2"

    def get_spreadsheet(self) -> Spreadsheet:
        """
        Return the test spreadsheet, creating it on first use.

        Raises:
            ExecutionError: If the create request fails
        """
        if self.state == FixtureState.ABSENT:
            title = f"{self.title_prefix}{random.randint(0, 2**31 - 1)}"
            requested = Spreadsheet(
                properties=SpreadsheetProperties(title=title),
                sheets=[Sheet(properties=SheetProperties(title=self.sheet_title))],
            )
            self._spreadsheet = self.context.request_body(
                f"{self.component_name}://spreadsheets/create?inBody=content", requested
            )
            self.state = FixtureState.SPREADSHEET_ONLY
            logger.info(f"Created test spreadsheet '{title}' ({self._spreadsheet.spreadsheet_id})")
        return self._spreadsheet

    def get_spreadsheet_with_test_data(self) -> Spreadsheet:
        """
        Return the test spreadsheet with ``TEST_DATA`` written at ``A1:B2``.

        The values are written once, with ``USER_ENTERED`` interpretation.

        Raises:
            ExecutionError: If the create or update request fails
        """
        spreadsheet = self.get_spreadsheet()
        if self.state != FixtureState.SPREADSHEET_WITH_DATA:
            self.context.request_body_and_headers(
                f"{self.component_name}://data/update?inBody=values",
                ValueRange(range=self.data_range, values=TEST_DATA),
                {
                    "GoogleSheets.spreadsheetId": spreadsheet.spreadsheet_id,
                    "GoogleSheets.range": self.data_range,
                    "GoogleSheets.valueInputOption": ValueInputOption.USER_ENTERED.value,
                },
            )
            self.state = FixtureState.SPREADSHEET_WITH_DATA
            logger.info(f"Seeded {self.data_range} of {spreadsheet.spreadsheet_id}")
        return spreadsheet

    def set_spreadsheet(self, spreadsheet: Spreadsheet | None) -> None:
        """Replace the memoized spreadsheet.

        A supplied spreadsheet counts as created but not seeded; None returns
        the builder to its initial state.
        """
        self._spreadsheet = spreadsheet
        self.state = FixtureState.ABSENT if spreadsheet is None else FixtureState.SPREADSHEET_ONLY
