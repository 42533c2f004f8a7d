"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
A1 range notation.

Parses ranges such as ``TestData!A1:B2``, ``'My Sheet'!A:C``, ``2:5`` or a
bare sheet name into zero-based, end-exclusive grid coordinates, and formats
coordinates back into A1 strings the way the Sheets API reports them.
"""

import re
from dataclasses import dataclass

_CELLS_PATTERN = re.compile(r"^([A-Za-z]*)(\d*)(?::([A-Za-z]*)(\d*))?$")
_PLAIN_TITLE_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
_SINGLE_CELL_PATTERN = re.compile(r"^[A-Za-z]{1,3}\d+$")


def column_to_index(letters: str) -> int:
    """Convert column letters (A, Z, AA) to a zero-based index."""
    index = 0
    for char in letters.upper():
        if not "A" <= char <= "Z":
            raise ValueError(f"Invalid column letters: {letters}")
        index = index * 26 + (ord(char) - ord("A") + 1)
    if index == 0:
        raise ValueError("Column letters must not be empty")
    return index - 1


def index_to_column(index: int) -> str:
    """Convert a zero-based column index to letters."""
    if index < 0:
        raise ValueError(f"Column index must be non-negative: {index}")
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def quote_sheet_title(title: str) -> str:
    """Quote a sheet title for use in A1 notation when it needs quoting."""
    if _PLAIN_TITLE_PATTERN.match(title):
        return title
    return "'" + title.replace("'", "''") + "'"


def _unquote_sheet_title(title: str) -> str:
    if len(title) >= 2 and title.startswith("'") and title.endswith("'"):
        return title[1:-1].replace("''", "'")
    return title


@dataclass(frozen=True)
class GridRange:
    """A rectangular range. ``None`` bounds are open (whole rows or columns)."""

    sheet_title: str | None = None
    start_row: int | None = None
    end_row: int | None = None
    start_column: int | None = None
    end_column: int | None = None

    def bounded(self, row_count: int, column_count: int) -> tuple[int, int, int, int]:
        """
        Resolve open bounds against a grid size.

        Returns:
            Tuple of (start_row, end_row, start_column, end_column)
        """
        return (
            self.start_row if self.start_row is not None else 0,
            self.end_row if self.end_row is not None else row_count,
            self.start_column if self.start_column is not None else 0,
            self.end_column if self.end_column is not None else column_count,
        )


def parse_a1(text: str) -> GridRange:
    """
    Parse an A1 notation range.

    Args:
        text: The range, with or without a sheet title

    Returns:
        The parsed range

    Raises:
        ValueError: If the range cannot be parsed
    """
    if not text or not text.strip():
        raise ValueError("Unable to parse range: empty range")

    sheet_part, separator, cells = text.rpartition("!")
    if not separator:
        # A lone token is either a cell reference or a sheet title
        is_cells = _SINGLE_CELL_PATTERN.match(text) or (":" in text and _CELLS_PATTERN.match(text))
        if not is_cells:
            return GridRange(sheet_title=_unquote_sheet_title(text))

    sheet_title = _unquote_sheet_title(sheet_part) if sheet_part else None
    if not cells:
        if sheet_title is None:
            raise ValueError(f"Unable to parse range: {text}")
        return GridRange(sheet_title=sheet_title)

    match = _CELLS_PATTERN.match(cells)
    if not match:
        raise ValueError(f"Unable to parse range: {text}")

    start_col, start_row, end_col, end_row = match.groups()
    is_single = end_col is None and end_row is None
    if not start_col and not start_row:
        raise ValueError(f"Unable to parse range: {text}")

    start_column = column_to_index(start_col) if start_col else None
    start_row_index = int(start_row) - 1 if start_row else None
    if start_row_index is not None and start_row_index < 0:
        raise ValueError(f"Unable to parse range: {text}")

    if is_single:
        return GridRange(
            sheet_title=sheet_title,
            start_row=start_row_index,
            end_row=start_row_index + 1 if start_row_index is not None else None,
            start_column=start_column,
            end_column=start_column + 1 if start_column is not None else None,
        )

    end_column = column_to_index(end_col) + 1 if end_col else None
    end_row_index = int(end_row) if end_row else None
    if end_row_index is not None and end_row_index < 1:
        raise ValueError(f"Unable to parse range: {text}")

    # Reversed corners (B2:A1) describe the same rectangle
    if start_column is not None and end_column is not None and end_column <= start_column:
        start_column, end_column = end_column - 1, start_column + 1
    if (
        start_row_index is not None
        and end_row_index is not None
        and end_row_index <= start_row_index
    ):
        start_row_index, end_row_index = end_row_index - 1, start_row_index + 1

    # "A:B" and "1:2" leave the other axis open; "A2:B" leaves the end row open
    return GridRange(
        sheet_title=sheet_title,
        start_row=start_row_index,
        end_row=end_row_index,
        start_column=start_column if start_column is not None else (0 if end_column else None),
        end_column=end_column,
    )


def format_a1(
    sheet_title: str,
    start_row: int,
    end_row: int,
    start_column: int,
    end_column: int,
) -> str:
    """
    Format zero-based, end-exclusive coordinates as an A1 range.

    A single cell is formatted without the ``:`` part.
    """
    start = f"{index_to_column(start_column)}{start_row + 1}"
    end = f"{index_to_column(end_column - 1)}{end_row}"
    cells = start if start == end else f"{start}:{end}"
    return f"{quote_sheet_title(sheet_title)}!{cells}"
