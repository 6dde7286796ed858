"""Google Sheets loader for lesson content rows."""
import logging
import re
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from models.source_row import SheetDataStats, SourceRow
from config import (
    GOOGLE_SHEETS_API_KEY,
    GOOGLE_SHEETS_SPREADSHEET_ID,
    SHEET_HEADER_ROW_INDEX,
    SHEET_RANGE_COLUMNS,
    SHEET_FETCH_DELAY,
    KNOWLEDGE_CATEGORY,
    CATEGORY_BY_SHEET_PREFIX,
    DEFAULT_CATEGORY,
)

logger = logging.getLogger(__name__)

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"

_WHITESPACE = re.compile(r"\s+")


class SheetsError(RuntimeError):
    """Google Sheets request failure."""

    def __init__(self, message: str, status: Optional[int] = None, sheet_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.sheet_name = sheet_name


def header_key(header: str) -> str:
    """Map a header cell to a field name: lower-cased, whitespace to underscores."""
    return _WHITESPACE.sub("_", header.strip().lower())


def parse_sheet_values(
    values: Sequence[Sequence[Any]],
    header_row_index: int = SHEET_HEADER_ROW_INDEX
) -> List[SourceRow]:
    """
    Turn a raw value grid into rows.

    The header sits on row ``header_row_index`` (the 6th row by default);
    everything above it is sheet decoration. Only rows with both a
    ``message_id`` and ``contents`` are kept.
    """
    if not values or len(values) <= header_row_index:
        return []

    headers = [header_key(str(h)) for h in values[header_row_index] or []]
    rows: List[SourceRow] = []

    for raw_row in values[header_row_index + 1:]:
        data: Dict[str, Any] = {}
        for index, key in enumerate(headers):
            value = raw_row[index] if index < len(raw_row) else ""
            if key and value:
                data[key] = value

        if data.get("message_id") and data.get("contents"):
            rows.append(SourceRow.from_dict(data))

    return rows


def sheet_data_stats(sheet_name: str, rows: Sequence[SourceRow]) -> SheetDataStats:
    """Count valid rows and collect the sections and types a sheet uses."""
    valid_rows = sum(1 for row in rows if row.contents and row.contents.strip())
    return SheetDataStats(
        sheet_name=sheet_name,
        total_rows=len(rows),
        valid_rows=valid_rows,
        empty_rows=len(rows) - valid_rows,
        sections={row.section for row in rows if row.section},
        types={row.type for row in rows if row.type}
    )


def resolve_category(
    sheet_name: str,
    override: Optional[str] = KNOWLEDGE_CATEGORY,
    prefixes: Mapping[str, str] = CATEGORY_BY_SHEET_PREFIX,
    default: str = DEFAULT_CATEGORY
) -> str:
    """
    Pick the knowledge category for a sheet.

    An explicit override (``KNOWLEDGE_CATEGORY``) wins, then the sheet-name
    prefix map, then the default.
    """
    if override:
        return override

    for prefix, category in prefixes.items():
        if sheet_name.startswith(prefix):
            return category

    return default


class SheetLoader:
    """Reads lesson sheets through the Google Sheets values API."""

    def __init__(
        self,
        api_key: Optional[str] = GOOGLE_SHEETS_API_KEY,
        spreadsheet_id: Optional[str] = GOOGLE_SHEETS_SPREADSHEET_ID,
        timeout: float = 30.0
    ):
        """
        Initialize SheetLoader.

        Args:
            api_key: Google Sheets API key
            spreadsheet_id: Spreadsheet holding one sheet per lesson
            timeout: Request timeout in seconds
        """
        if not api_key or not spreadsheet_id:
            raise ValueError(
                "GOOGLE_SHEETS_API_KEY and GOOGLE_SHEETS_SPREADSHEET_ID environment variables are required"
            )

        self.api_key = api_key
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout

    def get_sheet_names(self) -> List[str]:
        """
        List the titles of every sheet in the spreadsheet.

        Raises:
            SheetsError: If the request fails or the response is malformed
        """
        data = self._get(f"{SHEETS_API_BASE}/{self.spreadsheet_id}")

        sheets = data.get("sheets")
        if not isinstance(sheets, list):
            raise SheetsError("Invalid spreadsheet structure")

        try:
            return [sheet["properties"]["title"] for sheet in sheets]
        except (KeyError, TypeError) as e:
            raise SheetsError(f"Invalid sheet entry in spreadsheet response: {e}") from e

    def fetch_rows(self, sheet_name: str) -> List[SourceRow]:
        """
        Fetch and parse the rows of one sheet.

        Args:
            sheet_name: Sheet title

        Returns:
            Rows that have both a message id and contents

        Raises:
            SheetsError: If the request fails
        """
        cell_range = quote(f"{sheet_name}!{SHEET_RANGE_COLUMNS}", safe="")
        data = self._get(
            f"{SHEETS_API_BASE}/{self.spreadsheet_id}/values/{cell_range}",
            sheet_name=sheet_name
        )

        values = data.get("values")
        if not isinstance(values, list):
            return []

        rows = parse_sheet_values(values)
        logger.debug(f"Parsed {len(rows)} rows from {sheet_name}")
        return rows

    def fetch_many(
        self,
        sheet_names: Sequence[str],
        on_progress: Optional[Callable[[int, int, str], None]] = None,
        delay_seconds: float = SHEET_FETCH_DELAY
    ) -> Dict[str, List[SourceRow]]:
        """
        Fetch several sheets, skipping any that fail.

        Returns:
            Rows keyed by sheet name, for the sheets that loaded
        """
        results: Dict[str, List[SourceRow]] = {}
        failed = 0

        for i, sheet_name in enumerate(sheet_names):
            if on_progress:
                on_progress(i + 1, len(sheet_names), sheet_name)

            try:
                results[sheet_name] = self.fetch_rows(sheet_name)
            except SheetsError as e:
                failed += 1
                logger.error(f"Failed to fetch sheet {sheet_name}: {e.message}")

            if i < len(sheet_names) - 1 and delay_seconds > 0:
                time.sleep(delay_seconds)

        if failed:
            logger.warning(f"Failed to fetch {failed} out of {len(sheet_names)} sheets")

        return results

    def _get(self, url: str, sheet_name: Optional[str] = None) -> Dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url, params={"key": self.api_key})
        except httpx.RequestError as e:
            raise SheetsError(f"Network error: {str(e)}", None, sheet_name) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            error = data["error"]
            raise SheetsError(error.get("message", "Unknown error"), error.get("code"), sheet_name)

        if response.status_code != 200:
            raise SheetsError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                response.status_code,
                sheet_name
            )

        if not isinstance(data, dict):
            raise SheetsError("Invalid response from Google Sheets", response.status_code, sheet_name)

        return data
