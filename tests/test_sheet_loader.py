"""Unit tests for SheetLoader and sheet parsing helpers."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch, MagicMock
import httpx
from models.source_row import SourceRow
from services.sheet_loader import (
    SheetLoader,
    SheetsError,
    header_key,
    parse_sheet_values,
    resolve_category,
    sheet_data_stats,
)

DECORATION = [["Lesson title"], [], ["Author"], [], ["Notes"]]
HEADER = ["Message ID", "Section", "Type", "Contents", "Choices", "Correct Answer", "Video URL"]


def json_response(data, status_code=200, reason_phrase="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason_phrase = reason_phrase
    response.json.return_value = data
    return response


def mock_http(mock_client_class, **get_kwargs):
    mock_client = MagicMock()
    get = mock_client.__enter__.return_value.get
    for key, value in get_kwargs.items():
        setattr(get, key, value)
    mock_client_class.return_value = mock_client
    return get


class TestParsing:
    """Test suite for header mapping and value parsing."""

    def test_header_key(self):
        assert header_key("Message ID") == "message_id"
        assert header_key("  Correct   Answer ") == "correct_answer"
        assert header_key("contents") == "contents"

    def test_parse_sheet_values(self):
        values = DECORATION + [
            HEADER,
            ["m-1", "Intro", "text", "はじめに"],
            ["m-2", "Lecture", "quiz", "問題文", "A\nB", "B", "https://video"],
            ["", "Lecture", "text", "IDなし"],
            ["m-4", "Outro", "text", ""],
        ]

        rows = parse_sheet_values(values)

        assert rows == [
            SourceRow(message_id="m-1", contents="はじめに", section="Intro", type="text"),
            SourceRow(
                message_id="m-2",
                contents="問題文",
                section="Lecture",
                type="quiz",
                choices="A\nB",
                correct_answer="B",
                extra={"video_url": "https://video"}
            ),
        ]

    def test_parse_sheet_values_too_short(self):
        assert parse_sheet_values([]) == []
        assert parse_sheet_values(DECORATION) == []

    def test_sheet_data_stats(self):
        rows = [
            SourceRow(message_id="1", contents="a", section="Intro", type="text"),
            SourceRow(message_id="2", contents="  ", section="Lecture", type="quiz"),
            SourceRow(message_id="3", contents="b", section="Lecture", type="text"),
        ]

        stats = sheet_data_stats("M6CH01", rows)

        assert stats.total_rows == 3
        assert stats.valid_rows == 2
        assert stats.empty_rows == 1
        assert stats.sections == {"Intro", "Lecture"}
        assert stats.types == {"text", "quiz"}


class TestResolveCategory:
    """Test suite for resolve_category()."""

    def test_override_wins(self):
        assert resolve_category("M6CH01", override="BtoB") == "BtoB"

    def test_prefix_map(self):
        assert resolve_category("B6CH03", override=None) == "BtoB"
        assert resolve_category("M6CH03", override=None) == "BtoC"

    def test_default(self):
        assert resolve_category("Other", override=None) == "BtoC"
        assert resolve_category("Other", override=None, prefixes={}, default="BtoB") == "BtoB"


class TestSheetLoader:
    """Test suite for SheetLoader."""

    @pytest.fixture
    def loader(self):
        return SheetLoader(api_key="test_key", spreadsheet_id="sheet123")

    def test_initialization_without_credentials(self):
        with pytest.raises(ValueError, match="GOOGLE_SHEETS_API_KEY"):
            SheetLoader(api_key=None, spreadsheet_id="sheet123")
        with pytest.raises(ValueError, match="GOOGLE_SHEETS_SPREADSHEET_ID"):
            SheetLoader(api_key="test_key", spreadsheet_id=None)

    @patch('httpx.Client')
    def test_get_sheet_names(self, mock_client_class, loader):
        get = mock_http(mock_client_class, return_value=json_response({
            "sheets": [{"properties": {"title": "M6CH01"}}, {"properties": {"title": "M6CH02"}}]
        }))

        assert loader.get_sheet_names() == ["M6CH01", "M6CH02"]
        url = get.call_args[0][0]
        assert url == "https://sheets.googleapis.com/v4/spreadsheets/sheet123"
        assert get.call_args.kwargs["params"] == {"key": "test_key"}

    @patch('httpx.Client')
    def test_get_sheet_names_invalid_structure(self, mock_client_class, loader):
        mock_http(mock_client_class, return_value=json_response({"spreadsheetId": "sheet123"}))

        with pytest.raises(SheetsError, match="Invalid spreadsheet structure"):
            loader.get_sheet_names()

    @patch('httpx.Client')
    def test_get_sheet_names_entry_without_title(self, mock_client_class, loader):
        mock_http(mock_client_class, return_value=json_response({"sheets": [{"properties": {}}]}))

        with pytest.raises(SheetsError, match="Invalid sheet entry"):
            loader.get_sheet_names()

    @patch('httpx.Client')
    def test_fetch_rows(self, mock_client_class, loader):
        get = mock_http(mock_client_class, return_value=json_response({
            "values": DECORATION + [HEADER, ["m-1", "Intro", "text", "はじめに"]]
        }))

        rows = loader.fetch_rows("M6CH 01")

        assert [row.message_id for row in rows] == ["m-1"]
        assert get.call_args[0][0].endswith("/sheet123/values/M6CH%2001%21A%3AZ")

    @patch('httpx.Client')
    def test_fetch_rows_without_values(self, mock_client_class, loader):
        mock_http(mock_client_class, return_value=json_response({"range": "M6CH01!A1:Z1"}))

        assert loader.fetch_rows("M6CH01") == []

    @patch('httpx.Client')
    def test_api_error_payload(self, mock_client_class, loader):
        mock_http(mock_client_class, return_value=json_response(
            {"error": {"code": 400, "message": "Unable to parse range: Missing"}},
            status_code=400,
            reason_phrase="Bad Request"
        ))

        with pytest.raises(SheetsError, match="Unable to parse range") as exc_info:
            loader.fetch_rows("Missing")
        assert exc_info.value.status == 400
        assert exc_info.value.sheet_name == "Missing"

    @patch('httpx.Client')
    def test_http_error_without_payload(self, mock_client_class, loader):
        response = json_response(None, status_code=503, reason_phrase="Service Unavailable")
        response.json.side_effect = ValueError("not json")
        mock_http(mock_client_class, return_value=response)

        with pytest.raises(SheetsError, match="HTTP 503: Service Unavailable"):
            loader.fetch_rows("M6CH01")

    @patch('httpx.Client')
    def test_network_error(self, mock_client_class, loader):
        mock_http(mock_client_class, side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(SheetsError, match="Network error"):
            loader.get_sheet_names()

    @patch('time.sleep')
    def test_fetch_many_skips_failures(self, mock_sleep, loader):
        rows = [SourceRow(message_id="m-1", contents="はじめに")]

        def fetch_rows(name):
            if name == "bad":
                raise SheetsError("boom", 500, name)
            return rows

        progress = []
        with patch.object(loader, 'fetch_rows', side_effect=fetch_rows):
            results = loader.fetch_many(
                ["M6CH01", "bad", "M6CH03"],
                on_progress=lambda i, total, name: progress.append((i, total, name)),
                delay_seconds=0.1
            )

        assert results == {"M6CH01": rows, "M6CH03": rows}
        assert progress == [(1, 3, "M6CH01"), (2, 3, "bad"), (3, 3, "M6CH03")]
        assert mock_sleep.call_count == 2
