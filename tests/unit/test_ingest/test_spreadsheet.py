"""
test_spreadsheet.py - 스프레드시트 파서 테스트

테스트 대상:
- parse_spreadsheet: 헤더/행 추출, 빈 행 제외, 첫 시트만
- display_value: 날짜, 불리언, 숫자, 리치 텍스트 정규화
- validate_dataset: 사용 가능 여부 메시지
"""

import io
from datetime import date, datetime
from decimal import Decimal

import pytest
from openpyxl import Workbook
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.cell.text import InlineFont

from src.domain.errors import DatasetError, ErrorCodes
from src.domain.schemas import TabularDataset
from src.ingest.spreadsheet import display_value, parse_spreadsheet, validate_dataset

# =============================================================================
# parse_spreadsheet 테스트
# =============================================================================


class TestParseSpreadsheet:
    """parse_spreadsheet 정상 케이스."""

    def test_headers_and_rows(self, receipt_xlsx: bytes):
        dataset = parse_spreadsheet(receipt_xlsx)

        assert dataset.headers == ["NAME", "AMOUNT"]
        assert dataset.rows == [
            {"NAME": "Ana", "AMOUNT": "10"},
            {"NAME": "Bob", "AMOUNT": "20"},
        ]
        assert dataset.row_count == 2

    def test_blank_rows_skipped(self, make_xlsx):
        content = make_xlsx([
            ["NAME", "AMOUNT"],
            ["Ana", 10],
            [None, None],
            ["Bob", 20],
        ])

        dataset = parse_spreadsheet(content)

        assert [r["NAME"] for r in dataset.rows] == ["Ana", "Bob"]

    def test_empty_header_named_by_position(self, make_xlsx):
        content = make_xlsx([
            ["NAME", None, "AMOUNT"],
            ["Ana", "x", 10],
        ])

        dataset = parse_spreadsheet(content)

        assert dataset.headers == ["NAME", "Column2", "AMOUNT"]
        assert dataset.rows[0]["Column2"] == "x"

    def test_trailing_empty_headers_dropped(self, make_xlsx):
        content = make_xlsx([
            ["NAME", "AMOUNT", None],
            ["Ana", 10],
        ])

        assert parse_spreadsheet(content).headers == ["NAME", "AMOUNT"]

    def test_short_rows_padded(self, make_xlsx):
        content = make_xlsx([
            ["NAME", "AMOUNT", "PHONE"],
            ["Ana"],
        ])

        dataset = parse_spreadsheet(content)

        assert dataset.rows == [{"NAME": "Ana", "AMOUNT": "", "PHONE": ""}]

    def test_values_normalized(self, make_xlsx):
        content = make_xlsx([
            ["DATE", "PAID", "AMOUNT", "RATE"],
            [datetime(2024, 3, 5), True, 12.0, 2.5],
        ])

        row = parse_spreadsheet(content).rows[0]

        assert row == {"DATE": "05/03/2024", "PAID": "TRUE", "AMOUNT": "12", "RATE": "2.5"}

    def test_first_sheet_only(self):
        wb = Workbook()
        wb.active.append(["NAME"])
        wb.active.append(["Ana"])
        other = wb.create_sheet("Other")
        other.append(["IGNORED"])
        other.append(["x"])
        buffer = io.BytesIO()
        wb.save(buffer)

        dataset = parse_spreadsheet(buffer.getvalue())

        assert dataset.headers == ["NAME"]


class TestParseSpreadsheetErrors:
    """parse_spreadsheet 실패 케이스."""

    def test_unreadable(self):
        with pytest.raises(DatasetError) as exc_info:
            parse_spreadsheet(b"not an xlsx")

        assert exc_info.value.code == ErrorCodes.DATASET_UNREADABLE

    def test_empty_sheet_has_no_headers(self, make_xlsx):
        with pytest.raises(DatasetError) as exc_info:
            parse_spreadsheet(make_xlsx([]))

        assert exc_info.value.code == ErrorCodes.DATASET_NO_HEADERS

    def test_duplicate_headers_case_insensitive(self, make_xlsx):
        content = make_xlsx([
            ["Name", "AMOUNT", "NAME"],
            ["Ana", 10, "Ana"],
        ])

        with pytest.raises(DatasetError) as exc_info:
            parse_spreadsheet(content)

        assert exc_info.value.code == ErrorCodes.DATASET_DUPLICATE_HEADERS
        assert exc_info.value.context["duplicates"] == ["NAME"]


# =============================================================================
# display_value 테스트
# =============================================================================


class TestDisplayValue:
    """display_value 함수 테스트."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, ""),
            (True, "TRUE"),
            (False, "FALSE"),
            (date(2024, 12, 31), "31/12/2024"),
            (datetime(2024, 1, 2, 15, 30), "02/01/2024"),
            (10.0, "10"),
            (10.5, "10.5"),
            (7, "7"),
            (Decimal("1.50"), "1.50"),
            ("  text  ", "  text  "),
        ],
    )
    def test_values(self, value, expected):
        assert display_value(value) == expected

    def test_rich_text_flattened(self):
        rich = CellRichText(["plain ", TextBlock(InlineFont(b=True), "bold")])

        assert display_value(rich) == "plain bold"


# =============================================================================
# validate_dataset 테스트
# =============================================================================


class TestValidateDataset:
    """validate_dataset 함수 테스트."""

    def test_valid(self):
        dataset = TabularDataset(headers=["NAME"], rows=[{"NAME": "Ana"}])

        assert validate_dataset(dataset) == (True, None)

    def test_no_columns(self):
        assert validate_dataset(TabularDataset(headers=[])) == (False, "Excel file has no columns")

    def test_no_rows(self):
        dataset = TabularDataset(headers=["NAME"])

        assert validate_dataset(dataset) == (False, "Excel file has no data rows")

    def test_duplicate_columns(self):
        dataset = TabularDataset(headers=["NAME", "name"], rows=[{"NAME": "a", "name": "b"}])

        assert validate_dataset(dataset) == (False, "Excel file has duplicate column names")
