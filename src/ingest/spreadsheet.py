"""
스프레드시트 파서: XLSX 바이트 → TabularDataset.

규칙:
- 첫 번째 워크시트만 사용, 1행 = 헤더
- 빈 헤더 셀 → Column<n> (1부터)
- 헤더 중복 (대소문자 무시) → DatasetError (렌더링 시 대소문자 무시 바인딩과 충돌)
- 값은 파싱 시점에 표시용 문자열로 정규화:
  날짜 → DD/MM/YYYY, 리치 텍스트 → 평문, 수식 → 계산된 결과
- 모든 셀이 비어 있는 행은 제외
"""

import io
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText

from src.domain.constants import DATE_DISPLAY_FORMAT
from src.domain.errors import DatasetError, ErrorCodes
from src.domain.schemas import TabularDataset

logger = logging.getLogger(__name__)


def parse_spreadsheet(content: bytes) -> TabularDataset:
    """
    XLSX 파싱.

    Args:
        content: XLSX 바이트

    Returns:
        TabularDataset

    Raises:
        DatasetError: DATASET_UNREADABLE, DATASET_NO_WORKSHEET,
                      DATASET_NO_HEADERS, DATASET_DUPLICATE_HEADERS
    """
    try:
        # data_only=True: 수식 셀은 마지막 계산 결과(캐시 값)로 읽음
        wb = load_workbook(io.BytesIO(content), data_only=True, rich_text=True)
    except Exception as e:
        raise DatasetError(ErrorCodes.DATASET_UNREADABLE, error=str(e)) from e

    try:
        if not wb.worksheets:
            raise DatasetError(ErrorCodes.DATASET_NO_WORKSHEET)

        ws = wb.worksheets[0]
        row_iter = ws.iter_rows(values_only=True)

        headers = _parse_headers(next(row_iter, None))

        rows: list[dict[str, Any]] = []
        for values in row_iter:
            row = _parse_row(headers, values)
            if row is not None:
                rows.append(row)

        logger.info(
            f"Parsed worksheet '{ws.title}': {len(headers)} columns, {len(rows)} rows"
        )
        return TabularDataset(headers=headers, rows=rows)
    finally:
        wb.close()


def validate_dataset(dataset: TabularDataset) -> tuple[bool, str | None]:
    """
    파싱된 데이터셋 사용 가능 여부.

    Returns:
        (valid, error_message)
    """
    if not dataset.headers:
        return False, "Excel file has no columns"

    if not dataset.rows:
        return False, "Excel file has no data rows"

    if len({h.upper() for h in dataset.headers}) != len(dataset.headers):
        return False, "Excel file has duplicate column names"

    return True, None


def display_value(value: Any) -> str:
    """
    셀 값을 표시용 문자열로 정규화.

    Args:
        value: openpyxl 셀 값

    Returns:
        문자열 (None → "")
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date)):
        return value.strftime(DATE_DISPLAY_FORMAT)
    if isinstance(value, CellRichText):
        return "".join(getattr(block, "text", block) for block in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


# =============================================================================
# Internal
# =============================================================================

def _parse_headers(values: tuple[Any, ...] | None) -> list[str]:
    if values is None:
        raise DatasetError(ErrorCodes.DATASET_NO_HEADERS)

    cells = list(values)
    # 뒤쪽 빈 셀 제거
    while cells and display_value(cells[-1]).strip() == "":
        cells.pop()

    if not cells:
        raise DatasetError(ErrorCodes.DATASET_NO_HEADERS)

    headers = [
        display_value(cell).strip() or f"Column{index}"
        for index, cell in enumerate(cells, start=1)
    ]

    seen: dict[str, str] = {}
    duplicates: list[str] = []
    for header in headers:
        key = header.upper()
        if key in seen:
            duplicates.append(header)
        else:
            seen[key] = header

    if duplicates:
        raise DatasetError(
            ErrorCodes.DATASET_DUPLICATE_HEADERS,
            duplicates=duplicates,
        )

    return headers


def _parse_row(headers: list[str], values: tuple[Any, ...]) -> dict[str, Any] | None:
    """데이터 행 하나 정규화. 모든 셀이 비면 None."""
    row: dict[str, Any] = {}
    has_data = False

    for index, header in enumerate(headers):
        value = display_value(values[index]) if index < len(values) else ""
        row[header] = value
        if value != "":
            has_data = True

    return row if has_data else None
