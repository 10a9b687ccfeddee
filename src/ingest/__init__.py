"""
Ingest layer: 업로드된 스프레드시트 → TabularDataset.

역할:
- openpyxl로 첫 번째 시트 파싱
- 값 정규화 (날짜, 리치 텍스트, 수식 결과)
"""

from .spreadsheet import display_value, parse_spreadsheet, validate_dataset

__all__ = [
    "parse_spreadsheet",
    "validate_dataset",
    "display_value",
]
