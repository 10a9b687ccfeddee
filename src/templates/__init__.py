"""
Templates layer: DOCX 템플릿 분석.

역할:
- placeholder 추출 + 구분자 오류 수집 (placeholders.py)
- placeholder ↔ 엑셀 헤더 검증 (schema.py)
"""

from .placeholders import TemplateSnapshot, extract_placeholders, scan_delimiters
from .schema import is_valid_placeholder_format, naming_warnings, validate_template

__all__ = [
    # placeholders
    "TemplateSnapshot",
    "extract_placeholders",
    "scan_delimiters",
    # schema
    "validate_template",
    "is_valid_placeholder_format",
    "naming_warnings",
]
