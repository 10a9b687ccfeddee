"""
파일명 결정: 행 데이터 + (선택) 패턴 → 산출물 파일명.

규칙:
- 허용 문자: [A-Za-z0-9._-], 나머지는 전부 "_" (경로 조작 방지)
- 패턴: {{KEY}}, {KEY} 둘 다 치환 (대소문자 무시)
- 패턴 결과가 비면 document_<i>, 확장자가 없으면 기본 확장자 추가
- 확장자는 DOCUMENT_EXTENSIONS에 있는 것만 인정 (값 안의 점은 이름의 일부)
- 패턴 없음: receipt_<i>_<NAME>.docx (NAME 컬럼 없으면 row<i>)
- 행 간 충돌은 UniqueNameRegistry가 해소 (먼저 온 행이 이름 유지)
"""

import os
import re
from collections.abc import Mapping
from typing import Any

from src.domain.constants import (
    DEFAULT_FILENAME_PREFIX,
    DEFAULT_OUTPUT_EXTENSION,
    DOCUMENT_EXTENSIONS,
    FALLBACK_FILENAME_PREFIX,
    NAME_FIELD,
)

UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(value: str) -> str:
    """허용 문자 외에는 모두 "_"로 치환."""
    return UNSAFE_CHARS.sub("_", value)


def split_extension(name: str) -> tuple[str, str]:
    """
    "J._Smith.docx" → ("J._Smith", ".docx"), "J._Smith" → ("J._Smith", "")

    알려진 문서 확장자만 확장자로 취급.
    """
    stem, ext = os.path.splitext(name)
    if ext.lower() in DOCUMENT_EXTENSIONS:
        return stem, ext
    return name, ""


def resolve_filename(
    row_index: int,
    row: Mapping[str, Any],
    pattern: str | None = None,
    default_ext: str = DEFAULT_OUTPUT_EXTENSION,
) -> str:
    """
    한 행의 산출물 파일명 결정.

    Args:
        row_index: 1부터 시작하는 행 번호
        row: 컬럼명 → 값
        pattern: 파일명 패턴 (예: "{{NAME}}_{{DATE}}")
        default_ext: 확장자가 없을 때 붙일 확장자

    Returns:
        정제된 파일명 (행 간 유일성은 보장하지 않음)
    """
    if pattern:
        return _resolve_pattern(row_index, row, pattern, default_ext)

    name = _lookup(row, NAME_FIELD)
    name = name if name else f"row{row_index}"
    return f"{DEFAULT_FILENAME_PREFIX}_{row_index}_{sanitize_filename(name)}{default_ext}"


def _resolve_pattern(
    row_index: int,
    row: Mapping[str, Any],
    pattern: str,
    default_ext: str,
) -> str:
    result = pattern
    for key, value in row.items():
        replacement = sanitize_filename(_as_text(value))
        for token in (f"{{{{{key}}}}}", f"{{{key}}}"):
            result = re.sub(
                re.escape(token),
                lambda _m: replacement,
                result,
                flags=re.IGNORECASE,
            )

    result = result.strip()
    if not result:
        return f"{FALLBACK_FILENAME_PREFIX}_{row_index}{default_ext}"

    result = sanitize_filename(result)
    if not split_extension(result)[1]:
        result += default_ext
    return result


def _lookup(row: Mapping[str, Any], field: str) -> str:
    for key, value in row.items():
        if str(key).upper() == field:
            return _as_text(value)
    return ""


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


# =============================================================================
# Collision handling
# =============================================================================

class UniqueNameRegistry:
    """
    한 번의 생성 결과 안에서 파일명 유일성 보장.

    Usage:
        registry = UniqueNameRegistry()
        registry.claim("receipt_1_Ana.docx", 1)   # → receipt_1_Ana.docx
        registry.claim("Ana.docx", 2)             # → Ana.docx
        registry.claim("ana.docx", 3)             # → ana_3.docx
    """

    def __init__(self) -> None:
        self._taken: set[str] = set()

    def claim(self, name: str, row_index: int) -> str:
        """
        이름 점유. 이미 쓰인 이름이면 _<row_index>(, _<n>)를 확장자 앞에 붙임.

        비교는 대소문자 무시 (대소문자 구분 없는 파일시스템에서 풀 때 덮어쓰기 방지).
        """
        candidate = name
        if self._is_taken(candidate):
            stem, ext = split_extension(name)
            candidate = f"{stem}_{row_index}{ext}"
            counter = 2
            while self._is_taken(candidate):
                candidate = f"{stem}_{row_index}_{counter}{ext}"
                counter += 1

        self._taken.add(candidate.lower())
        return candidate

    def _is_taken(self, name: str) -> bool:
        return name.lower() in self._taken

    def __contains__(self, name: str) -> bool:
        return self._is_taken(name)

    def __len__(self) -> int:
        return len(self._taken)
