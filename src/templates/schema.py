"""
Schema Validator: 템플릿 placeholder ↔ 엑셀 헤더 비교.

규칙:
- 양쪽 모두 대문자로 바꿔 비교 (대소문자 무시)
- 템플릿에만 있는 placeholder → missing_in_excel (검증 실패)
- 엑셀에만 있는 컬럼 → extra_in_excel (허용, 경고만)
- 순수 함수: I/O 없음
"""

import re
from collections.abc import Iterable

from src.domain.schemas import ValidationResult

PLACEHOLDER_FORMAT = re.compile(r"^[A-Z0-9_]+$")


def validate_template(
    placeholders: Iterable[str],
    headers: Iterable[str],
) -> ValidationResult:
    """
    템플릿 placeholder와 엑셀 헤더 검증.

    Args:
        placeholders: 템플릿 placeholder 이름들
        headers: 엑셀 컬럼명들

    Returns:
        ValidationResult (valid ⟺ missing_in_excel 비어 있음)
    """
    template_set = _upper_unique(placeholders)
    excel_set = _upper_unique(headers)

    excel_lookup = set(excel_set)
    template_lookup = set(template_set)

    missing_in_excel = [p for p in template_set if p not in excel_lookup]
    extra_in_excel = [h for h in excel_set if h not in template_lookup]

    warnings: list[str] = []
    if missing_in_excel:
        warnings.append(
            f"Template contains placeholders not found in Excel: {', '.join(missing_in_excel)}"
        )
    if extra_in_excel:
        warnings.append(
            f"Excel contains columns not used in template: {', '.join(extra_in_excel)}"
        )

    return ValidationResult(
        valid=not missing_in_excel,
        missing_in_excel=missing_in_excel,
        extra_in_excel=extra_in_excel,
        warnings=warnings,
    )


def is_valid_placeholder_format(placeholder: str) -> bool:
    """placeholder 권장 형식 (대문자, 숫자, 밑줄만) 여부."""
    return bool(PLACEHOLDER_FORMAT.match(placeholder))


def naming_warnings(placeholders: Iterable[str]) -> list[str]:
    """
    권장 형식이 아닌 placeholder에 대한 경고.

    대소문자 무시 매칭이므로 동작에는 영향 없음 (표기 통일 안내용).
    """
    non_canonical = sorted(p for p in set(placeholders) if not is_valid_placeholder_format(p))
    if not non_canonical:
        return []
    return [
        "Placeholders should use uppercase letters, digits and underscores only: "
        + ", ".join(non_canonical)
    ]


def _upper_unique(values: Iterable[str]) -> list[str]:
    """대문자 변환 + 순서 유지 중복 제거."""
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(str(value).upper(), None)
    return list(seen)
