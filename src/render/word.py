"""
Word (DOCX) 렌더러: docxtpl 기반.

규칙:
- 템플릿은 TemplateSnapshot으로 한 번만 파싱, 행마다 새 MergeTemplate 생성
- placeholder ↔ 행 키는 대소문자 무시 (행 키를 대문자로 맞춤)
- 행에 없는 placeholder → 빈 문자열
- 줄바꿈이 포함된 값은 줄바꿈(w:br)으로 렌더링, 값은 XML 이스케이프
- 출력 zip은 고정 타임스탬프로 재패킹 → 같은 입력이면 같은 바이트
"""

import io
import logging
import zipfile
from collections.abc import Mapping
from typing import Any

from docxtpl import Listing
from jinja2 import TemplateError

from src.domain.errors import RenderError, TemplateIssue
from src.templates.placeholders import MergeTemplate, TemplateSnapshot, template_variable

logger = logging.getLogger(__name__)

# zip 엔트리 고정 타임스탬프 (zip 포맷이 표현 가능한 최소값)
FIXED_ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
ZIP_COMPRESSION_LEVEL = 9


class DocxRenderer:
    """
    Word 문서 렌더러.

    Usage:
        renderer = DocxRenderer.from_bytes(template_bytes)
        content = renderer.render({"NAME": "Ana", "AMOUNT": "10"})
    """

    def __init__(self, snapshot: TemplateSnapshot):
        """
        Args:
            snapshot: 파싱이 끝난 템플릿 스냅샷
        """
        self.snapshot = snapshot

    @classmethod
    def from_bytes(cls, content: bytes) -> "DocxRenderer":
        """
        템플릿 바이트에서 렌더러 생성.

        Raises:
            TemplateParseError
        """
        return cls(TemplateSnapshot.load(content))

    @property
    def placeholders(self) -> tuple[str, ...]:
        return self.snapshot.placeholders

    def render(self, row: Mapping[str, Any]) -> bytes:
        """
        한 행을 템플릿에 병합.

        Args:
            row: 컬럼명 → 값

        Returns:
            DOCX 바이트

        Raises:
            RenderError: 병합/저장 실패
        """
        try:
            doc = MergeTemplate(io.BytesIO(self.snapshot.content))
            doc.render(self._build_context(row), autoescape=True)

            buffer = io.BytesIO()
            doc.save(buffer)
        except TemplateError as e:
            raise RenderError([
                TemplateIssue(
                    id="render_error",
                    message=getattr(e, "message", None) or str(e),
                    explanation=type(e).__name__,
                )
            ]) from e
        except Exception as e:
            raise RenderError([
                TemplateIssue(
                    id="render_error",
                    message="Document could not be rendered",
                    explanation=str(e),
                )
            ]) from e

        return repack_deterministic(buffer.getvalue())

    def _build_context(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """렌더링 컨텍스트 구성."""
        upper_row = {str(key).upper(): _to_template_value(value) for key, value in row.items()}

        context: dict[str, Any] = dict(upper_row)
        # 템플릿에 쓰인 표기 그대로 바인딩 ({{name}} → NAME 컬럼, {{First Name}} → 별칭)
        for placeholder in self.snapshot.placeholders:
            context[template_variable(placeholder)] = upper_row.get(placeholder.upper(), "")

        return context


def repack_deterministic(content: bytes) -> bytes:
    """
    DOCX zip을 고정 타임스탬프 + DEFLATE로 다시 씀.

    엔트리 순서와 내용은 그대로 유지.
    """
    out = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(content)) as src, zipfile.ZipFile(
        out, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=ZIP_COMPRESSION_LEVEL
    ) as dst:
        for info in src.infolist():
            entry = zipfile.ZipInfo(info.filename, date_time=FIXED_ZIP_TIMESTAMP)
            entry.compress_type = zipfile.ZIP_DEFLATED
            entry.external_attr = 0o644 << 16
            dst.writestr(entry, src.read(info.filename))
    return out.getvalue()


def _to_template_value(value: Any) -> Any:
    if value is None:
        return ""
    text = str(value)
    if "\n" in text:
        return Listing(text)
    return text


# =============================================================================
# Convenience
# =============================================================================

def render_docx(template_content: bytes, row: Mapping[str, Any]) -> bytes:
    """
    Word 문서 생성 (간편 함수).

    Args:
        template_content: DOCX 템플릿 바이트
        row: 템플릿에 채울 데이터

    Returns:
        DOCX 바이트
    """
    return DocxRenderer.from_bytes(template_content).render(row)


def render_preview(template_content: bytes, rows: list[dict[str, Any]]) -> bytes:
    """
    첫 번째 행으로 미리보기 문서 생성.

    Raises:
        TemplateParseError: 템플릿 문제
        RenderError: 데이터 행이 없거나 렌더링 실패
    """
    renderer = DocxRenderer.from_bytes(template_content)

    if not rows:
        raise RenderError([
            TemplateIssue(
                id="no_data",
                message="No data rows available for preview",
            )
        ])

    logger.info("Rendering preview from first data row")
    return renderer.render(rows[0])
