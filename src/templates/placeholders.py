"""
Placeholder 추출기: DOCX 템플릿 → {{NAME}} placeholder 집합.

규칙:
- 템플릿은 한 번만 파싱 → 불변 TemplateSnapshot
- 구분자 오류(열림/닫힘 불일치, 빈 태그)는 발견된 것 전부를 모아서 보고
- 구분자가 정상이면 docxtpl(Jinja2) 파서로 최종 문법 확인 + 변수 추출
- placeholder 이름은 템플릿에 쓰인 대소문자 그대로
- placeholder = 중괄호 사이 텍스트 그대로. 식별자가 아닌 이름({{FIRST NAME}}, {{AMOUNT-TOTAL}})은
  Jinja2에 넘기기 전에 별칭 변수로 바꾸고, 추출 결과에는 원래 이름을 돌려줌
"""

import html
import io
import logging
import re
import zipfile
from dataclasses import dataclass

from docxtpl import DocxTemplate
from jinja2 import TemplateSyntaxError

from src.core.hashing import compute_bytes_hash
from src.domain.constants import PLACEHOLDER_END, PLACEHOLDER_START
from src.domain.errors import TemplateIssue, TemplateParseError

logger = logging.getLogger(__name__)

# 본문 + 머리글/바닥글 파트
DOCUMENT_PART = "word/document.xml"
HEADER_FOOTER_PART = re.compile(r"^word/(header|footer)\d*\.xml$")

PARAGRAPH_RE = re.compile(r"<w:p[ >].*?</w:p>", re.DOTALL)
TEXT_RUN_RE = re.compile(r"<w:t(?: [^>]*)?>(.*?)</w:t>", re.DOTALL)
DELIMITER_RE = re.compile(re.escape(PLACEHOLDER_START) + "|" + re.escape(PLACEHOLDER_END))

SNIPPET_LENGTH = 20

# 열 이름 그대로 쓴 태그 (공백, 하이픈 허용). 필터/연산자가 있으면 Jinja2 식으로 둠
HEADER_TAG_RE = re.compile(r"\{\{\s*(\w[\w \-]*?)\s*\}\}")
ALIAS_PREFIX = "_ph_"


# =============================================================================
# Placeholder 별칭
# =============================================================================

def template_variable(placeholder: str) -> str:
    """
    placeholder → 렌더 컨텍스트 변수명.

    "NAME" → "NAME", "FIRST NAME" → "_ph_4649525354204e414d45"
    """
    if placeholder.isidentifier():
        return placeholder
    return ALIAS_PREFIX + placeholder.encode("utf-8").hex()


def placeholder_name(variable: str) -> str:
    """template_variable의 역변환."""
    if not variable.startswith(ALIAS_PREFIX):
        return variable
    try:
        return bytes.fromhex(variable[len(ALIAS_PREFIX):]).decode("utf-8")
    except ValueError:
        return variable


class MergeTemplate(DocxTemplate):
    """식별자가 아닌 placeholder를 별칭으로 바꿔 주는 DocxTemplate."""

    def patch_xml(self, src_xml):  # type: ignore[override]
        patched = super().patch_xml(src_xml)
        return HEADER_TAG_RE.sub(_alias_tag, patched)


def _alias_tag(match: re.Match[str]) -> str:
    token = match.group(1)
    if token.isidentifier():
        return match.group(0)
    return f"{PLACEHOLDER_START} {template_variable(token)} {PLACEHOLDER_END}"


# =============================================================================
# Template Snapshot
# =============================================================================

@dataclass(frozen=True)
class TemplateSnapshot:
    """
    파싱이 끝난 템플릿의 불변 스냅샷.

    content는 원본 바이트 그대로이며, 행마다 여기서 새 렌더 컨텍스트를 만든다.
    """
    content: bytes
    placeholders: tuple[str, ...]
    template_hash: str

    @classmethod
    def load(cls, content: bytes) -> "TemplateSnapshot":
        """
        템플릿 바이트를 검사하고 스냅샷 생성.

        Args:
            content: DOCX 바이트

        Returns:
            TemplateSnapshot

        Raises:
            TemplateParseError: 컨테이너를 열 수 없거나 문법 오류 (모든 문제 포함)
        """
        placeholders = _parse_placeholders(content)
        return cls(
            content=content,
            placeholders=tuple(sorted(placeholders)),
            template_hash=compute_bytes_hash(content),
        )


def extract_placeholders(content: bytes) -> set[str]:
    """
    템플릿의 placeholder 이름 집합 (중복 제거).

    Args:
        content: DOCX 바이트

    Returns:
        placeholder 이름 집합 (예: {"NAME", "AMOUNT"})

    Raises:
        TemplateParseError
    """
    return set(TemplateSnapshot.load(content).placeholders)


# =============================================================================
# Parsing
# =============================================================================

def _parse_placeholders(content: bytes) -> set[str]:
    parts = _read_text_parts(content)

    issues: list[TemplateIssue] = []
    for part_name, paragraphs in parts.items():
        for index, text in enumerate(paragraphs, start=1):
            issues.extend(scan_delimiters(text, f"{part_name}, paragraph {index}"))

    if issues:
        raise TemplateParseError(issues)

    try:
        doc = MergeTemplate(io.BytesIO(content))
        variables = doc.get_undeclared_template_variables()
    except TemplateSyntaxError as e:
        raise TemplateParseError([
            TemplateIssue(
                id="template_syntax_error",
                message=e.message or "Template syntax error",
                explanation=f"line {e.lineno}" if e.lineno else None,
            )
        ]) from e
    except Exception as e:
        raise TemplateParseError([
            TemplateIssue(
                id="invalid_container",
                message="Template could not be opened",
                explanation=str(e),
            )
        ]) from e

    logger.debug(f"Extracted {len(variables)} placeholders")
    return {placeholder_name(v) for v in variables}


def _read_text_parts(content: bytes) -> dict[str, list[str]]:
    """
    DOCX zip에서 본문/머리글/바닥글의 문단별 텍스트 추출.

    Returns:
        {파트 이름: [문단 텍스트, ...]}

    Raises:
        TemplateParseError: invalid_container
    """
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            names = zf.namelist()
            if DOCUMENT_PART not in names:
                raise TemplateParseError([
                    TemplateIssue(
                        id="invalid_container",
                        message="Template is not a Word document",
                        explanation=f"{DOCUMENT_PART} not found",
                    )
                ])
            part_names = [DOCUMENT_PART] + sorted(
                n for n in names if HEADER_FOOTER_PART.match(n)
            )
            return {
                name: _paragraph_texts(zf.read(name).decode("utf-8"))
                for name in part_names
            }
    except zipfile.BadZipFile as e:
        raise TemplateParseError([
            TemplateIssue(
                id="invalid_container",
                message="Template could not be opened",
                explanation=str(e),
            )
        ]) from e


def _paragraph_texts(xml: str) -> list[str]:
    """XML 파트에서 문단별로 w:t 텍스트를 이어 붙임 (run 분할 복원)."""
    texts = []
    for paragraph in PARAGRAPH_RE.findall(xml):
        runs = TEXT_RUN_RE.findall(paragraph)
        texts.append(html.unescape("".join(runs)))
    return texts


def scan_delimiters(text: str, location: str = "") -> list[TemplateIssue]:
    """
    한 문단 텍스트의 {{ }} 균형 검사.

    Args:
        text: 문단 텍스트
        location: 에러 설명에 붙일 위치 (예: "word/document.xml, paragraph 3")

    Returns:
        발견된 문제 목록 (없으면 빈 리스트)
    """
    issues: list[TemplateIssue] = []
    where = f" in {location}" if location else ""
    open_at: int | None = None

    for match in DELIMITER_RE.finditer(text):
        if match.group() == PLACEHOLDER_START:
            if open_at is not None:
                issues.append(_unclosed(text, open_at, where))
            open_at = match.start()
            continue

        if open_at is None:
            snippet = text[max(0, match.start() - SNIPPET_LENGTH):match.end()]
            issues.append(TemplateIssue(
                id="unopened_tag",
                message="Unopened tag",
                explanation=f'The tag ending with "{snippet}" is unopened{where}',
            ))
            continue

        inner = text[open_at + len(PLACEHOLDER_START):match.start()]
        if not inner.strip():
            issues.append(TemplateIssue(
                id="empty_tag",
                message="Empty tag",
                explanation=f"A tag without a name was found{where}",
            ))
        open_at = None

    if open_at is not None:
        issues.append(_unclosed(text, open_at, where))

    return issues


def _unclosed(text: str, start: int, where: str) -> TemplateIssue:
    snippet = text[start:start + SNIPPET_LENGTH]
    return TemplateIssue(
        id="unclosed_tag",
        message="Unclosed tag",
        explanation=f'The tag beginning with "{snippet}" is unclosed{where}',
    )
