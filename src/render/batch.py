"""
Batch Generator: 템플릿 1개 × 행 N개 → GenerationResult.

규칙:
- 템플릿은 한 번만 파싱 (pre-flight). TemplateParseError는 어떤 행보다 먼저 발생
- collect-all-errors: 한 행의 실패가 다른 행을 막지 않음
- 행 하나 = 산출물 1개 또는 에러 1개 (부분 성공 없음)
- 에러 문자열: "Row <n>: <formatted error>" (1부터, 행 번호 순)
- 파일명 점유는 렌더링 후 행 순서대로 → 워커 수와 무관하게 같은 결과
"""

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from src.domain.constants import DEFAULT_OUTPUT_EXTENSION
from src.domain.errors import PipelineError
from src.domain.schemas import GeneratedArtifact, GenerationResult
from src.render.filenames import UniqueNameRegistry, resolve_filename
from src.render.word import DocxRenderer
from src.templates.placeholders import TemplateSnapshot

logger = logging.getLogger(__name__)


class BatchGenerator:
    """
    행 단위 문서 일괄 생성.

    Usage:
        generator = BatchGenerator(max_workers=4)
        result = generator.generate(template_bytes, rows, "{{NAME}}_receipt")
    """

    def __init__(self, max_workers: int = 1):
        """
        Args:
            max_workers: 동시 렌더링 스레드 수 (1이면 순차 처리)
        """
        self.max_workers = max(1, int(max_workers))

    def generate(
        self,
        template_content: bytes,
        rows: Sequence[Mapping[str, Any]],
        filename_pattern: str | None = None,
    ) -> GenerationResult:
        """
        모든 행에 대해 문서 생성.

        Args:
            template_content: DOCX 템플릿 바이트
            rows: 데이터 행 (순서 유지)
            filename_pattern: 파일명 패턴 (없으면 기본 규칙)

        Returns:
            GenerationResult

        Raises:
            TemplateParseError: 템플릿 자체 문제 (행 처리 전)
        """
        snapshot = TemplateSnapshot.load(template_content)
        return self.generate_from_snapshot(snapshot, rows, filename_pattern)

    def generate_from_snapshot(
        self,
        snapshot: TemplateSnapshot,
        rows: Sequence[Mapping[str, Any]],
        filename_pattern: str | None = None,
    ) -> GenerationResult:
        renderer = DocxRenderer(snapshot)
        outcomes = self._render_all(renderer, rows)

        registry = UniqueNameRegistry()
        artifacts: list[GeneratedArtifact] = []
        errors: list[str] = []

        for row_index, (row, outcome) in enumerate(zip(rows, outcomes), start=1):
            if isinstance(outcome, Exception):
                errors.append(f"Row {row_index}: {outcome}")
                logger.warning(f"Row {row_index} failed: {outcome}")
                continue

            name = resolve_filename(
                row_index, row, filename_pattern, DEFAULT_OUTPUT_EXTENSION
            )
            unique_name = registry.claim(name, row_index)
            if unique_name != name:
                logger.info(f"Row {row_index}: filename '{name}' renamed to '{unique_name}'")

            artifacts.append(GeneratedArtifact(name=unique_name, content=outcome))

        logger.info(
            f"Batch generated: {len(artifacts)} documents, {len(errors)} errors "
            f"(rows={len(rows)}, workers={self.max_workers})"
        )
        return GenerationResult(
            success=not errors,
            artifacts=artifacts,
            errors=errors,
        )

    def _render_all(
        self,
        renderer: DocxRenderer,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[bytes | Exception]:
        """행 순서대로 결과 반환 (bytes 또는 행 단위 예외)."""
        if self.max_workers == 1 or len(rows) <= 1:
            return [_render_row(renderer, row) for row in rows]

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(lambda row: _render_row(renderer, row), rows))


def _render_row(renderer: DocxRenderer, row: Mapping[str, Any]) -> bytes | Exception:
    try:
        return renderer.render(row)
    except PipelineError as e:
        return e


def generate_documents(
    template_content: bytes,
    rows: Sequence[Mapping[str, Any]],
    filename_pattern: str | None = None,
    max_workers: int = 1,
) -> GenerationResult:
    """
    문서 일괄 생성 (간편 함수).

    Raises:
        TemplateParseError
    """
    return BatchGenerator(max_workers).generate(template_content, rows, filename_pattern)
