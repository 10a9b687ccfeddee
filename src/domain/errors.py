"""
Error definitions for the pipeline.

전파 규칙:
- TemplateParseError: 템플릿 레벨 실패 → 행 처리 전에 요청 전체 중단 (pre-flight)
- RenderError: 단일 행 실패 → BatchGenerator가 수집, 배치는 계속
- ConversionError: (artifact, format) 단위 실패 → 해당 포맷만 누락, 요청은 유지
- PackagingError: 아카이브 생성/업로드 실패 → 요청 전체 실패 (부분 아카이브 금지)
- 검증 불일치(ValidationResult.valid=False)는 예외가 아니라 데이터
"""

from dataclasses import dataclass
from typing import Any


class PipelineError(Exception):
    """
    파이프라인 에러 기반 클래스.

    Usage:
        raise PipelineError("STORAGE_READ_FAILED", key="uploads/x.docx")
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **self.context,
        }


# =============================================================================
# Template Issues (다중 에러 집계)
# =============================================================================

@dataclass(frozen=True)
class TemplateIssue:
    """
    템플릿 파싱/렌더링 중 발견된 개별 문제.

    id: 기계 판독용 식별자 (예: unclosed_tag)
    message: 짧은 설명
    explanation: 사람이 읽을 상세 설명 (없으면 None)
    """
    id: str | None
    message: str
    explanation: str | None = None

    def format(self) -> str:
        msg = self.message
        if self.explanation:
            msg += f" ({self.explanation})"
        if self.id:
            msg = f"[{self.id}] {msg}"
        return msg

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "explanation": self.explanation,
        }


def format_template_issues(issues: list[TemplateIssue]) -> str:
    """
    여러 TemplateIssue를 하나의 읽기 쉬운 메시지로 합침.

    형식:
        Template Error:
        [unclosed_tag] Unclosed tag (The tag beginning with "{{NAME" is unclosed)
        [empty_tag] Empty tag (...)
    """
    return "Template Error:\n" + "\n".join(issue.format() for issue in issues)


class _TemplateIssuesError(PipelineError):
    """issues 목록을 가지는 에러 공통 구현."""

    def __init__(
        self,
        code: str,
        issues: list[TemplateIssue],
        **context: Any,
    ) -> None:
        self.issues = list(issues)
        super().__init__(code, **context)

    def _format_message(self) -> str:
        return format_template_issues(self.issues)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "issues": [issue.to_dict() for issue in self.issues],
            **self.context,
        }


class TemplateParseError(_TemplateIssuesError):
    """템플릿을 열 수 없거나 placeholder 문법 오류가 있음. 발견된 모든 문제 포함."""

    def __init__(self, issues: list[TemplateIssue], **context: Any) -> None:
        super().__init__(ErrorCodes.TEMPLATE_PARSE_FAILED, issues, **context)


class RenderError(_TemplateIssuesError):
    """특정 행의 데이터를 템플릿에 병합하지 못함 (행 단위)."""

    def __init__(self, issues: list[TemplateIssue], **context: Any) -> None:
        super().__init__(ErrorCodes.RENDER_FAILED, issues, **context)


class ConversionError(PipelineError):
    """(artifact, format) 한 쌍의 변환 실패. 배치나 다른 포맷을 중단하지 않음."""

    def __init__(self, target_format: str, error: str, **context: Any) -> None:
        self.target_format = target_format
        self.error = error
        super().__init__(
            ErrorCodes.CONVERSION_FAILED,
            target_format=target_format,
            error=error,
            **context,
        )


class PackagingError(PipelineError):
    """아카이브를 완성하지 못했거나 업로드가 중간에 실패함. 요청 전체에 치명적."""

    def __init__(self, error: str, **context: Any) -> None:
        self.error = error
        super().__init__(ErrorCodes.PACKAGING_FAILED, error=error, **context)


class DatasetError(PipelineError):
    """스프레드시트를 TabularDataset으로 파싱할 수 없음."""


class StorageError(PipelineError):
    """오브젝트/로컬 스토리지 읽기·쓰기 실패."""


class SessionError(PipelineError):
    """세션 레코드 없음 또는 손상."""


class UploadError(PipelineError):
    """업로드 파일 거부 (확장자, MIME 타입, 크기, session_id)."""


class GenerationError(PipelineError):
    """하나 이상의 행이 렌더링에 실패해서 아카이브를 만들지 않음."""

    def __init__(self, errors: list[str], **context: Any) -> None:
        self.errors = list(errors)
        super().__init__(ErrorCodes.GENERATION_FAILED, failed_rows=len(self.errors), **context)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "errors": list(self.errors),
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Template ===
    TEMPLATE_PARSE_FAILED = "TEMPLATE_PARSE_FAILED"
    RENDER_FAILED = "RENDER_FAILED"

    # === Dataset ===
    DATASET_NO_WORKSHEET = "DATASET_NO_WORKSHEET"
    DATASET_NO_HEADERS = "DATASET_NO_HEADERS"
    DATASET_DUPLICATE_HEADERS = "DATASET_DUPLICATE_HEADERS"
    DATASET_UNREADABLE = "DATASET_UNREADABLE"

    # === Conversion / Packaging ===
    CONVERSION_FAILED = "CONVERSION_FAILED"
    PACKAGING_FAILED = "PACKAGING_FAILED"

    # === Storage ===
    STORAGE_NOT_FOUND = "STORAGE_NOT_FOUND"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_INVALID_KEY = "STORAGE_INVALID_KEY"

    # === Session ===
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_CORRUPT = "SESSION_CORRUPT"
    SESSION_LOCK_TIMEOUT = "SESSION_LOCK_TIMEOUT"

    # === Generation ===
    GENERATION_FAILED = "GENERATION_FAILED"
    NO_DATA_ROWS = "NO_DATA_ROWS"
    INVALID_UPLOAD = "INVALID_UPLOAD"
