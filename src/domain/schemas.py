"""
Data schemas for the pipeline.

규칙:
- TabularDataset 값은 파싱 시점에 표시용 문자열로 정규화됨
- GeneratedArtifact = (name, content) 한 쌍, (행, 포맷)당 하나
- GenerationResult.success ⟺ errors가 비어 있음 (부분 성공 아카이브 금지)
"""

from dataclasses import dataclass, field
from typing import Any

# =============================================================================
# Dataset / Validation
# =============================================================================

@dataclass
class TabularDataset:
    """
    스프레드시트 파싱 결과.

    headers: 컬럼명 (서로 달라야 함)
    rows: {header: 표시용 문자열} 목록 (빈 행 제외)
    """
    headers: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "rows": [dict(r) for r in self.rows],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TabularDataset":
        return cls(
            headers=list(data.get("headers", [])),
            rows=[dict(r) for r in data.get("rows", [])],
        )


@dataclass
class ValidationResult:
    """
    템플릿 placeholder ↔ 엑셀 헤더 비교 결과.

    valid는 missing_in_excel이 비었을 때만 True.
    (엑셀의 여분 컬럼은 허용, 누락된 placeholder는 불허)
    """
    valid: bool
    missing_in_excel: list[str] = field(default_factory=list)
    extra_in_excel: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "missingInExcel": list(self.missing_in_excel),
            "extraInExcel": list(self.extra_in_excel),
            "warnings": list(self.warnings),
        }


# =============================================================================
# Generation
# =============================================================================

@dataclass
class GeneratedArtifact:
    """생성된 파일 하나 (이름 + 바이트)."""
    name: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict[str, Any]:
        """메타데이터만 (content 제외)."""
        return {"name": self.name, "size": self.size}


@dataclass
class GenerationResult:
    """
    배치 생성 결과.

    행마다 artifact 하나 또는 error 하나 (부분 성공 행 없음).
    """
    success: bool
    artifacts: list[GeneratedArtifact] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "artifacts": [a.to_dict() for a in self.artifacts],
            "errors": list(self.errors),
        }


@dataclass
class ConversionFailure:
    """(artifact, format) 변환 실패 기록."""
    artifact_name: str
    target_format: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact_name": self.artifact_name,
            "target_format": self.target_format,
            "error": self.error,
        }


@dataclass
class ConversionBatchResult:
    """
    일괄 변환 결과.

    converted: {".odt": [GeneratedArtifact, ...], ...}
    failures: 실패한 (artifact, format) 쌍
    """
    converted: dict[str, list[GeneratedArtifact]] = field(default_factory=dict)
    failures: list[ConversionFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


@dataclass
class ArchiveResult:
    """아카이브 생성 결과."""
    key: str
    location: str
    mode: str  # buffered, streaming
    entry_count: int
    size: int | None = None  # streaming 모드에서는 업로드 후 크기

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "location": self.location,
            "mode": self.mode,
            "entry_count": self.entry_count,
            "size": self.size,
        }


# =============================================================================
# Session Schema
# =============================================================================

SESSION_FILE_TYPES = ("template", "excel")
SESSION_STATUSES = ("uploaded", "processed", "error")


@dataclass
class SessionRecord:
    """
    세션 레코드 (sessionId, fileType 단위).

    excel 레코드는 업로드 시점에 파싱된 headers/rows를 캐시함.
    """
    session_id: str
    file_type: str  # template, excel
    original_name: str
    storage_key: str
    status: str = "uploaded"
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    placeholders: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    error: str | None = None

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def dataset(self) -> TabularDataset:
        return TabularDataset(headers=list(self.headers), rows=[dict(r) for r in self.rows])

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "file_type": self.file_type,
            "original_name": self.original_name,
            "storage_key": self.storage_key,
            "status": self.status,
            "headers": list(self.headers),
            "rows": [dict(r) for r in self.rows],
            "placeholders": list(self.placeholders),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        return cls(
            session_id=data["session_id"],
            file_type=data["file_type"],
            original_name=data["original_name"],
            storage_key=data["storage_key"],
            status=data.get("status", "uploaded"),
            headers=list(data.get("headers", [])),
            rows=[dict(r) for r in data.get("rows", [])],
            placeholders=list(data.get("placeholders", [])),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            error=data.get("error"),
        )


# =============================================================================
# Logging Schemas
# =============================================================================

@dataclass
class WarningLog:
    """
    경고 로그.

    경고 필수 컨텍스트: level, code, action_id, target, message
    """
    level: str = "warning"
    code: str = ""
    action_id: str = ""
    target: str = ""  # artifact 이름, 포맷, 컬럼명 등
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "action_id": self.action_id,
            "target": self.target,
            "message": self.message,
        }


@dataclass
class RunLog:
    """
    실행 로그.

    generate 요청 1회 단위 실행 결과 및 메타데이터.
    """
    run_id: str
    session_id: str
    started_at: str  # ISO 8601
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed

    template_hash: str | None = None
    row_count: int = 0
    generated_count: int = 0
    formats: list[str] = field(default_factory=list)
    archive_key: str | None = None

    # Events
    row_errors: list[str] = field(default_factory=list)
    warnings: list[WarningLog] = field(default_factory=list)

    # Error (if failed)
    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "session_id": self.session_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "template_hash": self.template_hash,
            "row_count": self.row_count,
            "generated_count": self.generated_count,
            "formats": list(self.formats),
            "archive_key": self.archive_key,
            "row_errors": list(self.row_errors),
            "warnings": [w.to_dict() for w in self.warnings],
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
