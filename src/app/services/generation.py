"""
Generation Service: 세션 → 검증 / 미리보기 / 일괄 생성 / 다운로드 URL.

데이터 흐름:
    SessionStore (template, excel)
    → Storage에서 템플릿 바이트
    → TemplateSnapshot (pre-flight, 한 번만 파싱)
    → BatchGenerator (행 단위 렌더링 + 파일명)
    → convert_batch (요청 포맷별, 실패는 경고)
    → ArchivePackager (generated/<sid>/documents_<sid>.zip)
    → presigned URL

규칙:
- 행 실패가 하나라도 있으면 기본적으로 아카이브를 만들지 않음 (GenerationError)
  generation.allow_partial=true면 성공한 행만 묶고 row_errors로 보고
- 변환 실패는 요청을 실패시키지 않음 (해당 포맷 파일만 빠짐)
- run log는 성공/실패와 무관하게 항상 저장
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.core.logging import (
    complete_run_log,
    create_run_log,
    emit_warning,
    list_run_logs,
    load_run_log,
    save_run_log,
)
from src.core.sessions import SessionStore
from src.core.storage import Storage
from src.domain.constants import (
    DEFAULT_OUTPUT_EXTENSION,
    MIME_TYPES,
    PREVIEW_FILENAME,
    PREVIEWS_PREFIX,
    archive_filename,
    archive_key,
)
from src.domain.errors import (
    DatasetError,
    ErrorCodes,
    GenerationError,
    PipelineError,
    SessionError,
    StorageError,
)
from src.domain.schemas import ArchiveResult, ConversionFailure
from src.render.archive import ArchivePackager
from src.render.batch import BatchGenerator
from src.render.convert import DocumentConverter, convert_batch, normalize_format
from src.render.word import DocxRenderer
from src.templates.placeholders import TemplateSnapshot
from src.templates.schema import naming_warnings, validate_template

logger = logging.getLogger(__name__)


@dataclass
class GenerationOutcome:
    """generate 요청 결과."""
    session_id: str
    run_id: str
    total_generated: int
    download_url: str
    zip_file_name: str
    archive: ArchiveResult
    conversion_failures: list[ConversionFailure] = field(default_factory=list)
    row_errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "runId": self.run_id,
            "totalGenerated": self.total_generated,
            "downloadUrl": self.download_url,
            "zipFileName": self.zip_file_name,
            "archiveKey": self.archive.key,
            "conversionWarnings": [f.to_dict() for f in self.conversion_failures],
            "rowErrors": list(self.row_errors),
        }


class GenerationService:
    """
    세션 단위 문서 생성 서비스.

    Usage:
        service = GenerationService(storage, sessions, converter, config)
        outcome = service.generate(session_id, formats=[".docx", ".pdf"])
    """

    def __init__(
        self,
        storage: Storage,
        sessions: SessionStore,
        converter: DocumentConverter | None = None,
        config: dict[str, Any] | None = None,
    ):
        self.storage = storage
        self.sessions = sessions
        self.converter = converter
        self.config = config or {}

        generation = self.config.get("generation", {})
        archive = self.config.get("archive", {})
        paths = self.config.get("paths", {})

        self.max_workers = int(generation.get("max_workers", 1))
        self.allow_partial = bool(generation.get("allow_partial", False))
        self.default_formats = list(generation.get("default_formats", [DEFAULT_OUTPUT_EXTENSION]))
        self.archive_mode = archive.get("mode", "streaming")
        self.compression_level = int(archive.get("compression_level", 9))
        self.work_dir = Path(paths.get("work_dir", "data/work"))
        self.presign_ttl = int(self.config.get("storage", {}).get("presign_ttl_seconds", 3600))

    # =========================================================================
    # Validate
    # =========================================================================

    def validate(self, session_id: str) -> dict[str, Any]:
        """
        템플릿 placeholder ↔ 엑셀 헤더 비교.

        Raises:
            SessionError: 세션/파일 없음
            TemplateParseError: 템플릿 문법 오류
        """
        template_record, excel_record = self.sessions.get_pair(session_id)

        snapshot = TemplateSnapshot.load(self.storage.get_bytes(template_record.storage_key))
        placeholders = list(snapshot.placeholders)

        validation = validate_template(placeholders, excel_record.headers)
        validation.warnings.extend(naming_warnings(placeholders))

        logger.info(
            f"Session {session_id}: validated {len(placeholders)} placeholders "
            f"against {len(excel_record.headers)} columns (valid={validation.valid})"
        )
        return {
            "sessionId": session_id,
            "placeholders": placeholders,
            "excelHeaders": list(excel_record.headers),
            "rowCount": excel_record.row_count,
            "validation": validation.to_dict(),
        }

    # =========================================================================
    # Preview
    # =========================================================================

    def preview(self, session_id: str) -> dict[str, Any]:
        """
        첫 번째 행으로 미리보기 생성 → previews/<sid>/preview.docx

        Raises:
            SessionError, TemplateParseError, RenderError
            DatasetError: NO_DATA_ROWS
        """
        template_record, excel_record = self.sessions.get_pair(session_id)
        if not excel_record.rows:
            raise DatasetError(
                ErrorCodes.NO_DATA_ROWS,
                session_id=session_id,
                error="Excel file has no data rows",
            )

        renderer = DocxRenderer.from_bytes(self.storage.get_bytes(template_record.storage_key))
        preview_data = excel_record.rows[0]
        content = renderer.render(preview_data)

        key = f"{PREVIEWS_PREFIX}/{session_id}/{PREVIEW_FILENAME}"
        self.storage.put_bytes(key, content, content_type=MIME_TYPES[DEFAULT_OUTPUT_EXTENSION])

        logger.info(f"Session {session_id}: preview stored at {key}")
        return {
            "sessionId": session_id,
            "previewUrl": self.storage.presigned_url(key, self.presign_ttl),
            "previewData": preview_data,
        }

    # =========================================================================
    # Generate
    # =========================================================================

    def generate(
        self,
        session_id: str,
        formats: list[str] | None = None,
        filename_pattern: str | None = None,
    ) -> GenerationOutcome:
        """
        전체 행 문서 생성 → 변환 → ZIP → presigned URL.

        Raises:
            SessionError: 세션/파일 없음
            TemplateParseError: 템플릿 문제 (행 처리 전)
            DatasetError: 데이터 행 없음
            GenerationError: 행 렌더링 실패 (allow_partial=false)
            PackagingError: 아카이브 생성/업로드 실패
        """
        template_record, excel_record = self.sessions.get_pair(session_id)
        target_formats = [normalize_format(f) for f in (formats or self.default_formats)]

        run_log = create_run_log(session_id)
        run_log.formats = target_formats
        run_log.row_count = excel_record.row_count
        success = False
        error: PipelineError | None = None

        try:
            if not excel_record.rows:
                raise DatasetError(
                    ErrorCodes.NO_DATA_ROWS,
                    session_id=session_id,
                    error="Excel file has no data rows",
                )

            snapshot = TemplateSnapshot.load(
                self.storage.get_bytes(template_record.storage_key)
            )
            run_log.template_hash = snapshot.template_hash

            generator = BatchGenerator(self.max_workers)
            result = generator.generate_from_snapshot(snapshot, excel_record.rows, filename_pattern)
            run_log.row_errors = list(result.errors)
            run_log.generated_count = len(result.artifacts)

            if not result.success and not (self.allow_partial and result.artifacts):
                raise GenerationError(result.errors, session_id=session_id)

            conversion = convert_batch(self.converter, result.artifacts, target_formats)
            for failure in conversion.failures:
                emit_warning(
                    run_log,
                    code=ErrorCodes.CONVERSION_FAILED,
                    action_id=f"convert_{failure.target_format.lstrip('.')}",
                    target=failure.artifact_name,
                    message=failure.error,
                )

            key = archive_key(session_id)
            packager = ArchivePackager(
                self.storage,
                compression_level=self.compression_level,
                mode=self.archive_mode,
                work_dir=self.work_dir / session_id,
            )
            archive = packager.package(conversion.converted, key)
            run_log.archive_key = archive.key

            download_url = self.storage.presigned_url(key, self.presign_ttl)
            self.sessions.mark_processed(session_id)
            success = True

            return GenerationOutcome(
                session_id=session_id,
                run_id=run_log.run_id,
                total_generated=len(result.artifacts),
                download_url=download_url,
                zip_file_name=archive_filename(session_id),
                archive=archive,
                conversion_failures=conversion.failures,
                row_errors=result.errors,
            )

        except PipelineError as e:
            error = e
            raise

        finally:
            complete_run_log(
                run_log,
                success=success,
                error_code=error.code if error else None,
                error_context=error.to_dict() if error else None,
            )
            log_path = save_run_log(run_log, self.sessions.logs_dir(session_id))
            logger.info(f"Session {session_id}: run {run_log.run_id} {run_log.result} ({log_path})")

    # =========================================================================
    # Download
    # =========================================================================

    def download_url(self, session_id: str) -> dict[str, Any]:
        """
        생성된 ZIP의 presigned URL.

        Raises:
            StorageError: STORAGE_NOT_FOUND (아직 생성 안 됨)
        """
        key = archive_key(self.sessions.session_dir(session_id).name)
        if not self.storage.exists(key):
            raise StorageError(ErrorCodes.STORAGE_NOT_FOUND, key=key, session_id=session_id)

        return {
            "sessionId": session_id,
            "downloadUrl": self.storage.presigned_url(key, self.presign_ttl),
            "zipFileName": archive_filename(session_id),
        }

    # =========================================================================
    # Run logs
    # =========================================================================

    def run_logs(self, session_id: str) -> dict[str, Any]:
        """
        세션의 generate 실행 기록 (최신순).

        Raises:
            SessionError: SESSION_NOT_FOUND (없는 세션)
        """
        if not self.sessions.session_dir(session_id).exists():
            raise SessionError(ErrorCodes.SESSION_NOT_FOUND, session_id=session_id)

        runs = [load_run_log(path) for path in list_run_logs(self.sessions.logs_dir(session_id))]
        return {"sessionId": session_id, "runs": runs}
