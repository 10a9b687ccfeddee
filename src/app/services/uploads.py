"""
Upload Service: 템플릿/엑셀 업로드 → Storage + SessionRecord.

규칙:
- 템플릿: .docx만, 엑셀: .xlsx만 (확장자 + MIME 타입 + 크기 검사)
- session_id는 요청에 있으면 재사용, 없으면 새로 발급
- 템플릿은 업로드 시 placeholder를 추출해 레코드에 캐시 (문법 오류면 거부)
- 엑셀은 업로드 시 한 번만 파싱해서 headers/rows를 레코드에 캐시
- 저장 키: uploads/<session_id>/<file_type>/<정제된 파일명>
"""

import logging
import os

from src.core.ids import generate_session_id, is_valid_session_id
from src.core.sessions import SessionStore
from src.core.storage import Storage
from src.domain.constants import (
    DEFAULT_MAX_FILE_SIZE,
    SPREADSHEET_EXTENSIONS,
    SPREADSHEET_MIME_TYPES,
    TEMPLATE_EXTENSIONS,
    TEMPLATE_MIME_TYPES,
    UPLOADS_PREFIX,
    get_mime_type,
)
from src.domain.errors import DatasetError, ErrorCodes, UploadError
from src.domain.schemas import SessionRecord
from src.ingest.spreadsheet import parse_spreadsheet, validate_dataset
from src.render.filenames import sanitize_filename
from src.templates.placeholders import extract_placeholders

logger = logging.getLogger(__name__)

# 브라우저/클라이언트가 타입을 모를 때 보내는 값 → 확장자로만 판단
GENERIC_MIME_TYPES = ("", "application/octet-stream")


class UploadService:
    """
    업로드 처리 서비스.

    Usage:
        service = UploadService(storage, sessions, max_file_size=10 * 1024 * 1024)
        record = service.upload_template("receipt.docx", content, content_type)
    """

    def __init__(
        self,
        storage: Storage,
        sessions: SessionStore,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self.storage = storage
        self.sessions = sessions
        self.max_file_size = max_file_size

    def upload_template(
        self,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        session_id: str | None = None,
    ) -> SessionRecord:
        """
        템플릿 업로드.

        Raises:
            UploadError: INVALID_UPLOAD
            TemplateParseError: 템플릿을 열 수 없거나 문법 오류
        """
        self._check_file(filename, content, content_type, TEMPLATE_EXTENSIONS, TEMPLATE_MIME_TYPES)
        session_id = self._resolve_session_id(session_id)

        placeholders = extract_placeholders(content)

        key = self._store(session_id, "template", filename, content)
        record = SessionRecord(
            session_id=session_id,
            file_type="template",
            original_name=filename,
            storage_key=key,
            placeholders=sorted(placeholders),
        )
        return self.sessions.save(record)

    def upload_spreadsheet(
        self,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        session_id: str | None = None,
    ) -> SessionRecord:
        """
        엑셀 업로드 + 파싱.

        Raises:
            UploadError: INVALID_UPLOAD
            DatasetError: 파싱 실패 또는 데이터 없음
        """
        self._check_file(
            filename, content, content_type, SPREADSHEET_EXTENSIONS, SPREADSHEET_MIME_TYPES
        )
        session_id = self._resolve_session_id(session_id)

        dataset = parse_spreadsheet(content)
        valid, error = validate_dataset(dataset)
        if not valid:
            raise DatasetError(ErrorCodes.NO_DATA_ROWS, error=error, filename=filename)

        key = self._store(session_id, "excel", filename, content)
        record = SessionRecord(
            session_id=session_id,
            file_type="excel",
            original_name=filename,
            storage_key=key,
            headers=dataset.headers,
            rows=dataset.rows,
        )
        return self.sessions.save(record)

    # =========================================================================
    # Internal
    # =========================================================================

    def _check_file(
        self,
        filename: str,
        content: bytes,
        content_type: str | None,
        extensions: tuple[str, ...],
        mime_types: tuple[str, ...],
    ) -> None:
        if not filename:
            raise UploadError(ErrorCodes.INVALID_UPLOAD, error="No file uploaded")

        ext = os.path.splitext(filename)[1].lower()
        if ext not in extensions:
            raise UploadError(
                ErrorCodes.INVALID_UPLOAD,
                error=f"Invalid file extension. Allowed: {', '.join(extensions)}",
                filename=filename,
            )

        mime = (content_type or "").split(";")[0].strip().lower()
        if mime not in GENERIC_MIME_TYPES and mime not in mime_types:
            raise UploadError(
                ErrorCodes.INVALID_UPLOAD,
                error=f"Invalid file type. Allowed types: {', '.join(extensions)}",
                filename=filename,
                content_type=content_type,
            )

        if len(content) > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise UploadError(
                ErrorCodes.INVALID_UPLOAD,
                error=f"File too large. Maximum size: {max_mb:.2f}MB",
                filename=filename,
                size=len(content),
            )

        if not content:
            raise UploadError(ErrorCodes.INVALID_UPLOAD, error="Empty file", filename=filename)

    def _resolve_session_id(self, session_id: str | None) -> str:
        if not session_id:
            return generate_session_id()
        if not is_valid_session_id(session_id):
            raise UploadError(
                ErrorCodes.INVALID_UPLOAD,
                error="Invalid session id",
                session_id=session_id,
            )
        return session_id

    def _store(self, session_id: str, file_type: str, filename: str, content: bytes) -> str:
        key = f"{UPLOADS_PREFIX}/{session_id}/{file_type}/{sanitize_filename(filename)}"
        self.storage.put_bytes(key, content, content_type=get_mime_type(filename))
        logger.info(f"Session {session_id}: stored {file_type} upload at {key} ({len(content)} bytes)")
        return key
