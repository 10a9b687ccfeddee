"""
Domain Constants: 파이프라인 전역 상수.

파일명 정책, 스토리지 키 규칙, MIME 타입 등 시스템 전반에서 사용되는 값들.
"""

import os

# =============================================================================
# Output Filenames (출력 파일명 정책)
# =============================================================================
# 기본 파일명: receipt_<행번호>_<NAME>.docx
# 패턴 결과가 비면: document_<행번호>

DEFAULT_OUTPUT_EXTENSION = ".docx"
DEFAULT_FILENAME_PREFIX = "receipt"
FALLBACK_FILENAME_PREFIX = "document"
NAME_FIELD = "NAME"

# 파일명 끝이 이 중 하나일 때만 확장자로 인정 ("J. Smith", "10.50"의 점은 확장자 아님)
DOCUMENT_EXTENSIONS = (".docx", ".doc", ".odt", ".pdf", ".rtf", ".txt", ".html")

# =============================================================================
# Placeholder 규칙
# =============================================================================

PLACEHOLDER_START = "{{"
PLACEHOLDER_END = "}}"

# =============================================================================
# Dataset 정규화
# =============================================================================

DATE_DISPLAY_FORMAT = "%d/%m/%Y"

# =============================================================================
# Storage Key 구조
# =============================================================================
# uploads/<session_id>/<original_name>
# previews/<session_id>/preview.docx
# generated/<session_id>/documents_<session_id>.zip

UPLOADS_PREFIX = "uploads"
PREVIEWS_PREFIX = "previews"
GENERATED_PREFIX = "generated"
PREVIEW_FILENAME = "preview.docx"


def archive_filename(session_id: str) -> str:
    """세션의 ZIP 파일명."""
    return f"documents_{session_id}.zip"


def archive_key(session_id: str) -> str:
    """세션의 ZIP 스토리지 키."""
    return f"{GENERATED_PREFIX}/{session_id}/{archive_filename(session_id)}"


# =============================================================================
# Session 디렉토리 구조
# =============================================================================
# sessions/<session_id>/
# ├── session_template.json
# ├── session_excel.json
# └── logs/run_<run_id>.json

SESSION_LOGS_DIR = "logs"
SESSION_LOCK_FILENAME = ".session.lock"

# =============================================================================
# Archive
# =============================================================================

ARCHIVE_MODES = ("buffered", "streaming")
MAX_COMPRESSION_LEVEL = 9

# =============================================================================
# Upload 정책
# =============================================================================

TEMPLATE_EXTENSIONS = (".docx",)
SPREADSHEET_EXTENSIONS = (".xlsx",)
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

# =============================================================================
# MIME Types
# =============================================================================

MIME_TYPES = {
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".rtf": "application/rtf",
    ".txt": "text/plain",
    ".html": "text/html",
    ".json": "application/json",
    ".zip": "application/zip",
}

TEMPLATE_MIME_TYPES = (MIME_TYPES[".docx"],)
SPREADSHEET_MIME_TYPES = (
    MIME_TYPES[".xlsx"],
    "application/vnd.ms-excel",
)


def get_mime_type(filename: str) -> str:
    """
    파일명에서 MIME 타입 추출.

    Args:
        filename: 파일명 (확장자 포함)

    Returns:
        MIME 타입 문자열 (알 수 없으면 octet-stream)
    """
    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "application/octet-stream")
