"""
PipelineError → HTTP 상태 코드 매핑.

- 세션/객체 없음: 404
- 입력 문제 (업로드, 데이터셋, 템플릿 문법, 미리보기 렌더링): 400
- 행 렌더링 실패로 생성 중단: 422
- 세션 락 충돌: 409
- 패키징/스토리지 쓰기 실패: 500
"""

import logging

from fastapi import HTTPException

from src.domain.errors import (
    DatasetError,
    ErrorCodes,
    GenerationError,
    PackagingError,
    PipelineError,
    RenderError,
    SessionError,
    StorageError,
    TemplateParseError,
    UploadError,
)

logger = logging.getLogger(__name__)


def status_for(error: PipelineError) -> int:
    """에러 → HTTP 상태 코드."""
    if isinstance(error, SessionError):
        if error.code == ErrorCodes.SESSION_LOCK_TIMEOUT:
            return 409
        if error.code == ErrorCodes.SESSION_CORRUPT:
            return 500
        return 404
    if isinstance(error, StorageError):
        if error.code == ErrorCodes.STORAGE_NOT_FOUND:
            return 404
        if error.code == ErrorCodes.STORAGE_INVALID_KEY:
            return 400
        return 500
    if isinstance(error, (UploadError, DatasetError, TemplateParseError, RenderError)):
        return 400
    if isinstance(error, GenerationError):
        return 422
    if isinstance(error, PackagingError):
        return 500
    return 500


def to_http_exception(error: PipelineError) -> HTTPException:
    """
    PipelineError를 HTTPException으로 변환.

    detail: {"success": False, "error": <메시지>, "code": ..., <context>}
    """
    status_code = status_for(error)
    message = error.context.get("error") or str(error)

    if status_code >= 500:
        logger.error(f"Request failed ({status_code}): {error}")
    else:
        logger.warning(f"Request rejected ({status_code}): {error.code}")

    return HTTPException(
        status_code=status_code,
        detail={
            "success": False,
            **error.to_dict(),
            "error": message,
        },
    )
