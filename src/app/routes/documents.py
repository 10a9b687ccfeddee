"""
Document Routes: 검증 / 미리보기 / 일괄 생성 / 다운로드.

- POST /api/validate          {"sessionId"}
- POST /api/preview           {"sessionId"}
- POST /api/generate          {"sessionId", "formats"?, "fileNamePattern"?}
- GET  /api/download/zip/{sessionId}
- GET  /files/{key}           로컬 스토리지의 presigned URL 대상
"""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from src.app.errors import to_http_exception
from src.app.services.generation import GenerationService
from src.core.storage import LocalStorage
from src.domain.constants import get_mime_type
from src.domain.errors import PipelineError

# Routers
router = APIRouter()  # 파일 서빙
api_router = APIRouter()  # API endpoints


def _service(request: Request) -> GenerationService:
    return request.app.state.generation_service


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("/validate")
async def validate_files(
    request: Request,
    session_id: str = Body(..., embed=True, alias="sessionId"),
) -> dict[str, Any]:
    """템플릿 placeholder ↔ 엑셀 헤더 검증."""
    try:
        data = await run_in_threadpool(_service(request).validate, session_id)
    except PipelineError as e:
        raise to_http_exception(e) from e
    return {"success": True, "data": data}


@api_router.post("/preview")
async def generate_preview(
    request: Request,
    session_id: str = Body(..., embed=True, alias="sessionId"),
) -> dict[str, Any]:
    """첫 번째 행으로 미리보기 생성."""
    try:
        data = await run_in_threadpool(_service(request).preview, session_id)
    except PipelineError as e:
        raise to_http_exception(e) from e
    return {"success": True, "data": data}


@api_router.post("/generate")
async def generate_documents(
    request: Request,
    session_id: str = Body(..., alias="sessionId"),
    formats: list[str] | None = Body(None),
    file_name_pattern: str | None = Body(None, alias="fileNamePattern"),
) -> dict[str, Any]:
    """
    전체 문서 생성.

    Returns:
        sessionId, totalGenerated, downloadUrl, zipFileName, conversionWarnings
    """
    try:
        outcome = await run_in_threadpool(
            _service(request).generate,
            session_id,
            formats,
            file_name_pattern,
        )
    except PipelineError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"success": False, "error": str(e)}) from e

    return {"success": True, "data": outcome.to_dict()}


@api_router.get("/download/zip/{session_id}")
async def download_zip(request: Request, session_id: str) -> dict[str, Any]:
    """생성된 ZIP의 presigned URL."""
    try:
        data = await run_in_threadpool(_service(request).download_url, session_id)
    except PipelineError as e:
        raise to_http_exception(e) from e
    return {"success": True, "data": data}


@api_router.get("/runs/{session_id}")
async def run_logs(request: Request, session_id: str) -> dict[str, Any]:
    """세션의 generate 실행 기록 (최신순)."""
    try:
        data = await run_in_threadpool(_service(request).run_logs, session_id)
    except PipelineError as e:
        raise to_http_exception(e) from e
    return {"success": True, "data": data}


# =============================================================================
# Local storage file serving
# =============================================================================

@router.get("/files/{key:path}")
async def serve_file(
    request: Request,
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
) -> FileResponse:
    """LocalStorage presigned URL 검증 후 파일 전송."""
    storage = request.app.state.storage
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Not found")

    if not storage.verify(key, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired link")

    try:
        path = storage.path_for(key)
    except PipelineError as e:
        raise to_http_exception(e) from e

    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(path, media_type=get_mime_type(path.name), filename=path.name)
