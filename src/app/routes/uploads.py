"""
Upload Routes: 템플릿/엑셀 업로드.

- POST /api/upload/template → .docx 저장 + placeholder 캐시
- POST /api/upload/excel → .xlsx 저장 + headers/rows 캐시

sessionId를 함께 보내면 같은 세션에 붙고, 없으면 새 세션 발급.
"""

from typing import Any

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from src.app.errors import to_http_exception
from src.app.services.uploads import UploadService
from src.domain.errors import PipelineError

api_router = APIRouter()


def _service(request: Request) -> UploadService:
    return request.app.state.upload_service


@api_router.post("/template")
async def upload_template(
    request: Request,
    template: UploadFile = File(...),
    session_id: str | None = Form(None, alias="sessionId"),
) -> dict[str, Any]:
    """템플릿(.docx) 업로드."""
    content = await template.read()

    try:
        record = await run_in_threadpool(
            _service(request).upload_template,
            template.filename or "",
            content,
            template.content_type,
            session_id,
        )
    except PipelineError as e:
        raise to_http_exception(e) from e

    return {
        "success": True,
        "data": {
            "sessionId": record.session_id,
            "fileName": record.original_name,
            "originalName": record.original_name,
            "storageKey": record.storage_key,
            "size": len(content),
            "placeholders": record.placeholders,
        },
    }


@api_router.post("/excel")
async def upload_excel(
    request: Request,
    excel: UploadFile = File(...),
    session_id: str | None = Form(None, alias="sessionId"),
) -> dict[str, Any]:
    """엑셀(.xlsx) 업로드 + 파싱."""
    content = await excel.read()

    try:
        record = await run_in_threadpool(
            _service(request).upload_spreadsheet,
            excel.filename or "",
            content,
            excel.content_type,
            session_id,
        )
    except PipelineError as e:
        raise to_http_exception(e) from e

    return {
        "success": True,
        "data": {
            "sessionId": record.session_id,
            "fileName": record.original_name,
            "originalName": record.original_name,
            "storageKey": record.storage_key,
            "size": len(content),
            "headers": record.headers,
            "rowCount": record.row_count,
        },
    }
