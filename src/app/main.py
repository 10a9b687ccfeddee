"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uvicorn src.app.main:app --reload
- 프로덕션: uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI

# Routes
from src.app.routes import documents, uploads
from src.app.services.generation import GenerationService
from src.app.services.uploads import UploadService
from src.core.config import configure_logging, load_config
from src.core.sessions import SessionStore
from src.core.storage import create_storage
from src.render.convert import DocumentConverter, LibreOfficeConverter, RetryingConverter

logger = logging.getLogger(__name__)


# =============================================================================
# Wiring
# =============================================================================


def create_converter(config: dict[str, Any]) -> DocumentConverter:
    """conversion 섹션으로 변환기 생성 (max_retries > 0이면 재시도 래퍼)."""
    conversion = config.get("conversion", {})
    converter: DocumentConverter = LibreOfficeConverter(
        soffice_path=conversion.get("soffice_path", "soffice"),
        timeout_seconds=float(conversion.get("timeout_seconds", 120)),
        work_dir=Path(config.get("paths", {}).get("work_dir", "data/work")),
    )

    max_retries = int(conversion.get("max_retries", 0))
    if max_retries > 0:
        converter = RetryingConverter(
            converter,
            max_retries=max_retries,
            initial_delay=float(conversion.get("retry_delay_seconds", 1.0)),
        )
    return converter


def init_state(app: FastAPI, config: dict[str, Any]) -> None:
    """설정 → storage, sessions, converter, services를 app.state에 연결."""
    paths = config.get("paths", {})

    storage = create_storage(config)
    sessions = SessionStore(
        Path(paths.get("sessions_root", "data/sessions")),
        lock_timeout=float(config.get("sessions", {}).get("lock_timeout_seconds", 10)),
    )
    converter = create_converter(config)

    app.state.config = config
    app.state.storage = storage
    app.state.sessions = sessions
    app.state.converter = converter
    app.state.upload_service = UploadService(
        storage,
        sessions,
        max_file_size=int(config.get("uploads", {}).get("max_file_size", 10 * 1024 * 1024)),
    )
    app.state.generation_service = GenerationService(storage, sessions, converter, config)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 리소스 초기화 (테스트에서 미리 넣은 state는 유지)
    종료 시: 리소스 정리
    """
    # Startup
    if not hasattr(app.state, "config"):
        config = load_config()
        configure_logging(config)
        init_state(app, config)
        logger.info(f"Started with storage backend '{app.state.storage.backend}'")

    yield

    # Shutdown
    # (리소스 정리 필요 시 여기에 추가)


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Document Merge Pipeline",
    description="템플릿(DOCX) + 엑셀 행 → 개인화 문서 일괄 생성 → ZIP",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Routes
# =============================================================================

# 파일 서빙 (로컬 스토리지 presigned URL)
app.include_router(documents.router, prefix="", tags=["Files"])

# API 라우트
app.include_router(uploads.api_router, prefix="/api/upload", tags=["Upload API"])
app.include_router(documents.api_router, prefix="/api", tags=["Documents API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    """엔드포인트 목록."""
    return {
        "message": "Document Merge Pipeline",
        "endpoints": {
            "upload_template": "/api/upload/template",
            "upload_excel": "/api/upload/excel",
            "validate": "/api/validate",
            "preview": "/api/preview",
            "generate": "/api/generate",
            "download": "/api/download/zip/{sessionId}",
            "runs": "/api/runs/{sessionId}",
        },
    }


@app.get("/health")
async def health() -> dict[str, Any]:
    """헬스 체크 + 변환기 사용 가능 여부."""
    converter = getattr(app.state, "converter", None)
    return {
        "status": "ok",
        "storage": getattr(getattr(app.state, "storage", None), "backend", None),
        "converter_available": bool(converter and converter.is_available()),
    }


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
