"""
FastAPI Routes.

API 라우트 (업로드, 검증/미리보기/생성/다운로드) + 로컬 파일 서빙
"""

from . import documents, uploads

__all__ = ["documents", "uploads"]
