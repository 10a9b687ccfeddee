"""
Application Services.

역할:
- uploads: 템플릿/엑셀 업로드 → Storage + 세션 레코드
- generation: 검증, 미리보기, 일괄 생성, 다운로드 URL
"""

from .generation import GenerationOutcome, GenerationService
from .uploads import UploadService

__all__ = [
    "UploadService",
    "GenerationService",
    "GenerationOutcome",
]
