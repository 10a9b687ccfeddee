"""
Render layer: 템플릿 + 행 → 문서 → 변환 → ZIP.

역할:
- 행 단위 DOCX 렌더링 (docxtpl)
- 파일명 결정, 일괄 생성
- LibreOffice 포맷 변환
- ZIP 패키징 (buffered / streaming)
"""

from .archive import ArchivePackager, StreamPipe
from .batch import BatchGenerator, generate_documents
from .convert import (
    DocumentConverter,
    LibreOfficeConverter,
    RetryingConverter,
    convert_batch,
    normalize_format,
)
from .filenames import UniqueNameRegistry, resolve_filename, sanitize_filename
from .word import DocxRenderer, render_docx, render_preview

__all__ = [
    # word
    "DocxRenderer",
    "render_docx",
    "render_preview",
    # filenames
    "resolve_filename",
    "sanitize_filename",
    "UniqueNameRegistry",
    # batch
    "BatchGenerator",
    "generate_documents",
    # convert
    "DocumentConverter",
    "LibreOfficeConverter",
    "RetryingConverter",
    "convert_batch",
    "normalize_format",
    # archive
    "ArchivePackager",
    "StreamPipe",
]
