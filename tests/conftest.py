"""
Pytest fixtures for the pipeline tests.

테스트 구성:
- DOCX 템플릿 / XLSX 스프레드시트는 tmp_path 안에서 python-docx, openpyxl로 직접 생성
- 스토리지/세션은 tmp_path 기반 LocalStorage, SessionStore
- LibreOffice 대신 FakeConverter (soffice 없는 환경에서도 동작)
"""

import io
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

import pytest
import yaml
from docx import Document
from openpyxl import Workbook

from src.core.config import load_config
from src.core.sessions import SessionStore
from src.core.storage import LocalStorage
from src.domain.errors import ConversionError
from src.render.convert import DocumentConverter

# =============================================================================
# Path / Config Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드 (YAML 원문)."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def test_config(tmp_path: Path) -> dict[str, Any]:
    """
    tmp_path 기반 설정.

    - 스토리지/세션/작업 디렉토리 모두 tmp_path 아래
    - 환경 변수 영향 없음 (env={})
    """
    config = load_config(tmp_path / "missing.yaml", env={})
    config["paths"]["work_dir"] = str(tmp_path / "work")
    config["paths"]["sessions_root"] = str(tmp_path / "sessions")
    config["storage"]["local"]["root"] = str(tmp_path / "storage")
    config["storage"]["local"]["base_url"] = "http://testserver"
    config["storage"]["local"]["secret"] = "test-secret"
    return config


# =============================================================================
# Document Factories
# =============================================================================

def build_docx(
    paragraphs: Iterable[str],
    header: str | None = None,
) -> bytes:
    """
    문단 목록으로 DOCX 바이트 생성.

    Args:
        paragraphs: 본문 문단 텍스트
        header: 머리글 텍스트 (선택)
    """
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    if header is not None:
        doc.sections[0].header.paragraphs[0].text = header

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def build_xlsx(rows: Sequence[Sequence[Any]], title: str = "Sheet1") -> bytes:
    """
    행 목록으로 XLSX 바이트 생성 (첫 행 = 헤더).
    """
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for row in rows:
        ws.append(list(row))

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def docx_text(content: bytes) -> str:
    """DOCX 본문 텍스트 (문단을 줄바꿈으로 연결)."""
    doc = Document(io.BytesIO(content))
    return "\n".join(p.text for p in doc.paragraphs)


@pytest.fixture
def make_docx() -> Callable[..., bytes]:
    return build_docx


@pytest.fixture
def make_xlsx() -> Callable[..., bytes]:
    return build_xlsx


@pytest.fixture
def receipt_template() -> bytes:
    """
    영수증 템플릿.

    placeholder: {{NAME}}, {{AMOUNT}}
    """
    return build_docx([
        "Receipt",
        "Name: {{NAME}}",
        "Amount: {{AMOUNT}}",
    ])


@pytest.fixture
def receipt_rows() -> list[dict[str, str]]:
    """영수증 데이터 2행 (Ana, Bob)."""
    return [
        {"NAME": "Ana", "AMOUNT": "10"},
        {"NAME": "Bob", "AMOUNT": "20"},
    ]


@pytest.fixture
def receipt_xlsx() -> bytes:
    """영수증 데이터 XLSX (NAME, AMOUNT / Ana 10 / Bob 20)."""
    return build_xlsx([
        ["NAME", "AMOUNT"],
        ["Ana", 10],
        ["Bob", 20],
    ])


# =============================================================================
# Storage / Session Fixtures
# =============================================================================

@pytest.fixture
def storage(tmp_path: Path) -> LocalStorage:
    """tmp_path 기반 로컬 스토리지."""
    return LocalStorage(
        tmp_path / "storage",
        base_url="http://testserver",
        secret="test-secret",
    )


@pytest.fixture
def session_store(tmp_path: Path) -> SessionStore:
    """tmp_path 기반 세션 저장소."""
    return SessionStore(tmp_path / "sessions", lock_timeout=1)


# =============================================================================
# Converter Fixtures
# =============================================================================

class FakeConverter(DocumentConverter):
    """
    테스트용 변환기.

    - 결과: b"<포맷>:" + 원본 바이트
    - fail_formats에 있는 포맷은 ConversionError
    - calls에 (원본 길이, 포맷) 기록
    """

    def __init__(self, fail_formats: Iterable[str] = (), available: bool = True):
        self.fail_formats = set(fail_formats)
        self.available = available
        self.calls: list[tuple[int, str]] = []

    def convert(self, content: bytes, target_ext: str) -> bytes:
        self.calls.append((len(content), target_ext))
        if target_ext in self.fail_formats:
            raise ConversionError(target_ext, f"cannot convert to {target_ext}")
        return target_ext.encode("ascii") + b":" + content

    def is_available(self) -> bool:
        return self.available


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def make_converter() -> Callable[..., FakeConverter]:
    """FakeConverter 생성기 (fail_formats, available 지정)."""
    return FakeConverter


@pytest.fixture
def read_docx_text() -> Callable[[bytes], str]:
    return docx_text
