"""
Format Converter: DOCX → 다른 포맷 (LibreOffice headless).

규칙:
- (artifact, format) 쌍 단위로 변환, 실패는 쌍마다 독립적으로 기록
- 한 쌍의 실패가 다른 파일/포맷을 막지 않음
- 변환 결과 이름은 포맷별로 다시 유일화 (확장자 교체 후 충돌 방지)
- 기본은 1회 시도. 재시도는 RetryingConverter로 배포 설정에서 선택
- 변환마다 별도 임시 디렉토리 + 별도 LibreOffice 프로필 (동시 실행 격리)
"""

import logging
import subprocess
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from src.domain.constants import DEFAULT_OUTPUT_EXTENSION
from src.domain.errors import ConversionError
from src.domain.schemas import ConversionBatchResult, ConversionFailure, GeneratedArtifact
from src.render.filenames import UniqueNameRegistry, split_extension
from src.utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

DEFAULT_SOFFICE_PATH = "soffice"
DEFAULT_TIMEOUT_SECONDS = 120
STDERR_TAIL = 500


def normalize_format(fmt: str) -> str:
    """
    포맷 표기 정규화.

    "odt", ".ODT", " pdf " → ".odt", ".odt", ".pdf"
    """
    value = fmt.strip().lower()
    if not value:
        raise ValueError("Empty format")
    return value if value.startswith(".") else f".{value}"


def replace_extension(name: str, target_ext: str) -> str:
    """receipt_1_Ana.docx + .pdf → receipt_1_Ana.pdf"""
    stem, _ = split_extension(name)
    return f"{stem}{target_ext}"


# =============================================================================
# Converter interface
# =============================================================================

class DocumentConverter(ABC):
    """문서 변환기 인터페이스."""

    @abstractmethod
    def convert(self, content: bytes, target_ext: str) -> bytes:
        """
        문서 바이트를 대상 포맷으로 변환.

        Args:
            content: 원본 문서 바이트 (DOCX)
            target_ext: 대상 확장자 (예: ".pdf")

        Returns:
            변환된 바이트

        Raises:
            ConversionError
        """

    def is_available(self) -> bool:
        return True


class LibreOfficeConverter(DocumentConverter):
    """
    soffice --headless --convert-to 기반 변환기.

    Usage:
        converter = LibreOfficeConverter("/usr/bin/soffice", timeout_seconds=60)
        pdf_bytes = converter.convert(docx_bytes, ".pdf")
    """

    def __init__(
        self,
        soffice_path: str = DEFAULT_SOFFICE_PATH,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        work_dir: Path | None = None,
    ):
        self.soffice_path = soffice_path
        self.timeout_seconds = timeout_seconds
        self.work_dir = work_dir

    def convert(self, content: bytes, target_ext: str) -> bytes:
        target_ext = normalize_format(target_ext)

        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="convert_", dir=self.work_dir) as tmp:
            tmp_dir = Path(tmp)
            input_path = tmp_dir / f"input{DEFAULT_OUTPUT_EXTENSION}"
            out_dir = tmp_dir / "out"
            profile_dir = tmp_dir / "profile"
            out_dir.mkdir()
            input_path.write_bytes(content)

            cmd = [
                self.soffice_path,
                f"-env:UserInstallation={profile_dir.resolve().as_uri()}",
                "--headless",
                "--nologo",
                "--nolockcheck",
                "--norestore",
                "--convert-to", target_ext.lstrip("."),
                "--outdir", str(out_dir),
                str(input_path),
            ]

            try:
                proc = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=self.timeout_seconds,
                )
            except subprocess.TimeoutExpired as e:
                raise ConversionError(
                    target_ext, f"Conversion timed out after {self.timeout_seconds}s"
                ) from e
            except OSError as e:
                raise ConversionError(
                    target_ext, f"Could not start converter: {e}"
                ) from e

            if proc.returncode != 0:
                raise ConversionError(
                    target_ext,
                    f"Converter exited with code {proc.returncode}",
                    stderr=(proc.stderr or "")[-STDERR_TAIL:],
                )

            output_path = out_dir / f"{input_path.stem}{target_ext}"
            if not output_path.exists():
                raise ConversionError(target_ext, "Converter produced no output file")

            return output_path.read_bytes()

    def is_available(self) -> bool:
        """soffice --version 실행 가능 여부."""
        try:
            proc = subprocess.run(
                [self.soffice_path, "--version"],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"LibreOffice not available at '{self.soffice_path}': {e}")
            return False

        if proc.returncode != 0:
            logger.warning(f"LibreOffice version check failed: {proc.stderr.strip()}")
            return False

        logger.info(f"LibreOffice available: {proc.stdout.strip()}")
        return True


class RetryingConverter(DocumentConverter):
    """다른 변환기를 감싸 재시도 정책을 부여."""

    def __init__(
        self,
        inner: DocumentConverter,
        max_retries: int = 0,
        initial_delay: float = 1.0,
    ):
        self.inner = inner
        self.max_retries = max_retries
        self.initial_delay = initial_delay

    def convert(self, content: bytes, target_ext: str) -> bytes:
        return retry_with_exponential_backoff(
            self.inner.convert,
            content,
            target_ext,
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            exceptions=(ConversionError,),
        )

    def is_available(self) -> bool:
        return self.inner.is_available()


# =============================================================================
# Batch conversion
# =============================================================================

def convert_batch(
    converter: DocumentConverter | None,
    artifacts: Sequence[GeneratedArtifact],
    target_formats: Sequence[str],
) -> ConversionBatchResult:
    """
    모든 (artifact, format) 쌍 변환.

    원본 포맷(.docx)은 변환 없이 그대로 포함.

    Args:
        converter: 변환기 (원본 포맷만 요청되면 None 허용)
        artifacts: 생성된 DOCX 산출물
        target_formats: 요청 포맷 목록 (예: [".docx", ".pdf"])

    Returns:
        ConversionBatchResult (포맷별 산출물 + 실패 목록)
    """
    converted: dict[str, list[GeneratedArtifact]] = {}
    failures: list[ConversionFailure] = []

    formats = list(dict.fromkeys(normalize_format(f) for f in target_formats))

    for fmt in formats:
        if fmt == DEFAULT_OUTPUT_EXTENSION:
            converted[fmt] = list(artifacts)
            continue

        results: list[GeneratedArtifact] = []
        registry = UniqueNameRegistry()
        for position, artifact in enumerate(artifacts, start=1):
            if converter is None:
                failures.append(ConversionFailure(
                    artifact_name=artifact.name,
                    target_format=fmt,
                    error="No converter configured",
                ))
                continue

            try:
                content = converter.convert(artifact.content, fmt)
            except ConversionError as e:
                logger.warning(f"Conversion failed: {artifact.name} → {fmt}: {e.error}")
                failures.append(ConversionFailure(
                    artifact_name=artifact.name,
                    target_format=fmt,
                    error=e.error,
                ))
                continue

            results.append(GeneratedArtifact(
                name=registry.claim(replace_extension(artifact.name, fmt), position),
                content=content,
            ))

        converted[fmt] = results

    logger.info(
        f"Conversion finished: formats={formats}, artifacts={len(artifacts)}, "
        f"failures={len(failures)}"
    )
    return ConversionBatchResult(converted=converted, failures=failures)
