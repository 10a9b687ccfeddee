"""
Archive Packager: 포맷별 산출물 → ZIP 1개 → Storage.

규칙:
- 엔트리 경로: "<format 폴더>/<산출물 이름>" (폴더명은 앞의 "." 제거: .docx → docx/)
- ZIP_DEFLATED, 기본 압축 레벨 9, 엔트리 시각 고정 (같은 입력 → 같은 바이트)
- buffered: 세션 작업 디렉토리의 임시 파일에 완성 후 업로드
- streaming: 메모리 파이프로 압축 스트림을 바로 업로드 (로컬 디스크에 쓰지 않음)
- 원자성: 어떤 단계가 실패해도 PackagingError 하나로 보고, 잘린 아카이브를 성공으로 남기지 않음
"""

import logging
import tempfile
import threading
import zipfile
from collections import deque
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from src.core.storage import Storage
from src.domain.constants import ARCHIVE_MODES, MAX_COMPRESSION_LEVEL, MIME_TYPES
from src.domain.errors import PackagingError
from src.domain.schemas import ArchiveResult, GeneratedArtifact
from src.render.word import FIXED_ZIP_TIMESTAMP

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPE = MIME_TYPES[".zip"]
DEFAULT_PIPE_BUFFER = 8 * 1024 * 1024


def format_folder(fmt: str) -> str:
    """".docx" → "docx" """
    return fmt.strip().lstrip(".").lower()


# =============================================================================
# Stream Pipe
# =============================================================================

class StreamPipe:
    """
    생산자(zip writer) → 소비자(업로드) 사이의 제한된 메모리 파이프.

    - write: 버퍼가 가득 차면 대기 (backpressure)
    - read: 데이터가 없으면 대기, finish() 후 비면 b"" (EOF)
    - abort(exc): 소비자의 read가 EOF 대신 예외를 받음
    - cancel(): 소비자가 포기함, 생산자의 write가 BrokenPipeError

    tell/seek가 없으므로 zipfile은 비탐색 스트림 모드(data descriptor)로 씀.
    """

    def __init__(self, max_buffer: int = DEFAULT_PIPE_BUFFER):
        self.max_buffer = max_buffer
        self._chunks: deque[bytes] = deque()
        self._buffered = 0
        self._finished = False
        self._cancelled = False
        self._error: BaseException | None = None
        self._cond = threading.Condition()

    # --- producer ---

    def write(self, data: bytes) -> int:
        if not data:
            return 0
        data = bytes(data)
        with self._cond:
            while self._buffered >= self.max_buffer and not self._cancelled:
                self._cond.wait()
            if self._cancelled:
                raise BrokenPipeError("Stream consumer stopped reading")
            if self._finished or self._error is not None:
                raise ValueError("write to closed pipe")
            self._chunks.append(data)
            self._buffered += len(data)
            self._cond.notify_all()
        return len(data)

    def flush(self) -> None:
        pass

    def finish(self) -> None:
        with self._cond:
            self._finished = True
            self._cond.notify_all()

    def abort(self, error: BaseException) -> None:
        with self._cond:
            self._error = error
            self._cond.notify_all()

    # --- consumer ---

    def read(self, size: int = -1) -> bytes:
        with self._cond:
            while not self._chunks and not self._finished and self._error is None:
                self._cond.wait()

            if self._error is not None:
                raise OSError(f"Archive stream aborted: {self._error}") from self._error

            if not self._chunks:
                return b""

            out = bytearray()
            while self._chunks and (size is None or size < 0 or len(out) < size):
                chunk = self._chunks.popleft()
                if size is not None and 0 <= size < len(out) + len(chunk):
                    cut = size - len(out)
                    out += chunk[:cut]
                    self._chunks.appendleft(chunk[cut:])
                else:
                    out += chunk

            self._buffered -= len(out)
            self._cond.notify_all()
            return bytes(out)

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._chunks.clear()
            self._buffered = 0
            self._cond.notify_all()

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False


# =============================================================================
# Packager
# =============================================================================

class ArchivePackager:
    """
    ZIP 패키저.

    Usage:
        packager = ArchivePackager(storage, mode="streaming")
        result = packager.package({".docx": artifacts}, "generated/abc/documents_abc.zip")
    """

    def __init__(
        self,
        storage: Storage,
        compression_level: int = MAX_COMPRESSION_LEVEL,
        mode: str = "streaming",
        work_dir: Path | None = None,
        pipe_buffer: int = DEFAULT_PIPE_BUFFER,
    ):
        if mode not in ARCHIVE_MODES:
            raise ValueError(f"Unknown archive mode: {mode} (expected one of {ARCHIVE_MODES})")

        self.storage = storage
        self.compression_level = max(0, min(MAX_COMPRESSION_LEVEL, int(compression_level)))
        self.mode = mode
        self.work_dir = work_dir
        self.pipe_buffer = pipe_buffer

    def package(
        self,
        files_by_format: Mapping[str, Sequence[GeneratedArtifact]],
        key: str,
    ) -> ArchiveResult:
        """
        아카이브 생성 + 저장.

        Args:
            files_by_format: 포맷 → 산출물 목록 (예: {".docx": [...], ".pdf": [...]})
            key: 저장할 스토리지 키

        Returns:
            ArchiveResult

        Raises:
            PackagingError: 엔트리 중복, zip 쓰기 실패, 업로드 실패
        """
        entries = plan_entries(files_by_format)

        if self.mode == "buffered":
            result = self._package_buffered(entries, key)
        else:
            result = self._package_streaming(entries, key)

        logger.info(
            f"Archive packaged ({self.mode}): {key}, "
            f"{result.entry_count} entries, {result.size} bytes"
        )
        return result

    def _write_entries(self, fileobj, entries: list[tuple[str, bytes]]) -> None:
        with zipfile.ZipFile(
            fileobj,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compression_level,
        ) as zf:
            for arcname, content in entries:
                info = zipfile.ZipInfo(arcname, date_time=FIXED_ZIP_TIMESTAMP)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                zf.writestr(info, content, compresslevel=self.compression_level)

    def _package_buffered(self, entries: list[tuple[str, bytes]], key: str) -> ArchiveResult:
        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)

        try:
            with tempfile.TemporaryDirectory(prefix="archive_", dir=self.work_dir) as tmp:
                zip_path = Path(tmp) / "archive.zip"
                with open(zip_path, "wb") as f:
                    self._write_entries(f, entries)
                size = zip_path.stat().st_size
                self.storage.put_file(key, zip_path, content_type=ZIP_CONTENT_TYPE)
        except Exception as e:
            raise PackagingError(str(e), key=key, mode="buffered") from e

        return ArchiveResult(
            key=key,
            location=self.storage.locate(key),
            mode="buffered",
            entry_count=len(entries),
            size=size,
        )

    def _package_streaming(self, entries: list[tuple[str, bytes]], key: str) -> ArchiveResult:
        pipe = StreamPipe(self.pipe_buffer)

        def consume() -> int:
            try:
                return self.storage.upload_stream(key, pipe, content_type=ZIP_CONTENT_TYPE)
            except BaseException:
                pipe.cancel()
                raise

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="archive-upload") as pool:
            future = pool.submit(consume)

            producer_error: Exception | None = None
            try:
                self._write_entries(pipe, entries)
            except Exception as e:
                producer_error = e
                pipe.abort(e)
            else:
                pipe.finish()

            try:
                size = future.result()
            except Exception as e:
                cause = producer_error or e
                raise PackagingError(str(cause), key=key, mode="streaming") from cause

        if producer_error is not None:
            # 소비자가 이미 끝난 뒤 생산자가 실패한 경우
            raise PackagingError(str(producer_error), key=key, mode="streaming") from producer_error

        return ArchiveResult(
            key=key,
            location=self.storage.locate(key),
            mode="streaming",
            entry_count=len(entries),
            size=size,
        )


def plan_entries(
    files_by_format: Mapping[str, Sequence[GeneratedArtifact]],
) -> list[tuple[str, bytes]]:
    """
    (엔트리 경로, 내용) 목록 생성.

    Raises:
        PackagingError: 같은 경로의 엔트리가 두 번 나옴
    """
    entries: list[tuple[str, bytes]] = []
    seen: set[str] = set()

    for fmt, artifacts in files_by_format.items():
        folder = format_folder(fmt)
        for artifact in artifacts:
            arcname = f"{folder}/{artifact.name}" if folder else artifact.name
            if arcname.lower() in seen:
                raise PackagingError("Duplicate archive entry", entry=arcname)
            seen.add(arcname.lower())
            entries.append((arcname, artifact.content))

    return entries
