"""
Session Store: (session_id, file_type) → SessionRecord.

규칙:
- 세션 레코드 = 업로드된 파일의 유일한 진실 원천
- 엑셀은 업로드 시 한 번만 파싱해서 headers/rows를 레코드에 저장
- 레코드 쓰기는 세션 락(filelock) 안에서 원자적으로 (temp → rename)
- 세션 디렉토리는 세션마다 분리, 서로 공유하지 않음

디렉토리 구조:
    <sessions_root>/<session_id>/
    ├── .session.lock
    ├── session_template.json
    ├── session_excel.json
    └── logs/run_<run_id>.json
"""

import json
import logging
import shutil
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from filelock import FileLock, Timeout

from src.core.atomic import atomic_write_json
from src.core.ids import is_valid_session_id
from src.domain.constants import SESSION_LOCK_FILENAME, SESSION_LOGS_DIR
from src.domain.errors import ErrorCodes, SessionError
from src.domain.schemas import SESSION_FILE_TYPES, SESSION_STATUSES, SessionRecord

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10


class SessionStore:
    """
    파일 기반 세션 저장소.

    Usage:
        store = SessionStore(Path("data/sessions"))
        store.save(record)
        template, excel = store.get_pair(session_id)
    """

    def __init__(self, root: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.root = Path(root)
        self.lock_timeout = lock_timeout
        self.root.mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # Paths
    # =========================================================================

    def session_dir(self, session_id: str) -> Path:
        """
        Raises:
            SessionError: SESSION_NOT_FOUND (잘못된 session_id)
        """
        if not is_valid_session_id(session_id):
            raise SessionError(ErrorCodes.SESSION_NOT_FOUND, session_id=session_id)
        return self.root / session_id

    def record_path(self, session_id: str, file_type: str) -> Path:
        if file_type not in SESSION_FILE_TYPES:
            raise ValueError(f"Unknown file type: {file_type}")
        return self.session_dir(session_id) / f"session_{file_type}.json"

    def logs_dir(self, session_id: str) -> Path:
        return self.session_dir(session_id) / SESSION_LOGS_DIR

    # =========================================================================
    # Lock
    # =========================================================================

    @contextmanager
    def lock(self, session_id: str) -> Generator[None, None, None]:
        """
        세션 단위 락.

        Raises:
            SessionError: SESSION_LOCK_TIMEOUT
        """
        session_dir = self.session_dir(session_id)
        session_dir.mkdir(parents=True, exist_ok=True)
        lock = FileLock(session_dir / SESSION_LOCK_FILENAME, timeout=self.lock_timeout)

        try:
            lock.acquire()
        except Timeout as e:
            raise SessionError(
                ErrorCodes.SESSION_LOCK_TIMEOUT,
                session_id=session_id,
                timeout=self.lock_timeout,
            ) from e

        try:
            yield
        finally:
            lock.release()

    # =========================================================================
    # CRUD
    # =========================================================================

    def save(self, record: SessionRecord) -> SessionRecord:
        """
        레코드 저장 (같은 session_id + file_type이면 교체).

        created_at은 최초 저장 시각 유지, updated_at은 갱신.
        """
        now = datetime.now(UTC).isoformat()
        path = self.record_path(record.session_id, record.file_type)

        with self.lock(record.session_id):
            if not record.created_at:
                existing = self._load(path, record.session_id) if path.exists() else None
                record.created_at = existing.created_at if existing else now
            record.updated_at = now
            atomic_write_json(path, record.to_dict())

        logger.info(
            f"Session {record.session_id}: saved {record.file_type} "
            f"({record.original_name}, status={record.status})"
        )
        return record

    def get(self, session_id: str, file_type: str) -> SessionRecord:
        """
        Raises:
            SessionError: SESSION_NOT_FOUND, SESSION_CORRUPT
        """
        path = self.record_path(session_id, file_type)
        if not path.exists():
            raise SessionError(
                ErrorCodes.SESSION_NOT_FOUND,
                session_id=session_id,
                file_type=file_type,
            )
        return self._load(path, session_id)

    def find(self, session_id: str, file_type: str) -> SessionRecord | None:
        """없으면 None."""
        try:
            return self.get(session_id, file_type)
        except SessionError as e:
            if e.code == ErrorCodes.SESSION_NOT_FOUND:
                return None
            raise

    def get_pair(self, session_id: str) -> tuple[SessionRecord, SessionRecord]:
        """
        (template, excel) 레코드 쌍.

        Raises:
            SessionError: 둘 중 하나라도 없으면 SESSION_NOT_FOUND
        """
        return self.get(session_id, "template"), self.get(session_id, "excel")

    def set_status(
        self,
        session_id: str,
        status: str,
        error: str | None = None,
    ) -> None:
        """세션의 모든 레코드 상태 변경."""
        if status not in SESSION_STATUSES:
            raise ValueError(f"Unknown session status: {status}")

        now = datetime.now(UTC).isoformat()
        with self.lock(session_id):
            for file_type in SESSION_FILE_TYPES:
                path = self.record_path(session_id, file_type)
                if not path.exists():
                    continue
                record = self._load(path, session_id)
                record.status = status
                record.error = error
                record.updated_at = now
                atomic_write_json(path, record.to_dict())

    def mark_processed(self, session_id: str) -> None:
        self.set_status(session_id, "processed")

    def mark_error(self, session_id: str, error: str) -> None:
        self.set_status(session_id, "error", error=error)

    def delete(self, session_id: str) -> bool:
        """세션 디렉토리 삭제. 삭제했으면 True."""
        session_dir = self.session_dir(session_id)
        if not session_dir.exists():
            return False
        shutil.rmtree(session_dir)
        logger.info(f"Session {session_id}: deleted")
        return True

    def list_sessions(self) -> list[str]:
        """저장된 session_id 목록 (이름순)."""
        return sorted(
            p.name for p in self.root.iterdir()
            if p.is_dir() and is_valid_session_id(p.name)
        )

    # =========================================================================
    # Internal
    # =========================================================================

    def _load(self, path: Path, session_id: str) -> SessionRecord:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return SessionRecord.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise SessionError(
                ErrorCodes.SESSION_CORRUPT,
                session_id=session_id,
                path=str(path),
                error=str(e),
            ) from e
