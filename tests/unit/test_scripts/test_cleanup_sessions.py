"""
test_cleanup_sessions.py - 정리 스크립트 테스트

DoD:
- 기간 초과 스토리지 객체 / 세션 / 작업 디렉토리만 삭제
- dry-run은 아무것도 지우지 않고 개수만 집계
- 삭제 후 로컬 스토리지의 빈 디렉토리 정리
"""

import os
import sys
import time
from datetime import UTC, datetime
from pathlib import Path

import pytest
import yaml

sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "scripts"))

from cleanup_sessions import (  # noqa: E402
    CleanupResult,
    cleanup_work_dir,
    get_latest_mtime,
    main,
    remove_empty_dirs,
    run_cleanup,
)

from src.core.config import ENV_OVERRIDES  # noqa: E402
from src.core.sessions import SessionStore  # noqa: E402
from src.core.storage import LocalStorage  # noqa: E402
from src.domain.schemas import SessionRecord  # noqa: E402

HOUR = 3600


def age(path: Path, hours: float) -> None:
    """path와 그 하위 전체의 mtime을 hours 시간 전으로."""
    ts = time.time() - hours * HOUR
    targets = [path, *path.rglob("*")] if path.is_dir() else [path]
    for target in targets:
        os.utime(target, (ts, ts))


@pytest.fixture
def populated(test_config):
    """
    오래된 세션(old)과 새 세션(new)이 하나씩 있는 환경.

    각 세션: 업로드 객체 + 세션 레코드 + 작업 디렉토리
    """
    paths = test_config["paths"]
    local = test_config["storage"]["local"]
    storage = LocalStorage(Path(local["root"]), local["base_url"], local["secret"])
    store = SessionStore(Path(paths["sessions_root"]))
    work_dir = Path(paths["work_dir"])

    for sid in ("old", "new"):
        key = f"uploads/{sid}/template/t.docx"
        storage.put_bytes(key, b"x" * 100)
        storage.put_bytes(f"generated/{sid}/documents_{sid}.zip", b"zip")
        store.save(SessionRecord(
            session_id=sid,
            file_type="template",
            original_name="t.docx",
            storage_key=key,
        ))
        (work_dir / sid).mkdir(parents=True)
        (work_dir / sid / "tmp.bin").write_bytes(b"1")

    age(storage.root / "uploads" / "old", 48)
    age(storage.root / "generated" / "old", 48)
    age(store.session_dir("old"), 48)
    age(work_dir / "old", 48)

    return storage, store, work_dir


class TestRunCleanup:
    """run_cleanup 통합 동작."""

    def test_dry_run_deletes_nothing(self, test_config, populated):
        storage, store, work_dir = populated

        result = run_cleanup(test_config, max_age_hours=24, execute=False)

        assert result.scanned_objects == 4
        assert result.deleted_objects == 2
        assert result.deleted_bytes == 103
        assert result.scanned_sessions == 2
        assert result.deleted_sessions == 1
        assert result.deleted_work_dirs == 1
        assert storage.exists("uploads/old/template/t.docx")
        assert store.list_sessions() == ["new", "old"]
        assert (work_dir / "old").exists()

    def test_execute(self, test_config, populated):
        storage, store, work_dir = populated

        result = run_cleanup(test_config, max_age_hours=24, execute=True)

        assert result.errors == []
        assert not storage.exists("uploads/old/template/t.docx")
        assert not storage.exists("generated/old/documents_old.zip")
        assert storage.exists("uploads/new/template/t.docx")
        assert store.list_sessions() == ["new"]
        assert not (work_dir / "old").exists()
        assert (work_dir / "new").exists()
        # 비어 버린 uploads/old/template, uploads/old, generated/old
        assert not (storage.root / "uploads" / "old").exists()
        assert result.removed_empty_dirs >= 3

    def test_everything_fresh(self, test_config, populated):
        result = run_cleanup(test_config, max_age_hours=24 * 7, execute=True)

        assert result.deleted_objects == 0
        assert result.deleted_sessions == 0
        assert result.deleted_work_dirs == 0


class TestHelpers:
    """개별 헬퍼."""

    def test_latest_mtime_uses_newest_child(self, tmp_path: Path):
        folder = tmp_path / "s"
        folder.mkdir()
        (folder / "a.txt").write_text("a")
        age(folder, 10)
        (folder / "b.txt").write_text("b")

        latest = get_latest_mtime(folder)

        assert (datetime.now(UTC) - latest).total_seconds() < HOUR

    def test_work_dir_missing(self, tmp_path: Path):
        result = CleanupResult()

        cleanup_work_dir(tmp_path / "nope", datetime.now(UTC), True, result)

        assert result.deleted_work_dirs == 0

    def test_remove_empty_dirs_keeps_root_and_files(self, tmp_path: Path):
        (tmp_path / "a" / "b").mkdir(parents=True)
        (tmp_path / "c").mkdir()
        (tmp_path / "c" / "keep.txt").write_text("x")
        result = CleanupResult()

        remove_empty_dirs(tmp_path, execute=True, result=result)

        assert result.removed_empty_dirs == 2
        assert tmp_path.exists()
        assert (tmp_path / "c" / "keep.txt").exists()

    def test_remove_empty_dirs_dry_run(self, tmp_path: Path):
        (tmp_path / "a").mkdir()

        remove_empty_dirs(tmp_path, execute=False, result=CleanupResult())

        assert (tmp_path / "a").exists()


class TestMain:
    """CLI 진입점."""

    @pytest.fixture
    def config_file(self, test_config, tmp_path: Path, monkeypatch) -> Path:
        for name in ENV_OVERRIDES:
            monkeypatch.delenv(name, raising=False)
        path = tmp_path / "cleanup.yaml"
        path.write_text(yaml.safe_dump(test_config), encoding="utf-8")
        return path

    def test_dry_run_by_default(self, config_file, populated):
        storage, _, _ = populated

        assert main(["--config", str(config_file)]) == 0
        assert storage.exists("uploads/old/template/t.docx")

    def test_execute_with_max_age(self, config_file, populated):
        storage, store, _ = populated

        assert main(["--config", str(config_file), "--max-age-hours", "1", "--execute"]) == 0
        assert not storage.exists("uploads/old/template/t.docx")
        assert store.list_sessions() == ["new"]
