#!/usr/bin/env python3
"""
cleanup_sessions.py - 오래된 세션/업로드/아카이브 정리 스크립트

default.yaml의 cleanup.max_age_hours 설정에 따라:
1. 스토리지 객체 (uploads/, previews/, generated/) 중 기간 초과분 삭제
2. 세션 디렉토리 (레코드 + run log) 중 마지막 수정이 기간 초과인 것 삭제
3. 작업 디렉토리 (<work_dir>/<session_id>) 중 기간 초과분 삭제
4. 로컬 스토리지의 빈 디렉토리 정리

사용법:
    # 기본 실행 (dry-run)
    python scripts/cleanup_sessions.py

    # 실제 삭제
    python scripts/cleanup_sessions.py --execute

    # 보관 시간 지정
    python scripts/cleanup_sessions.py --max-age-hours 6 --execute

    # cron 예시 (매시간)
    0 * * * * cd /path/to/project && python scripts/cleanup_sessions.py --execute >> /var/log/cleanup_sessions.log 2>&1
"""

import argparse
import logging
import shutil
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

# 프로젝트 루트를 import 경로에 추가 (스크립트 직접 실행용)
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.core.config import load_config  # noqa: E402
from src.core.sessions import SessionStore  # noqa: E402
from src.core.storage import LocalStorage, Storage, create_storage  # noqa: E402
from src.domain.constants import (  # noqa: E402
    GENERATED_PREFIX,
    PREVIEWS_PREFIX,
    UPLOADS_PREFIX,
)

logger = logging.getLogger(__name__)

STORAGE_PREFIXES = (UPLOADS_PREFIX, PREVIEWS_PREFIX, GENERATED_PREFIX)


@dataclass
class CleanupResult:
    """Cleanup 결과."""
    scanned_objects: int = 0
    deleted_objects: int = 0
    deleted_bytes: int = 0

    scanned_sessions: int = 0
    deleted_sessions: int = 0

    deleted_work_dirs: int = 0
    removed_empty_dirs: int = 0

    errors: list[str] = field(default_factory=list)


def get_latest_mtime(folder: Path) -> datetime:
    """폴더 안에서 가장 최근 수정 시각 (폴더 자신 포함, UTC)."""
    latest = folder.stat().st_mtime
    for item in folder.rglob("*"):
        try:
            latest = max(latest, item.stat().st_mtime)
        except OSError:
            continue
    return datetime.fromtimestamp(latest, UTC)


def cleanup_storage(
    storage: Storage,
    cutoff: datetime,
    execute: bool,
    result: CleanupResult,
) -> None:
    """기간 초과 스토리지 객체 삭제."""
    for prefix in STORAGE_PREFIXES:
        for obj in storage.iter_objects(f"{prefix}/"):
            result.scanned_objects += 1
            if obj.last_modified >= cutoff:
                continue

            if not execute:
                logger.info(f"[DRY-RUN] 삭제 예정: {obj.key} ({obj.size / 1024:.1f} KB)")
                result.deleted_objects += 1
                result.deleted_bytes += obj.size
                continue

            try:
                storage.delete(obj.key)
                result.deleted_objects += 1
                result.deleted_bytes += obj.size
                logger.info(f"삭제됨: {obj.key}")
            except Exception as e:
                result.errors.append(f"삭제 실패 {obj.key}: {e}")
                logger.error(f"삭제 실패 {obj.key}: {e}")


def cleanup_sessions(
    store: SessionStore,
    cutoff: datetime,
    execute: bool,
    result: CleanupResult,
) -> None:
    """마지막 수정이 기간 초과인 세션 디렉토리 삭제."""
    for session_id in store.list_sessions():
        result.scanned_sessions += 1
        session_dir = store.session_dir(session_id)

        if get_latest_mtime(session_dir) >= cutoff:
            continue

        if not execute:
            logger.info(f"[DRY-RUN] 세션 삭제 예정: {session_id}")
            result.deleted_sessions += 1
            continue

        try:
            store.delete(session_id)
            result.deleted_sessions += 1
        except OSError as e:
            result.errors.append(f"세션 삭제 실패 {session_id}: {e}")
            logger.error(f"세션 삭제 실패 {session_id}: {e}")


def cleanup_work_dir(
    work_dir: Path,
    cutoff: datetime,
    execute: bool,
    result: CleanupResult,
) -> None:
    """기간 초과 세션 작업 디렉토리 삭제."""
    if not work_dir.exists():
        return

    for folder in sorted(p for p in work_dir.iterdir() if p.is_dir()):
        if get_latest_mtime(folder) >= cutoff:
            continue

        if not execute:
            logger.info(f"[DRY-RUN] 작업 디렉토리 삭제 예정: {folder}")
            result.deleted_work_dirs += 1
            continue

        try:
            shutil.rmtree(folder)
            result.deleted_work_dirs += 1
            logger.info(f"삭제됨: {folder}")
        except OSError as e:
            result.errors.append(f"삭제 실패 {folder}: {e}")
            logger.error(f"삭제 실패 {folder}: {e}")


def remove_empty_dirs(root: Path, execute: bool, result: CleanupResult) -> None:
    """root 아래 빈 디렉토리 삭제 (깊은 것부터, root 자신은 유지)."""
    if not root.exists() or not execute:
        return

    folders = sorted((p for p in root.rglob("*") if p.is_dir()), key=lambda p: len(p.parts), reverse=True)
    for folder in folders:
        try:
            if not any(folder.iterdir()):
                folder.rmdir()
                result.removed_empty_dirs += 1
        except OSError as e:
            logger.warning(f"빈 디렉토리 삭제 실패 {folder}: {e}")


def run_cleanup(
    config: dict,
    max_age_hours: float,
    execute: bool,
    now: datetime | None = None,
) -> CleanupResult:
    """설정 기준으로 전체 정리 실행."""
    result = CleanupResult()
    cutoff = (now or datetime.now(UTC)) - timedelta(hours=max_age_hours)
    paths = config.get("paths", {})

    storage = create_storage(config)
    store = SessionStore(Path(paths.get("sessions_root", "data/sessions")))
    work_dir = Path(paths.get("work_dir", "data/work"))

    cleanup_storage(storage, cutoff, execute, result)
    cleanup_sessions(store, cutoff, execute, result)
    cleanup_work_dir(work_dir, cutoff, execute, result)

    if isinstance(storage, LocalStorage):
        remove_empty_dirs(storage.root, execute, result)

    return result


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="오래된 세션/업로드/아카이브 정리 스크립트",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="실제 삭제 실행 (기본: dry-run)",
    )
    parser.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="보관 시간 (기본: cleanup.max_age_hours)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="설정 파일 경로 (기본: default.yaml)",
    )

    args = parser.parse_args(argv)

    # 로깅 설정
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = load_config(Path(args.config) if args.config else None)
    max_age_hours = (
        args.max_age_hours
        if args.max_age_hours is not None
        else float(config.get("cleanup", {}).get("max_age_hours", 24))
    )
    logger.info(f"보관 시간: {max_age_hours}시간")

    if not args.execute:
        logger.info("=" * 50)
        logger.info("DRY-RUN 모드 (실제 삭제 없음)")
        logger.info("실제 실행: --execute 옵션 추가")
        logger.info("=" * 50)

    result = run_cleanup(config, max_age_hours, args.execute)

    # 결과 출력
    logger.info("=" * 50)
    logger.info("Cleanup 결과:")
    logger.info(
        f"  객체: {result.scanned_objects} 스캔, {result.deleted_objects} 정리 "
        f"({result.deleted_bytes / (1024 * 1024):.2f} MB)"
    )
    logger.info(f"  세션: {result.scanned_sessions} 스캔, {result.deleted_sessions} 정리")
    logger.info(f"  작업 디렉토리: {result.deleted_work_dirs} 정리")
    if result.errors:
        logger.warning(f"  에러: {len(result.errors)}개")
        for err in result.errors[:5]:  # 최대 5개만 출력
            logger.warning(f"    - {err}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
