"""
Run logging: generate 1회 = run log 1개.

규칙:
- 경고 필수 컨텍스트: level, code, action_id, target, message
- 성공/실패와 무관하게 항상 저장 (호출 측 finally)
- 저장 위치: <sessions_root>/<session_id>/logs/run_<run_id>.json
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.atomic import atomic_write_json
from src.core.ids import generate_run_id
from src.domain.schemas import RunLog, WarningLog

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(session_id: str) -> RunLog:
    """
    새 RunLog 생성.

    Args:
        session_id: Session ID

    Returns:
        초기화된 RunLog
    """
    now = datetime.now(UTC).isoformat()
    run_id = generate_run_id()

    return RunLog(
        run_id=run_id,
        session_id=session_id,
        started_at=now,
        result="pending",
    )


def emit_warning(
    run_log: RunLog,
    code: str,
    action_id: str,
    target: str,
    message: str,
) -> None:
    """
    경고 이벤트 기록.

    Args:
        run_log: RunLog 인스턴스
        code: 경고 코드 (예: CONVERSION_FAILED)
        action_id: 액션 ID (예: convert_pdf)
        target: 대상 (artifact 이름, 컬럼명 등)
        message: 경고 메시지
    """
    warning = WarningLog(
        level="warning",
        code=code,
        action_id=action_id,
        target=target,
        message=message,
    )
    run_log.warnings.append(warning)


def complete_run_log(
    run_log: RunLog,
    success: bool,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    RunLog 완료 처리.

    Args:
        run_log: RunLog 인스턴스
        success: 성공 여부
        error_code: 에러 코드 (실패 시)
        error_context: 에러 컨텍스트 (실패 시)
    """
    now = datetime.now(UTC).isoformat()
    run_log.finished_at = now
    run_log.result = "success" if success else "failed"

    if not success:
        run_log.error_code = error_code
        run_log.error_context = error_context


def save_run_log(run_log: RunLog, logs_dir: Path) -> Path:
    """
    RunLog를 파일로 저장.

    Args:
        run_log: RunLog 인스턴스
        logs_dir: logs/ 디렉터리 경로

    Returns:
        저장된 파일 경로
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"run_{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    """RunLog 파일 로드."""
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_run_logs(logs_dir: Path) -> list[Path]:
    """
    logs/ 디렉터리의 모든 run log 파일 목록.

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob("run_*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
