"""
ID 생성: session_id, run_id

규칙:
- session_id: 업로드 시작 시 1회 발급, 템플릿/엑셀 레코드가 공유
- run_id: generate 요청마다 새로 발급
- 둘 다 파일명/스토리지 키로 그대로 사용 가능해야 함
"""

import re
import uuid
from datetime import UTC, datetime

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def generate_session_id() -> str:
    """
    Session ID 생성.

    고유성 보장: UUID v4 (hex, 하이픈 포함)

    Returns:
        session_id 문자열
    """
    return str(uuid.uuid4())


def generate_run_id() -> str:
    """
    Run ID 생성.

    포맷: RUN-{timestamp}-{uuid[:8]}

    Returns:
        run_id 문자열
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"RUN-{timestamp}-{unique}"


def is_valid_session_id(session_id: str) -> bool:
    """
    외부에서 받은 session_id가 경로/키에 써도 안전한지 확인.

    허용: 영숫자, 하이픈, 밑줄 (최대 64자)
    """
    return bool(SESSION_ID_PATTERN.match(session_id or ""))
