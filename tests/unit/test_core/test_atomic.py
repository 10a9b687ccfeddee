"""
test_atomic.py - 원자적 쓰기 테스트
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from src.core.atomic import atomic_write_bytes, atomic_write_json


class TestAtomicWrite:
    """atomic_write_bytes / atomic_write_json 테스트."""

    def test_creates_parent_dirs(self, tmp_path: Path):
        path = tmp_path / "a" / "b" / "data.bin"

        atomic_write_bytes(path, b"data")

        assert path.read_bytes() == b"data"

    def test_json_utf8(self, tmp_path: Path):
        path = tmp_path / "record.json"

        atomic_write_json(path, {"name": "홍길동"})

        assert json.loads(path.read_text(encoding="utf-8")) == {"name": "홍길동"}
        assert "홍길동" in path.read_text(encoding="utf-8")

    def test_failure_keeps_existing_file(self, tmp_path: Path):
        """rename 실패 → 기존 파일 보존, temp 파일 삭제."""
        path = tmp_path / "data.bin"
        path.write_bytes(b"old")

        with patch("src.core.atomic.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write_bytes(path, b"new")

        assert path.read_bytes() == b"old"
        assert list(tmp_path.glob("*.tmp")) == []
