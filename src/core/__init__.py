"""
Core layer: 운영 안전 핵심 모듈.

이 모듈만 건드리면 운영사고 → 가장 보수적으로 관리

역할:
- 세션 레코드, 락, 원자적 쓰기, 스토리지, 설정, run log
"""

from .atomic import atomic_write_bytes, atomic_write_json
from .config import configure_logging, load_config
from .hashing import compute_bytes_hash
from .ids import generate_run_id, generate_session_id, is_valid_session_id
from .logging import complete_run_log, create_run_log, emit_warning, save_run_log
from .sessions import SessionStore
from .storage import LocalStorage, MinioStorage, Storage, create_storage

__all__ = [
    # atomic
    "atomic_write_bytes",
    "atomic_write_json",
    # config
    "load_config",
    "configure_logging",
    # ids
    "generate_session_id",
    "generate_run_id",
    "is_valid_session_id",
    # hashing
    "compute_bytes_hash",
    # sessions
    "SessionStore",
    # storage
    "Storage",
    "LocalStorage",
    "MinioStorage",
    "create_storage",
    # logging
    "create_run_log",
    "emit_warning",
    "complete_run_log",
    "save_run_log",
]
