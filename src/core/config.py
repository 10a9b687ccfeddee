"""
설정 로드: default.yaml + 환경 변수.

우선순위 (뒤가 이김):
1. DEFAULT_CONFIG (코드 내장)
2. default.yaml (프로젝트 루트, 또는 지정 경로)
3. 환경 변수 (.env 포함)
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "default.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "work_dir": "data/work",
        "sessions_root": "data/sessions",
    },
    "storage": {
        "backend": "local",
        "presign_ttl_seconds": 3600,
        "local": {
            "root": "data/storage",
            "base_url": "",
            "secret": None,
        },
        "s3": {
            "endpoint": "localhost:9000",
            "access_key": None,
            "secret_key": None,
            "bucket": "document-merge",
            "region": None,
            "secure": True,
            "create_bucket": False,
        },
    },
    "generation": {
        "max_workers": 1,
        "allow_partial": False,
        "default_formats": [".docx"],
    },
    "conversion": {
        "soffice_path": "soffice",
        "timeout_seconds": 120,
        "max_retries": 0,
        "retry_delay_seconds": 1.0,
    },
    "archive": {
        "mode": "streaming",
        "compression_level": 9,
    },
    "uploads": {
        "max_file_size": 10 * 1024 * 1024,
    },
    "sessions": {
        "lock_timeout_seconds": 10,
    },
    "cleanup": {
        "max_age_hours": 24,
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    },
}

# 환경 변수 → 설정 경로
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "STORAGE_BACKEND": ("storage", "backend"),
    "STORAGE_ROOT": ("storage", "local", "root"),
    "STORAGE_BASE_URL": ("storage", "local", "base_url"),
    "STORAGE_SECRET": ("storage", "local", "secret"),
    "S3_ENDPOINT": ("storage", "s3", "endpoint"),
    "S3_ACCESS_KEY": ("storage", "s3", "access_key"),
    "S3_SECRET_KEY": ("storage", "s3", "secret_key"),
    "S3_BUCKET": ("storage", "s3", "bucket"),
    "S3_REGION": ("storage", "s3", "region"),
    "S3_SECURE": ("storage", "s3", "secure"),
    "SOFFICE_PATH": ("conversion", "soffice_path"),
    "WORK_DIR": ("paths", "work_dir"),
    "SESSIONS_ROOT": ("paths", "sessions_root"),
    "ARCHIVE_MODE": ("archive", "mode"),
    "LOG_LEVEL": ("logging", "level"),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def load_config(
    config_path: Path | None = None,
    env: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    설정 로드.

    Args:
        config_path: YAML 경로 (None이면 프로젝트 루트의 default.yaml)
        env: 환경 변수 (None이면 .env 로드 후 os.environ)

    Returns:
        병합된 설정 dict
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
        _deep_merge(config, data)
    else:
        logger.info(f"Config file not found, using defaults: {config_path}")

    if env is None:
        load_dotenv()
        env = dict(os.environ)

    apply_env_overrides(config, env)
    return config


def apply_env_overrides(config: dict[str, Any], env: dict[str, str]) -> dict[str, Any]:
    """ENV_OVERRIDES에 정의된 환경 변수 적용."""
    for name, path in ENV_OVERRIDES.items():
        value = env.get(name)
        if value is None or value == "":
            continue

        target = config
        for key in path[:-1]:
            target = target.setdefault(key, {})

        current = target.get(path[-1])
        target[path[-1]] = _coerce(value, current)

    return config


def _coerce(value: str, current: Any) -> Any:
    """기존 값의 타입에 맞춰 변환."""
    if isinstance(current, bool):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"Invalid boolean value: {value!r}")
    if isinstance(current, int):
        return int(value)
    return value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def configure_logging(config: dict[str, Any]) -> None:
    """logging 섹션으로 루트 로거 설정."""
    logging_config = config.get("logging", {})
    logging.basicConfig(
        level=getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO),
        format=logging_config.get("format", DEFAULT_CONFIG["logging"]["format"]),
    )
