"""
test_config.py - 설정 로드 테스트

DoD:
- default.yaml 값이 DEFAULT_CONFIG 위에 병합
- 환경 변수가 YAML보다 우선, 기존 타입에 맞춰 변환
"""

from pathlib import Path

import pytest
import yaml

from src.core.config import DEFAULT_CONFIG, apply_env_overrides, load_config


class TestLoadConfig:
    """load_config 함수 테스트."""

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "missing.yaml", env={})

        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_yaml_deep_merged(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump({"archive": {"mode": "buffered"}, "generation": {"max_workers": 4}}),
            encoding="utf-8",
        )

        config = load_config(path, env={})

        assert config["archive"]["mode"] == "buffered"
        assert config["archive"]["compression_level"] == 9  # 기본값 유지
        assert config["generation"]["max_workers"] == 4

    def test_project_default_yaml_matches_sections(self, default_config: dict):
        """default.yaml 섹션 = 내장 기본값 섹션."""
        assert set(default_config) == set(DEFAULT_CONFIG)
        assert default_config["archive"]["mode"] == "streaming"
        assert default_config["generation"]["allow_partial"] is False

    def test_env_wins_over_yaml(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"storage": {"backend": "local"}}), encoding="utf-8")

        config = load_config(path, env={"STORAGE_BACKEND": "s3", "S3_BUCKET": "receipts"})

        assert config["storage"]["backend"] == "s3"
        assert config["storage"]["s3"]["bucket"] == "receipts"


class TestApplyEnvOverrides:
    """apply_env_overrides 함수 테스트."""

    def test_bool_coercion(self):
        config = {"storage": {"s3": {"secure": True}}}

        apply_env_overrides(config, {"S3_SECURE": "false"})

        assert config["storage"]["s3"]["secure"] is False

    def test_invalid_bool(self):
        config = {"storage": {"s3": {"secure": True}}}

        with pytest.raises(ValueError):
            apply_env_overrides(config, {"S3_SECURE": "maybe"})

    def test_empty_value_ignored(self):
        config = {"conversion": {"soffice_path": "soffice"}}

        apply_env_overrides(config, {"SOFFICE_PATH": ""})

        assert config["conversion"]["soffice_path"] == "soffice"

    def test_creates_missing_sections(self):
        config: dict = {}

        apply_env_overrides(config, {"WORK_DIR": "/tmp/work"})

        assert config["paths"]["work_dir"] == "/tmp/work"
