"""Tests for mirror_clone.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from mirror_clone.config import (
    DEFAULT_CONCURRENT_RESOLVE,
    DEFAULT_CONCURRENT_TRANSFER,
    PLAN_ALL,
    PLAN_DIFF,
    TransferConfig,
    build_transfer_config,
    load_transfer_config,
    validate_config,
)
from mirror_clone.exceptions import ConfigValidationError
from mirror_clone.timeout import DEFAULT_OBJECT_TIMEOUT


class TestBuildTransferConfig:
    def test_defaults(self) -> None:
        config = build_transfer_config()
        assert config == TransferConfig()
        assert config.snapshot_config.concurrent_resolve == DEFAULT_CONCURRENT_RESOLVE
        assert config.concurrent_transfer == DEFAULT_CONCURRENT_TRANSFER
        assert config.object_timeout == DEFAULT_OBJECT_TIMEOUT
        assert config.plan == PLAN_DIFF
        assert config.progress is False

    def test_overrides_win_over_values(self) -> None:
        config = build_transfer_config({"concurrent_transfer": 8, "plan": "diff"}, plan=PLAN_ALL)
        assert config.concurrent_transfer == 8
        assert config.plan == PLAN_ALL

    def test_none_overrides_are_ignored(self) -> None:
        config = build_transfer_config({"concurrent_resolve": 4}, concurrent_resolve=None, progress=None)
        assert config.snapshot_config.concurrent_resolve == 4
        assert config.progress is False

    def test_progress_applies_to_snapshots(self) -> None:
        config = build_transfer_config(progress=True)
        assert config.progress is True
        assert config.snapshot_config.progress is True

    @pytest.mark.parametrize(
        "values",
        [
            {"plan": "mirror"},
            {"concurrent_transfer": 0},
            {"object_timeout": 0},
            {"concurrent_resolve": "many"},
            {"unknown_key": 1},
        ],
    )
    def test_invalid_values_rejected(self, values: dict) -> None:
        with pytest.raises(ConfigValidationError):
            build_transfer_config(values)


class TestLoadTransferConfig:
    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "mirror.yaml"
        path.write_text("concurrent_transfer: 16\nobject_timeout: 2.5\nplan: all\n", encoding="utf-8")
        config = load_transfer_config(path)
        assert config.concurrent_transfer == 16
        assert config.object_timeout == 2.5
        assert config.plan == PLAN_ALL

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_transfer_config(path) == TransferConfig()

    def test_no_path(self) -> None:
        assert load_transfer_config(None, concurrent_transfer=3).concurrent_transfer == 3

    def test_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "absent.yaml"
        with pytest.raises(ConfigValidationError, match="Cannot read config") as excinfo:
            load_transfer_config(path)
        assert excinfo.value.context == {"path": str(path)}
        assert isinstance(excinfo.value.__cause__, FileNotFoundError)

    def test_yaml_parse_error(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("plan: [unterminated\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_transfer_config(path)

    def test_error_names_file_and_field(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("plan: sideways\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError) as excinfo:
            load_transfer_config(path)
        assert str(path) in str(excinfo.value)
        assert "plan" in str(excinfo.value)


def test_validate_config_accepts_valid_mapping() -> None:
    validate_config({"concurrent_resolve": 2, "debug_sample": 0}, "transfer_config")
