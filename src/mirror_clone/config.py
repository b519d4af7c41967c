from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft7Validator

from mirror_clone.exceptions import ConfigValidationError
from mirror_clone.timeout import DEFAULT_OBJECT_TIMEOUT

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

DEFAULT_CONCURRENT_RESOLVE = 64
DEFAULT_CONCURRENT_TRANSFER = 128
DEFAULT_DEBUG_SAMPLE = 50

PLAN_DIFF = "diff"
PLAN_ALL = "all"


@dataclasses.dataclass(frozen=True)
class SnapshotConfig:
    concurrent_resolve: int = DEFAULT_CONCURRENT_RESOLVE
    progress: bool = False


@dataclasses.dataclass(frozen=True)
class TransferConfig:
    snapshot_config: SnapshotConfig = dataclasses.field(default_factory=SnapshotConfig)
    progress: bool = False
    concurrent_transfer: int = DEFAULT_CONCURRENT_TRANSFER
    object_timeout: float = DEFAULT_OBJECT_TIMEOUT
    plan: str = PLAN_DIFF
    debug_sample: int = DEFAULT_DEBUG_SAMPLE


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> dict[str, Any]:
    schema_path = SCHEMA_DIR / f"{schema_name}.schema.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def validate_config(config: Any, schema_name: str, *, config_path: Path | None = None) -> None:
    schema = load_schema(schema_name)
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(config), key=lambda exc: list(exc.path))
    if not errors:
        return
    location = str(config_path) if config_path else "<config>"
    lines = [f"Schema validation failed for {location} ({schema_name})."]
    for error in errors[:10]:
        path = ".".join(str(p) for p in error.path) if error.path else "<root>"
        lines.append(f"- {path}: {error.message}")
    if len(errors) > 10:
        lines.append(f"... and {len(errors) - 10} more errors.")
    raise ConfigValidationError("\n".join(lines), context={"path": location})


def read_yaml(path: Path, schema_name: str | None = None) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError(
            f"Cannot read config {path}: {exc.strerror or exc}", context={"path": str(path)}
        ) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc
    if data is None:
        data = {}
    if schema_name:
        validate_config(data, schema_name, config_path=path)
    return data


def build_transfer_config(
    values: Mapping[str, Any] | None = None,
    **overrides: Any,
) -> TransferConfig:
    """Build a ``TransferConfig`` from file values, with non-None overrides on top."""
    merged: dict[str, Any] = dict(values or {})
    merged.update({k: v for k, v in overrides.items() if v is not None})
    validate_config(merged, "transfer_config")
    progress = bool(merged.get("progress", False))
    return TransferConfig(
        snapshot_config=SnapshotConfig(
            concurrent_resolve=int(merged.get("concurrent_resolve", DEFAULT_CONCURRENT_RESOLVE)),
            progress=progress,
        ),
        progress=progress,
        concurrent_transfer=int(merged.get("concurrent_transfer", DEFAULT_CONCURRENT_TRANSFER)),
        object_timeout=float(merged.get("object_timeout", DEFAULT_OBJECT_TIMEOUT)),
        plan=str(merged.get("plan", PLAN_DIFF)),
        debug_sample=int(merged.get("debug_sample", DEFAULT_DEBUG_SAMPLE)),
    )


def load_transfer_config(path: Path | None, **overrides: Any) -> TransferConfig:
    values = read_yaml(path, "transfer_config") if path else {}
    return build_transfer_config(values, **overrides)
