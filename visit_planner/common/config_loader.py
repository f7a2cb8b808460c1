"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from visit_planner.common.errors import ConfigError
from visit_planner.common.fs import read_yaml
from visit_planner.common.models import ListConfig
from visit_planner.common.schema import (
    validate_dedup_rules_config,
    validate_lists_config,
    validate_planner_config,
)


@dataclass(frozen=True)
class ConfigBundle:
    planner: dict
    lists: list[dict]
    dedup_rules: dict


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    def overlay_for(name: str) -> Path | None:
        return (overlay_config_dir / name) if overlay_config_dir is not None else None

    planner = validate_planner_config(
        _load_yaml_with_overlay(config_dir / "planner.yml", overlay_for("planner.yml")),
        allow_unknown=allow_unknown,
    )
    lists = validate_lists_config(
        _load_yaml_with_overlay(config_dir / "lists.yml", overlay_for("lists.yml")),
        allow_unknown=allow_unknown,
    )
    dedup_rules = validate_dedup_rules_config(
        _load_yaml_with_overlay(config_dir / "dedup_rules.yml", overlay_for("dedup_rules.yml"))
    )
    return ConfigBundle(planner=planner, lists=lists["lists"], dedup_rules=dedup_rules)


def list_config_for(entry: dict) -> ListConfig:
    deadline = entry.get("deadline")
    return ListConfig(
        file_name=entry["file_name"],
        scheduling_mode=entry.get("scheduling_mode"),
        deadline=str(deadline) if deadline is not None else None,
        follow_up_days=entry.get("follow_up_days"),
        priority_level=entry.get("priority_level"),
    )
