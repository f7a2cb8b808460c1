"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from dataclasses import fields

from visit_planner.common.constants import SCHEDULING_MODES
from visit_planner.common.errors import ConfigError
from visit_planner.common.time_utils import parse_iso_date
from visit_planner.matching.dedupe import DedupRules


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_mapping(obj, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_positive_int(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive integer")


def validate_planner_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "planner config")
    top_required = {"schedule", "lists_dir", "output", "state"}
    _assert_required_keys(cfg, top_required, "planner config")
    _assert_no_unknown_keys(cfg, top_required, "planner config", allow_unknown)

    schedule = _assert_mapping(cfg["schedule"], "schedule")
    schedule_keys = {"visits_per_day", "business_days", "search_radius", "home_postcode", "distance_model"}
    _assert_required_keys(schedule, schedule_keys - {"home_postcode"}, "schedule")
    _assert_no_unknown_keys(schedule, schedule_keys, "schedule", allow_unknown)
    _assert_positive_int(schedule["visits_per_day"], "schedule.visits_per_day")
    _assert_positive_int(schedule["business_days"], "schedule.business_days")

    _assert_required_keys(
        _assert_mapping(cfg["output"], "output"),
        {"schedule_filename", "debug_filename", "review_filename", "audit_filename"},
        "output",
    )
    _assert_required_keys(_assert_mapping(cfg["state"], "state"), {"enabled", "key"}, "state")
    return cfg


def validate_list_entry(entry: dict, ctx: str, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(entry, ctx)
    known = {"file_name", "path", "scheduling_mode", "deadline", "follow_up_days", "priority_level"}
    _assert_required_keys(entry, {"file_name", "path"}, ctx)
    _assert_no_unknown_keys(entry, known, ctx, allow_unknown)

    mode = entry.get("scheduling_mode")
    if mode is not None and mode not in SCHEDULING_MODES:
        raise ConfigError(f"{ctx}.scheduling_mode must be one of {', '.join(SCHEDULING_MODES)} or null")
    if mode == "deadline" and parse_iso_date(entry.get("deadline")) is None:
        raise ConfigError(f"Missing deadline for {entry['file_name']} (deadline mode)")
    if mode == "followup":
        _assert_positive_int(entry.get("follow_up_days"), f"{ctx}.follow_up_days")
    if mode == "priority":
        _assert_positive_int(entry.get("priority_level"), f"{ctx}.priority_level")
    return entry


def validate_lists_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "lists config")
    _assert_required_keys(cfg, {"lists"}, "lists config")
    if not isinstance(cfg["lists"], list):
        raise ConfigError("lists.lists must be a list")

    names: list[str] = []
    for idx, entry in enumerate(cfg["lists"]):
        validate_list_entry(entry, f"lists[{idx}]", allow_unknown=allow_unknown)
        names.append(entry["file_name"])

    dupes = {name for name in names if names.count(name) > 1}
    if dupes:
        raise ConfigError(f"Duplicate list names: {', '.join(sorted(dupes))}")
    return cfg


def validate_dedup_rules_config(cfg: dict) -> dict:
    _assert_mapping(cfg, "dedup_rules")
    _assert_no_unknown_keys(cfg, {"thresholds", "bonuses", "penalties", "wholesale_keywords"}, "dedup_rules", False)
    known_rules = {f.name for f in fields(DedupRules)} - {"wholesale_keywords"}
    for section in ("thresholds", "bonuses", "penalties"):
        values = _assert_mapping(cfg.get(section) or {}, f"dedup_rules.{section}")
        _assert_no_unknown_keys(values, known_rules, f"dedup_rules.{section}", False)
        for key, value in values.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
                raise ConfigError(f"dedup_rules.{section}.{key} must be a number between 0 and 1")
    keywords = cfg.get("wholesale_keywords", [])
    if not isinstance(keywords, list):
        raise ConfigError("dedup_rules.wholesale_keywords must be a list")
    return cfg
