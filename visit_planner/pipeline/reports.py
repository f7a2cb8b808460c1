"""Run report aggregation."""

from __future__ import annotations

from collections import Counter
from pathlib import Path

from visit_planner.common.fs import write_json
from visit_planner.common.models import ListConfig, Pub, ScheduleDay
from visit_planner.common.postcode import is_schedulable
from visit_planner.common.time_utils import parse_iso_date
from visit_planner.pipeline.schedule import BUCKET_ORDER, classify_bucket, resolve_home

AUDIT_SAMPLE_SIZE = 3


def _empty_bucket_counts() -> dict[str, int]:
    return {bucket: 0 for bucket in BUCKET_ORDER}


def build_scheduling_debug_summary(
    pubs: list[Pub],
    schedule: list[ScheduleDay],
    days_requested: int,
    visits_per_day: int,
    home_address: str | None,
    search_radius: float | None,
) -> dict:
    scheduled_ids = {visit.uuid for day in schedule for visit in day.visits}

    bucket_totals = _empty_bucket_counts()
    bucket_scheduled = _empty_bucket_counts()
    bucket_excluded = _empty_bucket_counts()
    invalid_geo = 0
    capacity_limit = 0
    already_scheduled = 0
    counted: set[str] = set()

    for pub in pubs:
        bucket = classify_bucket(pub)
        bucket_totals[bucket] += 1
        if pub.uuid in scheduled_ids and pub.uuid not in counted:
            counted.add(pub.uuid)
            bucket_scheduled[bucket] += 1
            continue
        bucket_excluded[bucket] += 1
        if pub.uuid in counted:
            already_scheduled += 1
        elif not is_schedulable(pub):
            invalid_geo += 1
        else:
            capacity_limit += 1

    anchor_mode = "home" if resolve_home(home_address) is not None else "fallback"
    notes = [f"search radius {search_radius} accepted but not enforced"]
    if anchor_mode == "fallback":
        notes.append("no home postcode; start and end legs are zero")
    if len(schedule) < days_requested:
        notes.append(f"ran out of candidates after {len(schedule)} of {days_requested} days")

    return {
        "bucket_totals": bucket_totals,
        "bucket_scheduled": bucket_scheduled,
        "bucket_excluded": bucket_excluded,
        "exclusion_reasons": {
            "radius_constrained": 0,
            "invalid_geo": invalid_geo,
            "capacity_limit": capacity_limit,
            "already_scheduled": already_scheduled,
        },
        "anchor_mode": anchor_mode,
        "search_radius": search_radius,
        "days_requested": days_requested,
        "scheduled_days": len(schedule),
        "visits_per_day": visits_per_day,
        "total_pubs": len(pubs),
        "total_scheduled": len(scheduled_ids),
        "notes": notes,
    }


def _sample(pub: Pub) -> dict:
    return {
        "name": pub.name,
        "postcode": pub.postcode,
        "raw_postcode": pub.postcode_meta.raw if pub.postcode_meta else pub.postcode,
        "normalized_postcode": pub.postcode_meta.normalized if pub.postcode_meta else None,
        "last_visited": pub.last_visited,
    }


def build_list_audit(list_config: ListConfig, pubs: list[Pub], warnings: list[str] | None = None) -> dict:
    """Per-list sanity report: dates attached, bucket spread and a few sample rows."""
    deadlines_attached = sum(1 for pub in pubs if pub.deadline is not None)
    deadlines_valid = sum(1 for pub in pubs if parse_iso_date(pub.deadline) is not None)
    visited_present = [pub for pub in pubs if pub.last_visited and pub.last_visited.strip()]
    visited_valid = sum(1 for pub in visited_present if parse_iso_date(pub.last_visited) is not None)
    follow_up_distribution = Counter(
        "null" if pub.follow_up_days is None else str(pub.follow_up_days) for pub in pubs
    )

    bucket_counts = _empty_bucket_counts()
    samples: dict[str, list[dict]] = {bucket: [] for bucket in BUCKET_ORDER}
    for pub in pubs:
        bucket = classify_bucket(pub)
        bucket_counts[bucket] += 1
        if len(samples[bucket]) < AUDIT_SAMPLE_SIZE:
            samples[bucket].append(_sample(pub))

    return {
        "file": list_config.file_name,
        "config": {
            "scheduling_mode": list_config.scheduling_mode,
            "deadline": list_config.deadline,
            "follow_up_days": list_config.follow_up_days,
            "priority_level": list_config.priority_level,
        },
        "warnings": list(warnings or []),
        "total_rows": len(pubs),
        "invalid_postcodes": sum(1 for pub in pubs if not is_schedulable(pub)),
        "deadlines": {"attached": deadlines_attached, "valid": deadlines_valid},
        "last_visited": {
            "present": len(visited_present),
            "valid": visited_valid,
            "invalid": len(visited_present) - visited_valid,
        },
        "follow_up_days_distribution": dict(sorted(follow_up_distribution.items())),
        "bucket_counts": bucket_counts,
        "samples": samples,
    }


def write_run_summary(
    data_dir: Path,
    run_id: str,
    command: str,
    status: str,
    counts: dict[str, int],
    warnings: list[str],
    errors: list[str],
) -> Path:
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    payload = {
        "run_id": run_id,
        "command": command,
        "status": status,
        "counts": counts,
        "warning_count": len(warnings),
        "error_count": len(errors),
        "warnings": warnings,
        "errors": errors,
    }
    write_json(summary_path, payload)
    return summary_path
