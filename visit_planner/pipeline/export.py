"""Schedule CSV export."""

from __future__ import annotations

from pathlib import Path

from visit_planner.common.fs import write_csv
from visit_planner.common.models import Pub, ScheduleDay
from visit_planner.matching.lineage import get_primary_driver

SCHEDULE_HEADERS = [
    "Date",
    "Pub Name",
    "Post Code",
    "Priority",
    "Lists",
    "Mileage To Next",
    "Drive Time To Next",
]


def _format_number(value) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def _serialize_visit(day: ScheduleDay, visit: Pub) -> dict:
    _mode, label = get_primary_driver(visit)
    return {
        "Date": day.date,
        "Pub Name": visit.name,
        "Post Code": visit.postcode,
        "Priority": label,
        "Lists": "; ".join(visit.source_lists),
        "Mileage To Next": _format_number(visit.mileage_to_next),
        "Drive Time To Next": _format_number(visit.drive_time_to_next),
    }


def schedule_rows(schedule: list[ScheduleDay]) -> list[dict]:
    return [_serialize_visit(day, visit) for day in schedule for visit in day.visits]


def write_schedule_csv(out_path: Path, schedule: list[ScheduleDay]) -> Path:
    write_csv(out_path, SCHEDULE_HEADERS, schedule_rows(schedule))
    return out_path
