"""Command orchestration with fail-soft list ingestion."""

from __future__ import annotations

import logging
from pathlib import Path

from visit_planner.common.config_loader import ConfigBundle, list_config_for
from visit_planner.common.errors import PlannerError, StageError
from visit_planner.common.fs import write_json
from visit_planner.common.logging import log_event
from visit_planner.common.models import Pub
from visit_planner.common.postcode import is_schedulable
from visit_planner.common.store import (
    KeyValueStore,
    load_ingested_lists,
    load_pubs,
    save_ingested_lists,
    save_pubs,
)
from visit_planner.common.time_utils import parse_run_date
from visit_planner.geo.distance import get_distance_provider
from visit_planner.matching.dedupe import DedupRules
from visit_planner.matching.lineage import apply_postcode_fix, defer_postcode_review, remove_list
from visit_planner.pipeline.export import write_schedule_csv
from visit_planner.pipeline.ingest import build_pubs, read_list_rows, reconcile
from visit_planner.pipeline.reports import build_list_audit, build_scheduling_debug_summary
from visit_planner.pipeline.schedule import plan_visits

logger = logging.getLogger(__name__)


def _lists_dir(bundle: ConfigBundle, data_dir: Path) -> Path:
    lists_dir = Path(bundle.planner["lists_dir"])
    return lists_dir if lists_dir.is_absolute() else data_dir / lists_dir


def _reports_dir(data_dir: Path) -> Path:
    return data_dir / "out" / "reports"


def run_audit(bundle: ConfigBundle, data_dir: Path, run_id: str) -> dict:
    audits = []
    failed_lists: list[str] = []
    for entry in bundle.lists:
        list_config = list_config_for(entry)
        try:
            rows = read_list_rows(_lists_dir(bundle, data_dir) / entry["path"])
            pubs = build_pubs(rows, list_config)
        except PlannerError as exc:
            failed_lists.append(list_config.file_name)
            log_event(
                logger,
                str(exc),
                run_id=run_id,
                stage="audit",
                list=list_config.file_name,
                event="LIST_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            continue
        audits.append(build_list_audit(list_config, pubs))

    out_path = _reports_dir(data_dir) / bundle.planner["output"]["audit_filename"]
    write_json(out_path, audits)
    return {
        "counts": {"lists": len(audits), "rows": sum(audit["total_rows"] for audit in audits)},
        "failed_lists": failed_lists,
    }


def ingest_lists(bundle: ConfigBundle, data_dir: Path, store: KeyValueStore, run_id: str) -> dict:
    """Fold every configured list not yet in stored state into the canonical set."""
    state_key = bundle.planner["state"]["key"]
    rules = DedupRules.from_config(bundle.dedup_rules)
    pubs = load_pubs(store, state_key)
    known_lists = load_ingested_lists(store, state_key)

    failed_lists: list[str] = []
    skipped_lists: list[str] = []
    review: list[dict] = []
    merged = 0
    added = 0
    attempted = 0

    for entry in bundle.lists:
        list_config = list_config_for(entry)
        if list_config.file_name in known_lists:
            skipped_lists.append(list_config.file_name)
            continue

        attempted += 1
        try:
            rows = read_list_rows(_lists_dir(bundle, data_dir) / entry["path"])
            incoming = build_pubs(rows, list_config)
        except PlannerError as exc:
            failed_lists.append(list_config.file_name)
            log_event(
                logger,
                str(exc),
                run_id=run_id,
                stage="ingest",
                list=list_config.file_name,
                event="LIST_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            continue

        result = reconcile(pubs, incoming, rules)
        pubs = result.pubs
        known_lists.append(list_config.file_name)
        merged += len(result.merged)
        added += result.added
        review.extend(candidate.to_dict() for candidate in result.needs_review)
        log_event(
            logger,
            "list ingested",
            run_id=run_id,
            stage="ingest",
            list=list_config.file_name,
            event="LIST_INGESTED",
            status="ok",
            rows_in=len(rows),
            rows_out=len(incoming),
        )

    if attempted and len(failed_lists) >= attempted:
        raise StageError("All configured lists failed to ingest")

    if bundle.planner["state"]["enabled"]:
        save_pubs(store, pubs, state_key)
        save_ingested_lists(store, known_lists, state_key)

    write_json(_reports_dir(data_dir) / bundle.planner["output"]["review_filename"], review)
    return {
        "pubs": pubs,
        "counts": {"pubs": len(pubs), "merged": merged, "added": added, "needs_review": len(review)},
        "failed_lists": failed_lists,
        "skipped_lists": skipped_lists,
    }


def run_plan(
    bundle: ConfigBundle,
    data_dir: Path,
    store: KeyValueStore,
    run_id: str,
    overrides: dict,
) -> dict:
    ingested = ingest_lists(bundle, data_dir, store, run_id)
    pubs = ingested["pubs"]

    settings = {**bundle.planner["schedule"], **{k: v for k, v in overrides.items() if v is not None}}
    start_date = parse_run_date(settings.get("start_date"))
    distance = get_distance_provider(settings["distance_model"])

    schedule = plan_visits(
        pubs,
        start_date,
        settings["business_days"],
        settings.get("home_postcode"),
        settings["visits_per_day"],
        settings.get("search_radius"),
        distance=distance,
    )
    output = bundle.planner["output"]
    write_schedule_csv(data_dir / "out" / output["schedule_filename"], schedule)
    debug = build_scheduling_debug_summary(
        pubs,
        schedule,
        days_requested=settings["business_days"],
        visits_per_day=settings["visits_per_day"],
        home_address=settings.get("home_postcode"),
        search_radius=settings.get("search_radius"),
    )
    debug["days"] = [
        {"date": day.date, "visit_count": len(day.visits), "scheduling_errors": day.scheduling_errors}
        for day in schedule
    ]
    write_json(_reports_dir(data_dir) / output["debug_filename"], debug)

    warnings = [warning for day in schedule for warning in day.scheduling_errors]
    return {
        "counts": {**ingested["counts"], "days": len(schedule), "visits": debug["total_scheduled"]},
        "failed_lists": ingested["failed_lists"],
        "warnings": warnings,
    }


def run_forget_list(bundle: ConfigBundle, store: KeyValueStore, list_name: str | None) -> dict:
    if not list_name:
        raise StageError("forget-list requires --list")
    state_key = bundle.planner["state"]["key"]
    pubs = load_pubs(store, state_key)
    known_lists = load_ingested_lists(store, state_key)

    kept = remove_list(pubs, list_name)
    save_pubs(store, kept, state_key)
    save_ingested_lists(store, [name for name in known_lists if name != list_name], state_key)

    warnings = [] if list_name in known_lists else [f"list {list_name} was not ingested"]
    return {
        "counts": {"pubs": len(kept), "removed": len(pubs) - len(kept)},
        "failed_lists": [],
        "warnings": warnings,
    }


def _find_pub(pubs: list[Pub], pub_ref: str) -> int:
    matches = [index for index, pub in enumerate(pubs) if pub.uuid == pub_ref]
    if not matches:
        matches = [index for index, pub in enumerate(pubs) if pub.name.casefold() == pub_ref.casefold()]
    if not matches:
        raise StageError(f"No stored record matches {pub_ref!r}")
    if len(matches) > 1:
        raise StageError(f"{pub_ref!r} matches {len(matches)} stored records; pass its uuid instead")
    return matches[0]


def run_fix_postcode(
    bundle: ConfigBundle,
    store: KeyValueStore,
    pub_ref: str | None,
    postcode: str | None,
    defer: bool = False,
) -> dict:
    """Correct or defer review of one stored record's postcode."""
    if not pub_ref or not (postcode or defer):
        raise StageError("fix-postcode requires --pub and either --postcode or --defer")
    state_key = bundle.planner["state"]["key"]
    pubs = load_pubs(store, state_key)
    index = _find_pub(pubs, pub_ref)

    fixed = pubs[index]
    if postcode:
        fixed = apply_postcode_fix(fixed, postcode)
    if defer:
        fixed = defer_postcode_review(fixed)
    pubs[index] = fixed
    save_pubs(store, pubs, state_key)

    warnings = [] if is_schedulable(fixed) else [f"{fixed.name}: postcode {fixed.postcode} is still invalid"]
    return {"counts": {"pubs": len(pubs), "fixed": 1}, "failed_lists": [], "warnings": warnings}
