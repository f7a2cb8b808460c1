"""CLI entrypoint for the pub visit planner."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from visit_planner.common.config_loader import ConfigBundle, load_all_configs
from visit_planner.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from visit_planner.common.errors import PlannerError
from visit_planner.common.ids import generate_run_id
from visit_planner.common.logging import build_logger, log_event
from visit_planner.common.store import JsonFileStore, KeyValueStore, MemoryStore
from visit_planner.geo.distance import DISTANCE_PROVIDERS
from visit_planner.pipeline.reports import write_run_summary
from visit_planner.pipeline.runner import ingest_lists, run_audit, run_fix_postcode, run_forget_list, run_plan


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--start-date", default=None)
    parser.add_argument("--business-days", type=int, default=None)
    parser.add_argument("--visits-per-day", type=int, default=None)
    parser.add_argument("--home", default=None)
    parser.add_argument("--distance-model", default=None, choices=sorted(DISTANCE_PROVIDERS))
    parser.add_argument("--list", dest="list_name", default=None)
    parser.add_argument("--pub", default=None)
    parser.add_argument("--postcode", default=None)
    parser.add_argument("--defer", action="store_true")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def build_store(bundle: ConfigBundle, data_dir: Path) -> KeyValueStore:
    if bundle.planner["state"]["enabled"]:
        return JsonFileStore(data_dir / "state")
    return MemoryStore()


def execute_command(args: argparse.Namespace, bundle: ConfigBundle, data_dir: Path, run_id: str) -> dict:
    store = build_store(bundle, data_dir)
    if args.command == "audit":
        return run_audit(bundle, data_dir, run_id)
    if args.command == "dedupe":
        result = ingest_lists(bundle, data_dir, store, run_id)
        result.pop("pubs")
        return result
    if args.command == "plan":
        overrides = {
            "start_date": args.start_date,
            "business_days": args.business_days,
            "visits_per_day": args.visits_per_day,
            "home_postcode": args.home,
            "distance_model": args.distance_model,
        }
        return run_plan(bundle, data_dir, store, run_id, overrides)
    if args.command == "forget-list":
        return run_forget_list(bundle, store, args.list_name)
    if args.command == "fix-postcode":
        return run_fix_postcode(bundle, store, args.pub, args.postcode, args.defer)
    raise ValueError(f"Unknown command: {args.command}")


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    bundle = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)

    log_event(logger, "command start", run_id=run_id, stage=args.command, event="STAGE_START", status="ok")
    errors: list[str] = []
    try:
        result = execute_command(args, bundle, data_dir, run_id)
    except PlannerError as exc:
        log_event(
            logger,
            f"command failed: {exc}",
            run_id=run_id,
            stage=args.command,
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        errors.append(str(exc))
        write_run_summary(data_dir, run_id, args.command, "error", {}, [], errors)
        return EXIT_HARD_FAIL

    failed_lists = result.get("failed_lists", [])
    errors.extend(f"list failed: {name}" for name in failed_lists)
    warnings = result.get("warnings", [])
    status = "error" if errors else ("partial" if warnings else "success")
    write_run_summary(data_dir, run_id, args.command, status, result.get("counts", {}), warnings, errors)
    log_event(logger, "command end", run_id=run_id, stage=args.command, event="STAGE_END", status=status)

    if failed_lists:
        return EXIT_HARD_FAIL if args.strict else EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except PlannerError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
