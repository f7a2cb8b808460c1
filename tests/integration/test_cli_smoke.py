import csv
import shutil
from pathlib import Path

import pytest

from visit_planner.cli import parse_args, run_command
from visit_planner.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from visit_planner.common.fs import read_json
from visit_planner.common.postcode import USER_DEFERRED_REVIEW, is_schedulable
from visit_planner.common.store import JsonFileStore, load_pubs

FIXTURE_LISTS = Path("tests/fixtures/lists")


def _data_dir(tmp_path: Path) -> Path:
    data_dir = tmp_path / "data"
    shutil.copytree(FIXTURE_LISTS, data_dir / "lists")
    return data_dir


def _run(command: str, data_dir: Path, *extra: str) -> int:
    args = parse_args(
        [
            command,
            "--config-dir",
            "config",
            "--data-dir",
            str(data_dir),
            "--run-id",
            "run-test",
            *extra,
        ]
    )
    return run_command(args)


@pytest.mark.integration
def test_cli_plan_generates_expected_artifacts(tmp_path: Path):
    data_dir = _data_dir(tmp_path)

    exit_code = _run("plan", data_dir, "--start-date", "2025-09-15")

    assert exit_code == EXIT_SUCCESS
    with (data_dir / "out" / "schedule.csv").open("r", encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [row["Pub Name"] for row in rows] == [
        "The Red Lion",
        "Black Boys",
        "Kings Head",
        "Crown",
        "Ship Inn",
        "The Anchor",
        "Feathers Inn",
    ]
    assert {row["Date"] for row in rows} == {"2025-09-15", "2025-09-16"}
    assert rows[0]["Lists"] == "Masterfile; Hit List"

    debug = read_json(data_dir / "out" / "reports" / "scheduling_debug.json")
    assert debug["exclusion_reasons"]["invalid_geo"] == 1
    assert debug["total_scheduled"] == 7
    assert debug["days"][1]["scheduling_errors"] == ["Only 2 visits scheduled (target: 5)"]

    summary = read_json(data_dir / "out" / "reports" / "run_summary.json")
    assert summary["status"] == "partial"
    assert summary["counts"]["merged"] == 2
    assert (data_dir / "state" / "pubs.v1.json").exists()
    assert (data_dir / "run_meta" / "run-test.log.jsonl").exists()


@pytest.mark.integration
def test_cli_dedupe_skips_lists_already_in_state(tmp_path: Path):
    data_dir = _data_dir(tmp_path)

    assert _run("dedupe", data_dir) == EXIT_SUCCESS
    first = read_json(data_dir / "out" / "reports" / "run_summary.json")
    assert first["counts"] == {"pubs": 8, "merged": 2, "added": 8, "needs_review": 0}

    assert _run("dedupe", data_dir) == EXIT_SUCCESS
    second = read_json(data_dir / "out" / "reports" / "run_summary.json")
    assert second["counts"] == {"pubs": 8, "merged": 0, "added": 0, "needs_review": 0}


@pytest.mark.integration
def test_cli_forget_list_drops_its_records(tmp_path: Path):
    data_dir = _data_dir(tmp_path)
    assert _run("dedupe", data_dir) == EXIT_SUCCESS

    assert _run("forget-list", data_dir, "--list", "Key Accounts") == EXIT_SUCCESS

    pubs = load_pubs(JsonFileStore(data_dir / "state"))
    assert len(pubs) == 7
    assert "Ship Inn" not in {pub.name for pub in pubs}
    assert _run("forget-list", data_dir) == EXIT_HARD_FAIL


@pytest.mark.integration
def test_cli_forgotten_list_is_ingested_again(tmp_path: Path):
    data_dir = _data_dir(tmp_path)
    state = JsonFileStore(data_dir / "state")
    assert _run("dedupe", data_dir) == EXIT_SUCCESS

    assert _run("forget-list", data_dir, "--list", "Hit List") == EXIT_SUCCESS

    pubs = {pub.name: pub for pub in load_pubs(state)}
    assert "Black Boys" not in pubs
    assert pubs["The Red Lion"].effective_plan.deadline is None
    assert pubs["The Red Lion"].effective_plan.list_names == ("Masterfile",)

    assert _run("dedupe", data_dir) == EXIT_SUCCESS
    summary = read_json(data_dir / "out" / "reports" / "run_summary.json")
    assert summary["counts"] == {"pubs": 8, "merged": 1, "added": 1, "needs_review": 0}

    pubs = {pub.name: pub for pub in load_pubs(state)}
    assert "Black Boys" in pubs
    assert pubs["The Red Lion"].effective_plan.deadline == "2025-09-12"


@pytest.mark.integration
def test_cli_audit_reports_every_list(tmp_path: Path):
    data_dir = _data_dir(tmp_path)

    assert _run("audit", data_dir) == EXIT_SUCCESS

    audits = read_json(data_dir / "out" / "reports" / "list_audit.json")
    assert [audit["file"] for audit in audits] == ["Masterfile", "Hit List", "Wins", "Key Accounts"]
    assert audits[0]["invalid_postcodes"] == 1
    assert audits[0]["last_visited"] == {"present": 3, "valid": 2, "invalid": 1}


@pytest.mark.integration
def test_cli_missing_list_is_partial_unless_strict(tmp_path: Path):
    data_dir = _data_dir(tmp_path)
    (data_dir / "lists" / "wins.csv").unlink()
    strict_dir = _data_dir(tmp_path / "strict")
    (strict_dir / "lists" / "wins.csv").unlink()

    assert _run("plan", data_dir, "--start-date", "2025-09-15") == EXIT_PARTIAL
    assert _run("plan", strict_dir, "--start-date", "2025-09-15", "--strict") == EXIT_HARD_FAIL


@pytest.mark.integration
def test_cli_all_lists_missing_is_hard_fail(tmp_path: Path):
    data_dir = tmp_path / "data"
    (data_dir / "lists").mkdir(parents=True)

    assert _run("plan", data_dir) == EXIT_HARD_FAIL
    summary = read_json(data_dir / "out" / "reports" / "run_summary.json")
    assert summary["status"] == "error"


@pytest.mark.integration
def test_cli_fixed_postcode_gets_scheduled(tmp_path: Path):
    data_dir = _data_dir(tmp_path)
    assert _run("dedupe", data_dir) == EXIT_SUCCESS

    assert _run("fix-postcode", data_dir, "--pub", "Nowhere Tavern", "--postcode", "nr25 7aa") == EXIT_SUCCESS

    pubs = {pub.name: pub for pub in load_pubs(JsonFileStore(data_dir / "state"))}
    assert pubs["Nowhere Tavern"].postcode == "NR25 7AA"
    assert is_schedulable(pubs["Nowhere Tavern"])

    assert _run("plan", data_dir, "--start-date", "2025-09-15") == EXIT_SUCCESS
    debug = read_json(data_dir / "out" / "reports" / "scheduling_debug.json")
    assert debug["exclusion_reasons"]["invalid_geo"] == 0
    assert debug["total_scheduled"] == 8


@pytest.mark.integration
def test_cli_deferred_postcode_stays_flagged(tmp_path: Path):
    data_dir = _data_dir(tmp_path)
    assert _run("dedupe", data_dir) == EXIT_SUCCESS

    assert _run("fix-postcode", data_dir, "--pub", "Nowhere Tavern", "--defer") == EXIT_SUCCESS

    pubs = {pub.name: pub for pub in load_pubs(JsonFileStore(data_dir / "state"))}
    assert pubs["Nowhere Tavern"].postcode_meta.fallback_reason == USER_DEFERRED_REVIEW
    summary = read_json(data_dir / "out" / "reports" / "run_summary.json")
    assert summary["status"] == "partial"
    assert _run("fix-postcode", data_dir, "--pub", "No Such Pub", "--postcode", "NR1 1AA") == EXIT_HARD_FAIL
