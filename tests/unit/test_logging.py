import json
import logging
from pathlib import Path

from visit_planner.common.constants import JSON_LOG_FIELDS
from visit_planner.common.logging import JsonLineFormatter, build_logger, log_event


def test_formatter_emits_stable_schema():
    record = logging.LogRecord("visit_planner.test", logging.INFO, __file__, 1, "hello %s", ("there",), None)
    record.list_name = "Hit List"
    record.rows_in = 3

    payload = json.loads(JsonLineFormatter().format(record))

    assert set(JSON_LOG_FIELDS) <= set(payload)
    assert payload["message"] == "hello there"
    assert payload["list"] == "Hit List"
    assert payload["rows_in"] == 3
    assert payload["error_code"] is None


def test_build_logger_writes_json_lines(tmp_path: Path):
    logger = build_logger("run-test", data_dir=tmp_path, level="INFO")
    log_event(logger, "list ingested", stage="ingest", list="Wins", event="LIST_INGESTED", status="ok")
    logging.getLogger("visit_planner.pipeline.test").info("child message")
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run_meta" / "run-test.log.jsonl").read_text(encoding="utf-8").splitlines()
    first, second = (json.loads(line) for line in lines)

    assert first["list"] == "Wins"
    assert first["run_id"] == "run-test"
    assert first["event"] == "LIST_INGESTED"
    assert second["run_id"] == "run-test"
    assert second["logger"] == "visit_planner.pipeline.test"

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
