from pathlib import Path

import pytest

from visit_planner.common.errors import IngestError
from visit_planner.common.models import ListConfig
from visit_planner.common.postcode import STATUS_INVALID, STATUS_OK
from visit_planner.pipeline.ingest import (
    auto_guess_mapping,
    build_pubs,
    coerce_number,
    map_row,
    read_list_rows,
    reconcile,
)

MASTER = ListConfig(file_name="Masterfile")
HIT_LIST = ListConfig(file_name="Hit List", scheduling_mode="deadline", deadline="2025-09-12")


def test_auto_guess_mapping_uses_header_synonyms():
    headers = ["pub name", "post code", "rtm", "city", "mobile", "visit notes", "landlord"]
    assert auto_guess_mapping(headers) == {
        "name": "pub name",
        "postcode": "post code",
        "rtm": "rtm",
        "town": "city",
        "phone": "mobile",
        "notes": "visit notes",
    }


def test_map_row_splits_mapped_and_extras():
    mapping = {"name": "pub", "postcode": "zip"}
    mapped, extras = map_row({"pub": " Crown ", "zip": "NR11 7XY", "landlord": "Sam", "blank": " "}, mapping)
    assert mapped == {"name": "Crown", "postcode": "NR11 7XY"}
    assert extras == {"landlord": "Sam"}


def test_coerce_number():
    assert coerce_number("52.95") == 52.95
    assert coerce_number(" -1.04 deg") == -1.04
    assert coerce_number("") is None
    assert coerce_number("n/a") is None
    assert coerce_number("1.2.3") is None


def test_build_pubs_applies_list_intent():
    rows = [
        {"Name": "Red Lion", "Postcode": "nr25 8pl", "Landlord": "Sam", "Lat": "52.9"},
        {"Name": "", "Postcode": "NR26 1AA"},
        {"Name": "Black Boys", "Postcode": ""},
    ]

    pubs = build_pubs(rows, HIT_LIST, file_id="file-1")

    assert len(pubs) == 1
    pub = pubs[0]
    assert pub.name == "Red Lion"
    assert pub.postcode == "NR25 8PL"
    assert pub.postcode_meta.status == STATUS_OK
    assert pub.deadline == "2025-09-12"
    assert pub.follow_up_days is None
    assert pub.list_type == "hitlist"
    assert pub.file_id == "file-1"
    assert pub.row_index == 0
    assert pub.lat == 52.9
    assert pub.landlord == "Sam"
    assert pub.extras == {"landlord": "Sam"}
    assert pub.source_lists == ["Hit List"]
    assert len(pub.sources) == 1
    assert pub.effective_plan.primary_mode == "deadline"


def test_build_pubs_keeps_invalid_postcodes_for_review():
    pubs = build_pubs([{"pub": "Nowhere Tavern", "zip": "BADCODE"}], MASTER)
    assert pubs[0].postcode_meta.status == STATUS_INVALID
    assert pubs[0].list_type == "masterhouse"
    assert pubs[0].effective_plan.primary_mode == "master"


def test_build_pubs_requires_name_and_postcode_columns():
    with pytest.raises(IngestError):
        build_pubs([{"venue": "Crown", "town": "Aylsham"}], MASTER)
    assert build_pubs([], MASTER) == []


def test_reconcile_merges_auto_matches_and_appends_the_rest():
    existing = build_pubs([{"pub name": "The Red Lion", "post code": "NR25 8PL"}], MASTER)
    incoming = build_pubs(
        [
            {"name": "Red Lion", "postcode": "nr25 8pl"},
            {"name": "Black Boys", "postcode": "NR25 6BY"},
        ],
        HIT_LIST,
    )

    result = reconcile(existing, incoming)

    assert len(result.pubs) == 2
    assert len(result.merged) == 1
    assert result.added == 1
    merged = result.pubs[0]
    assert merged.name == "The Red Lion"
    assert [source.file_name for source in merged.sources] == ["Masterfile", "Hit List"]
    assert merged.effective_plan.primary_mode == "deadline"
    assert len(existing[0].sources) == 1


def test_read_list_rows(tmp_path: Path):
    path = tmp_path / "list.csv"
    path.write_text("\ufeffPub,Postcode\nCrown,NR11 7XY\n", encoding="utf-8")
    assert read_list_rows(path) == [{"Pub": "Crown", "Postcode": "NR11 7XY"}]

    with pytest.raises(IngestError):
        read_list_rows(tmp_path / "missing.csv")
