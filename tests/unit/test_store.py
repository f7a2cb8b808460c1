from pathlib import Path

from visit_planner.common.models import ListConfig
from visit_planner.common.store import (
    JsonFileStore,
    MemoryStore,
    load_ingested_lists,
    load_pubs,
    save_ingested_lists,
    save_pubs,
    state_key,
)
from visit_planner.matching.lineage import merge_into_canonical
from visit_planner.pipeline.ingest import build_pubs


def _canonical():
    master = build_pubs([{"pub": "The Red Lion", "zip": "NR25 8PL", "landlord": "Sam"}], ListConfig("Masterfile"))[0]
    incoming = build_pubs(
        [{"pub": "Red Lion", "zip": "NR25 8PL"}],
        ListConfig("Wins", scheduling_mode="followup", follow_up_days=14),
    )[0]
    return merge_into_canonical(master, incoming, 0, incoming.mapped, incoming.extras)


def test_memory_store_copies_values():
    store = MemoryStore()
    value = {"a": [1]}
    store.save("k", value)
    value["a"].append(2)
    assert store.load("k") == {"a": [1]}
    store.remove("k")
    assert store.load("k") is None


def test_json_file_store_round_trips_pubs(tmp_path: Path):
    store = JsonFileStore(tmp_path / "state")
    pub = _canonical()

    save_pubs(store, [pub])

    assert store.path_for(state_key("pubs")) == tmp_path / "state" / "pubs.v1.json"
    assert load_pubs(store) == [pub]


def test_json_file_store_missing_and_remove(tmp_path: Path):
    store = JsonFileStore(tmp_path)
    assert store.load("nothing") is None
    store.save("list/one", [1])
    assert store.path_for("list/one").name == "list_one.json"
    store.remove("list/one")
    assert store.load("list/one") is None


def test_ingested_lists_live_under_their_own_key(tmp_path: Path):
    store = JsonFileStore(tmp_path / "state")
    assert load_ingested_lists(store) == []

    save_ingested_lists(store, ["Masterfile", "Wins"])

    assert (tmp_path / "state" / "pubs.lists.v1.json").exists()
    assert load_ingested_lists(store) == ["Masterfile", "Wins"]
    assert load_pubs(store) == []
