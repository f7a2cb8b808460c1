"""Key-value persistence for canonical record state.

The planner core never touches storage directly; the CLI loads and saves the
canonical record set through a ``KeyValueStore`` handed to it.
"""

from __future__ import annotations

import copy
import re
from pathlib import Path
from typing import Any, Protocol

from visit_planner.common.constants import STATE_VERSION
from visit_planner.common.fs import read_json, write_json
from visit_planner.common.models import Pub

_UNSAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    def load(self, key: str) -> Any | None:
        ...

    def save(self, key: str, value: Any) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    def __init__(self) -> None:
        self._items: dict[str, Any] = {}

    def load(self, key: str) -> Any | None:
        if key not in self._items:
            return None
        return copy.deepcopy(self._items[key])

    def save(self, key: str, value: Any) -> None:
        self._items[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStore:
    """One JSON document per key under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, key: str) -> Path:
        return self.root / f"{_UNSAFE_KEY_RE.sub('_', key)}.json"

    def load(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return read_json(path)

    def save(self, key: str, value: Any) -> None:
        write_json(self.path_for(key), value)

    def remove(self, key: str) -> None:
        path = self.path_for(key)
        if path.exists():
            path.unlink()


def state_key(name: str) -> str:
    return f"{name}.{STATE_VERSION}"


def load_pubs(store: KeyValueStore, name: str = "pubs") -> list[Pub]:
    payload = store.load(state_key(name)) or []
    return [Pub.from_dict(item) for item in payload]


def save_pubs(store: KeyValueStore, pubs: list[Pub], name: str = "pubs") -> None:
    store.save(state_key(name), [pub.to_dict() for pub in pubs])


def ingested_lists_key(name: str = "pubs") -> str:
    return state_key(f"{name}.lists")


def load_ingested_lists(store: KeyValueStore, name: str = "pubs") -> list[str]:
    """Names of lists already folded into the stored records, in ingestion order."""
    return list(store.load(ingested_lists_key(name)) or [])


def save_ingested_lists(store: KeyValueStore, list_names: list[str], name: str = "pubs") -> None:
    store.save(ingested_lists_key(name), list(list_names))
