"""Data models shared by the matching, geo and scheduling layers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class ParsedPostcode:
    raw: str
    normalized: str | None
    area_letters: str | None
    outward_district: int | None
    outward_full: str | None
    inward_sector: str | None
    inward_unit: str | None
    status: str
    fallback_reason: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ParsedPostcode":
        return cls(**payload)


@dataclass(frozen=True)
class FieldValue:
    source_id: str
    value: str


@dataclass(frozen=True)
class SourceRef:
    """One ingested row's contribution to a canonical record."""

    source_id: str
    file_id: str
    file_name: str
    row_index: int
    scheduling_mode: str
    priority: int | None = None
    deadline: str | None = None
    follow_up_days: int | None = None
    list_type: str | None = None
    mapped: dict[str, str] = field(default_factory=dict)
    extras: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SourceRef":
        return cls(**payload)


@dataclass(frozen=True)
class EffectivePlan:
    deadline: str | None = None
    priority_level: int | None = None
    follow_up_days: int | None = None
    primary_mode: str = "master"
    list_names: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["list_names"] = list(self.list_names)
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "EffectivePlan":
        data = dict(payload)
        data["list_names"] = tuple(data.get("list_names") or ())
        return cls(**data)


@dataclass
class Pub:
    """Canonical location record.

    ``name`` and ``postcode`` are the venue name and current postcode string.
    Lineage fields (``sources``, ``field_values_by_source``, ``merged_extras``)
    grow on every merge and shrink only when a list is forgotten;
    ``effective_plan`` is derived from ``sources``.
    """

    uuid: str
    name: str
    postcode: str
    file_id: str = ""
    file_name: str = ""
    list_type: str = "masterhouse"
    row_index: int | None = None
    rtm: str | None = None
    address: str | None = None
    town: str | None = None
    phone: str | None = None
    email: str | None = None
    notes: str | None = None
    last_visited: str | None = None
    landlord: str | None = None
    lat: float | None = None
    lng: float | None = None
    deadline: str | None = None
    priority_level: int | None = None
    follow_up_days: int | None = None
    scheduling_mode: str | None = None
    postcode_meta: ParsedPostcode | None = None
    mapped: dict[str, str] = field(default_factory=dict)
    extras: dict[str, str] = field(default_factory=dict)
    source_lists: list[str] = field(default_factory=list)
    sources: list[SourceRef] = field(default_factory=list)
    field_values_by_source: dict[str, list[FieldValue]] = field(default_factory=dict)
    merged_extras: dict[str, list[FieldValue]] = field(default_factory=dict)
    effective_plan: EffectivePlan | None = None
    mileage_to_next: float | None = None
    drive_time_to_next: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["effective_plan"] = self.effective_plan.to_dict() if self.effective_plan else None
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Pub":
        data = dict(payload)
        meta = data.get("postcode_meta")
        data["postcode_meta"] = ParsedPostcode.from_dict(meta) if meta else None
        data["sources"] = [SourceRef.from_dict(item) for item in data.get("sources") or []]
        data["field_values_by_source"] = {
            key: [FieldValue(**value) for value in values]
            for key, values in (data.get("field_values_by_source") or {}).items()
        }
        data["merged_extras"] = {
            key: [FieldValue(**value) for value in values]
            for key, values in (data.get("merged_extras") or {}).items()
        }
        plan = data.get("effective_plan")
        data["effective_plan"] = EffectivePlan.from_dict(plan) if plan else None
        return cls(**data)


@dataclass
class ScheduleDay:
    date: str
    visits: list[Pub]
    total_mileage: float = 0
    total_drive_time: int = 0
    start_mileage: float = 0
    start_drive_time: int = 0
    end_mileage: float = 0
    end_drive_time: int = 0
    scheduling_errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ListConfig:
    """Scheduling configuration attached to one uploaded list."""

    file_name: str
    scheduling_mode: str | None = None
    deadline: str | None = None
    follow_up_days: int | None = None
    priority_level: int | None = None

    @property
    def list_type(self) -> str:
        if self.scheduling_mode == "followup":
            return "wins"
        if self.scheduling_mode in ("deadline", "priority"):
            return "hitlist"
        return "masterhouse"
