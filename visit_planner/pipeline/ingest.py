"""Map uploaded list rows onto canonical records and reconcile them with existing state."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from visit_planner.common.errors import IngestError
from visit_planner.common.fs import read_csv_rows
from visit_planner.common.ids import new_record_id
from visit_planner.common.models import ListConfig, Pub
from visit_planner.common.postcode import parse_postcode
from visit_planner.matching.dedupe import DEFAULT_RULES, Candidate, DedupRules, suggest
from visit_planner.matching.lineage import merge_into_canonical, seed_lineage

REQUIRED_FIELDS = ("name", "postcode")

SYNONYMS = {
    "name": [re.compile(r"^(pub|pub name|name|venue|business|account|account name|outlet|place)$", re.I)],
    "postcode": [re.compile(r"^(zip|postcode|post\s*code|post_code|postal\s*code|zip\s*code)$", re.I)],
    "rtm": [re.compile(r"^(rtm|route\s*to\s*market|channel|tier)$", re.I)],
    "address": [re.compile(r"^(address|addr|street|line1|line\s*1)$", re.I)],
    "town": [re.compile(r"^(city|town|locality)$", re.I)],
    "lat": [re.compile(r"^(lat|latitude)$", re.I)],
    "lng": [re.compile(r"^(lng|long|longitude)$", re.I)],
    "phone": [re.compile(r"^(phone|telephone|tel|mobile|cell)$", re.I)],
    "email": [re.compile(r"^(email|e-mail)$", re.I)],
    "notes": [re.compile(r"^(notes|note|comment|remarks|memo|visit notes|visit_notes)$", re.I)],
}

_NUMBER_NOISE_RE = re.compile(r"[^\d.\-]")


def normalise_header(header) -> str:
    return str(header or "").strip().lower()


def auto_guess_mapping(headers: list[str]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for field_name, patterns in SYNONYMS.items():
        for header in headers:
            if any(pattern.match(header) for pattern in patterns):
                mapping[field_name] = header
                break
    return mapping


def _cell_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_number(value) -> float | None:
    text = _NUMBER_NOISE_RE.sub("", _cell_text(value))
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def map_row(row: dict, mapping: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
    """Split a header->cell row into canonical values and unmapped extras, dropping blanks."""
    used = set(mapping.values())
    mapped = {}
    for field_name, header in mapping.items():
        text = _cell_text(row.get(header))
        if text:
            mapped[field_name] = text

    extras = {}
    for header, value in row.items():
        key = normalise_header(header)
        text = _cell_text(value)
        if key and key not in used and text:
            extras[key] = text
    return mapped, extras


def _list_intent(list_config: ListConfig) -> dict:
    mode = list_config.scheduling_mode
    return {
        "deadline": list_config.deadline if mode == "deadline" else None,
        "follow_up_days": list_config.follow_up_days if mode == "followup" else None,
        "priority_level": list_config.priority_level if mode == "priority" else None,
    }


def build_pubs(rows: list[dict], list_config: ListConfig, file_id: str | None = None) -> list[Pub]:
    normalised_rows = [{normalise_header(k): v for k, v in row.items()} for row in rows]
    headers: list[str] = []
    for row in normalised_rows:
        headers.extend(h for h in row if h not in headers)

    mapping = auto_guess_mapping(headers)
    missing = [f for f in REQUIRED_FIELDS if f not in mapping]
    if rows and missing:
        raise IngestError(f"{list_config.file_name}: no column found for {', '.join(missing)}")

    file_id = file_id or new_record_id()
    intent = _list_intent(list_config)
    pubs: list[Pub] = []

    for row_index, row in enumerate(normalised_rows):
        mapped, extras = map_row(row, mapping)
        if not mapped.get("name") or not mapped.get("postcode"):
            continue

        meta = parse_postcode(mapped["postcode"])
        pub = Pub(
            uuid=new_record_id(),
            name=mapped["name"],
            postcode=meta.normalized or mapped["postcode"],
            file_id=file_id,
            file_name=list_config.file_name,
            list_type=list_config.list_type,
            row_index=row_index,
            rtm=mapped.get("rtm"),
            address=mapped.get("address"),
            town=mapped.get("town"),
            phone=mapped.get("phone"),
            email=mapped.get("email"),
            notes=mapped.get("notes"),
            last_visited=extras.get("last_visited") or extras.get("last visited"),
            landlord=extras.get("landlord"),
            lat=coerce_number(mapped.get("lat")),
            lng=coerce_number(mapped.get("lng")),
            scheduling_mode=list_config.scheduling_mode,
            postcode_meta=meta,
            mapped=mapped,
            extras=extras,
            **intent,
        )
        pubs.append(seed_lineage(pub))
    return pubs


def read_list_rows(path: Path) -> list[dict]:
    if not path.exists():
        raise IngestError(f"Missing list file: {path}")
    _headers, rows = read_csv_rows(path)
    return rows


@dataclass
class ReconcileResult:
    pubs: list[Pub]
    merged: list[Candidate] = field(default_factory=list)
    needs_review: list[Candidate] = field(default_factory=list)
    added: int = 0


def reconcile(existing: list[Pub], incoming: list[Pub], rules: DedupRules = DEFAULT_RULES) -> ReconcileResult:
    """Apply auto-merge suggestions; everything else joins the canonical set as a new record."""
    suggestions = suggest(existing, incoming, rules)
    by_uuid = {pub.uuid: pub for pub in existing}
    merged_incoming: set[str] = set()

    for candidate in suggestions.auto_merge:
        incoming_pub = candidate.incoming
        target = by_uuid[candidate.existing.uuid]
        by_uuid[target.uuid] = merge_into_canonical(
            target,
            incoming_pub,
            incoming_pub.row_index or 0,
            incoming_pub.mapped,
            incoming_pub.extras,
        )
        merged_incoming.add(incoming_pub.uuid)

    pubs = [by_uuid[pub.uuid] for pub in existing]
    added = [pub for pub in incoming if pub.uuid not in merged_incoming]
    pubs.extend(added)
    return ReconcileResult(
        pubs=pubs,
        merged=list(suggestions.auto_merge),
        needs_review=list(suggestions.needs_review),
        added=len(added),
    )
