"""Append-only lineage merging for canonical records.

Merging never edits or drops earlier provenance: every ingested row becomes a
``SourceRef`` on the canonical record, and every value it supplied is
appended to the per-field audit trail. The effective plan is recomputed from
all sources each time. Provenance only shrinks when a whole list is forgotten.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import Iterable

from visit_planner.common.constants import MASTER_LIST_NAME
from visit_planner.common.models import EffectivePlan, FieldValue, Pub, SourceRef
from visit_planner.common.postcode import USER_DEFERRED_REVIEW, parse_postcode

logger = logging.getLogger(__name__)


def scheduling_mode_for(pub: Pub) -> str:
    if pub.deadline:
        return "deadline"
    if pub.follow_up_days and pub.follow_up_days > 0:
        return "followup"
    return "priority"


def build_source_ref(
    incoming: Pub,
    row_index: int,
    mapped_values: dict[str, str],
    extras: dict[str, str],
) -> SourceRef:
    return SourceRef(
        source_id=incoming.uuid,
        file_id=incoming.file_id,
        file_name=incoming.file_name,
        row_index=row_index,
        scheduling_mode=scheduling_mode_for(incoming),
        priority=incoming.priority_level,
        deadline=incoming.deadline,
        follow_up_days=incoming.follow_up_days,
        list_type=incoming.list_type,
        mapped=dict(mapped_values),
        extras=dict(extras),
    )


def _unique(values: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def recompute_effective_plan(sources: list[SourceRef]) -> EffectivePlan:
    """Earliest deadline, highest priority number and shortest follow-up across ``sources``."""
    deadlines = sorted(s.deadline for s in sources if s.deadline)
    priorities = [s.priority for s in sources if s.priority is not None and s.priority > 0]
    follow_ups = [s.follow_up_days for s in sources if s.follow_up_days is not None and s.follow_up_days > 0]

    plan = EffectivePlan(
        deadline=deadlines[0] if deadlines else None,
        priority_level=max(priorities) if priorities else None,
        follow_up_days=min(follow_ups) if follow_ups else None,
        list_names=tuple(_unique(s.file_name for s in sources)),
    )
    if plan.deadline:
        mode = "deadline"
    elif plan.follow_up_days:
        mode = "followup"
    elif plan.priority_level:
        mode = "priority"
    else:
        mode = "master"
    return replace(plan, primary_mode=mode)


def _append_values(
    existing: dict[str, list[FieldValue]],
    source_id: str,
    values: dict[str, str],
) -> dict[str, list[FieldValue]]:
    merged = {key: list(entries) for key, entries in existing.items()}
    for key, value in values.items():
        merged.setdefault(key, []).append(FieldValue(source_id=source_id, value=value))
    return merged


def seed_lineage(pub: Pub) -> Pub:
    """Give a freshly ingested record its own source entry and effective plan."""
    source_ref = build_source_ref(pub, pub.row_index or 0, pub.mapped, pub.extras)
    sources = [source_ref]
    return replace(
        pub,
        sources=sources,
        field_values_by_source=_append_values({}, source_ref.source_id, pub.mapped),
        merged_extras=_append_values({}, source_ref.source_id, pub.extras),
        source_lists=_unique([*pub.source_lists, pub.file_name]),
        effective_plan=recompute_effective_plan(sources),
    )


def merge_into_canonical(
    canonical: Pub,
    incoming: Pub,
    row_index: int,
    mapped_values: dict[str, str],
    extras: dict[str, str],
) -> Pub:
    logger.debug("Merging %s (%s) into canonical %s", incoming.name, incoming.file_name, canonical.name)

    source_ref = build_source_ref(incoming, row_index, mapped_values, extras)
    sources = [*canonical.sources, source_ref]

    return replace(
        canonical,
        sources=sources,
        field_values_by_source=_append_values(canonical.field_values_by_source, source_ref.source_id, mapped_values),
        merged_extras=_append_values(canonical.merged_extras, source_ref.source_id, extras),
        source_lists=_unique([*canonical.source_lists, *incoming.source_lists, incoming.file_name]),
        effective_plan=recompute_effective_plan(sources),
    )


def get_canonical_field_value(pub: Pub, field_name: str) -> str | None:
    """Resolve one field across sources: masterhouse origin, then majority, then earliest."""
    values = pub.field_values_by_source.get(field_name) or []
    if not values:
        return None

    list_type_by_source = {source.source_id: source.list_type for source in pub.sources}
    for entry in values:
        if list_type_by_source.get(entry.source_id) == "masterhouse":
            return entry.value

    counts = Counter(entry.value for entry in values).most_common()
    if len(counts) == 1 or counts[0][1] > counts[1][1]:
        return counts[0][0]

    return values[0].value


def get_all_extras(pub: Pub) -> dict[str, list[str]]:
    return {key: [entry.value for entry in entries] for key, entries in pub.merged_extras.items()}


def get_source_info(pub: Pub) -> dict:
    return {
        "count": len(pub.sources),
        "file_names": _unique(source.file_name for source in pub.sources),
    }


def collect_sources(items: Iterable[Pub]) -> list[str]:
    names: set[str] = set()
    for item in items:
        names.update(name for name in item.source_lists if name)
        names.update(source.file_name for source in item.sources if source.file_name)
    return sorted(names, key=lambda name: (name != MASTER_LIST_NAME, name))


def get_primary_driver(pub: Pub) -> tuple[str, str]:
    """Bucket driving a record's schedule and a human label for it."""
    plan = pub.effective_plan
    if plan is not None:
        mode = plan.primary_mode
        source = plan
    elif pub.deadline:
        mode, source = "deadline", pub
    elif pub.follow_up_days is not None:
        mode, source = "followup", pub
    elif pub.priority_level:
        mode, source = "priority", pub
    else:
        mode, source = "master", pub

    if mode == "deadline" and source.deadline:
        return mode, f"Visit by {source.deadline}"
    if mode == "followup" and source.follow_up_days is not None:
        return mode, f"Follow-up {source.follow_up_days}d"
    if mode == "priority" and source.priority_level:
        return mode, f"Priority {source.priority_level}"
    return mode, MASTER_LIST_NAME


def _without_sources(values: dict[str, list[FieldValue]], source_ids: set[str]) -> dict[str, list[FieldValue]]:
    kept: dict[str, list[FieldValue]] = {}
    for key, entries in values.items():
        remaining = [entry for entry in entries if entry.source_id not in source_ids]
        if remaining:
            kept[key] = remaining
    return kept


def _detach_list(pub: Pub, file_name: str) -> Pub | None:
    removed = {source.source_id for source in pub.sources if source.file_name == file_name}
    sources = [source for source in pub.sources if source.file_name != file_name]
    if not removed:
        return None if not pub.sources and pub.file_name == file_name else pub
    if not sources:
        return None

    detached = replace(
        pub,
        sources=sources,
        field_values_by_source=_without_sources(pub.field_values_by_source, removed),
        merged_extras=_without_sources(pub.merged_extras, removed),
        source_lists=[name for name in pub.source_lists if name != file_name],
        effective_plan=recompute_effective_plan(sources),
    )
    if pub.file_name != file_name:
        return detached

    origin = sources[0]
    return replace(
        detached,
        file_id=origin.file_id,
        file_name=origin.file_name,
        list_type=origin.list_type,
        row_index=origin.row_index,
        deadline=origin.deadline,
        priority_level=origin.priority,
        follow_up_days=origin.follow_up_days,
        scheduling_mode=None if origin.list_type == "masterhouse" else origin.scheduling_mode,
        mapped=dict(origin.mapped),
        extras=dict(origin.extras),
    )


def remove_list(pubs: Iterable[Pub], file_name: str) -> list[Pub]:
    """Forget everything ``file_name`` contributed.

    Records supplied only by that list are dropped. Records it was merged into
    lose its sources and field values and get their effective plan recomputed;
    a record first ingested from it is re-homed on its next remaining source.
    """
    kept: list[Pub] = []
    dropped = 0
    for pub in pubs:
        detached = _detach_list(pub, file_name)
        if detached is None:
            dropped += 1
        else:
            kept.append(detached)
    logger.info("Removed list %s: %d records dropped, %d kept", file_name, dropped, len(kept))
    return kept


def apply_postcode_fix(pub: Pub, postcode: str) -> Pub:
    """Return a copy carrying a user-corrected postcode and freshly parsed metadata."""
    meta = parse_postcode(postcode)
    fixed = replace(pub, postcode=meta.normalized or str(postcode).strip(), postcode_meta=meta)
    logger.info("Postcode for %s changed from %s to %s (%s)", pub.name, pub.postcode, fixed.postcode, meta.status)
    return fixed


def defer_postcode_review(pub: Pub) -> Pub:
    """Keep the current postcode but record that the user deferred reviewing it."""
    meta = pub.postcode_meta if pub.postcode_meta is not None else parse_postcode(pub.postcode)
    return replace(pub, postcode_meta=replace(meta, fallback_reason=USER_DEFERRED_REVIEW))
