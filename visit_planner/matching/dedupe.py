"""Duplicate suggestions between the canonical record set and an incoming batch.

Suggestions are advisory. Nothing here modifies a record; callers apply
accepted merges through ``visit_planner.matching.lineage``.

Candidate generation uses exactly one fallback tier per incoming record:
    postcode  exact postcode-key equality
    town      same town (case-insensitive) and >= 2 shared address tokens
    address   >= 3 shared address tokens
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from visit_planner.common.models import Pub
from visit_planner.common.scoring import ScoreCard
from visit_planner.matching.fuzzy import (
    extract_digits,
    extract_email_local,
    jaro_winkler,
    normalise_postcode_key,
    normalise_string,
    token_overlap,
)

logger = logging.getLogger(__name__)

AUTO_MERGE = "auto-merge"
NEEDS_REVIEW = "needs-review"
IGNORE = "ignore"


@dataclass(frozen=True)
class DedupRules:
    name_gate: float = 0.75
    auto_merge_score: float = 0.92
    auto_merge_postcode_name_sim: float = 0.90
    review_score: float = 0.86
    review_postcode_name_sim: float = 0.80
    postcode_bonus: float = 0.05
    rtm_bonus: float = 0.03
    address_3plus_bonus: float = 0.03
    address_2_bonus: float = 0.02
    town_bonus: float = 0.02
    phone_bonus: float = 0.01
    email_bonus: float = 0.01
    rtm_conflict_penalty: float = 0.05
    wholesale_keywords: tuple[str, ...] = ("wholesale", "spot", "managed")

    @classmethod
    def from_config(cls, cfg: dict | None) -> "DedupRules":
        if not cfg:
            return cls()
        values = {}
        for section in ("thresholds", "bonuses", "penalties"):
            values.update(cfg.get(section) or {})
        if "wholesale_keywords" in cfg:
            values["wholesale_keywords"] = tuple(str(k).lower() for k in cfg["wholesale_keywords"])
        return cls(**values)


DEFAULT_RULES = DedupRules()


@dataclass
class Candidate:
    existing: Pub
    incoming: Pub
    name_sim: float
    score: float
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "existing_uuid": self.existing.uuid,
            "existing_name": self.existing.name,
            "existing_postcode": self.existing.postcode,
            "incoming_uuid": self.incoming.uuid,
            "incoming_name": self.incoming.name,
            "incoming_postcode": self.incoming.postcode,
            "incoming_file": self.incoming.file_name,
            "name_sim": round(self.name_sim, 4),
            "score": round(self.score, 4),
            "reasons": list(self.reasons),
        }


@dataclass
class DedupResult:
    auto_merge: list[Candidate] = field(default_factory=list)
    needs_review: list[Candidate] = field(default_factory=list)


def _same_town(a: Pub, b: Pub) -> bool:
    return bool(a.town and b.town and a.town.lower() == b.town.lower())


def _same_postcode(a: Pub, b: Pub) -> bool:
    if not a.postcode or not b.postcode:
        return False
    return normalise_postcode_key(a.postcode) == normalise_postcode_key(b.postcode)


def generate_candidates(existing_pubs: Iterable[Pub], incoming: Pub) -> list[Pub]:
    if incoming.postcode:
        key = normalise_postcode_key(incoming.postcode)
        return [
            existing
            for existing in existing_pubs
            if existing.postcode and normalise_postcode_key(existing.postcode) == key
        ]

    if incoming.town:
        return [
            existing
            for existing in existing_pubs
            if _same_town(existing, incoming)
            and incoming.address
            and existing.address
            and token_overlap(incoming.address, existing.address) >= 2
        ]

    return [
        existing
        for existing in existing_pubs
        if incoming.address
        and existing.address
        and token_overlap(incoming.address, existing.address) >= 3
    ]


def _is_wholesale(rtm: str, keywords: tuple[str, ...]) -> bool:
    lowered = rtm.lower()
    return any(keyword in lowered for keyword in keywords)


def calculate_score(
    existing: Pub,
    incoming: Pub,
    name_sim: float,
    rules: DedupRules = DEFAULT_RULES,
) -> tuple[float, list[str]]:
    card = ScoreCard(name_sim)

    if _same_postcode(existing, incoming):
        card.add("postcode", rules.postcode_bonus)

    if existing.rtm and incoming.rtm and existing.rtm.lower() == incoming.rtm.lower():
        card.add("rtm", rules.rtm_bonus)

    if existing.address and incoming.address:
        overlap = token_overlap(existing.address, incoming.address)
        if overlap >= 3:
            card.add("3+ address tokens", rules.address_3plus_bonus)
        elif overlap == 2:
            card.add("2 address tokens", rules.address_2_bonus)

    if _same_town(existing, incoming):
        card.add("town", rules.town_bonus)

    existing_digits = extract_digits(existing.phone)
    if existing_digits and existing_digits == extract_digits(incoming.phone):
        card.add("phone", rules.phone_bonus)

    existing_local = extract_email_local(existing.email)
    if existing_local and existing_local == extract_email_local(incoming.email):
        card.add("email", rules.email_bonus)

    # conflicting trade channel suppresses merges across wholesale/free-trade lists
    if existing.rtm and incoming.rtm:
        if _is_wholesale(existing.rtm, rules.wholesale_keywords) != _is_wholesale(
            incoming.rtm, rules.wholesale_keywords
        ):
            card.add("rtm penalty", -rules.rtm_conflict_penalty)

    return card.clamped(minimum=0.0, maximum=1.0), card.reasons


def classify_candidate(candidate: Candidate, rules: DedupRules = DEFAULT_RULES) -> str:
    postcode_match = _same_postcode(candidate.existing, candidate.incoming)

    if postcode_match and candidate.name_sim >= rules.auto_merge_postcode_name_sim:
        return AUTO_MERGE
    if candidate.score >= rules.auto_merge_score:
        return AUTO_MERGE

    if rules.review_score <= candidate.score < rules.auto_merge_score:
        return NEEDS_REVIEW
    if (
        postcode_match
        and rules.review_postcode_name_sim <= candidate.name_sim < rules.auto_merge_postcode_name_sim
        and len(candidate.reasons) > 1
    ):
        return NEEDS_REVIEW

    return IGNORE


def best_candidate(existing_pubs: Iterable[Pub], incoming: Pub, rules: DedupRules = DEFAULT_RULES) -> Candidate | None:
    best: Candidate | None = None
    incoming_name = normalise_string(incoming.name)
    for existing in generate_candidates(existing_pubs, incoming):
        name_sim = jaro_winkler(normalise_string(existing.name), incoming_name)
        if name_sim < rules.name_gate:
            continue
        score, reasons = calculate_score(existing, incoming, name_sim, rules)
        if best is None or score > best.score:
            best = Candidate(existing=existing, incoming=incoming, name_sim=name_sim, score=score, reasons=reasons)
    return best


def suggest(existing_pubs: list[Pub], incoming_pubs: list[Pub], rules: DedupRules = DEFAULT_RULES) -> DedupResult:
    result = DedupResult()
    logger.debug("Processing %d incoming pubs against %d existing pubs", len(incoming_pubs), len(existing_pubs))

    for incoming in incoming_pubs:
        candidate = best_candidate(existing_pubs, incoming, rules)
        if candidate is None:
            continue

        classification = classify_candidate(candidate, rules)
        if classification == AUTO_MERGE:
            result.auto_merge.append(candidate)
        elif classification == NEEDS_REVIEW:
            result.needs_review.append(candidate)
        else:
            continue
        logger.debug(
            "%s: '%s' -> '%s' (score %.3f)",
            classification,
            incoming.name,
            candidate.existing.name,
            candidate.score,
        )

    logger.info(
        "Dedup found %d auto-merge and %d needs-review candidates",
        len(result.auto_merge),
        len(result.needs_review),
    )
    return result
