"""Tiered postcode proximity and mock drive distances.

Distances here are derived purely from postcode structure. They stand in for
a real distance/routing API and are not ground truth.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from visit_planner.common.models import ParsedPostcode
from visit_planner.common.postcode import (
    STATUS_INVALID,
    STATUS_ODDBALL,
    district_number,
    parse_postcode,
)

PostcodeInput = Union[str, ParsedPostcode, None]

TIERS = ("unit", "sector", "district", "area", "cross_area")
TIER_RANK = {tier: rank for rank, tier in enumerate(TIERS)}
TIER_LABEL = {
    "unit": "same postcode",
    "sector": "same sector",
    "district": "same district",
    "area": "same area",
    "cross_area": "cross area",
}
TIER_BASE_MILEAGE = {
    "unit": 5,
    "sector": 10,
    "district": 20,
    "area": 35,
    "cross_area": 60,
}
MISSING_DELTA = 999

_OUTWARD_ONLY_RE = re.compile(r"^([A-Z]{1,2})(\d{1,2}[A-Z]?)$")
_AREA_ONLY_RE = re.compile(r"^([A-Z]{1,2})$")


@dataclass(frozen=True)
class ProximityScore:
    eligible: bool
    tier: str
    district_delta: int | None
    sector_delta: int | None
    unit_delta: int | None
    rank_key: tuple[int, int, int, int]
    debug_label: str
    anchor: ParsedPostcode
    candidate: ParsedPostcode


@dataclass(frozen=True)
class MockDistance:
    mileage: int
    drive_time: int
    tier: str


def _partial(raw: str, area_letters: str | None, outward_full: str | None, outward_district: int | None) -> ParsedPostcode:
    return ParsedPostcode(
        raw=raw,
        normalized=raw or None,
        area_letters=area_letters,
        outward_district=outward_district,
        outward_full=outward_full,
        inward_sector=None,
        inward_unit=None,
        status=STATUS_ODDBALL if area_letters else STATUS_INVALID,
        fallback_reason="PARSE_FAILED",
    )


def parse_lenient(value: PostcodeInput) -> ParsedPostcode:
    """Full parse first; fall back to outward-only or area-only partials."""
    if isinstance(value, ParsedPostcode):
        return value
    if not value:
        return parse_postcode("")

    parsed = parse_postcode(value)
    if parsed.status != STATUS_INVALID:
        return parsed

    raw = str(value).strip().upper()
    outward = _OUTWARD_ONLY_RE.match(raw)
    if outward:
        area_letters, suffix = outward.groups()
        return _partial(raw, area_letters, f"{area_letters}{suffix}", district_number(suffix))

    area = _AREA_ONLY_RE.match(raw)
    if area:
        return _partial(raw, area.group(1), area.group(1), None)

    return parsed


def _same_area(a: ParsedPostcode, b: ParsedPostcode) -> bool:
    if not a.area_letters or not b.area_letters:
        return False
    return a.area_letters == b.area_letters


def _district_delta(a: ParsedPostcode, b: ParsedPostcode) -> int | None:
    if a.outward_district is None or b.outward_district is None:
        return None
    return abs(a.outward_district - b.outward_district)


def _sector_delta(a: ParsedPostcode, b: ParsedPostcode) -> int | None:
    if not a.inward_sector or not b.inward_sector:
        return None
    if not (a.inward_sector.isdigit() and b.inward_sector.isdigit()):
        return None
    return abs(int(a.inward_sector) - int(b.inward_sector))


def _unit_delta(a: ParsedPostcode, b: ParsedPostcode) -> int | None:
    if not a.inward_unit or not b.inward_unit:
        return None
    first_diff = abs(ord(a.inward_unit[0]) - ord(b.inward_unit[0]))
    second_diff = abs(ord(a.inward_unit[1]) - ord(b.inward_unit[1]))
    if a.inward_unit[0] == b.inward_unit[0]:
        return second_diff
    # any first-letter mismatch must rank beyond every same-first-letter pair
    return 100 + first_diff * 10 + second_diff


def _resolve_tier(a: ParsedPostcode, b: ParsedPostcode) -> str:
    if not _same_area(a, b):
        return "cross_area"
    same_outward = bool(a.outward_full and b.outward_full and a.outward_full == b.outward_full)
    same_sector = same_outward and bool(a.inward_sector and b.inward_sector and a.inward_sector == b.inward_sector)
    if same_sector and a.inward_unit and b.inward_unit and a.inward_unit == b.inward_unit:
        return "unit"
    if same_sector:
        return "sector"
    if same_outward:
        return "district"
    return "area"


def get_proximity_score(anchor_input: PostcodeInput, candidate_input: PostcodeInput) -> ProximityScore:
    anchor = parse_lenient(anchor_input)
    candidate = parse_lenient(candidate_input)
    tier = _resolve_tier(anchor, candidate)
    district_delta = _district_delta(anchor, candidate)
    sector_delta = _sector_delta(anchor, candidate)
    unit_delta = _unit_delta(anchor, candidate)
    rank_key = (
        TIER_RANK[tier],
        MISSING_DELTA if district_delta is None else district_delta,
        MISSING_DELTA if sector_delta is None else sector_delta,
        MISSING_DELTA if unit_delta is None else unit_delta,
    )
    return ProximityScore(
        eligible=_same_area(anchor, candidate),
        tier=tier,
        district_delta=district_delta,
        sector_delta=sector_delta,
        unit_delta=unit_delta,
        rank_key=rank_key,
        debug_label=TIER_LABEL[tier],
        anchor=anchor,
        candidate=candidate,
    )


def compare_by_proximity(anchor: PostcodeInput, a: PostcodeInput, b: PostcodeInput) -> int:
    """Three-way comparison of two candidates by closeness to ``anchor``."""
    a_score = get_proximity_score(anchor, a)
    b_score = get_proximity_score(anchor, b)

    if a_score.eligible != b_score.eligible:
        return -1 if a_score.eligible else 1

    for a_value, b_value in zip(a_score.rank_key, b_score.rank_key):
        if a_value != b_value:
            return a_value - b_value

    a_norm = a_score.candidate.normalized or ""
    b_norm = b_score.candidate.normalized or ""
    return (a_norm > b_norm) - (a_norm < b_norm)


def get_proximity_rank(anchor: PostcodeInput, candidate: PostcodeInput) -> int:
    """Fold the rank key into one integer, most significant component first."""
    rank_key = get_proximity_score(anchor, candidate).rank_key
    size = len(rank_key)
    return sum(value * 10 ** (size - idx) for idx, value in enumerate(rank_key))


def estimate_mock_distance(anchor: PostcodeInput, candidate: PostcodeInput) -> MockDistance:
    score = get_proximity_score(anchor, candidate)
    mileage = (
        TIER_BASE_MILEAGE[score.tier]
        + (score.district_delta or 0) * 2
        + (score.sector_delta or 0)
    )
    if mileage >= 50:
        drive_time = 90
    elif mileage >= 25:
        drive_time = 60
    else:
        drive_time = 30
    return MockDistance(mileage=mileage, drive_time=drive_time, tier=score.tier)
