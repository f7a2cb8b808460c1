"""UK postcode normalisation and structural parsing.

Example (NR25 8PL): area letters ``NR``, outward ``NR25`` (district 25),
inward sector ``8``, inward unit ``PL``.

Status flags:
    OK       parsed and conforms to the full unit postcode grammar.
    ODDBALL  valid but not classifiable (GIR 0AA, or outward/area-only input
             accepted by the proximity layer).
    INVALID  missing, empty or unparseable; excluded from geographic
             reasoning and scheduling until corrected.
"""

from __future__ import annotations

import re

from visit_planner.common.models import ParsedPostcode

STATUS_OK = "OK"
STATUS_ODDBALL = "ODDBALL"
STATUS_INVALID = "INVALID"

USER_DEFERRED_REVIEW = "USER_DEFERRED_REVIEW"
FALLBACK_REASONS = (
    "UNKNOWN_MACRO",
    "UNKNOWN_SUBREGION",
    "PARSE_FAILED",
    "SPECIAL_CASE",
    USER_DEFERRED_REVIEW,
)

GIRO_POSTCODE = "GIR 0AA"

UK_POSTCODE_PARTS_RE = re.compile(r"^([A-Z]{1,2})(\d{1,2}[A-Z]?) (\d)([A-Z]{2})$")
_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]")
_DIGITS_RE = re.compile(r"\d+")


def normalise_postcode(raw: str | None) -> str | None:
    if raw is None:
        return None

    cleaned = _NON_ALNUM_RE.sub("", str(raw).strip().upper())
    if not cleaned:
        return None

    if cleaned == "GIR0AA":
        return GIRO_POSTCODE

    if len(cleaned) > 3:
        return f"{cleaned[:-3]} {cleaned[-3:]}"
    return cleaned


def _invalid(raw: str, normalized: str | None) -> ParsedPostcode:
    return ParsedPostcode(
        raw=raw,
        normalized=normalized,
        area_letters=None,
        outward_district=None,
        outward_full=None,
        inward_sector=None,
        inward_unit=None,
        status=STATUS_INVALID,
        fallback_reason="PARSE_FAILED",
    )


def district_number(outward_suffix: str) -> int | None:
    digits = _DIGITS_RE.search(outward_suffix)
    return int(digits.group(0)) if digits else None


def parse_postcode(raw: str | None) -> ParsedPostcode:
    raw_text = "" if raw is None else str(raw)
    normalized = normalise_postcode(raw)

    if normalized is None:
        return _invalid(raw_text, None)

    if normalized == GIRO_POSTCODE:
        return ParsedPostcode(
            raw=raw_text,
            normalized=normalized,
            area_letters="GIR",
            outward_district=None,
            outward_full="GIR",
            inward_sector="0",
            inward_unit="AA",
            status=STATUS_ODDBALL,
            fallback_reason="SPECIAL_CASE",
        )

    match = UK_POSTCODE_PARTS_RE.match(normalized)
    if not match:
        return _invalid(raw_text, normalized)

    area_letters, outward_suffix, inward_sector, inward_unit = match.groups()
    return ParsedPostcode(
        raw=raw_text,
        normalized=normalized,
        area_letters=area_letters,
        outward_district=district_number(outward_suffix),
        outward_full=f"{area_letters}{outward_suffix}",
        inward_sector=inward_sector,
        inward_unit=inward_unit,
        status=STATUS_OK,
        fallback_reason=None,
    )


def postcode_status(pub) -> str:
    """Status of a record's postcode, parsing on demand when no metadata is cached."""
    meta = pub.postcode_meta if pub.postcode_meta is not None else parse_postcode(pub.postcode)
    return meta.status


def is_schedulable(pub) -> bool:
    return postcode_status(pub) != STATUS_INVALID
