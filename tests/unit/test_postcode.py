import pytest

from visit_planner.common.models import Pub
from visit_planner.common.postcode import (
    FALLBACK_REASONS,
    STATUS_INVALID,
    STATUS_ODDBALL,
    STATUS_OK,
    is_schedulable,
    normalise_postcode,
    parse_postcode,
    postcode_status,
)


def test_normalise_happy_path():
    assert normalise_postcode("nr25 8pl") == "NR25 8PL"


def test_normalise_removes_noise_and_whitespace():
    assert normalise_postcode(" nr-25/8pl ") == "NR25 8PL"


def test_normalise_rejects_empty_and_none():
    assert normalise_postcode(None) is None
    assert normalise_postcode("   ") is None


def test_parse_full_postcode_with_extra_spacing():
    parsed = parse_postcode("nr25   8pl")
    assert parsed.normalized == "NR25 8PL"
    assert parsed.area_letters == "NR"
    assert parsed.outward_district == 25
    assert parsed.outward_full == "NR25"
    assert parsed.inward_sector == "8"
    assert parsed.inward_unit == "PL"
    assert parsed.status == STATUS_OK
    assert parsed.fallback_reason is None


def test_parse_sub_district_letter():
    parsed = parse_postcode("ec1a1bb")
    assert parsed.normalized == "EC1A 1BB"
    assert parsed.outward_full == "EC1A"
    assert parsed.outward_district == 1


def test_parse_giro_is_oddball_special_case():
    parsed = parse_postcode("GIR 0AA")
    assert parsed.status == STATUS_ODDBALL
    assert parsed.fallback_reason == "SPECIAL_CASE"


def test_parse_empty_is_invalid_without_raising():
    parsed = parse_postcode("")
    assert parsed.status == STATUS_INVALID
    assert parsed.fallback_reason == "PARSE_FAILED"
    assert parsed.normalized is None
    assert parsed.fallback_reason in FALLBACK_REASONS


def test_parse_garbage_keeps_normalised_text():
    parsed = parse_postcode("BADCODE")
    assert parsed.status == STATUS_INVALID
    assert parsed.normalized == "BADC ODE"
    assert parsed.area_letters is None


@pytest.mark.parametrize("raw", ["nr25 8pl", "EC1A1BB", "w1a 0ax", "M1 1AE", "b33 8th"])
def test_parse_is_idempotent_on_normalised_output(raw):
    first = parse_postcode(raw)
    assert first.status == STATUS_OK
    second = parse_postcode(first.normalized)
    assert second.status == STATUS_OK
    assert (second.area_letters, second.outward_full, second.inward_sector, second.inward_unit) == (
        first.area_letters,
        first.outward_full,
        first.inward_sector,
        first.inward_unit,
    )


def test_postcode_status_parses_when_meta_missing():
    pub = Pub(uuid="p1", name="The Anchor", postcode="not a postcode")
    assert postcode_status(pub) == STATUS_INVALID
    assert not is_schedulable(pub)

    cached = Pub(uuid="p2", name="Kings Head", postcode="", postcode_meta=parse_postcode("NR26 1AA"))
    assert is_schedulable(cached)
