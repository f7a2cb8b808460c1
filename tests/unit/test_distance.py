import pytest

from visit_planner.common.errors import ConfigError
from visit_planner.common.postcode import parse_postcode
from visit_planner.geo.distance import (
    DistanceEstimate,
    PrefixDistance,
    TieredDistance,
    calculate_distance,
    get_distance_provider,
)


def test_calculate_distance_same_prefix():
    assert calculate_distance("NR25 8PL", "NR26 1AA") == DistanceEstimate(mileage=15, drive_time=30)


def test_calculate_distance_different_prefix():
    assert calculate_distance("NR25 8PL", "IP1 2AA") == DistanceEstimate(mileage=45, drive_time=90)


def test_prefix_distance_accepts_parsed_postcodes():
    provider = PrefixDistance()
    estimate = provider.estimate(parse_postcode("nr25 8pl"), "NR11 6AB")
    assert estimate.mileage == 15


def test_tiered_distance_wraps_mock_estimate():
    estimate = TieredDistance().estimate("NR25 8PL", "NR26 1AA")
    assert estimate == DistanceEstimate(mileage=44, drive_time=60)


def test_get_distance_provider_resolves_names():
    assert isinstance(get_distance_provider(None), TieredDistance)
    assert isinstance(get_distance_provider("Prefix"), PrefixDistance)


def test_get_distance_provider_rejects_unknown():
    with pytest.raises(ConfigError):
        get_distance_provider("crow-flies")
