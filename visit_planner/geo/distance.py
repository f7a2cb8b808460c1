"""Pluggable distance providers used by the scheduler.

Both providers are mock estimates derived from postcode text; neither knows
about roads or coordinates. ``TieredDistance`` is the default. ``PrefixDistance``
reproduces the older two-character heuristic and is kept only for callers
that need its output unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from visit_planner.common.errors import ConfigError
from visit_planner.common.models import ParsedPostcode
from visit_planner.geo.proximity import PostcodeInput, estimate_mock_distance

_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]")


@dataclass(frozen=True)
class DistanceEstimate:
    mileage: float
    drive_time: int


class DistanceProvider(Protocol):
    name: str

    def estimate(self, origin: PostcodeInput, destination: PostcodeInput) -> DistanceEstimate:
        ...


class TieredDistance:
    name = "tiered"

    def estimate(self, origin: PostcodeInput, destination: PostcodeInput) -> DistanceEstimate:
        mock = estimate_mock_distance(origin, destination)
        return DistanceEstimate(mileage=mock.mileage, drive_time=mock.drive_time)


def _prefix(value: PostcodeInput) -> str:
    if isinstance(value, ParsedPostcode):
        value = value.normalized or value.raw
    cleaned = _NON_ALNUM_RE.sub("", str(value or "").upper())
    return cleaned[:2]


def calculate_distance(origin: PostcodeInput, destination: PostcodeInput) -> DistanceEstimate:
    if _prefix(origin) == _prefix(destination):
        return DistanceEstimate(mileage=15, drive_time=30)
    return DistanceEstimate(mileage=45, drive_time=90)


class PrefixDistance:
    name = "prefix"

    def estimate(self, origin: PostcodeInput, destination: PostcodeInput) -> DistanceEstimate:
        return calculate_distance(origin, destination)


DISTANCE_PROVIDERS = {
    TieredDistance.name: TieredDistance,
    PrefixDistance.name: PrefixDistance,
}


def get_distance_provider(name: str | None) -> DistanceProvider:
    key = (name or TieredDistance.name).strip().lower()
    provider_cls = DISTANCE_PROVIDERS.get(key)
    if provider_cls is None:
        known = ", ".join(sorted(DISTANCE_PROVIDERS))
        raise ConfigError(f"Unknown distance model '{name}' (expected one of: {known})")
    return provider_cls()
