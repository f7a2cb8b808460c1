"""Greedy, bucketed visit scheduling.

Records are bucketed once (deadline, follow_up, priority, master) and each
business day is filled bucket by bucket. Within a bucket the next visit is the
remaining record with the smallest ``(primary key, mileage from last stop)``;
equal pairs go to the record that came first in the input. A record is booked
at most once per plan, keyed by ``uuid``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable

from visit_planner.common.models import Pub, ScheduleDay
from visit_planner.common.postcode import STATUS_INVALID, is_schedulable
from visit_planner.common.time_utils import add_business_days, format_display_date, parse_iso_date
from visit_planner.geo.distance import DistanceProvider, TieredDistance
from visit_planner.geo.proximity import PostcodeInput, parse_lenient

logger = logging.getLogger(__name__)

BUCKET_ORDER = ("deadline", "follow_up", "priority", "master")
_BUCKET_BY_MODE = {"deadline": "deadline", "followup": "follow_up", "priority": "priority"}
_UNKNOWN_DEADLINE = date.max.toordinal()


def partition_eligible(pubs: list[Pub]) -> tuple[list[Pub], list[Pub]]:
    eligible: list[Pub] = []
    invalid: list[Pub] = []
    for pub in pubs:
        (eligible if is_schedulable(pub) else invalid).append(pub)
    return eligible, invalid


def _plan_value(pub: Pub, attr: str):
    if pub.effective_plan is not None:
        return getattr(pub.effective_plan, attr)
    return getattr(pub, attr)


def classify_bucket(pub: Pub) -> str:
    if pub.effective_plan is not None:
        return _BUCKET_BY_MODE.get(pub.effective_plan.primary_mode, "master")
    if pub.deadline:
        return "deadline"
    if pub.follow_up_days and pub.follow_up_days > 0:
        return "follow_up"
    if pub.priority_level and pub.priority_level > 0:
        return "priority"
    return "master"


def build_buckets(pubs: list[Pub]) -> dict[str, list[Pub]]:
    buckets: dict[str, list[Pub]] = {bucket: [] for bucket in BUCKET_ORDER}
    for pub in pubs:
        buckets[classify_bucket(pub)].append(pub)
    return buckets


def primary_key(pub: Pub, bucket: str) -> int:
    if bucket == "deadline":
        deadline = parse_iso_date(_plan_value(pub, "deadline"))
        return deadline.toordinal() if deadline else _UNKNOWN_DEADLINE
    if bucket == "follow_up":
        return _plan_value(pub, "follow_up_days") or 0
    if bucket == "priority":
        return _plan_value(pub, "priority_level") or 0
    return 0


def location_of(pub: Pub) -> PostcodeInput:
    return pub.postcode_meta if pub.postcode_meta is not None else pub.postcode


def _pick_next(pool: list[Pub], bucket: str, last: PostcodeInput, distance: DistanceProvider) -> int:
    def sort_key(index: int) -> tuple:
        candidate = pool[index]
        mileage = distance.estimate(last, location_of(candidate)).mileage if last is not None else 0
        return primary_key(candidate, bucket), mileage, index

    return min(range(len(pool)), key=sort_key)


def _with_leg_metrics(
    visits: list[Pub],
    day_date: date,
    home: PostcodeInput,
    visits_per_day: int,
    distance: DistanceProvider,
) -> ScheduleDay:
    placed: list[Pub] = []
    leg_mileage = 0.0
    leg_drive_time = 0
    for index, visit in enumerate(visits):
        if index + 1 < len(visits):
            leg = distance.estimate(location_of(visit), location_of(visits[index + 1]))
            mileage, drive_time = leg.mileage, leg.drive_time
        else:
            mileage, drive_time = 0, 0
        leg_mileage += mileage
        leg_drive_time += drive_time
        placed.append(replace(visit, mileage_to_next=mileage, drive_time_to_next=drive_time))

    day = ScheduleDay(date=day_date.isoformat(), visits=placed)
    if home is not None and placed:
        start = distance.estimate(home, location_of(placed[0]))
        end = distance.estimate(location_of(placed[-1]), home)
        day.start_mileage, day.start_drive_time = start.mileage, start.drive_time
        day.end_mileage, day.end_drive_time = end.mileage, end.drive_time
    day.total_mileage = leg_mileage + day.start_mileage + day.end_mileage
    day.total_drive_time = leg_drive_time + day.start_drive_time + day.end_drive_time

    if len(placed) < visits_per_day:
        day.scheduling_errors.append(f"Only {len(placed)} visits scheduled (target: {visits_per_day})")
    for visit in placed:
        deadline = parse_iso_date(_plan_value(visit, "deadline"))
        if deadline is not None and deadline < day_date:
            day.scheduling_errors.append(f"{visit.name} scheduled after deadline ({format_display_date(deadline)})")
    return day


def resolve_home(home_address: str | None) -> PostcodeInput:
    if not home_address or not str(home_address).strip():
        return None
    parsed = parse_lenient(home_address)
    return None if parsed.status == STATUS_INVALID else parsed


def plan_visits(
    pubs: list[Pub],
    start_date: date | str,
    business_days: int,
    home_address: str | None,
    visits_per_day: int,
    search_radius: float | None = 15,
    *,
    distance: DistanceProvider | None = None,
    on_day: Callable[[dict], None] | None = None,
) -> list[ScheduleDay]:
    """Build up to ``business_days`` days of visits; stops early once nothing is left to place.

    Input records are never modified; visits in the result are copies carrying
    ``mileage_to_next`` and ``drive_time_to_next``.
    """
    if business_days <= 0 or visits_per_day <= 0:
        logger.warning("Nothing to plan: business_days=%s visits_per_day=%s", business_days, visits_per_day)
        return []

    distance = distance or TieredDistance()
    first_day = parse_iso_date(start_date)
    if first_day is None:
        raise ValueError(f"Invalid start date: {start_date!r}")

    eligible, invalid = partition_eligible(pubs)
    pools = build_buckets(eligible)
    home = resolve_home(home_address)
    logger.debug(
        "Planning %d eligible records (%d invalid postcodes), radius %s not enforced",
        len(eligible),
        len(invalid),
        search_radius,
    )

    schedule: list[ScheduleDay] = []
    scheduled: set[str] = set()
    day_date = first_day
    for day_index in range(business_days):
        if day_index:
            day_date = add_business_days(day_date, 1)

        visits: list[Pub] = []
        picks = {bucket: 0 for bucket in BUCKET_ORDER}
        last = home
        for bucket in BUCKET_ORDER:
            pool = pools[bucket]
            while pool and len(visits) < visits_per_day:
                chosen = pool.pop(_pick_next(pool, bucket, last, distance))
                if chosen.uuid in scheduled:
                    logger.debug("Skipping %s; already scheduled", chosen.uuid)
                    continue
                scheduled.add(chosen.uuid)
                visits.append(chosen)
                picks[bucket] += 1
                last = location_of(chosen)

        if not visits:
            logger.debug("No candidates left on %s; stopping after %d days", day_date.isoformat(), len(schedule))
            break

        day = _with_leg_metrics(visits, day_date, home, visits_per_day, distance)
        schedule.append(day)
        if on_day is not None:
            on_day(
                {
                    "date": day.date,
                    "visit_count": len(day.visits),
                    "picks": picks,
                    "remaining": {bucket: len(pools[bucket]) for bucket in BUCKET_ORDER},
                }
            )

    logger.info(
        "Planned %d visits across %d days (%s distance)",
        sum(len(day.visits) for day in schedule),
        len(schedule),
        getattr(distance, "name", type(distance).__name__),
    )
    return schedule
