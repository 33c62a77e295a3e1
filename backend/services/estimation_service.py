"""Capacity-constrained FIFO admission estimator.

The module-level functions are the pure core: they take a snapshot of the
queue, the occupants, the capacity and the courses and return wait estimates
without touching storage. `EstimationService` loads that snapshot from the
repository and hands it to the core.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Sequence

from backend.domain.constraints import (
    EstimatorConfig,
    validate_estimation_inputs,
    validate_estimator_config,
)
from backend.domain.models import (
    AdmissionSchedule,
    Course,
    Occupant,
    Party,
    ProvisionalAdmission,
    VenueSnapshot,
)
from backend.domain.timeline import CandidateTimeline, as_utc, utc_now
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

ONE_MINUTE = timedelta(minutes=1)


class EstimationValidationError(Exception):
    """Raised when an estimation snapshot violates caller preconditions."""


class OccupancyModel:
    """Headcount inside the venue at any instant of one estimation pass."""

    def __init__(self, occupants: Sequence[Occupant]) -> None:
        self._departures = sorted(
            ((as_utc(occupant.departure_at), occupant.size) for occupant in occupants),
            key=lambda item: item[0],
        )
        self._initial_total = sum(size for _, size in self._departures)
        self._admissions: list[ProvisionalAdmission] = []

    @property
    def admissions(self) -> list[ProvisionalAdmission]:
        return list(self._admissions)

    def commit(self, admission: ProvisionalAdmission) -> None:
        self._admissions.append(admission)

    def occupancy_at(self, instant: datetime) -> int:
        departed = sum(size for departure_at, size in self._departures if departure_at <= instant)
        base_occupancy = max(0, self._initial_total - departed)
        provisional = sum(
            admission.size
            for admission in self._admissions
            if admission.assigned_at <= instant < admission.departure_at
        )
        return base_occupancy + provisional

    def free_capacity_at(self, instant: datetime, capacity: int) -> int:
        return capacity - self.occupancy_at(instant)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def assumed_stay_minutes(
    courses: Sequence[Course],
    config: EstimatorConfig = EstimatorConfig(),
) -> int:
    """Mean course length (or the default course) plus the turnover buffer."""
    if courses:
        mean_minutes = round_half_up(sum(course.minutes for course in courses) / len(courses))
    else:
        mean_minutes = config.default_course_minutes
    return mean_minutes + config.turnover_buffer_minutes


def minutes_until(instant: datetime, now: datetime) -> int:
    """Whole minutes from `now` to `instant`, rounded up and never negative."""
    delta = instant - now
    if delta <= timedelta(0):
        return 0
    return -(-delta // ONE_MINUTE)


def schedule_admissions(
    queue: Sequence[Party],
    occupants: Sequence[Occupant],
    capacity: int,
    courses: Sequence[Course],
    *,
    now: Optional[datetime] = None,
    config: EstimatorConfig = EstimatorConfig(),
) -> AdmissionSchedule:
    """Simulate FIFO admissions for every queued party in a single forward pass."""
    validate_estimator_config(config)
    validate_estimation_inputs(queue, occupants, capacity, courses)

    current = as_utc(now) if now is not None else utc_now()
    occupancy = OccupancyModel(occupants)
    timeline = CandidateTimeline(
        [current, *(as_utc(occupant.departure_at) for occupant in occupants)]
    )
    stay = timedelta(minutes=assumed_stay_minutes(courses, config))

    floor = current
    wait_minutes: dict[str, int] = {}
    for party in queue:
        assigned_at: Optional[datetime] = None
        for instant in timeline.from_floor(floor):
            if occupancy.free_capacity_at(instant, capacity) >= party.size:
                assigned_at = instant
                break

        fallback = assigned_at is None
        if assigned_at is None:
            assigned_at = max(timeline.last or current, floor, current)
            logger.debug(
                "Estimator fallback applied | party_id=%s | size=%s | capacity=%s | assigned_at=%s",
                party.party_id,
                party.size,
                capacity,
                assigned_at.isoformat(),
            )

        admission = ProvisionalAdmission(
            party_id=party.party_id,
            assigned_at=assigned_at,
            departure_at=assigned_at + stay,
            size=party.size,
            fallback=fallback,
        )
        occupancy.commit(admission)
        timeline.add(admission.assigned_at)
        timeline.add(admission.departure_at)

        floor = max(floor, assigned_at)
        wait_minutes[party.party_id] = minutes_until(assigned_at, current)

    return AdmissionSchedule(
        now=current,
        admissions=occupancy.admissions,
        wait_minutes=wait_minutes,
    )


def estimate_queue_entry_minutes(
    queue: Sequence[Party],
    occupants: Sequence[Occupant],
    capacity: int,
    courses: Sequence[Course],
    *,
    now: Optional[datetime] = None,
    config: EstimatorConfig = EstimatorConfig(),
) -> dict[str, int]:
    """Return the estimated wait in whole minutes for each queued party id."""
    return schedule_admissions(
        queue,
        occupants,
        capacity,
        courses,
        now=now,
        config=config,
    ).wait_minutes


class EstimationService:
    """Runs the estimator against the persisted queue snapshot."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    @property
    def config(self) -> EstimatorConfig:
        return EstimatorConfig(
            turnover_buffer_minutes=self._settings.turnover_buffer_minutes,
            default_course_minutes=self._settings.default_course_minutes,
        )

    def _run(
        self,
        snapshot: VenueSnapshot,
        now: Optional[datetime],
    ) -> AdmissionSchedule:
        try:
            return schedule_admissions(
                snapshot.queue,
                snapshot.occupants,
                snapshot.max_capacity,
                snapshot.courses,
                now=now,
                config=self.config,
            )
        except ValueError as exc:
            raise EstimationValidationError(str(exc)) from exc

    def estimate_snapshot(
        self,
        snapshot: VenueSnapshot,
        now: Optional[datetime] = None,
    ) -> AdmissionSchedule:
        """Estimate a snapshot the caller already holds, so its queue matches the result."""
        return self._run(snapshot, now)

    def estimate_queue(self, now: Optional[datetime] = None) -> AdmissionSchedule:
        return self._run(self._repository.load_snapshot(), now)

    def preview_wait(self, size: int, now: Optional[datetime] = None) -> int:
        """Estimate for a hypothetical party joining the back of the queue now."""
        if size <= 0:
            raise EstimationValidationError("size must be > 0")
        current = as_utc(now) if now is not None else utc_now()
        preview_party = Party(
            party_id=self._settings.preview_party_id,
            size=size,
            joined_at=current,
        )
        snapshot = self._repository.load_snapshot()
        snapshot = replace(snapshot, queue=[*snapshot.queue, preview_party])
        schedule = self._run(snapshot, current)
        wait = schedule.wait_minutes.get(preview_party.party_id, 0)
        logger.info("Wait preview computed | size=%s | wait_minutes=%s", size, wait)
        return wait
