"""Domain-level validation rules for queue wait estimation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from backend.domain.models import Course, Occupant, Party


@dataclass(frozen=True)
class EstimatorConfig:
    turnover_buffer_minutes: int = 7
    default_course_minutes: int = 30


def validate_estimator_config(config: EstimatorConfig) -> None:
    if config.turnover_buffer_minutes < 0:
        raise ValueError("turnover_buffer_minutes must be >= 0")
    if config.default_course_minutes <= 0:
        raise ValueError("default_course_minutes must be > 0")


def validate_capacity(capacity: int) -> None:
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise ValueError("capacity must be an integer")
    if capacity <= 0:
        raise ValueError("capacity must be > 0")


def validate_estimation_inputs(
    queue: Sequence[Party],
    occupants: Sequence[Occupant],
    capacity: int,
    courses: Sequence[Course],
) -> None:
    validate_capacity(capacity)

    seen_party_ids: set[str] = set()
    for party in queue:
        if party.size <= 0:
            raise ValueError(f"party '{party.party_id}' size must be > 0")
        if party.party_id in seen_party_ids:
            raise ValueError(f"party '{party.party_id}' appears more than once in the queue")
        seen_party_ids.add(party.party_id)

    for occupant in occupants:
        if occupant.size <= 0:
            raise ValueError(f"occupant '{occupant.occupant_id}' size must be > 0")

    for course in courses:
        if course.minutes <= 0:
            raise ValueError(f"course '{course.course_id}' minutes must be > 0")
