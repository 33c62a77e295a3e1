"""Domain models for the walk-in queue and its wait estimator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Party:
    party_id: str
    size: int
    joined_at: datetime
    note: str = ""


@dataclass(frozen=True)
class Occupant:
    occupant_id: str
    size: int
    departure_at: datetime
    course_id: Optional[str] = None
    entered_at: Optional[datetime] = None
    note: str = ""


@dataclass(frozen=True)
class Course:
    course_id: str
    name: str
    minutes: int


@dataclass(frozen=True)
class HistoryEntry:
    history_id: str
    size: int
    exited_at: datetime
    course_id: Optional[str] = None
    entered_at: Optional[datetime] = None
    note: str = ""


@dataclass(frozen=True)
class ProvisionalAdmission:
    """Hypothetical admission committed during one estimation pass."""

    party_id: str
    assigned_at: datetime
    departure_at: datetime
    size: int
    fallback: bool = False


@dataclass(frozen=True)
class AdmissionSchedule:
    now: datetime
    admissions: list[ProvisionalAdmission]
    wait_minutes: dict[str, int]


@dataclass(frozen=True)
class VenueSnapshot:
    """Queue, occupants, courses and capacity read in one transaction."""

    queue: list[Party]
    occupants: list[Occupant]
    courses: list[Course]
    max_capacity: int
