"""Tests for estimator configuration and input validation rules."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backend.domain.constraints import (
    EstimatorConfig,
    validate_capacity,
    validate_estimation_inputs,
    validate_estimator_config,
)
from backend.domain.models import Course, Occupant, Party


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# --- EstimatorConfig ---

def test_default_config_passes() -> None:
    validate_estimator_config(EstimatorConfig())


def test_zero_turnover_buffer_passes() -> None:
    """A venue without turnover time is valid."""
    validate_estimator_config(EstimatorConfig(turnover_buffer_minutes=0))


def test_negative_turnover_buffer_raises() -> None:
    with pytest.raises(ValueError):
        validate_estimator_config(EstimatorConfig(turnover_buffer_minutes=-1))


def test_zero_default_course_minutes_raises() -> None:
    with pytest.raises(ValueError):
        validate_estimator_config(EstimatorConfig(default_course_minutes=0))


# --- capacity ---

def test_capacity_one_passes() -> None:
    validate_capacity(1)


@pytest.mark.parametrize("capacity", [0, -5, True, 2.5])
def test_invalid_capacity_raises(capacity) -> None:
    with pytest.raises(ValueError):
        validate_capacity(capacity)


# --- snapshot inputs ---

def test_valid_snapshot_passes() -> None:
    validate_estimation_inputs(
        [Party(party_id="p1", size=2, joined_at=NOW)],
        [Occupant(occupant_id="o1", size=3, departure_at=NOW)],
        5,
        [Course(course_id="c30", name="30", minutes=30)],
    )


def test_non_positive_course_minutes_raises() -> None:
    with pytest.raises(ValueError):
        validate_estimation_inputs([], [], 5, [Course(course_id="c0", name="0", minutes=0)])


def test_negative_party_size_raises() -> None:
    with pytest.raises(ValueError):
        validate_estimation_inputs([Party(party_id="p1", size=-2, joined_at=NOW)], [], 5, [])
