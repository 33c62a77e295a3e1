"""HTTP controller layer for the walk-in queue and its wait estimates."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from backend.controllers.dependencies import (
    get_estimation_service,
    get_queue_service,
    require_admin,
)
from backend.domain.constraints import EstimatorConfig
from backend.domain.models import Course, Occupant, Party
from backend.services.estimation_service import (
    EstimationService,
    EstimationValidationError,
    schedule_admissions,
)
from backend.services.queue_service import (
    QueueRecordNotFoundError,
    QueueService,
    QueueValidationError,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["queue"])


class JoinQueueRequest(BaseModel):
    size: int = Field(gt=0)
    note: str = Field(default="", max_length=200)


class PartyResponse(BaseModel):
    party_id: str
    size: int = Field(gt=0)
    note: str
    joined_at: datetime


class QueuedPartyResponse(PartyResponse):
    position: int = Field(ge=1)
    estimated_wait_minutes: int = Field(ge=0)
    estimated_entry_at: datetime
    approximate: bool


class QueueResponse(BaseModel):
    parties: list[QueuedPartyResponse]


class PreviewResponse(BaseModel):
    size: int = Field(gt=0)
    estimated_wait_minutes: int = Field(ge=0)


class AdmitRequest(BaseModel):
    course_id: str = Field(min_length=1)


class OccupantResponse(BaseModel):
    occupant_id: str
    size: int = Field(gt=0)
    note: str
    course_id: Optional[str] = None
    entered_at: Optional[datetime] = None
    departure_at: datetime


class InsideRowResponse(OccupantResponse):
    remaining_minutes: int = Field(ge=0)


class InsideResponse(BaseModel):
    occupants: list[InsideRowResponse]
    headcount: int = Field(ge=0)


class HistoryEntryResponse(BaseModel):
    history_id: str
    size: int = Field(gt=0)
    note: str
    course_id: Optional[str] = None
    entered_at: Optional[datetime] = None
    exited_at: datetime


class HistoryResponse(BaseModel):
    entries: list[HistoryEntryResponse]


class CourseSummaryResponse(BaseModel):
    course_id: str
    parties: int = Field(ge=0)
    headcount: int = Field(ge=0)
    mean_stay_minutes: Optional[float] = None


class HistorySummaryResponse(BaseModel):
    total_parties: int = Field(ge=0)
    total_headcount: int = Field(ge=0)
    by_course: list[CourseSummaryResponse]


class DeleteResponse(BaseModel):
    status: str = "DELETED"
    id: str


class SnapshotParty(BaseModel):
    id: str = Field(min_length=1)
    size: int = Field(gt=0)
    join_at: datetime


class SnapshotOccupant(BaseModel):
    id: str = Field(min_length=1)
    size: int = Field(gt=0)
    departure_at: datetime


class SnapshotCourse(BaseModel):
    id: str = Field(min_length=1)
    minutes: int = Field(gt=0)


class EstimateRequest(BaseModel):
    """Self-contained snapshot; nothing is read from or written to storage."""

    queue: list[SnapshotParty] = Field(default_factory=list)
    occupants: list[SnapshotOccupant] = Field(default_factory=list)
    capacity: int = Field(gt=0)
    courses: list[SnapshotCourse] = Field(default_factory=list)
    now: Optional[datetime] = None

    @field_validator("queue")
    @classmethod
    def validate_unique_party_ids(cls, value: list[SnapshotParty]) -> list[SnapshotParty]:
        party_ids = [party.id for party in value]
        if len(party_ids) != len(set(party_ids)):
            raise ValueError("queue party ids must be unique")
        return value


class AdmissionResponse(BaseModel):
    party_id: str
    assigned_at: datetime
    departure_at: datetime
    size: int = Field(gt=0)
    approximate: bool


class EstimateResponse(BaseModel):
    now: datetime
    wait_minutes: dict[str, int]
    admissions: list[AdmissionResponse]


def _to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, (QueueValidationError, EstimationValidationError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, QueueRecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    logger.exception("Unexpected queue operation failure")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Queue operation failed",
    )


def _party_response(party: Party) -> PartyResponse:
    return PartyResponse(
        party_id=party.party_id,
        size=party.size,
        note=party.note,
        joined_at=party.joined_at,
    )


def _occupant_response(occupant: Occupant) -> OccupantResponse:
    return OccupantResponse(
        occupant_id=occupant.occupant_id,
        size=occupant.size,
        note=occupant.note,
        course_id=occupant.course_id,
        entered_at=occupant.entered_at,
        departure_at=occupant.departure_at,
    )


@router.get("/queue", response_model=QueueResponse)
async def list_queue(service: QueueService = Depends(get_queue_service)) -> QueueResponse:
    """Queued parties in arrival order, re-estimated on every read."""
    try:
        rows = service.list_queue()
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return QueueResponse(parties=[QueuedPartyResponse(**row) for row in rows])


@router.post("/queue", response_model=PartyResponse, status_code=status.HTTP_201_CREATED)
async def join_queue(
    payload: JoinQueueRequest,
    service: QueueService = Depends(get_queue_service),
) -> PartyResponse:
    try:
        party = service.add_party(size=payload.size, note=payload.note)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return _party_response(party)


@router.get("/queue/preview", response_model=PreviewResponse)
async def preview_wait(
    size: int = Query(gt=0),
    service: QueueService = Depends(get_queue_service),
) -> PreviewResponse:
    """Estimate for a party of `size` joining now, without queueing it."""
    try:
        wait = service.preview_wait(size)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return PreviewResponse(size=size, estimated_wait_minutes=wait)


@router.delete("/queue/{party_id}", response_model=DeleteResponse)
async def cancel_party(
    party_id: str,
    service: QueueService = Depends(get_queue_service),
) -> DeleteResponse:
    try:
        service.remove_party(party_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return DeleteResponse(id=party_id)


@router.post(
    "/queue/{party_id}/admit",
    response_model=OccupantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def admit_party(
    party_id: str,
    payload: AdmitRequest,
    service: QueueService = Depends(get_queue_service),
) -> OccupantResponse:
    try:
        occupant = service.admit_party(party_id=party_id, course_id=payload.course_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return _occupant_response(occupant)


@router.get("/inside", response_model=InsideResponse)
async def list_inside(service: QueueService = Depends(get_queue_service)) -> InsideResponse:
    try:
        rows = service.list_occupants()
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return InsideResponse(
        occupants=[InsideRowResponse(**row) for row in rows],
        headcount=sum(int(row["size"]) for row in rows),
    )


@router.post("/inside/{occupant_id}/checkout", response_model=HistoryEntryResponse)
async def checkout(
    occupant_id: str,
    service: QueueService = Depends(get_queue_service),
) -> HistoryEntryResponse:
    try:
        entry = service.checkout(occupant_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return HistoryEntryResponse(
        history_id=entry.history_id,
        size=entry.size,
        note=entry.note,
        course_id=entry.course_id,
        entered_at=entry.entered_at,
        exited_at=entry.exited_at,
    )


@router.delete(
    "/inside/{occupant_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_occupant(
    occupant_id: str,
    service: QueueService = Depends(get_queue_service),
) -> DeleteResponse:
    """Remove an occupant without recording a history entry."""
    try:
        service.delete_occupant(occupant_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return DeleteResponse(id=occupant_id)


@router.get("/history", response_model=HistoryResponse)
async def list_history(service: QueueService = Depends(get_queue_service)) -> HistoryResponse:
    entries = service.list_history()
    return HistoryResponse(
        entries=[
            HistoryEntryResponse(
                history_id=entry.history_id,
                size=entry.size,
                note=entry.note,
                course_id=entry.course_id,
                entered_at=entry.entered_at,
                exited_at=entry.exited_at,
            )
            for entry in entries
        ]
    )


@router.get("/history/summary", response_model=HistorySummaryResponse)
async def history_summary(
    service: QueueService = Depends(get_queue_service),
) -> HistorySummaryResponse:
    try:
        summary = service.history_summary()
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return HistorySummaryResponse(**summary)


@router.delete(
    "/history/{history_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_history_entry(
    history_id: str,
    service: QueueService = Depends(get_queue_service),
) -> DeleteResponse:
    try:
        service.delete_history_entry(history_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return DeleteResponse(id=history_id)


@router.post("/estimate", response_model=EstimateResponse)
async def estimate_snapshot(
    payload: EstimateRequest,
    estimation_service: EstimationService = Depends(get_estimation_service),
) -> EstimateResponse:
    """Run the estimator on a caller-supplied snapshot."""
    config: EstimatorConfig = estimation_service.config
    try:
        schedule = schedule_admissions(
            [
                Party(party_id=item.id, size=item.size, joined_at=item.join_at)
                for item in payload.queue
            ],
            [
                Occupant(occupant_id=item.id, size=item.size, departure_at=item.departure_at)
                for item in payload.occupants
            ],
            payload.capacity,
            [
                Course(course_id=item.id, name=item.id, minutes=item.minutes)
                for item in payload.courses
            ],
            now=payload.now,
            config=config,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return EstimateResponse(
        now=schedule.now,
        wait_minutes=schedule.wait_minutes,
        admissions=[
            AdmissionResponse(
                party_id=admission.party_id,
                assigned_at=admission.assigned_at,
                departure_at=admission.departure_at,
                size=admission.size,
                approximate=admission.fallback,
            )
            for admission in schedule.admissions
        ],
    )
