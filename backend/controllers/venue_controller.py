"""Controller layer for staff login and venue configuration."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    bearer_scheme,
    get_auth_service,
    get_queue_service,
    require_admin,
)
from backend.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from backend.services.queue_service import QueueService, QueueValidationError
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["venue"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LogoutResponse(BaseModel):
    status: str = "logged_out"


class CapacityRequest(BaseModel):
    max_capacity: int = Field(gt=0)


class VenueSettingsResponse(BaseModel):
    max_capacity: int = Field(gt=0)
    turnover_buffer_minutes: int = Field(ge=0)
    default_course_minutes: int = Field(gt=0)


class CourseResponse(BaseModel):
    course_id: str
    name: str
    minutes: int = Field(gt=0)


class CoursesResponse(BaseModel):
    courses: list[CourseResponse]


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        access_token = auth_service.login(payload.admin_token)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    return LoginResponse(access_token=access_token)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    auth_service.logout(credentials.credentials)
    return LogoutResponse()


@router.get("/settings", response_model=VenueSettingsResponse)
async def get_venue_settings(
    service: QueueService = Depends(get_queue_service),
) -> VenueSettingsResponse:
    return VenueSettingsResponse(**service.venue_settings())


@router.put(
    "/settings/capacity",
    response_model=VenueSettingsResponse,
    dependencies=[Depends(require_admin)],
)
async def update_capacity(
    payload: CapacityRequest,
    service: QueueService = Depends(get_queue_service),
) -> VenueSettingsResponse:
    try:
        service.update_capacity(payload.max_capacity)
    except QueueValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected capacity update failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update capacity",
        ) from exc
    return VenueSettingsResponse(**service.venue_settings())


@router.get("/courses", response_model=CoursesResponse)
async def list_courses(service: QueueService = Depends(get_queue_service)) -> CoursesResponse:
    return CoursesResponse(
        courses=[
            CourseResponse(course_id=course.course_id, name=course.name, minutes=course.minutes)
            for course in service.list_courses()
        ]
    )
