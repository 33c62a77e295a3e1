"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from backend.services.estimation_service import EstimationService
from backend.services.queue_service import QueueService
from backend.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_queue_service(request: Request) -> QueueService:
    service = getattr(request.app.state, "queue_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        estimation_service = getattr(request.app.state, "estimation_service", None)
        if repository is not None and estimation_service is not None:
            service = QueueService(
                repository=repository,
                estimation_service=estimation_service,
                settings=get_settings(),
            )
            request.app.state.queue_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Queue service is not initialized",
        )
    return service


def get_estimation_service(request: Request) -> EstimationService:
    service = getattr(request.app.state, "estimation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Estimation service is not initialized",
        )
    return service


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
