from collections.abc import Callable
from typing import Literal

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from printflow.config import settings
from printflow.db.session import SessionLocal
from printflow.integrations.render_service_client import (
    RenderServiceProtocol,
    get_render_service_client,
)
from printflow.observability import log_event
from printflow.schemas.ops import HealthResponse, ReadinessDependency, ReadinessResponse

ReadinessStatus = Literal["ok", "error", "not_configured"]

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    summary="Readiness check",
    response_model=ReadinessResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadinessResponse}},
)
def readiness(
    response: Response,
    render_service: RenderServiceProtocol = Depends(get_render_service_client),
) -> ReadinessResponse:
    # (name, checker, required); optional integrations degrade features, not readiness
    checks: list[tuple[str, Callable[[], ReadinessStatus], bool]] = [
        ("database", lambda: _database_dependency_status(SessionLocal), True),
        ("payment_gateway", _payment_gateway_status, False),
    ]
    if render_service.configured:
        checks.append(
            ("render_service", lambda: "ok" if render_service.health() else "error", False)
        )

    dependencies: list[ReadinessDependency] = []
    healthy = True
    for name, checker, required in checks:
        outcome = _safe_dependency_status(name, checker)
        dependencies.append(ReadinessDependency(name=name, status=outcome))
        if required and outcome != "ok":
            healthy = False

    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="ok" if healthy else "degraded", dependencies=dependencies)


def _payment_gateway_status() -> ReadinessStatus:
    if settings.razorpay_key_id and settings.razorpay_key_secret:
        return "ok"
    return "not_configured"


def _safe_dependency_status(
    dependency_name: str,
    checker: Callable[[], ReadinessStatus],
) -> ReadinessStatus:
    try:
        return checker()
    except Exception as exc:  # noqa: BLE001
        log_event(
            "readiness_dependency_check_failed",
            dependency=dependency_name,
            error=type(exc).__name__,
        )
        return "error"


def _database_dependency_status(
    session_factory: Callable[[], Session],
) -> ReadinessStatus:
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return "error"
    return "ok"
