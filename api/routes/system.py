# Path: api/routes/system.py
# Purpose: Health probes and dashboard statistics.
# Layer: api/routes.
# Details: Readiness answers 503 when any collaborator check fails.

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.schemas import HealthResponse, StatsOut, StatsResponse
from api.deps import get_services
from core.services import ServiceContainer

router = APIRouter(tags=["system"])


def _readiness_response(services: ServiceContainer, ok_status: str, failed_status: str) -> JSONResponse:
    report = services.monitor.readiness()
    body = HealthResponse(
        status=ok_status if report["ready"] else failed_status,
        timestamp=datetime.now(timezone.utc),
        services=report["checks"],
    )
    return JSONResponse(status_code=200 if report["ready"] else 503, content=body.model_dump(mode="json"))


@router.get("/health", response_model=HealthResponse)
def health(services: ServiceContainer = Depends(get_services)):
    return _readiness_response(services, "healthy", "degraded")


@router.get("/health/ready", response_model=HealthResponse)
def readiness(services: ServiceContainer = Depends(get_services)):
    return _readiness_response(services, "ready", "not ready")


@router.get("/health/live")
def liveness(services: ServiceContainer = Depends(get_services)):
    return {**services.monitor.liveness(), "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/stats", response_model=StatsResponse)
def dashboard_stats(services: ServiceContainer = Depends(get_services)):
    return StatsResponse(data=StatsOut.from_domain(services.monitor.dashboard_stats()))
