"""Health check endpoints for monitoring and orchestration."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from personnel_ledger.config import settings

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    timestamp: datetime
    version: str
    environment: str


class LivenessResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]
    open_review_items: int | None = None


# Services the payroll routes depend on, as wired by init_services.
_SERVICES = ("identity_index", "ledger", "review_queue", "report_processor")


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=settings.app_version,
        environment=settings.app_env,
    )


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe - app is running."""
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse:
    """Readiness probe - the ledger database answers and the services are wired.

    Also reports how many review items await a decision.
    """
    state = request.app.state
    checks: dict[str, str] = {"api": "ok"}

    db = getattr(state, "db", None)
    if db:
        checks["database"] = "ok" if await db.is_healthy() else "failed"
    else:
        checks["database"] = "not_configured"

    for name in _SERVICES:
        checks[name] = "ok" if getattr(state, name, None) is not None else "not_configured"

    open_items = None
    reviews = getattr(state, "review_repository", None)
    if reviews is not None and checks["database"] == "ok":
        open_items = len(await reviews.list(open_only=True))

    status = "ready" if all(v == "ok" for v in checks.values()) else "not_ready"
    return ReadinessResponse(status=status, checks=checks, open_review_items=open_items)
