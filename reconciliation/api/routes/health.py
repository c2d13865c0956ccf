"""Health check and Prometheus metrics endpoints.

/health probes every infrastructure dependency (Postgres, Person Directory),
measures per-probe latency, and reports aggregate status. Probes are
run concurrently to minimise total latency.
"""

import asyncio
import time

import asyncpg
import httpx
import structlog
from fastapi import APIRouter, Depends
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from reconciliation.api.dependencies import get_settings_from_app
from reconciliation.core.config import Settings
from reconciliation.models.responses import DependencyHealth, HealthResponse

router = APIRouter(tags=["observability"])
logger: structlog.stdlib.BoundLogger = structlog.get_logger()

_APP_VERSION = "0.1.0"
_start_time: float = time.time()


# ---------------------------------------------------------------------------
# Dependency probes
# ---------------------------------------------------------------------------


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def _probe_postgres(database_url: str) -> DependencyHealth:
    """Attempt a lightweight asyncpg connection to Postgres."""
    if not database_url.startswith("postgresql"):
        return DependencyHealth(
            name="postgresql", status="not_configured", details="non-Postgres database URL"
        )

    start = time.perf_counter()
    try:
        raw_url = database_url.replace("postgresql+asyncpg://", "postgresql://")
        conn = await asyncio.wait_for(asyncpg.connect(raw_url), timeout=3.0)
        try:
            await conn.execute("SELECT 1")
        finally:
            await conn.close()
        return DependencyHealth(name="postgresql", status="healthy", latency_ms=_elapsed_ms(start))
    except Exception as exc:
        logger.warning("health_probe_failed", dependency="postgresql", error=str(exc)[:200])
        return DependencyHealth(
            name="postgresql",
            status="unhealthy",
            latency_ms=_elapsed_ms(start),
            details=str(exc)[:200],
        )


async def _probe_person_directory(base_url: str) -> DependencyHealth:
    """Hit the Person Directory health endpoint."""
    if not base_url:
        return DependencyHealth(
            name="person_directory", status="not_configured", details="no base URL"
        )

    start = time.perf_counter()
    try:
        async with httpx.AsyncClient(timeout=3.0) as client:
            resp = await client.get(f"{base_url.rstrip('/')}/health")
            resp.raise_for_status()
        return DependencyHealth(
            name="person_directory", status="healthy", latency_ms=_elapsed_ms(start)
        )
    except Exception as exc:
        logger.warning("health_probe_failed", dependency="person_directory", error=str(exc)[:200])
        return DependencyHealth(
            name="person_directory",
            status="unhealthy",
            latency_ms=_elapsed_ms(start),
            details=str(exc)[:200],
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_settings_from_app),
) -> HealthResponse:
    """Check API and infrastructure dependency health."""
    probes = await asyncio.gather(
        _probe_postgres(settings.database_url),
        _probe_person_directory(settings.person_directory_url),
    )
    dependencies = list(probes)

    has_unhealthy = any(d.status == "unhealthy" for d in dependencies)
    all_healthy = all(d.status == "healthy" for d in dependencies)

    if all_healthy:
        status = "healthy"
    elif has_unhealthy:
        status = "unhealthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        version=_APP_VERSION,
        uptime_seconds=round(time.time() - _start_time, 2),
        dependencies=dependencies,
    )


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
