"""API response schemas.

Every outbound response is serialized through one of these models.
Successful calls are wrapped in a uniform envelope; failures use the
structured error payload. The API never leaks raw stack traces.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from reconciliation.models.domain import CaseStatus, CaseType

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class DataResponse(BaseModel, Generic[T]):
    """Successful response wrapper."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    data: T


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class DependencyHealth(BaseModel):
    """Health status of a single infrastructure dependency."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: str = Field(..., description="'healthy', 'unhealthy', or 'not_configured'")
    latency_ms: float | None = None
    details: str | None = None


class HealthResponse(BaseModel):
    """Aggregate health check response."""

    model_config = ConfigDict(frozen=True)

    status: str = Field(..., description="'healthy', 'degraded', or 'unhealthy'")
    version: str
    uptime_seconds: float
    dependencies: list[DependencyHealth]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class CaseTypeBreakdown(BaseModel):
    """Per-type slice of the case statistics."""

    model_config = ConfigDict(frozen=True)

    case_type: CaseType
    count: int = Field(..., ge=0)
    settled_count: int = Field(..., ge=0)
    average_duration_days: int | None = None


class MediatorPerformance(BaseModel):
    """One mediator's results within the case statistics."""

    model_config = ConfigDict(frozen=True)

    mediator_id: str
    mediator_name: str | None = None
    total_cases: int = Field(..., ge=0)
    settled_cases: int = Field(..., ge=0)
    average_duration_days: int | None = None


class CaseStatistics(BaseModel):
    """Aggregate figures over a filtered set of cases."""

    model_config = ConfigDict(frozen=True)

    total_cases: int = Field(..., ge=0)
    by_status: dict[CaseStatus, int]
    average_settlement_amount: Decimal | None = None
    oldest_filing_date: date | None = None
    newest_filing_date: date | None = None
    by_type: list[CaseTypeBreakdown]
    mediator_performance: list[MediatorPerformance] = Field(default_factory=list)


class SessionStatistics(BaseModel):
    """Session counts over a filtered range."""

    model_config = ConfigDict(frozen=True)

    total_sessions: int = Field(..., ge=0)
    by_type: dict[str, int]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Structured error payload."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable description")
    details: dict[str, Any] = Field(default_factory=dict)
    request_id: str | None = None
