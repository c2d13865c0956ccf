"""FastAPI dependency injection providers.

Every external resource the API layer needs is accessed through a
Depends() callable defined here. The session factory and person directory
are resolved from app.state, which the lifespan populates at startup;
repositories and services are built per request around one session.
"""

from collections.abc import AsyncIterator
from functools import lru_cache

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from reconciliation.core.config import Settings
from reconciliation.core.exceptions import ValidationError
from reconciliation.db.repositories import CaseEventRepo, CaseRepo, SessionRepo
from reconciliation.db.session import get_session
from reconciliation.services.cases.assignment import MediatorAssignmentService
from reconciliation.services.cases.lifecycle import LifecycleController
from reconciliation.services.cases.registry import CaseRegistry
from reconciliation.services.cases.timeline import TimelineReconstructor
from reconciliation.services.people.directory import PersonDirectory
from reconciliation.services.sessions.ledger import SessionLedger


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    return Settings()


def get_settings_from_app(request: Request) -> Settings:
    """Retrieve settings stored on the running app instance.

    Preferred over the cached version inside route handlers since
    it respects the settings the app was actually started with
    (important for tests that override config).
    """
    settings: Settings = request.app.state.settings
    return settings


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async DB session scoped to the request lifecycle.

    Commits on success, rolls back on exception, always closes.
    """
    async with get_session(request.app.state.session_factory) as session:
        yield session


def get_person_directory(request: Request) -> PersonDirectory:
    """Retrieve the shared person directory client from app state."""
    directory: PersonDirectory = request.app.state.person_directory
    return directory


def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str:
    """The acting user, taken from the X-Actor-ID header."""
    if x_actor_id is None or not x_actor_id.strip():
        raise ValidationError(["X-Actor-ID header is required"])
    return x_actor_id.strip()


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


def get_case_repo(session: AsyncSession = Depends(get_db_session)) -> CaseRepo:
    return CaseRepo(session)


def get_session_repo(session: AsyncSession = Depends(get_db_session)) -> SessionRepo:
    return SessionRepo(session)


def get_event_repo(session: AsyncSession = Depends(get_db_session)) -> CaseEventRepo:
    return CaseEventRepo(session)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_timeline(
    cases: CaseRepo = Depends(get_case_repo),
    sessions: SessionRepo = Depends(get_session_repo),
    events: CaseEventRepo = Depends(get_event_repo),
) -> TimelineReconstructor:
    return TimelineReconstructor(cases, sessions, events)


def get_registry(
    cases: CaseRepo = Depends(get_case_repo),
    sessions: SessionRepo = Depends(get_session_repo),
    events: CaseEventRepo = Depends(get_event_repo),
    people: PersonDirectory = Depends(get_person_directory),
    timeline: TimelineReconstructor = Depends(get_timeline),
    settings: Settings = Depends(get_settings_from_app),
) -> CaseRegistry:
    return CaseRegistry(cases, sessions, events, people, timeline, settings)


def get_lifecycle(
    cases: CaseRepo = Depends(get_case_repo),
    events: CaseEventRepo = Depends(get_event_repo),
    settings: Settings = Depends(get_settings_from_app),
) -> LifecycleController:
    return LifecycleController(cases, events, settings)


def get_assignment(
    cases: CaseRepo = Depends(get_case_repo),
    events: CaseEventRepo = Depends(get_event_repo),
    people: PersonDirectory = Depends(get_person_directory),
    settings: Settings = Depends(get_settings_from_app),
) -> MediatorAssignmentService:
    return MediatorAssignmentService(cases, events, people, settings)


def get_ledger(
    sessions: SessionRepo = Depends(get_session_repo),
    cases: CaseRepo = Depends(get_case_repo),
    people: PersonDirectory = Depends(get_person_directory),
    settings: Settings = Depends(get_settings_from_app),
) -> SessionLedger:
    return SessionLedger(sessions, cases, people, settings)
