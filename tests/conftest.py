"""Shared test fixtures and factory functions.

Factories return valid domain objects and payloads with sensible defaults.
Override any field via keyword arguments to create specific test scenarios
without repeating boilerplate.

The database is an in-memory SQLite engine (aiosqlite) created fresh for
every test, so no external services are needed. Set TEST_DATABASE_URL to
run the same suite against Postgres.
"""

import os
from collections.abc import AsyncIterator
from datetime import UTC, date, datetime, timedelta

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from reconciliation.api.app import create_app
from reconciliation.core.config import Settings
from reconciliation.db.repositories import CaseEventRepo, CaseRepo, SessionRepo
from reconciliation.db.session import create_session_factory
from reconciliation.models.database import Base
from reconciliation.models.domain import (
    Case,
    CaseEvent,
    CaseEventKind,
    CaseSession,
    CaseStatus,
    CaseType,
    PersonProfile,
    SessionType,
)
from reconciliation.models.requests import CaseCreate, SessionCreate
from reconciliation.services.cases.assignment import MediatorAssignmentService
from reconciliation.services.cases.lifecycle import LifecycleController
from reconciliation.services.cases.registry import CaseRegistry
from reconciliation.services.cases.timeline import TimelineReconstructor
from reconciliation.services.sessions.ledger import SessionLedger

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=UTC)

PLAINTIFF_ID = "person-plaintiff"
DEFENDANT_ID = "person-defendant"
MEDIATOR_ID = "person-mediator"
OTHER_MEDIATOR_ID = "person-mediator-2"
ATTENDEE_ID = "person-attendee"
ACTOR_ID = "user-clerk"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FrozenClock:
    """Callable clock pinned to a fixed instant; advance it explicitly."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class StaticPersonDirectory:
    """In-memory person directory keyed by person id."""

    def __init__(self, *person_ids: str) -> None:
        self._people: dict[str, PersonProfile] = {}
        for person_id in person_ids:
            self.add(person_id)

    def add(self, person_id: str, **fields: str) -> PersonProfile:
        profile = PersonProfile(
            person_id=person_id,
            full_name=fields.get("full_name", person_id.replace("-", " ").title()),
            email=fields.get("email", f"{person_id}@example.org"),
            user_type=fields.get("user_type", "CITIZEN"),
        )
        self._people[person_id] = profile
        return profile

    async def exists(self, person_id: str) -> bool:
        return person_id in self._people

    async def lookup(self, person_id: str) -> PersonProfile | None:
        return self._people.get(person_id)


# ---------------------------------------------------------------------------
# Settings / clock / directory
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing — console logs, debug enabled."""
    return Settings(
        debug=True,
        database_url=TEST_DATABASE_URL,
        person_directory_url="",
        log_format="console",
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def people() -> StaticPersonDirectory:
    return StaticPersonDirectory(
        PLAINTIFF_ID, DEFENDANT_ID, MEDIATOR_ID, OTHER_MEDIATOR_ID, ATTENDEE_ID
    )


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Fresh schema per test. In-memory SQLite shares one connection via StaticPool."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        test_engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        test_engine = create_async_engine(TEST_DATABASE_URL)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Per-test session; work is never committed and the schema is dropped after."""
    session = session_factory()
    try:
        yield session
    finally:
        await session.rollback()
        await session.close()


@pytest.fixture
def case_repo(db_session: AsyncSession) -> CaseRepo:
    return CaseRepo(db_session)


@pytest.fixture
def session_repo(db_session: AsyncSession) -> SessionRepo:
    return SessionRepo(db_session)


@pytest.fixture
def event_repo(db_session: AsyncSession) -> CaseEventRepo:
    return CaseEventRepo(db_session)


# ---------------------------------------------------------------------------
# Services wired to the test session
# ---------------------------------------------------------------------------


@pytest.fixture
def timeline(
    case_repo: CaseRepo,
    session_repo: SessionRepo,
    event_repo: CaseEventRepo,
) -> TimelineReconstructor:
    return TimelineReconstructor(case_repo, session_repo, event_repo)


@pytest.fixture
def registry(
    case_repo: CaseRepo,
    session_repo: SessionRepo,
    event_repo: CaseEventRepo,
    people: StaticPersonDirectory,
    timeline: TimelineReconstructor,
    test_settings: Settings,
    clock: FrozenClock,
) -> CaseRegistry:
    return CaseRegistry(
        case_repo, session_repo, event_repo, people, timeline, test_settings, clock=clock
    )


@pytest.fixture
def lifecycle(
    case_repo: CaseRepo,
    event_repo: CaseEventRepo,
    test_settings: Settings,
    clock: FrozenClock,
) -> LifecycleController:
    return LifecycleController(case_repo, event_repo, test_settings, clock=clock)


@pytest.fixture
def assignment(
    case_repo: CaseRepo,
    event_repo: CaseEventRepo,
    people: StaticPersonDirectory,
    test_settings: Settings,
    clock: FrozenClock,
) -> MediatorAssignmentService:
    return MediatorAssignmentService(case_repo, event_repo, people, test_settings, clock=clock)


@pytest.fixture
def ledger(
    session_repo: SessionRepo,
    case_repo: CaseRepo,
    people: StaticPersonDirectory,
    test_settings: Settings,
    clock: FrozenClock,
) -> SessionLedger:
    return SessionLedger(session_repo, case_repo, people, test_settings, clock=clock)


# ---------------------------------------------------------------------------
# App / Client
# ---------------------------------------------------------------------------


@pytest.fixture
def app(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    people: StaticPersonDirectory,
) -> FastAPI:
    """FastAPI application wired to the test database and directory.

    ASGITransport does not run the lifespan, so app.state is filled here.
    """
    application = create_app(test_settings)
    application.state.session_factory = session_factory
    application.state.person_directory = people
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Async HTTP client bound to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Actor-ID": ACTOR_ID},
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Payload and domain model factories
# ---------------------------------------------------------------------------


def make_case_create(**overrides: object) -> CaseCreate:
    """Build a valid filing payload with sensible defaults."""
    defaults: dict[str, object] = {
        "title": "Boundary dispute over family orchard",
        "description": "Two siblings disagree on the division of an inherited orchard.",
        "case_type": CaseType.FAMILY_DISPUTE.value,
        "plaintiff_id": PLAINTIFF_ID,
        "defendant_id": DEFENDANT_ID,
        "filing_date": date(2024, 1, 10),
    }
    defaults.update(overrides)
    return CaseCreate(**defaults)  # type: ignore[arg-type]


def make_session_create(case_id: str, **overrides: object) -> SessionCreate:
    """Build a valid session payload for `case_id`."""
    defaults: dict[str, object] = {
        "case_id": case_id,
        "session_type": SessionType.MEDIATION.value,
        "session_date": date(2024, 2, 1),
        "location": "Committee Hall A",
        "attendees": [{"person_id": PLAINTIFF_ID, "role": "PLAINTIFF"}],
        "discussion_summary": "Parties outlined their positions.",
    }
    defaults.update(overrides)
    return SessionCreate(**defaults)  # type: ignore[arg-type]


def make_case(**overrides: object) -> Case:
    """Build a Case domain object without touching the database."""
    defaults: dict[str, object] = {
        "id": "case-1",
        "case_number": "FD-2024-0001",
        "title": "Boundary dispute over family orchard",
        "case_type": CaseType.FAMILY_DISPUTE,
        "status": CaseStatus.NEW,
        "plaintiff_id": PLAINTIFF_ID,
        "defendant_id": DEFENDANT_ID,
        "filing_date": date(2024, 1, 10),
    }
    defaults.update(overrides)
    return Case(**defaults)  # type: ignore[arg-type]


def make_case_session(**overrides: object) -> CaseSession:
    """Build a CaseSession domain object without touching the database."""
    defaults: dict[str, object] = {
        "id": "session-1",
        "case_id": "case-1",
        "session_type": SessionType.MEDIATION,
        "session_date": date(2024, 2, 1),
        "location": "Committee Hall A",
        "discussion_summary": "Parties outlined their positions.",
    }
    defaults.update(overrides)
    return CaseSession(**defaults)  # type: ignore[arg-type]


def make_case_event(**overrides: object) -> CaseEvent:
    """Build a status-change CaseEvent without touching the database."""
    defaults: dict[str, object] = {
        "id": 1,
        "case_id": "case-1",
        "kind": CaseEventKind.STATUS_CHANGE,
        "occurred_at": datetime(2024, 1, 20, 14, 0, tzinfo=UTC),
        "actor_id": ACTOR_ID,
        "previous_status": CaseStatus.NEW,
        "new_status": CaseStatus.IN_PROGRESS,
        "description": "Work started",
    }
    defaults.update(overrides)
    return CaseEvent(**defaults)  # type: ignore[arg-type]
