"""Pytest fixtures for testing"""

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from obligation_engine.api.dependencies import get_today
from obligation_engine.api.main import create_app
from obligation_engine.domain.lifecycle import ObligationLifecycle
from obligation_engine.domain.models import (
    Direction,
    Obligation,
    ObligationDraft,
    ObligationStatus,
    Transaction,
)
from obligation_engine.infrastructure.database.models import Base
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.infrastructure.memory.repositories import InMemoryObligationRepository

# Fixed "today" so overdue/upcoming windows are reproducible
TODAY = date(2026, 1, 15)

# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and a fixed calendar date"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    return TestClient(app)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def repository() -> InMemoryObligationRepository:
    return InMemoryObligationRepository()


@pytest.fixture
def lifecycle(repository: InMemoryObligationRepository) -> ObligationLifecycle:
    return ObligationLifecycle(repository, today=lambda: TODAY)


def make_draft(**overrides) -> ObligationDraft:
    fields = dict(
        amount=Decimal("7000"),
        currency="AED",
        counterparty="Landlord",
        category="Rent",
        direction=Direction.DEBIT,
        due_date=TODAY,
    )
    fields.update(overrides)
    return ObligationDraft(**fields)


def make_obligation(**overrides) -> Obligation:
    created = datetime(2025, 12, 1, tzinfo=timezone.utc)
    fields = dict(
        id=uuid.uuid4(),
        amount=Decimal("7000"),
        currency="AED",
        counterparty="Landlord",
        category="Rent",
        direction=Direction.DEBIT,
        due_date=TODAY,
        status=ObligationStatus.PENDING,
        created_at=created,
        updated_at=created,
    )
    fields.update(overrides)
    return Obligation(**fields)


def make_transaction(**overrides) -> Transaction:
    fields = dict(
        transaction_id=f"tx_{uuid.uuid4().hex[:8]}",
        date=TODAY,
        amount=Decimal("7000"),
        currency="AED",
        counterparty="Landlord",
        direction=Direction.DEBIT,
    )
    fields.update(overrides)
    return Transaction(**fields)


@pytest.fixture
def sample_obligations() -> list[Obligation]:
    """A month of household obligations around TODAY"""
    return [
        make_obligation(counterparty="Landlord", amount=Decimal("7000"), due_date=TODAY - timedelta(days=14)),
        make_obligation(counterparty="DEWA", category="Utilities", amount=Decimal("450"), due_date=TODAY + timedelta(days=3)),
        make_obligation(counterparty="Etisalat", category="Internet", amount=Decimal("399"), due_date=TODAY + timedelta(days=10)),
        make_obligation(
            counterparty="Employer",
            category="Salary",
            amount=Decimal("15000"),
            direction=Direction.CREDIT,
            due_date=TODAY + timedelta(days=13),
        ),
    ]
