"""Dependency injection for FastAPI endpoints"""

from datetime import date

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from obligation_engine.domain.lifecycle import ObligationLifecycle
from obligation_engine.infrastructure.clients.ledger import LedgerClient
from obligation_engine.infrastructure.database.repositories import (
    SqlAccountRepository,
    SqlObligationRepository,
)
from obligation_engine.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_today() -> date:
    """Calendar date the lifecycle treats as 'today'; overridden in tests"""
    return date.today()


def get_obligation_repository(db: Session = Depends(get_db)) -> SqlObligationRepository:
    return SqlObligationRepository(db)


def get_account_repository(db: Session = Depends(get_db)) -> SqlAccountRepository:
    return SqlAccountRepository(db)


def get_lifecycle(
    repository: SqlObligationRepository = Depends(get_obligation_repository),
    today: date = Depends(get_today),
) -> ObligationLifecycle:
    """Provide a lifecycle manager bound to the request's session"""
    return ObligationLifecycle(repository, today=lambda: today)


def get_ledger_client() -> LedgerClient:
    """Provide transaction ledger client instance"""
    return LedgerClient()
