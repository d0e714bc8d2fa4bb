"""Obligation lifecycle endpoints: create, edit, query, settle, skip and the overdue sweep"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from obligation_engine.api.dependencies import get_lifecycle, get_request_id
from obligation_engine.api.v1.errors import to_http_error
from obligation_engine.api.v1.schemas import (
    FromTransactionRequest,
    ObligationCreate,
    ObligationResponse,
    ObligationUpdate,
    SettleRequest,
    SkipRequest,
    SweepResponse,
)
from obligation_engine.config import settings
from obligation_engine.domain.exceptions import DomainException
from obligation_engine.domain.lifecycle import ObligationLifecycle
from obligation_engine.domain.models import ObligationDraft, ObligationStatus
from obligation_engine.domain.recurring import transaction_to_draft
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.infrastructure.observability.logging import log_transition
from obligation_engine.infrastructure.observability.metrics import (
    obligations_created_counter,
    record_transitions,
)

router = APIRouter()


@router.post("/obligations", response_model=ObligationResponse, status_code=201)
def create_obligation(
    body: ObligationCreate,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """Create a single PENDING obligation"""
    draft = ObligationDraft(
        amount=body.amount,
        currency=body.currency,
        counterparty=body.counterparty,
        category=body.category,
        direction=body.direction,
        due_date=body.due_date,
        account_id=body.account_id,
        recurrence=body.recurrence_model(),
        is_instrument=body.is_instrument,
        instrument_number=body.instrument_number,
        instrument_image_ref=body.instrument_image_ref,
        note=body.note,
    )
    try:
        obligation = lifecycle.create(draft)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_error(e)

    obligations_created_counter.labels(source="single").inc()
    return ObligationResponse.from_domain(obligation)


@router.post("/obligations/from-transaction", response_model=ObligationResponse, status_code=201)
def create_from_transaction(
    body: FromTransactionRequest,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """
    Turn a recorded transaction into a recurring obligation.

    Without a recurrence body the bill repeats monthly, first due one month
    after the transaction.
    """
    setup = body.recurrence.to_domain() if body.recurrence else None
    try:
        draft = transaction_to_draft(body.transaction.to_domain(), setup, category=body.category)
        obligation = lifecycle.create(draft)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_error(e)

    obligations_created_counter.labels(source="transaction").inc()
    return ObligationResponse.from_domain(obligation)


@router.get("/obligations", response_model=List[ObligationResponse])
def list_obligations(
    status: Optional[ObligationStatus] = Query(None, description="Filter by lifecycle status"),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """List obligations by due date, optionally restricted to one status"""
    obligations = lifecycle.by_status(status) if status else lifecycle.list_all()
    return [ObligationResponse.from_domain(o) for o in obligations]


@router.get("/obligations/upcoming", response_model=List[ObligationResponse])
def list_upcoming(
    days: int = Query(settings.upcoming_window_days, ge=0, le=366),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """PENDING obligations due between today and today + days"""
    return [ObligationResponse.from_domain(o) for o in lifecycle.upcoming(days)]


@router.post("/obligations/sweep", response_model=SweepResponse)
def sweep_overdue(
    request: Request,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """Flag past-due PENDING obligations as OVERDUE (safe to call repeatedly)"""
    try:
        swept = lifecycle.sweep_overdue()
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.error(f"Overdue sweep aborted: {e}", extra={"request_id": get_request_id(request)})
        raise to_http_error(e)

    record_transitions(ObligationStatus.OVERDUE.value, len(swept))
    return SweepResponse(swept=len(swept), obligations=[ObligationResponse.from_domain(o) for o in swept])


@router.get("/obligations/{obligation_id}", response_model=ObligationResponse)
def get_obligation(obligation_id: uuid.UUID, lifecycle: ObligationLifecycle = Depends(get_lifecycle)):
    try:
        return ObligationResponse.from_domain(lifecycle.get(obligation_id))
    except DomainException as e:
        raise to_http_error(e)


@router.patch("/obligations/{obligation_id}", response_model=ObligationResponse)
def update_obligation(
    obligation_id: uuid.UUID,
    body: ObligationUpdate,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """Edit an open obligation's descriptive fields; status is changed only by settle/skip/sweep"""
    try:
        obligation = lifecycle.update(obligation_id, **body.changes())
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_error(e)
    return ObligationResponse.from_domain(obligation)


@router.post("/obligations/{obligation_id}/settle", response_model=ObligationResponse)
def settle_obligation(
    obligation_id: uuid.UUID,
    body: SettleRequest,
    request: Request,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """
    Apply a human-confirmed match.

    A second settle of the same obligation is rejected with 409 rather than
    overwriting the first settlement.
    """
    try:
        obligation = lifecycle.settle(obligation_id, body.transaction_id, body.cleared_date)
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.warning(f"Settle rejected: {e}", extra={"request_id": get_request_id(request)})
        raise to_http_error(e)

    record_transitions(ObligationStatus.SETTLED.value)
    log_transition(get_request_id(request), str(obligation_id), ObligationStatus.SETTLED.value)
    return ObligationResponse.from_domain(obligation)


@router.post("/obligations/{obligation_id}/skip", response_model=ObligationResponse)
def skip_obligation(
    obligation_id: uuid.UUID,
    request: Request,
    body: Optional[SkipRequest] = None,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    try:
        obligation = lifecycle.skip(obligation_id, body.note if body else None)
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.warning(f"Skip rejected: {e}", extra={"request_id": get_request_id(request)})
        raise to_http_error(e)

    record_transitions(ObligationStatus.SKIPPED.value)
    log_transition(get_request_id(request), str(obligation_id), ObligationStatus.SKIPPED.value)
    return ObligationResponse.from_domain(obligation)
