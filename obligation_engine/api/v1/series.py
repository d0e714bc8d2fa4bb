"""Batch series endpoints: preview, create, validate and delete"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from obligation_engine.api.dependencies import get_lifecycle, get_obligation_repository
from obligation_engine.api.v1.errors import to_http_error
from obligation_engine.api.v1.schemas import (
    ObligationResponse,
    SeriesCreateRequest,
    SeriesPreviewRequest,
    SeriesPreviewResponse,
    SeriesResponse,
    SeriesValidationResponse,
)
from obligation_engine.domain.exceptions import DomainException, NotFoundError
from obligation_engine.domain.instruments import suggest_next_due_date, suggest_next_number, validate_series
from obligation_engine.domain.lifecycle import ObligationLifecycle
from obligation_engine.domain.series import SeriesTemplate, build_series, preview_dates
from obligation_engine.infrastructure.database.repositories import SqlObligationRepository
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.infrastructure.observability.metrics import obligations_created_counter

router = APIRouter()


@router.post("/series/preview", response_model=SeriesPreviewResponse)
def preview_series(body: SeriesPreviewRequest):
    """Dates a series would use; nothing is created"""
    try:
        dates = preview_dates(body.start_date, body.cadence, body.interval, body.count)
    except DomainException as e:
        raise to_http_error(e)
    return SeriesPreviewResponse(dates=dates)


@router.post("/series", response_model=SeriesResponse, status_code=201)
def create_series(
    body: SeriesCreateRequest,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """
    Generate and persist a batch (e.g. a book of postdated cheques).

    The whole batch is built in memory first; any invalid input rejects it
    before a single row is written.
    """
    template = SeriesTemplate(
        amount=body.amount,
        currency=body.currency,
        counterparty=body.counterparty,
        category=body.category,
        direction=body.direction,
        account_id=body.account_id,
        is_instrument=body.is_instrument,
        starting_instrument_number=body.starting_instrument_number,
        instrument_images=body.instrument_images,
        note=body.note,
    )
    try:
        plan = build_series(template, body.start_date, body.cadence, body.interval, body.count)
        obligations = lifecycle.create_series(plan)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_error(e)

    obligations_created_counter.labels(source="series").inc(len(obligations))
    return SeriesResponse(
        series_id=plan.series_id,
        obligations=[ObligationResponse.from_domain(o) for o in obligations],
    )


@router.get("/series/{series_id}/validation", response_model=SeriesValidationResponse)
def validate_series_endpoint(
    series_id: uuid.UUID,
    repository: SqlObligationRepository = Depends(get_obligation_repository),
):
    """Numbering/date sanity checks plus suggestions for the next instrument"""
    members = repository.load_by_series(series_id)
    if not members:
        raise to_http_error(NotFoundError(f"Series {series_id} not found"))

    return SeriesValidationResponse.from_domain(
        series_id,
        validate_series(members),
        suggest_next_number(members),
        suggest_next_due_date(members),
    )


@router.delete("/series/{series_id}")
def delete_series(
    series_id: uuid.UUID,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    try:
        deleted = lifecycle.delete_series(series_id)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_error(e)
    return {"series_id": str(series_id), "deleted": deleted}
