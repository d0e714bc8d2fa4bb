"""Matching endpoints: ranked suggestions for a transaction and manual pairing for an obligation"""

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from obligation_engine.api.dependencies import (
    get_ledger_client,
    get_lifecycle,
    get_obligation_repository,
    get_request_id,
)
from obligation_engine.api.v1.errors import to_http_error
from obligation_engine.api.v1.schemas import (
    InstrumentMatchSchema,
    MatchCandidateSchema,
    MatchResponse,
    ObligationResponse,
    PairingCandidateSchema,
    PairingCandidatesResponse,
    TransactionSchema,
)
from obligation_engine.domain.exceptions import DomainException, InvalidParameterError, LedgerAPIError
from obligation_engine.domain.instruments import match_instrument
from obligation_engine.domain.lifecycle import ObligationLifecycle
from obligation_engine.domain.matching import find_matches
from obligation_engine.domain.models import ObligationStatus
from obligation_engine.domain.pairing import find_pairing_candidates, pairing_summary
from obligation_engine.infrastructure.clients.ledger import LedgerClient
from obligation_engine.infrastructure.database.repositories import SqlObligationRepository
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.infrastructure.observability.logging import log_transition
from obligation_engine.infrastructure.observability.metrics import (
    ledger_fetch_failures_counter,
    record_match,
    record_transitions,
)

router = APIRouter()


@router.post("/matches", response_model=MatchResponse)
def suggest_matches(
    body: TransactionSchema,
    repository: SqlObligationRepository = Depends(get_obligation_repository),
):
    """
    Rank PENDING obligations against one transaction.

    Read-only: the caller shows the best candidate to a person and calls
    /obligations/{id}/settle once confirmed.
    """
    transaction = body.to_domain()
    pending = repository.load_by_status(ObligationStatus.PENDING)

    candidates = find_matches(transaction, pending)
    record_match(candidates)

    instrument_match = None
    if transaction.instrument_number:
        result = match_instrument(transaction, pending)
        instrument_match = InstrumentMatchSchema(
            confidence=result.confidence.value,
            obligation_id=result.obligation.id if result.obligation else None,
            reason=result.reason,
            warning=result.warning,
        )

    schemas = [MatchCandidateSchema.from_domain(c) for c in candidates]
    return MatchResponse(
        transaction_id=transaction.transaction_id,
        candidates=schemas,
        best_match=schemas[0] if schemas else None,
        instrument_match=instrument_match,
    )


@router.get("/obligations/{obligation_id}/pairing-candidates", response_model=PairingCandidatesResponse)
async def pairing_candidates(
    obligation_id: uuid.UUID,
    request: Request,
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
    repository: SqlObligationRepository = Depends(get_obligation_repository),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """Unpaired ledger transactions on the obligation's account a person may pair it with"""
    try:
        obligation = lifecycle.get(obligation_id)
        if obligation.account_id is None:
            raise InvalidParameterError(f"Obligation {obligation_id} is not linked to an account")
        transactions = await ledger_client.get_transactions(obligation.account_id)
    except LedgerAPIError as e:
        ledger_fetch_failures_counter.inc()
        logging.error(f"Ledger API error: {e}", extra={"request_id": get_request_id(request)})
        raise to_http_error(e)
    except DomainException as e:
        raise to_http_error(e)

    candidates = find_pairing_candidates(
        obligation, transactions, repository.load_by_status(ObligationStatus.SETTLED)
    )
    return PairingCandidatesResponse(
        obligation_id=obligation_id,
        candidates=[PairingCandidateSchema.from_domain(c) for c in candidates],
        summary=pairing_summary(candidates),
    )


@router.post("/obligations/{obligation_id}/pair", response_model=ObligationResponse)
def pair_obligation(
    obligation_id: uuid.UUID,
    body: TransactionSchema,
    request: Request,
    db: Session = Depends(get_db),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """Settle the obligation with a transaction chosen by hand"""
    try:
        obligation = lifecycle.pair(obligation_id, body.to_domain())
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.warning(f"Pairing rejected: {e}", extra={"request_id": get_request_id(request)})
        raise to_http_error(e)

    record_transitions(ObligationStatus.SETTLED.value)
    log_transition(get_request_id(request), str(obligation_id), ObligationStatus.SETTLED.value)
    return ObligationResponse.from_domain(obligation)
