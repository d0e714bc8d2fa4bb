"""Account endpoints: balance reconciliation, funds look-ahead and loan installment series"""

import logging
import time
import uuid
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from obligation_engine.api.dependencies import (
    get_account_repository,
    get_ledger_client,
    get_lifecycle,
    get_obligation_repository,
    get_request_id,
    get_today,
)
from obligation_engine.api.v1.errors import to_http_error
from obligation_engine.api.v1.schemas import (
    AccountResponse,
    AccountSchema,
    FundsWarningResponse,
    LoanSeriesRequest,
    ObligationResponse,
    ReconciliationResponse,
    SeriesResponse,
)
from obligation_engine.config import settings
from obligation_engine.domain import reconciliation
from obligation_engine.domain.exceptions import DomainException, LedgerAPIError
from obligation_engine.domain.funds import all_insufficient_funds_warnings, check_insufficient_funds
from obligation_engine.domain.lifecycle import ObligationLifecycle
from obligation_engine.domain.models import Account
from obligation_engine.domain.series import build_loan_series
from obligation_engine.infrastructure.clients.ledger import LedgerClient
from obligation_engine.infrastructure.database.repositories import (
    SqlAccountRepository,
    SqlObligationRepository,
)
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.infrastructure.observability.logging import log_reconciliation
from obligation_engine.infrastructure.observability.metrics import (
    ledger_fetch_failures_counter,
    obligations_created_counter,
    record_reconciliation,
)

router = APIRouter()


def _require_account(accounts: SqlAccountRepository, account_id: uuid.UUID) -> Account:
    account = accounts.load_account(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Account {account_id} not found")
    return account


@router.put("/accounts/{account_id}", response_model=AccountResponse)
def upsert_account(
    account_id: uuid.UUID,
    body: AccountSchema,
    db: Session = Depends(get_db),
    accounts: SqlAccountRepository = Depends(get_account_repository),
):
    """Record the account attributes the engine reads (balance, credit limit, loan terms)"""
    account = body.to_domain(account_id)
    accounts.save_account(account)
    db.commit()
    return AccountResponse.from_domain(account)


@router.get("/accounts/reconciliation", response_model=List[ReconciliationResponse])
async def reconcile_all_accounts(
    request: Request,
    accounts: SqlAccountRepository = Depends(get_account_repository),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """Accounts whose stored balance has drifted from the ledger"""
    request_id = get_request_id(request)
    try:
        flagged = await reconciliation.reconcile_all_accounts(accounts, ledger_client)
    except LedgerAPIError as e:
        ledger_fetch_failures_counter.inc()
        logging.error(f"Ledger API error: {e}", extra={"request_id": request_id})
        raise to_http_error(e)

    for result in flagged.values():
        record_reconciliation(result.severity)

    return [ReconciliationResponse.from_domain(account_id, result) for account_id, result in flagged.items()]


@router.get("/accounts/funds-warnings", response_model=List[FundsWarningResponse])
def all_funds_warnings(
    days: int = Query(settings.funds_lookahead_days, ge=0, le=366),
    today: date = Depends(get_today),
    accounts: SqlAccountRepository = Depends(get_account_repository),
    obligations: SqlObligationRepository = Depends(get_obligation_repository),
):
    """Every account whose upcoming debit obligations would overdraw it"""
    all_accounts = accounts.load_accounts()
    by_id = {a.id: a for a in all_accounts}
    warnings = all_insufficient_funds_warnings(all_accounts, obligations.load_all(), today, days)
    return [FundsWarningResponse.from_domain(by_id[w.account_id], w) for w in warnings]


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(account_id: uuid.UUID, accounts: SqlAccountRepository = Depends(get_account_repository)):
    return AccountResponse.from_domain(_require_account(accounts, account_id))


@router.get("/accounts/{account_id}/reconciliation", response_model=ReconciliationResponse)
async def reconcile_account(
    account_id: uuid.UUID,
    request: Request,
    accounts: SqlAccountRepository = Depends(get_account_repository),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """
    Compare the stored balance with the balance projected from the ledger.

    Flow:
    1. Load stored account attributes
    2. Fetch the account's transactions from the ledger API
    3. Project from the latest balance snapshot and classify drift
    4. Report only - no balance is written back
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = await reconciliation.reconcile_account(account_id, accounts, ledger_client)
    except LedgerAPIError as e:
        ledger_fetch_failures_counter.inc()
        logging.error(f"Ledger API error: {e}", extra={"request_id": request_id})
        raise to_http_error(e)
    except DomainException as e:
        raise to_http_error(e)

    duration_ms = (time.time() - start_time) * 1000
    record_reconciliation(result.severity)
    log_reconciliation(request_id, str(account_id), result, duration_ms)

    return ReconciliationResponse.from_domain(account_id, result)


@router.get("/accounts/{account_id}/funds-warning", response_model=FundsWarningResponse)
def funds_warning(
    account_id: uuid.UUID,
    days: int = Query(settings.funds_lookahead_days, ge=0, le=366),
    today: date = Depends(get_today),
    accounts: SqlAccountRepository = Depends(get_account_repository),
    obligations: SqlObligationRepository = Depends(get_obligation_repository),
):
    """Would the upcoming debit obligations on this account overdraw it?"""
    account = _require_account(accounts, account_id)
    warning = check_insufficient_funds(account, obligations.load_all(), today, days)
    return FundsWarningResponse.from_domain(account, warning)


@router.post("/accounts/{account_id}/loan-series", response_model=SeriesResponse, status_code=201)
def create_loan_series(
    account_id: uuid.UUID,
    body: LoanSeriesRequest,
    db: Session = Depends(get_db),
    accounts: SqlAccountRepository = Depends(get_account_repository),
    lifecycle: ObligationLifecycle = Depends(get_lifecycle),
):
    """Generate one obligation per loan installment from the account's loan terms"""
    account = _require_account(accounts, account_id)
    try:
        plan = build_loan_series(
            account,
            category=body.category,
            counterparty=body.counterparty,
            cadence=body.cadence,
            interval=body.interval,
        )
        obligations = lifecycle.create_series(plan)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_error(e)

    obligations_created_counter.labels(source="loan").inc(len(obligations))
    return SeriesResponse(
        series_id=plan.series_id,
        obligations=[ObligationResponse.from_domain(o) for o in obligations],
    )
