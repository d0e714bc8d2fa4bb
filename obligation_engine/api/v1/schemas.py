"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from obligation_engine.domain.funds import FundsWarning
from obligation_engine.domain.instruments import SeriesValidationResult
from obligation_engine.domain.models import (
    Account,
    BalanceSnapshot,
    Direction,
    LoanTerms,
    MatchCandidate,
    Obligation,
    ObligationStatus,
    ReconciliationResult,
    Recurrence,
    RecurrencePattern,
    Transaction,
)
from obligation_engine.domain.pairing import PairingCandidate
from obligation_engine.domain.recurring import RecurringSetup

# TransactionSchema has a field named "date"; this alias keeps the annotation unambiguous
TransactionDate = date


class RecurrenceSchema(BaseModel):
    pattern: RecurrencePattern
    interval: int = Field(1, ge=1)
    end_date: Optional[date] = None


class ObligationCreate(BaseModel):
    """Request body for POST /v1/obligations"""

    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=1, max_length=8)
    counterparty: str = ""
    category: str = ""
    direction: Direction = Direction.DEBIT
    due_date: date
    account_id: Optional[uuid.UUID] = None
    recurrence: Optional[RecurrenceSchema] = None
    is_instrument: bool = False
    instrument_number: Optional[str] = None
    instrument_image_ref: Optional[str] = None
    note: Optional[str] = None

    def recurrence_model(self) -> Optional[Recurrence]:
        if self.recurrence is None:
            return None
        return Recurrence(
            pattern=self.recurrence.pattern,
            interval=self.recurrence.interval,
            end_date=self.recurrence.end_date,
        )


class ObligationResponse(BaseModel):
    id: uuid.UUID
    amount: Decimal
    currency: str
    counterparty: str
    category: str
    direction: Direction
    due_date: date
    status: ObligationStatus
    account_id: Optional[uuid.UUID] = None
    recurrence: Optional[RecurrenceSchema] = None
    series_id: Optional[uuid.UUID] = None
    is_instrument: bool = False
    instrument_number: Optional[str] = None
    instrument_image_ref: Optional[str] = None
    note: Optional[str] = None
    linked_transaction_id: Optional[str] = None
    cleared_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, obligation: Obligation) -> "ObligationResponse":
        recurrence = obligation.recurrence
        return cls(
            id=obligation.id,
            amount=obligation.amount,
            currency=obligation.currency,
            counterparty=obligation.counterparty,
            category=obligation.category,
            direction=obligation.direction,
            due_date=obligation.due_date,
            status=obligation.status,
            account_id=obligation.account_id,
            recurrence=(
                RecurrenceSchema(pattern=recurrence.pattern, interval=recurrence.interval, end_date=recurrence.end_date)
                if recurrence
                else None
            ),
            series_id=obligation.series_id,
            is_instrument=obligation.is_instrument,
            instrument_number=obligation.instrument_number,
            instrument_image_ref=obligation.instrument_image_ref,
            note=obligation.note,
            linked_transaction_id=obligation.linked_transaction_id,
            cleared_date=obligation.cleared_date,
            created_at=obligation.created_at,
            updated_at=obligation.updated_at,
        )


class ObligationUpdate(BaseModel):
    """Request body for PATCH /v1/obligations/{id}; omitted fields stay unchanged"""

    amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=1, max_length=8)
    counterparty: Optional[str] = None
    category: Optional[str] = None
    direction: Optional[Direction] = None
    due_date: Optional[date] = None
    account_id: Optional[uuid.UUID] = None
    recurrence: Optional[RecurrenceSchema] = None
    is_instrument: Optional[bool] = None
    instrument_number: Optional[str] = None
    instrument_image_ref: Optional[str] = None
    note: Optional[str] = None

    def changes(self) -> dict:
        changes = self.model_dump(exclude_unset=True)
        if "recurrence" in changes:
            recurrence = self.recurrence
            changes["recurrence"] = (
                Recurrence(pattern=recurrence.pattern, interval=recurrence.interval, end_date=recurrence.end_date)
                if recurrence
                else None
            )
        return changes


class SettleRequest(BaseModel):
    """Request body for POST /v1/obligations/{id}/settle"""

    transaction_id: str = Field(..., min_length=1)
    cleared_date: date


class SkipRequest(BaseModel):
    note: Optional[str] = None


class SweepResponse(BaseModel):
    swept: int
    obligations: List[ObligationResponse]


class SeriesPreviewRequest(BaseModel):
    """Request body for POST /v1/series/preview"""

    start_date: date
    cadence: RecurrencePattern = RecurrencePattern.MONTHLY
    interval: int = 1
    count: int


class SeriesPreviewResponse(BaseModel):
    dates: List[date]


class SeriesCreateRequest(SeriesPreviewRequest):
    """Request body for POST /v1/series"""

    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=1, max_length=8)
    counterparty: str = ""
    category: str = ""
    direction: Direction = Direction.DEBIT
    account_id: Optional[uuid.UUID] = None
    is_instrument: bool = False
    starting_instrument_number: Optional[int] = None
    instrument_images: Optional[List[str]] = None
    note: Optional[str] = None


class LoanSeriesRequest(BaseModel):
    """Request body for POST /v1/accounts/{id}/loan-series"""

    category: str = "Loan"
    counterparty: Optional[str] = None
    cadence: RecurrencePattern = RecurrencePattern.MONTHLY
    interval: int = 1


class SeriesResponse(BaseModel):
    series_id: uuid.UUID
    obligations: List[ObligationResponse]


class SeriesIssueSchema(BaseModel):
    level: str
    kind: str
    obligation_id: uuid.UUID
    instrument_number: Optional[str] = None
    message: str


class SeriesValidationResponse(BaseModel):
    """Response for GET /v1/series/{id}/validation"""

    series_id: uuid.UUID
    is_valid: bool
    has_numbering_issues: bool
    has_date_issues: bool
    issues: List[SeriesIssueSchema]
    suggested_next_number: Optional[str] = None
    suggested_next_due_date: Optional[date] = None

    @classmethod
    def from_domain(
        cls,
        series_id: uuid.UUID,
        result: SeriesValidationResult,
        next_number: Optional[str],
        next_due_date: Optional[date],
    ) -> "SeriesValidationResponse":
        return cls(
            series_id=series_id,
            is_valid=result.is_valid,
            has_numbering_issues=result.has_numbering_issues,
            has_date_issues=result.has_date_issues,
            issues=[
                SeriesIssueSchema(
                    level=issue.level.value,
                    kind=issue.kind.value,
                    obligation_id=issue.obligation.id,
                    instrument_number=issue.obligation.instrument_number,
                    message=issue.message,
                )
                for issue in result.issues
            ],
            suggested_next_number=next_number,
            suggested_next_due_date=next_due_date,
        )


class SnapshotSchema(BaseModel):
    available_balance: Optional[Decimal] = None
    available_credit: Optional[Decimal] = None


class TransactionSchema(BaseModel):
    """Ledger transaction offered to the matching engine"""

    transaction_id: str = Field(..., min_length=1)
    date: TransactionDate
    amount: Decimal
    currency: str
    counterparty: str = ""
    direction: Direction
    account_id: Optional[uuid.UUID] = None
    snapshot: Optional[SnapshotSchema] = None
    instrument_number: Optional[str] = None

    def to_domain(self) -> Transaction:
        return Transaction(
            transaction_id=self.transaction_id,
            date=self.date,
            amount=self.amount,
            currency=self.currency,
            counterparty=self.counterparty,
            direction=self.direction,
            account_id=self.account_id,
            snapshot=(
                BalanceSnapshot(
                    available_balance=self.snapshot.available_balance,
                    available_credit=self.snapshot.available_credit,
                )
                if self.snapshot
                else None
            ),
            instrument_number=self.instrument_number,
        )

    @classmethod
    def from_domain(cls, transaction: Transaction) -> "TransactionSchema":
        snapshot = transaction.snapshot
        return cls(
            transaction_id=transaction.transaction_id,
            date=transaction.date,
            amount=transaction.amount,
            currency=transaction.currency,
            counterparty=transaction.counterparty,
            direction=transaction.direction,
            account_id=transaction.account_id,
            snapshot=(
                SnapshotSchema(
                    available_balance=snapshot.available_balance,
                    available_credit=snapshot.available_credit,
                )
                if snapshot
                else None
            ),
            instrument_number=transaction.instrument_number,
        )


class MatchCandidateSchema(BaseModel):
    obligation: ObligationResponse
    score: int
    reasons: List[str]

    @classmethod
    def from_domain(cls, candidate: MatchCandidate) -> "MatchCandidateSchema":
        return cls(
            obligation=ObligationResponse.from_domain(candidate.obligation),
            score=candidate.score,
            reasons=candidate.reasons,
        )


class InstrumentMatchSchema(BaseModel):
    confidence: str
    obligation_id: Optional[uuid.UUID] = None
    reason: Optional[str] = None
    warning: Optional[str] = None


class MatchResponse(BaseModel):
    """Response for POST /v1/matches"""

    transaction_id: str
    candidates: List[MatchCandidateSchema]
    best_match: Optional[MatchCandidateSchema] = None
    instrument_match: Optional[InstrumentMatchSchema] = None


class LoanTermsSchema(BaseModel):
    principal: Decimal = Field(..., gt=0)
    installment_count: int = Field(..., ge=1)
    start_date: date


class AccountSchema(BaseModel):
    """Request body for PUT /v1/accounts/{id}"""

    name: str = Field(..., min_length=1)
    currency: str = Field(..., min_length=1, max_length=8)
    balance: Decimal = Decimal("0")
    total_credit_limit: Optional[Decimal] = None
    loan: Optional[LoanTermsSchema] = None

    def to_domain(self, account_id: uuid.UUID) -> Account:
        return Account(
            id=account_id,
            name=self.name,
            currency=self.currency,
            balance=self.balance,
            total_credit_limit=self.total_credit_limit,
            loan=(
                LoanTerms(
                    principal=self.loan.principal,
                    installment_count=self.loan.installment_count,
                    start_date=self.loan.start_date,
                )
                if self.loan
                else None
            ),
        )


class AccountResponse(AccountSchema):
    id: uuid.UUID

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        loan = account.loan
        return cls(
            id=account.id,
            name=account.name,
            currency=account.currency,
            balance=account.balance,
            total_credit_limit=account.total_credit_limit,
            loan=(
                LoanTermsSchema(
                    principal=loan.principal,
                    installment_count=loan.installment_count,
                    start_date=loan.start_date,
                )
                if loan
                else None
            ),
        )


class ReconciliationResponse(BaseModel):
    """Response for GET /v1/accounts/{id}/reconciliation"""

    account_id: uuid.UUID
    current_balance: Decimal
    expected_balance: Decimal
    difference: Decimal
    last_snapshot: Optional[TransactionSchema] = None
    needs_reconciliation: bool
    severity: str

    @classmethod
    def from_domain(cls, account_id: uuid.UUID, result: ReconciliationResult) -> "ReconciliationResponse":
        return cls(
            account_id=account_id,
            current_balance=result.current_balance,
            expected_balance=result.expected_balance,
            difference=result.difference,
            last_snapshot=TransactionSchema.from_domain(result.last_snapshot) if result.last_snapshot else None,
            needs_reconciliation=result.needs_reconciliation,
            severity=result.severity.value,
        )


class FundsWarningResponse(BaseModel):
    """Response for GET /v1/accounts/{id}/funds-warning"""

    account_id: uuid.UUID
    insufficient: bool
    current_balance: Decimal
    upcoming_total: Decimal = Decimal("0")
    shortage: Decimal = Decimal("0")
    days_until_first: Optional[int] = None
    affected: List[ObligationResponse] = []

    @classmethod
    def from_domain(cls, account: Account, warning: Optional[FundsWarning]) -> "FundsWarningResponse":
        if warning is None:
            return cls(account_id=account.id, insufficient=False, current_balance=account.balance)
        return cls(
            account_id=account.id,
            insufficient=True,
            current_balance=warning.current_balance,
            upcoming_total=warning.upcoming_total,
            shortage=warning.shortage,
            days_until_first=warning.days_until_first,
            affected=[ObligationResponse.from_domain(o) for o in warning.affected],
        )


class RecurringSetupSchema(BaseModel):
    pattern: RecurrencePattern = RecurrencePattern.MONTHLY
    interval: int = 1
    first_due_date: date
    end_date: Optional[date] = None
    note: Optional[str] = None

    def to_domain(self) -> RecurringSetup:
        return RecurringSetup(
            pattern=self.pattern,
            interval=self.interval,
            first_due_date=self.first_due_date,
            end_date=self.end_date,
            note=self.note,
        )


class FromTransactionRequest(BaseModel):
    """Request body for POST /v1/obligations/from-transaction"""

    transaction: TransactionSchema
    category: str = ""
    recurrence: Optional[RecurringSetupSchema] = None


class PairingCandidateSchema(BaseModel):
    transaction: TransactionSchema
    score: int
    confidence: str
    reasons: List[str]

    @classmethod
    def from_domain(cls, candidate: PairingCandidate) -> "PairingCandidateSchema":
        return cls(
            transaction=TransactionSchema.from_domain(candidate.transaction),
            score=candidate.score,
            confidence=candidate.confidence.value,
            reasons=candidate.reasons,
        )


class PairingCandidatesResponse(BaseModel):
    """Response for GET /v1/obligations/{id}/pairing-candidates"""

    obligation_id: uuid.UUID
    candidates: List[PairingCandidateSchema]
    summary: Dict[str, int]
