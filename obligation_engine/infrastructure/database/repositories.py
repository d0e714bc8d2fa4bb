"""Data access layer mapping ORM rows to domain dataclasses"""

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from obligation_engine.domain.models import (
    Account,
    Direction,
    LoanTerms,
    Obligation,
    ObligationStatus,
    Recurrence,
    RecurrencePattern,
)
from obligation_engine.domain.repositories import AccountRepository, ObligationRepository
from obligation_engine.infrastructure.database.models import AccountRecord, ObligationRecord


def _to_obligation(row: ObligationRecord) -> Obligation:
    recurrence = None
    if row.recurrence_pattern:
        recurrence = Recurrence(
            pattern=RecurrencePattern(row.recurrence_pattern),
            interval=row.recurrence_interval or 1,
            end_date=row.recurrence_end_date,
        )

    return Obligation(
        id=row.id,
        amount=Decimal(row.amount),
        currency=row.currency,
        counterparty=row.counterparty,
        category=row.category,
        direction=Direction(row.direction),
        due_date=row.due_date,
        status=ObligationStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
        account_id=row.account_id,
        recurrence=recurrence,
        series_id=row.series_id,
        is_instrument=bool(row.is_instrument),
        instrument_number=row.instrument_number,
        instrument_image_ref=row.instrument_image_ref,
        note=row.note,
        linked_transaction_id=row.linked_transaction_id,
        cleared_date=row.cleared_date,
    )


def _to_record(obligation: Obligation) -> ObligationRecord:
    recurrence = obligation.recurrence
    return ObligationRecord(
        id=obligation.id,
        amount=obligation.amount,
        currency=obligation.currency,
        counterparty=obligation.counterparty,
        category=obligation.category,
        direction=obligation.direction.value,
        account_id=obligation.account_id,
        due_date=obligation.due_date,
        recurrence_pattern=recurrence.pattern.value if recurrence else None,
        recurrence_interval=recurrence.interval if recurrence else None,
        recurrence_end_date=recurrence.end_date if recurrence else None,
        status=obligation.status.value,
        linked_transaction_id=obligation.linked_transaction_id,
        cleared_date=obligation.cleared_date,
        series_id=obligation.series_id,
        is_instrument=obligation.is_instrument,
        instrument_number=obligation.instrument_number,
        instrument_image_ref=obligation.instrument_image_ref,
        note=obligation.note,
        created_at=obligation.created_at,
        updated_at=obligation.updated_at,
    )


class SqlObligationRepository(ObligationRepository):
    """Repository for scheduled obligations; the caller owns commit/rollback"""

    def __init__(self, db: Session):
        self.db = db

    def load_all(self) -> List[Obligation]:
        rows = self.db.query(ObligationRecord).order_by(ObligationRecord.created_at).all()
        return [_to_obligation(r) for r in rows]

    def load_by_id(self, obligation_id: uuid.UUID, lock: bool = False) -> Optional[Obligation]:
        query = self.db.query(ObligationRecord).filter(ObligationRecord.id == obligation_id)
        if lock:
            # Row lock until commit so a concurrent settle observes the new status
            query = query.with_for_update()
        row = query.first()
        return _to_obligation(row) if row else None

    def save(self, obligation: Obligation) -> None:
        self.db.merge(_to_record(obligation))
        self.db.flush()

    def delete(self, obligation_id: uuid.UUID) -> None:
        self.db.query(ObligationRecord).filter(ObligationRecord.id == obligation_id).delete()
        self.db.flush()

    def load_by_series(self, series_id: uuid.UUID) -> List[Obligation]:
        rows = (
            self.db.query(ObligationRecord)
            .filter(ObligationRecord.series_id == series_id)
            .order_by(ObligationRecord.due_date, ObligationRecord.created_at)
            .all()
        )
        return [_to_obligation(r) for r in rows]

    def load_by_status(self, status: ObligationStatus) -> List[Obligation]:
        rows = (
            self.db.query(ObligationRecord)
            .filter(ObligationRecord.status == status.value)
            .order_by(ObligationRecord.created_at)
            .all()
        )
        return [_to_obligation(r) for r in rows]

    def load_by_linked_transaction(self, transaction_id: str) -> List[Obligation]:
        rows = (
            self.db.query(ObligationRecord)
            .filter(ObligationRecord.linked_transaction_id == transaction_id)
            .order_by(ObligationRecord.created_at)
            .all()
        )
        return [_to_obligation(r) for r in rows]


class SqlAccountRepository(AccountRepository):
    """Repository for account balance, credit limit and loan attributes"""

    def __init__(self, db: Session):
        self.db = db

    def load_account(self, account_id: uuid.UUID) -> Optional[Account]:
        row = self.db.query(AccountRecord).filter(AccountRecord.id == account_id).first()
        return self._to_account(row) if row else None

    def load_accounts(self) -> List[Account]:
        return [self._to_account(r) for r in self.db.query(AccountRecord).order_by(AccountRecord.name).all()]

    def save_account(self, account: Account) -> None:
        loan = account.loan
        self.db.merge(
            AccountRecord(
                id=account.id,
                name=account.name,
                currency=account.currency,
                balance=account.balance,
                total_credit_limit=account.total_credit_limit,
                loan_principal=loan.principal if loan else None,
                loan_installments=loan.installment_count if loan else None,
                loan_start_date=loan.start_date if loan else None,
            )
        )
        self.db.flush()

    @staticmethod
    def _to_account(row: AccountRecord) -> Account:
        loan = None
        if row.loan_principal is not None and row.loan_installments and row.loan_start_date:
            loan = LoanTerms(
                principal=Decimal(row.loan_principal),
                installment_count=row.loan_installments,
                start_date=row.loan_start_date,
            )
        return Account(
            id=row.id,
            name=row.name,
            currency=row.currency,
            balance=Decimal(row.balance),
            total_credit_limit=Decimal(row.total_credit_limit) if row.total_credit_limit is not None else None,
            loan=loan,
        )
