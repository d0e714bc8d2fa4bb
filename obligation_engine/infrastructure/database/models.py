"""SQLAlchemy ORM models for obligations and accounts"""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ObligationRecord(Base):
    """Persisted scheduled obligation"""

    __tablename__ = "obligation"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(8), nullable=False)
    counterparty = Column(Text, nullable=False, default="")
    category = Column(Text, nullable=False, default="")
    direction = Column(String(8), nullable=False)
    account_id = Column(Uuid, nullable=True, index=True)
    due_date = Column(Date, nullable=False, index=True)
    recurrence_pattern = Column(String(16), nullable=True)
    recurrence_interval = Column(Integer, nullable=True)
    recurrence_end_date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default="PENDING", index=True)
    linked_transaction_id = Column(Text, nullable=True)
    cleared_date = Column(Date, nullable=True)
    series_id = Column(Uuid, nullable=True, index=True)
    is_instrument = Column(Boolean, nullable=False, default=False)
    instrument_number = Column(Text, nullable=True)
    instrument_image_ref = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class AccountRecord(Base):
    """Account attributes the engine reads: balance, credit limit and loan terms"""

    __tablename__ = "account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    currency = Column(String(8), nullable=False)
    balance = Column(Numeric(18, 2), nullable=False, default=0)
    total_credit_limit = Column(Numeric(18, 2), nullable=True)
    loan_principal = Column(Numeric(18, 2), nullable=True)
    loan_installments = Column(Integer, nullable=True)
    loan_start_date = Column(Date, nullable=True)
