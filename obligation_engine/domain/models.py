"""Domain models - pure Python dataclasses representing obligations, accounts and ledger records"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional


class ObligationStatus(str, Enum):
    """Lifecycle status of a scheduled obligation"""

    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    SETTLED = "SETTLED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


# Every status must appear here; terminal statuses map to an empty set.
ALLOWED_TRANSITIONS: Dict[ObligationStatus, FrozenSet[ObligationStatus]] = {
    ObligationStatus.PENDING: frozenset(
        {ObligationStatus.OVERDUE, ObligationStatus.SETTLED, ObligationStatus.SKIPPED}
    ),
    ObligationStatus.OVERDUE: frozenset({ObligationStatus.SETTLED, ObligationStatus.SKIPPED}),
    ObligationStatus.SETTLED: frozenset(),
    ObligationStatus.SKIPPED: frozenset(),
}

class Direction(str, Enum):
    """Money flow direction: DEBIT leaves the account, CREDIT enters it"""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class RecurrencePattern(str, Enum):
    ONCE = "ONCE"
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    CUSTOM = "CUSTOM"  # interval counted in days


class Severity(str, Enum):
    """Reconciliation drift severity"""

    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


@dataclass
class Recurrence:
    """Recurrence descriptor attached to a single obligation"""

    pattern: RecurrencePattern
    interval: int = 1
    end_date: Optional[date] = None


@dataclass
class ObligationDraft:
    """Everything needed to create an obligation, before it has an id or status"""

    amount: Decimal
    currency: str
    counterparty: str
    category: str
    direction: Direction
    due_date: date
    account_id: Optional[uuid.UUID] = None
    recurrence: Optional[Recurrence] = None
    series_id: Optional[uuid.UUID] = None
    is_instrument: bool = False
    instrument_number: Optional[str] = None
    instrument_image_ref: Optional[str] = None
    note: Optional[str] = None


@dataclass
class Obligation:
    """A single expected future payment"""

    id: uuid.UUID
    amount: Decimal
    currency: str
    counterparty: str
    category: str
    direction: Direction
    due_date: date
    status: ObligationStatus
    created_at: datetime
    updated_at: datetime
    account_id: Optional[uuid.UUID] = None
    recurrence: Optional[Recurrence] = None
    series_id: Optional[uuid.UUID] = None
    is_instrument: bool = False
    instrument_number: Optional[str] = None
    instrument_image_ref: Optional[str] = None
    note: Optional[str] = None
    linked_transaction_id: Optional[str] = None
    cleared_date: Optional[date] = None

    def is_consistent(self) -> bool:
        """Settlement fields are present iff the obligation is SETTLED"""
        has_link = self.linked_transaction_id is not None
        has_cleared = self.cleared_date is not None
        if self.status == ObligationStatus.SETTLED:
            return has_link and has_cleared
        return not has_link and not has_cleared


@dataclass
class LoanTerms:
    """Loan attributes carried by a loan/BNPL account"""

    principal: Decimal
    installment_count: int
    start_date: date


@dataclass
class Account:
    """Account as seen by the engine: stored balance plus optional credit and loan attributes"""

    id: uuid.UUID
    name: str
    currency: str
    balance: Decimal  # positive = asset, negative = liability
    total_credit_limit: Optional[Decimal] = None
    loan: Optional[LoanTerms] = None


@dataclass
class BalanceSnapshot:
    """Externally reported balance figures captured with a transaction"""

    available_balance: Optional[Decimal] = None
    available_credit: Optional[Decimal] = None


@dataclass
class Transaction:
    """Already-settled ledger event from the external transaction ledger"""

    transaction_id: str
    date: date
    amount: Decimal
    currency: str
    counterparty: str
    direction: Direction
    account_id: Optional[uuid.UUID] = None
    snapshot: Optional[BalanceSnapshot] = None
    instrument_number: Optional[str] = None


@dataclass
class MatchCandidate:
    """An obligation the transaction might settle, with its score breakdown"""

    obligation: Obligation
    score: int
    reasons: List[str] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    """Output of a balance drift check"""

    current_balance: Decimal
    expected_balance: Decimal
    difference: Decimal
    last_snapshot: Optional[Transaction]
    needs_reconciliation: bool
    severity: Severity


@dataclass
class SeriesPlan:
    """In-memory batch of drafts sharing one series id, ready to be created"""

    series_id: uuid.UUID
    drafts: List[ObligationDraft]

    @property
    def due_dates(self) -> List[date]:
        return [draft.due_date for draft in self.drafts]
