"""Insufficient funds look-ahead for accounts with upcoming debit obligations"""

import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from obligation_engine.domain.models import Account, Direction, Obligation, ObligationStatus


@dataclass
class FundsWarning:
    """Upcoming obligations on an account exceed its stored balance"""

    account_id: uuid.UUID
    account_name: str
    current_balance: Decimal
    upcoming_total: Decimal
    shortage: Decimal
    affected: List[Obligation]
    days_until_first: int


def check_insufficient_funds(
    account: Account,
    obligations: Iterable[Obligation],
    today: date,
    days_ahead: int = 30,
) -> Optional[FundsWarning]:
    """
    Compare the stored balance with PENDING debit obligations due in [today, today + days_ahead].

    Returns:
        FundsWarning if the balance would go negative, None otherwise
    """
    horizon = today + timedelta(days=days_ahead)
    upcoming = sorted(
        (
            o
            for o in obligations
            if o.account_id == account.id
            and o.status == ObligationStatus.PENDING
            and o.direction == Direction.DEBIT
            and today <= o.due_date <= horizon
        ),
        key=lambda o: o.due_date,
    )
    if not upcoming:
        return None

    total = sum((o.amount for o in upcoming), Decimal("0"))
    projected = account.balance - total
    if projected >= 0:
        return None

    return FundsWarning(
        account_id=account.id,
        account_name=account.name,
        current_balance=account.balance,
        upcoming_total=total,
        shortage=-projected,
        affected=upcoming,
        days_until_first=(upcoming[0].due_date - today).days,
    )


def all_insufficient_funds_warnings(
    accounts: Iterable[Account],
    obligations: List[Obligation],
    today: date,
    days_ahead: int = 30,
) -> List[FundsWarning]:
    warnings = []
    for account in accounts:
        warning = check_insufficient_funds(account, obligations, today, days_ahead)
        if warning:
            warnings.append(warning)
    return warnings
