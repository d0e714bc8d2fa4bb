"""Turning a recorded ledger transaction into a recurring obligation"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from obligation_engine.domain.exceptions import InvalidParameterError
from obligation_engine.domain.models import ObligationDraft, Recurrence, RecurrencePattern, Transaction
from obligation_engine.utils.date_utils import add_months, parse_iso_date

MAX_INTERVAL = 365


@dataclass
class RecurringSetup:
    """Recurrence chosen for a bill created from a transaction"""

    pattern: RecurrencePattern
    interval: int
    first_due_date: Union[date, str]
    end_date: Optional[Union[date, str]] = None
    note: Optional[str] = None


def default_recurring_setup(transaction: Transaction) -> RecurringSetup:
    """Monthly, every month, first due one month after the transaction"""
    return RecurringSetup(
        pattern=RecurrencePattern.MONTHLY,
        interval=1,
        first_due_date=add_months(transaction.date, 1),
    )


def recurring_setup_errors(setup: RecurringSetup) -> List[str]:
    """Every problem with the setup; empty when it is usable"""
    errors = []

    first_due: Optional[date] = None
    if not setup.first_due_date:
        errors.append("First due date is required")
    else:
        try:
            first_due = parse_iso_date(setup.first_due_date)
        except ValueError:
            errors.append("Invalid first due date")

    if isinstance(setup.interval, bool) or not isinstance(setup.interval, int):
        errors.append("Recurrence interval must be an integer")
    elif not 1 <= setup.interval <= MAX_INTERVAL:
        errors.append(f"Recurrence interval must be between 1 and {MAX_INTERVAL}")

    if setup.end_date:
        try:
            end = parse_iso_date(setup.end_date)
        except ValueError:
            errors.append("Invalid end date")
        else:
            if first_due is not None and end <= first_due:
                errors.append("End date must be after first due date")

    return errors


def transaction_to_draft(
    transaction: Transaction,
    setup: Optional[RecurringSetup] = None,
    category: str = "",
) -> ObligationDraft:
    """
    Build a recurring obligation draft copying the transaction's amount,
    currency, counterparty, direction and account.

    Raises:
        InvalidParameterError: The transaction has no account, or the
            recurrence setup is invalid
    """
    if transaction.account_id is None:
        raise InvalidParameterError("Transaction must be associated with an account")

    setup = setup or default_recurring_setup(transaction)
    errors = recurring_setup_errors(setup)
    if errors:
        raise InvalidParameterError("; ".join(errors))

    note = setup.note
    if not note:
        note = f"Created from transaction on {transaction.date.isoformat()}"
        if transaction.counterparty:
            note += f" - {transaction.counterparty}"

    return ObligationDraft(
        amount=transaction.amount,
        currency=transaction.currency,
        counterparty=transaction.counterparty,
        category=category,
        direction=transaction.direction,
        due_date=parse_iso_date(setup.first_due_date),
        account_id=transaction.account_id,
        recurrence=Recurrence(
            pattern=setup.pattern,
            interval=setup.interval,
            end_date=parse_iso_date(setup.end_date) if setup.end_date else None,
        ),
        note=note,
    )
