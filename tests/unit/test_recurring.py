"""Unit tests for turning a transaction into a recurring obligation"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from conftest import make_transaction
from obligation_engine.domain.exceptions import InvalidParameterError
from obligation_engine.domain.models import Direction, RecurrencePattern
from obligation_engine.domain.recurring import (
    RecurringSetup,
    default_recurring_setup,
    recurring_setup_errors,
    transaction_to_draft,
)

ACCOUNT_ID = uuid.uuid4()


def test_default_setup_is_monthly_from_next_month():
    setup = default_recurring_setup(make_transaction(date=date(2026, 1, 31)))

    assert setup.pattern == RecurrencePattern.MONTHLY
    assert setup.interval == 1
    assert setup.first_due_date == date(2026, 2, 28)


def test_transaction_to_draft_with_defaults():
    transaction = make_transaction(
        date=date(2026, 1, 15),
        amount=Decimal("399"),
        counterparty="Etisalat",
        account_id=ACCOUNT_ID,
    )

    draft = transaction_to_draft(transaction, category="Internet")

    assert draft.amount == Decimal("399")
    assert draft.counterparty == "Etisalat"
    assert draft.category == "Internet"
    assert draft.direction == Direction.DEBIT
    assert draft.account_id == ACCOUNT_ID
    assert draft.due_date == date(2026, 2, 15)
    assert draft.recurrence.pattern == RecurrencePattern.MONTHLY
    assert draft.note == "Created from transaction on 2026-01-15 - Etisalat"


def test_transaction_to_draft_with_custom_setup():
    transaction = make_transaction(counterparty="", account_id=ACCOUNT_ID, direction=Direction.CREDIT)
    setup = RecurringSetup(
        pattern=RecurrencePattern.WEEKLY,
        interval=2,
        first_due_date="2026-02-02",
        end_date="2026-06-30",
    )

    draft = transaction_to_draft(transaction, setup)

    assert draft.direction == Direction.CREDIT
    assert draft.due_date == date(2026, 2, 2)
    assert draft.recurrence.interval == 2
    assert draft.recurrence.end_date == date(2026, 6, 30)
    assert draft.note == f"Created from transaction on {transaction.date.isoformat()}"


@pytest.mark.parametrize(
    "setup,expected",
    [
        (RecurringSetup(RecurrencePattern.MONTHLY, 0, "2026-02-01"), "Recurrence interval must be between 1 and 365"),
        (RecurringSetup(RecurrencePattern.MONTHLY, 366, "2026-02-01"), "Recurrence interval must be between 1 and 365"),
        (RecurringSetup(RecurrencePattern.MONTHLY, 1, "2026-02-30"), "Invalid first due date"),
        (RecurringSetup(RecurrencePattern.MONTHLY, 1, ""), "First due date is required"),
        (RecurringSetup(RecurrencePattern.MONTHLY, 1, "2026-02-01", "2026-02-01"), "End date must be after first due date"),
        (RecurringSetup(RecurrencePattern.MONTHLY, 1, "2026-02-01", "soon"), "Invalid end date"),
    ],
)
def test_recurring_setup_errors(setup, expected):
    assert recurring_setup_errors(setup) == [expected]


def test_invalid_setup_or_missing_account_is_rejected():
    with pytest.raises(InvalidParameterError, match="between 1 and 365"):
        transaction_to_draft(
            make_transaction(account_id=ACCOUNT_ID),
            RecurringSetup(RecurrencePattern.MONTHLY, 0, "2026-02-01"),
        )
    with pytest.raises(InvalidParameterError, match="account"):
        transaction_to_draft(make_transaction())
