"""Batch series generation for recurring obligations (postdated cheques, loan installments)"""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import List, Optional, Union

from obligation_engine.domain.exceptions import InvalidParameterError
from obligation_engine.domain.models import (
    Account,
    Direction,
    ObligationDraft,
    RecurrencePattern,
    SeriesPlan,
)
from obligation_engine.utils.date_utils import add_days, add_months, parse_iso_date

CENT = Decimal("0.01")


@dataclass
class SeriesTemplate:
    """Fields shared by every obligation in a generated series"""

    amount: Decimal
    currency: str
    counterparty: str
    category: str
    direction: Direction = Direction.DEBIT
    account_id: Optional[uuid.UUID] = None
    is_instrument: bool = False
    starting_instrument_number: Optional[int] = None
    instrument_images: Optional[List[str]] = None
    note: Optional[str] = None


def _check_positive_int(name: str, value: object) -> int:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise InvalidParameterError(f"{name} must be >= 1, got {value}")
    return value


def _advance(start: date, cadence: RecurrencePattern, units: int) -> date:
    if cadence == RecurrencePattern.MONTHLY:
        return add_months(start, units)
    if cadence == RecurrencePattern.WEEKLY:
        return add_days(start, units * 7)
    if cadence == RecurrencePattern.CUSTOM:
        return add_days(start, units)
    raise InvalidParameterError(f"Cadence {cadence.value} does not generate a series")


def preview_dates(
    start_date: Union[date, str],
    cadence: RecurrencePattern,
    interval: int,
    count: int,
) -> List[date]:
    """
    Compute the due dates of a series without creating anything.

    Date i is start_date advanced by i * interval units of the cadence
    (months, weeks or days). Each date is computed from start_date, so a
    month-end start stays anchored: 31 Jan -> 28/29 Feb -> 31 Mar.

    Raises:
        InvalidParameterError: interval or count below 1, unparseable start
            date, a non-repeating cadence, or dates beyond year 9999
    """
    _check_positive_int("interval", interval)
    _check_positive_int("count", count)
    try:
        start = parse_iso_date(start_date)
        cadence = RecurrencePattern(cadence)
    except ValueError as e:
        raise InvalidParameterError(str(e)) from e

    try:
        return [_advance(start, cadence, index * interval) for index in range(count)]
    except (ValueError, OverflowError) as e:
        raise InvalidParameterError(f"Series runs past the supported date range: {e}") from e


def build_series(
    template: SeriesTemplate,
    start_date: Union[date, str],
    cadence: RecurrencePattern,
    interval: int,
    count: int,
) -> SeriesPlan:
    """
    Expand a template into one draft per generated date, all sharing a new series id.

    Instrument numbers are assigned sequentially from starting_instrument_number;
    instrument_images[i] (when present) goes to the i-th occurrence.
    Nothing is persisted - pass the plan to ObligationLifecycle.create_series.
    """
    dates = preview_dates(start_date, cadence, interval, count)
    series_id = uuid.uuid4()
    images = template.instrument_images or []

    drafts = []
    for index, due_date in enumerate(dates):
        instrument_number = (
            str(template.starting_instrument_number + index)
            if template.starting_instrument_number is not None
            else None
        )
        drafts.append(
            ObligationDraft(
                amount=template.amount,
                currency=template.currency,
                counterparty=template.counterparty,
                category=template.category,
                direction=template.direction,
                due_date=due_date,
                account_id=template.account_id,
                series_id=series_id,
                is_instrument=template.is_instrument,
                instrument_number=instrument_number,
                instrument_image_ref=images[index] if index < len(images) else None,
                note=template.note or f"Payment {index + 1} of {count}",
            )
        )

    return SeriesPlan(series_id=series_id, drafts=drafts)


def split_principal(principal: Decimal, installment_count: int) -> List[Decimal]:
    """
    Split a principal into equal installments.

    Last installment absorbs the rounding remainder so the total is exact:
        1000.00 / 3 -> [333.33, 333.33, 333.34]
    """
    _check_positive_int("installment_count", installment_count)
    if principal <= 0:
        raise InvalidParameterError(f"principal must be positive, got {principal}")

    base_amount = (principal / installment_count).quantize(CENT, rounding=ROUND_DOWN)
    remainder = principal - base_amount * installment_count

    return [
        base_amount + (remainder if i == installment_count - 1 else Decimal("0"))
        for i in range(installment_count)
    ]


def build_loan_series(
    account: Account,
    category: str = "Loan",
    counterparty: Optional[str] = None,
    cadence: RecurrencePattern = RecurrencePattern.MONTHLY,
    interval: int = 1,
) -> SeriesPlan:
    """
    Derive installment drafts from an account's loan terms.

    Example:
        principal 3000, 4 installments, start 2026-02-01, monthly
        -> 750 due on Feb 1, Mar 1, Apr 1 and May 1
    """
    if account.loan is None:
        raise InvalidParameterError(f"Account {account.id} has no loan terms")

    loan = account.loan
    amounts = split_principal(loan.principal, loan.installment_count)
    dates = preview_dates(loan.start_date, cadence, interval, loan.installment_count)
    series_id = uuid.uuid4()

    drafts = [
        ObligationDraft(
            amount=amount,
            currency=account.currency,
            counterparty=counterparty or account.name,
            category=category,
            direction=Direction.DEBIT,
            due_date=due_date,
            account_id=account.id,
            series_id=series_id,
            note=f"Installment {index + 1} of {loan.installment_count}",
        )
        for index, (amount, due_date) in enumerate(zip(amounts, dates))
    ]

    return SeriesPlan(series_id=series_id, drafts=drafts)
