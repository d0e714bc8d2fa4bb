"""Checks and helpers for instrument (cheque) series"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from obligation_engine.domain.models import Obligation, ObligationStatus, Transaction
from obligation_engine.utils.date_utils import add_months

NUMBER_GAP_WARNING = 3
MIN_DATE_TOLERANCE_DAYS = 3
DATE_TOLERANCE_RATIO = 0.2
AMOUNT_EPSILON = Decimal("0.01")
CLOSE_AMOUNT_PERCENT = Decimal("5")


class IssueLevel(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


class IssueKind(str, Enum):
    NUMBERING = "numbering"
    DATE = "date"


class MatchConfidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


@dataclass
class SeriesIssue:
    level: IssueLevel
    kind: IssueKind
    obligation: Obligation
    message: str


@dataclass
class SeriesValidationResult:
    issues: List[SeriesIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(issue.level == IssueLevel.ERROR for issue in self.issues)

    @property
    def has_numbering_issues(self) -> bool:
        return any(issue.kind == IssueKind.NUMBERING for issue in self.issues)

    @property
    def has_date_issues(self) -> bool:
        return any(issue.kind == IssueKind.DATE for issue in self.issues)


@dataclass
class InstrumentMatch:
    """Outcome of matching a transaction to a scheduled instrument by its number"""

    confidence: MatchConfidence
    obligation: Optional[Obligation] = None
    reason: Optional[str] = None
    warning: Optional[str] = None


def _numeric(number: Optional[str]) -> Optional[int]:
    if number is None:
        return None
    try:
        return int(number.strip())
    except ValueError:
        return None


def _intervals(dates: List[date]) -> List[int]:
    return [(later - earlier).days for earlier, later in zip(dates, dates[1:])]


def _check_numbering(ordered: List[Obligation], issues: List[SeriesIssue]) -> None:
    numbered = [o for o in ordered if _numeric(o.instrument_number) is not None]
    for current, following in zip(numbered, numbered[1:]):
        current_num = _numeric(current.instrument_number)
        next_num = _numeric(following.instrument_number)
        if next_num < current_num:
            issues.append(
                SeriesIssue(
                    IssueLevel.ERROR,
                    IssueKind.NUMBERING,
                    following,
                    f"Instrument #{following.instrument_number} has a lower number than "
                    f"previous #{current.instrument_number}",
                )
            )
        elif next_num - current_num > NUMBER_GAP_WARNING:
            issues.append(
                SeriesIssue(
                    IssueLevel.WARNING,
                    IssueKind.NUMBERING,
                    following,
                    f"Large gap in numbering: #{current.instrument_number} to "
                    f"#{following.instrument_number} ({next_num - current_num - 1} numbers skipped)",
                )
            )


def _check_dates(ordered: List[Obligation], issues: List[SeriesIssue]) -> None:
    if len(ordered) < 2:
        return

    gaps = _intervals([o.due_date for o in ordered])
    # Expected cadence comes from the first (up to) three intervals
    reference = gaps[:3]
    average = sum(reference) / len(reference)
    tolerance = max(MIN_DATE_TOLERANCE_DAYS, average * DATE_TOLERANCE_RATIO)

    for previous, current, gap in zip(ordered, ordered[1:], gaps):
        if gap == 0:
            issues.append(
                SeriesIssue(
                    IssueLevel.WARNING,
                    IssueKind.DATE,
                    current,
                    f"Two instruments share the date {current.due_date.isoformat()}",
                )
            )
        elif len(reference) >= 2 and abs(gap - average) > tolerance:
            issues.append(
                SeriesIssue(
                    IssueLevel.WARNING,
                    IssueKind.DATE,
                    current,
                    f"Unusual date interval: {gap} days (expected ~{round(average)} days)",
                )
            )


def _check_duplicates(ordered: List[Obligation], issues: List[SeriesIssue]) -> None:
    by_number: Dict[str, List[Obligation]] = {}
    for obligation in ordered:
        if obligation.instrument_number:
            by_number.setdefault(obligation.instrument_number.strip(), []).append(obligation)

    for number, duplicates in by_number.items():
        if len(duplicates) > 1:
            for obligation in duplicates:
                issues.append(
                    SeriesIssue(
                        IssueLevel.ERROR,
                        IssueKind.NUMBERING,
                        obligation,
                        f"Duplicate instrument number #{number} appears {len(duplicates)} times",
                    )
                )


def validate_series(obligations: Iterable[Obligation]) -> SeriesValidationResult:
    """
    Check a series for sane numbering and date progression.

    Series are inspected in due-date order:
    - decreasing instrument numbers: error; gaps above 3: warning
    - equal dates: warning; intervals far from the usual cadence: warning
    - duplicate numbers: error on every occurrence
    """
    ordered = sorted(obligations, key=lambda o: o.due_date)
    issues: List[SeriesIssue] = []

    _check_numbering(ordered, issues)
    _check_dates(ordered, issues)
    _check_duplicates(ordered, issues)

    return SeriesValidationResult(issues=issues)


def suggest_next_number(obligations: Iterable[Obligation]) -> Optional[str]:
    """Highest numeric instrument number + 1"""
    numbers = [n for n in (_numeric(o.instrument_number) for o in obligations) if n is not None]
    if not numbers:
        return None
    return str(max(numbers) + 1)


def suggest_next_due_date(obligations: Iterable[Obligation]) -> Optional[date]:
    """Last due date plus the average of the last (up to) three intervals; one month for a lone date"""
    dates = sorted(o.due_date for o in obligations)
    if not dates:
        return None
    if len(dates) == 1:
        return add_months(dates[0], 1)

    recent = _intervals(dates[-4:])
    return dates[-1] + timedelta(days=round(sum(recent) / len(recent)))


def _percent_off(expected: Decimal, actual: Decimal) -> Decimal:
    if expected == 0:
        return Decimal("100")
    return abs(expected - actual) / abs(expected) * 100


def match_instrument(transaction: Transaction, obligations: Iterable[Obligation]) -> InstrumentMatch:
    """
    Two-factor match: instrument number first, amount as verification.

    Only PENDING instrument obligations carrying the same number are considered.
    """
    number = (transaction.instrument_number or "").strip()
    if not number:
        return InstrumentMatch(MatchConfidence.NONE)

    same_number = [
        o
        for o in obligations
        if o.is_instrument
        and o.status == ObligationStatus.PENDING
        and (o.instrument_number or "").strip() == number
    ]
    if not same_number:
        return InstrumentMatch(
            MatchConfidence.NONE,
            warning=f"No pending scheduled instrument found with number {number}",
        )

    for obligation in same_number:
        if abs(obligation.amount - transaction.amount) < AMOUNT_EPSILON:
            return InstrumentMatch(
                MatchConfidence.HIGH,
                obligation,
                reason=f"Instrument #{number} matches with exact amount {transaction.amount:.2f}",
            )

    closest = min(same_number, key=lambda o: abs(o.amount - transaction.amount))
    percent = _percent_off(closest.amount, transaction.amount)
    difference = abs(closest.amount - transaction.amount)

    if percent <= CLOSE_AMOUNT_PERCENT:
        return InstrumentMatch(
            MatchConfidence.MEDIUM,
            closest,
            reason=(
                f"Instrument #{number} matches but amount differs slightly "
                f"(expected {closest.amount:.2f}, actual {transaction.amount:.2f})"
            ),
        )

    return InstrumentMatch(
        MatchConfidence.LOW,
        closest,
        reason=f"Instrument #{number} found but amount mismatch is significant",
        warning=(
            f"Expected amount {closest.amount:.2f}, ledger shows {transaction.amount:.2f} "
            f"(difference {difference:.2f})"
        ),
    )
