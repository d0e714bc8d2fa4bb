"""Matching engine - ranks pending obligations an incoming transaction may settle"""

from datetime import timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from obligation_engine.domain.models import MatchCandidate, Obligation, ObligationStatus, Transaction
from obligation_engine.utils.date_utils import days_between
from obligation_engine.utils.text_distance import within_edit_distance

MATCH_WINDOW_DAYS = 30
MATCH_THRESHOLD = 150
FUZZY_MAX_DISTANCE = 3


def score_amount(tx_amount: Decimal, obligation_amount: Decimal) -> Tuple[int, Optional[str]]:
    """Exact +100, within 5% +50, within 10% +25"""
    diff = abs(tx_amount - obligation_amount)
    if diff == 0:
        return 100, "Exact amount match"

    if obligation_amount == 0:
        return 0, None
    percent = diff / abs(obligation_amount) * 100

    if percent <= 5:
        return 50, "Close amount (±5%)"
    if percent <= 10:
        return 25, "Similar amount (±10%)"
    return 0, None


def score_counterparty(tx_label: str, obligation_label: str) -> Tuple[int, Optional[str]]:
    """
    Exact +100, substring +50, edit distance <= 3 +25 - only the highest tier counts.

    Labels are compared trimmed and case-insensitive. A blank label is
    contained in every label, so it earns the keyword tier (exact when both
    are blank).
    """
    a = (tx_label or "").strip().lower()
    b = (obligation_label or "").strip().lower()

    if a == b:
        return 100, "Exact counterparty match"
    if a in b or b in a:
        return 50, "Keyword counterparty match"
    if within_edit_distance(a, b, FUZZY_MAX_DISTANCE):
        return 25, "Fuzzy counterparty match"
    return 0, None


def score_date(days_apart: int) -> Tuple[int, Optional[str]]:
    """Same day +50, within 7 days +25, within 30 days +10"""
    if days_apart == 0:
        return 50, "Same day"
    if days_apart <= 7:
        return 25, f"{days_apart} days difference"
    if days_apart <= 30:
        return 10, f"{days_apart} days difference"
    return 0, None


def score_match(transaction: Transaction, obligation: Obligation) -> Tuple[int, List[str]]:
    """
    Additive score of one transaction against one obligation.

    Scoring weights:
    - Amount: 100 / 50 / 25
    - Counterparty: 100 / 50 / 25
    - Date proximity: 50 / 25 / 10
    - Same account: 50

    The 150 floor is reachable by individually weak signals (50+50+25+25), so
    any weight change shifts which real-world pairs get suggested.
    """
    components = [
        score_amount(transaction.amount, obligation.amount),
        score_counterparty(transaction.counterparty, obligation.counterparty),
        score_date(days_between(transaction.date, obligation.due_date)),
    ]

    if (
        transaction.account_id is not None
        and obligation.account_id is not None
        and transaction.account_id == obligation.account_id
    ):
        components.append((50, "Same account"))

    score = sum(points for points, _ in components)
    reasons = [reason for points, reason in components if points and reason]
    return score, reasons


def candidate_obligations(transaction: Transaction, obligations: Iterable[Obligation]) -> List[Obligation]:
    """PENDING obligations of the same direction due within ±30 days of the transaction"""
    earliest = transaction.date - timedelta(days=MATCH_WINDOW_DAYS)
    latest = transaction.date + timedelta(days=MATCH_WINDOW_DAYS)
    return [
        o
        for o in obligations
        if o.status == ObligationStatus.PENDING
        and o.direction == transaction.direction
        and earliest <= o.due_date <= latest
    ]


def find_matches(transaction: Transaction, obligations: Iterable[Obligation]) -> List[MatchCandidate]:
    """
    Score every candidate and keep those at or above the threshold.

    Returns candidates sorted by score descending; equal scores keep the
    order in which obligations were supplied.
    """
    scored = []
    for obligation in candidate_obligations(transaction, obligations):
        score, reasons = score_match(transaction, obligation)
        if score >= MATCH_THRESHOLD:
            scored.append(MatchCandidate(obligation=obligation, score=score, reasons=reasons))

    return sorted(scored, key=lambda c: c.score, reverse=True)


def best_match(transaction: Transaction, obligations: Iterable[Obligation]) -> Optional[MatchCandidate]:
    """Highest scoring qualifying candidate, if any"""
    matches = find_matches(transaction, obligations)
    return matches[0] if matches else None
