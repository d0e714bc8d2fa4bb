"""Manual pairing of a scheduled obligation with an unpaired ledger transaction"""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Iterable, List

from obligation_engine.domain.exceptions import InvalidParameterError, TransactionAlreadyLinkedError
from obligation_engine.domain.instruments import MatchConfidence
from obligation_engine.domain.models import Obligation, Transaction
from obligation_engine.utils.date_utils import days_between

PAIRING_WINDOW_DAYS = 30


@dataclass
class PairingCandidate:
    transaction: Transaction
    score: int
    reasons: List[str] = field(default_factory=list)

    @property
    def confidence(self) -> MatchConfidence:
        return pairing_confidence(self.score)


def pairing_confidence(score: int) -> MatchConfidence:
    if score >= 150:
        return MatchConfidence.HIGH
    if score >= 75:
        return MatchConfidence.MEDIUM
    if score >= 25:
        return MatchConfidence.LOW
    return MatchConfidence.NONE


def is_transaction_paired(transaction_id: str, obligations: Iterable[Obligation]) -> bool:
    return any(o.linked_transaction_id == transaction_id for o in obligations)


def score_pairing(transaction: Transaction, obligation: Obligation) -> PairingCandidate:
    """
    Relevance of a ledger transaction to one scheduled obligation.

    Scoring weights:
    - Amount: exact 100, under 5% off 50, under 10% off 25
    - Counterparty: exact 75, one contains the other 50
    - Date: under 7 days 25, under 14 days 15, under 30 days 5
    - Instrument number quoted by the transaction: 75
    """
    score = 0
    reasons = []

    difference = abs(transaction.amount - obligation.amount)
    ratio = difference / abs(obligation.amount) if obligation.amount else Decimal("1")
    if difference < Decimal("0.01"):
        score += 100
        reasons.append("Exact amount match")
    elif ratio < Decimal("0.05"):
        score += 50
        reasons.append(f"Close amount (±{ratio * 100:.1f}%)")
    elif ratio < Decimal("0.10"):
        score += 25
        reasons.append(f"Similar amount (±{ratio * 100:.1f}%)")

    tx_label = (transaction.counterparty or "").strip().lower()
    ob_label = (obligation.counterparty or "").strip().lower()
    if tx_label == ob_label:
        score += 75
        reasons.append("Exact counterparty match")
    elif tx_label in ob_label or ob_label in tx_label:
        score += 50
        reasons.append("Counterparty keyword match")

    days_apart = days_between(transaction.date, obligation.due_date)
    if days_apart < 7:
        score += 25
        reasons.append(f"{days_apart} day{'' if days_apart == 1 else 's'} difference")
    elif days_apart < 14:
        score += 15
        reasons.append(f"{days_apart} days difference")
    elif days_apart < 30:
        score += 5
        reasons.append(f"{days_apart} days difference")

    number = (obligation.instrument_number or "").strip()
    if number and (
        number in (transaction.counterparty or "") or (transaction.instrument_number or "").strip() == number
    ):
        score += 75
        reasons.append("Instrument number found in transaction")

    if not reasons:
        reasons.append("Low confidence match")

    return PairingCandidate(transaction=transaction, score=score, reasons=reasons)


def find_pairing_candidates(
    obligation: Obligation,
    transactions: Iterable[Transaction],
    obligations: Iterable[Obligation],
) -> List[PairingCandidate]:
    """
    Unpaired transactions on the obligation's account, in its direction and
    within ±30 days of its due date, best first.
    """
    linked = {o.linked_transaction_id for o in obligations if o.linked_transaction_id}
    earliest = obligation.due_date - timedelta(days=PAIRING_WINDOW_DAYS)
    latest = obligation.due_date + timedelta(days=PAIRING_WINDOW_DAYS)

    candidates = [
        score_pairing(t, obligation)
        for t in transactions
        if t.transaction_id not in linked
        and t.account_id == obligation.account_id
        and t.direction == obligation.direction
        and earliest <= t.date <= latest
    ]
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def check_can_pair(transaction: Transaction, obligation: Obligation, obligations: Iterable[Obligation]) -> None:
    """
    Raises:
        TransactionAlreadyLinkedError: The transaction already settles another obligation
        InvalidParameterError: Account or direction differs from the obligation's
    """
    others = (o for o in obligations if o.id != obligation.id)
    if is_transaction_paired(transaction.transaction_id, others):
        raise TransactionAlreadyLinkedError(
            f"Transaction {transaction.transaction_id} is already paired to another obligation"
        )
    if transaction.account_id != obligation.account_id:
        raise InvalidParameterError("Account mismatch")
    if transaction.direction != obligation.direction:
        raise InvalidParameterError(
            f"Transaction direction {transaction.direction.value} does not match "
            f"obligation direction {obligation.direction.value}"
        )


def pairing_summary(candidates: Iterable[PairingCandidate]) -> Dict[str, int]:
    """Candidate count in total and per confidence level"""
    summary = {"total": 0}
    summary.update({level.value.lower(): 0 for level in MatchConfidence})
    for candidate in candidates:
        summary["total"] += 1
        summary[candidate.confidence.value.lower()] += 1
    return summary
