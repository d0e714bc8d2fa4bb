"""Reconciliation engine - detects drift between a stored balance and the ledger"""

import uuid
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from obligation_engine.domain.exceptions import NotFoundError
from obligation_engine.domain.models import (
    Account,
    Direction,
    ReconciliationResult,
    Severity,
    Transaction,
)
from obligation_engine.domain.repositories import AccountRepository, TransactionLedger

MIN_THRESHOLD = Decimal("100")
THRESHOLD_RATIO = Decimal("0.05")
CRITICAL_AMOUNT = Decimal("500")
CRITICAL_PERCENT = Decimal("10")
MAJOR_AMOUNT = Decimal("200")
MAJOR_PERCENT = Decimal("5")


def snapshot_value(account: Account, transaction: Transaction) -> Optional[Decimal]:
    """
    Balance implied by a transaction's snapshot payload.

    Available balance is used as-is. Otherwise available credit is turned into
    a debt figure against the account's credit limit: -(limit - available).
    Returns None when the payload yields no usable figure.
    """
    snapshot = transaction.snapshot
    if snapshot is None:
        return None
    if snapshot.available_balance is not None:
        return snapshot.available_balance
    if snapshot.available_credit is not None and account.total_credit_limit is not None:
        return -(account.total_credit_limit - snapshot.available_credit)
    return None


def find_latest_snapshot(account: Account, transactions: Iterable[Transaction]) -> Optional[Transaction]:
    """Most recent transaction of the account carrying a usable snapshot"""
    own = [t for t in transactions if t.account_id == account.id]
    # Stable sort: same-day snapshots keep their supplied order
    for transaction in sorted(own, key=lambda t: t.date, reverse=True):
        if snapshot_value(account, transaction) is not None:
            return transaction
    return None


def project_balance(account: Account, snapshot: Transaction, transactions: Iterable[Transaction]) -> Decimal:
    """Snapshot value plus every later (or same-day) account transaction except the snapshot itself"""
    balance = snapshot_value(account, snapshot)
    subsequent = sorted(
        (
            t
            for t in transactions
            if t.account_id == account.id
            and t.date >= snapshot.date
            and t.transaction_id != snapshot.transaction_id
        ),
        key=lambda t: (t.date, t.transaction_id),
    )

    for transaction in subsequent:
        if transaction.direction == Direction.CREDIT:
            balance += transaction.amount
        else:
            balance -= transaction.amount
    return balance


def classify_drift(current_balance: Decimal, difference: Decimal) -> Severity:
    """
    Map a balance difference to a severity.

    Threshold rationale:
    - No action while difference <= max(100, 5% of |balance|)
    - critical: > 500 units or > 10% of |balance|
    - major: > 200 units or > 5%
    - minor: anything else above the threshold

    A zero stored balance makes any nonzero difference count as 100%.
    """
    base = abs(current_balance)
    threshold = max(MIN_THRESHOLD, base * THRESHOLD_RATIO)
    if difference <= threshold:
        return Severity.NONE

    if base == 0:
        percent = Decimal("100")
    else:
        percent = difference / base * 100

    if difference > CRITICAL_AMOUNT or percent > CRITICAL_PERCENT:
        return Severity.CRITICAL
    if difference > MAJOR_AMOUNT or percent > MAJOR_PERCENT:
        return Severity.MAJOR
    return Severity.MINOR


def check_reconciliation(account: Account, transactions: List[Transaction]) -> ReconciliationResult:
    """
    Main entry point: is the account's stored balance trustworthy?

    Without a usable snapshot there is nothing to reconcile and the result
    reports no drift.
    """
    snapshot = find_latest_snapshot(account, transactions)
    if snapshot is None:
        return ReconciliationResult(
            current_balance=account.balance,
            expected_balance=account.balance,
            difference=Decimal("0"),
            last_snapshot=None,
            needs_reconciliation=False,
            severity=Severity.NONE,
        )

    expected = project_balance(account, snapshot, transactions)
    difference = abs(account.balance - expected)
    severity = classify_drift(account.balance, difference)

    return ReconciliationResult(
        current_balance=account.balance,
        expected_balance=expected,
        difference=difference,
        last_snapshot=snapshot,
        needs_reconciliation=severity != Severity.NONE,
        severity=severity,
    )


def check_all_accounts(
    accounts: Iterable[Account], transactions: List[Transaction]
) -> Dict[uuid.UUID, ReconciliationResult]:
    """Results for the accounts that need attention, keyed by account id"""
    results = {}
    for account in accounts:
        result = check_reconciliation(account, transactions)
        if result.needs_reconciliation:
            results[account.id] = result
    return results


async def reconcile_account(
    account_id: uuid.UUID,
    accounts: AccountRepository,
    ledger: TransactionLedger,
) -> ReconciliationResult:
    """
    Load an account and its ledger history from the collaborators and check it.

    Raises:
        NotFoundError: Unknown account
        LedgerAPIError: The ledger could not be read
    """
    account = accounts.load_account(account_id)
    if account is None:
        raise NotFoundError(f"Account {account_id} not found")
    return check_reconciliation(account, await ledger.get_transactions(account_id))


async def reconcile_all_accounts(
    accounts: AccountRepository,
    ledger: TransactionLedger,
) -> Dict[uuid.UUID, ReconciliationResult]:
    """Fetch every account's history and return the ones that need attention"""
    all_accounts = accounts.load_accounts()
    transactions: List[Transaction] = []
    for account in all_accounts:
        transactions.extend(await ledger.get_transactions(account.id))
    return check_all_accounts(all_accounts, transactions)
