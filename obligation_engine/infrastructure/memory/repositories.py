"""In-memory collaborators for tests, previews and embedding the engine without a database"""

import uuid
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from obligation_engine.domain.models import Account, Obligation, ObligationStatus, Transaction
from obligation_engine.domain.repositories import (
    AccountRepository,
    ObligationRepository,
    TransactionLedger,
)


class InMemoryObligationRepository(ObligationRepository):
    """Dict-backed store; iteration follows insertion (creation) order"""

    def __init__(self, obligations: Iterable[Obligation] = ()):
        self._items: Dict[uuid.UUID, Obligation] = {}
        for obligation in obligations:
            self.save(obligation)

    def load_all(self) -> List[Obligation]:
        return [replace(o) for o in self._items.values()]

    def load_by_id(self, obligation_id: uuid.UUID, lock: bool = False) -> Optional[Obligation]:
        obligation = self._items.get(obligation_id)
        return replace(obligation) if obligation else None

    def save(self, obligation: Obligation) -> None:
        # Copies keep callers from mutating stored state behind the repository's back
        self._items[obligation.id] = replace(obligation)

    def delete(self, obligation_id: uuid.UUID) -> None:
        self._items.pop(obligation_id, None)

    def load_by_series(self, series_id: uuid.UUID) -> List[Obligation]:
        return [o for o in self.load_all() if o.series_id == series_id]

    def load_by_status(self, status: ObligationStatus) -> List[Obligation]:
        return [o for o in self.load_all() if o.status == status]

    def load_by_linked_transaction(self, transaction_id: str) -> List[Obligation]:
        return [o for o in self.load_all() if o.linked_transaction_id == transaction_id]


class InMemoryAccountRepository(AccountRepository):
    def __init__(self, accounts: Iterable[Account] = ()):
        self._items: Dict[uuid.UUID, Account] = {a.id: a for a in accounts}

    def load_account(self, account_id: uuid.UUID) -> Optional[Account]:
        return self._items.get(account_id)

    def load_accounts(self) -> List[Account]:
        return list(self._items.values())

    def save_account(self, account: Account) -> None:
        self._items[account.id] = account


class InMemoryTransactionLedger(TransactionLedger):
    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._transactions: List[Transaction] = list(transactions)

    async def get_transactions(self, account_id: uuid.UUID) -> List[Transaction]:
        return [t for t in self._transactions if t.account_id == account_id]
