"""
Abstract collaborator interfaces consumed by the engine.

The engine never assumes a storage technology: the lifecycle manager talks to
an ObligationRepository, reconciliation helpers to an AccountRepository and a
TransactionLedger. Implementations live under infrastructure/ (in-memory and
SQLAlchemy).
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from obligation_engine.domain.models import Account, Obligation, ObligationStatus, Transaction


class ObligationRepository(ABC):
    """Load/save/delete access to persisted obligations"""

    @abstractmethod
    def load_all(self) -> List[Obligation]:
        """All obligations in creation order"""

    @abstractmethod
    def load_by_id(self, obligation_id: uuid.UUID, lock: bool = False) -> Optional[Obligation]:
        """
        Fetch one obligation.

        Args:
            lock: Hold a write lock on the record until the unit of work ends,
                for read-then-write transitions
        """

    @abstractmethod
    def save(self, obligation: Obligation) -> None:
        """Insert or replace by id"""

    @abstractmethod
    def delete(self, obligation_id: uuid.UUID) -> None:
        ...

    @abstractmethod
    def load_by_series(self, series_id: uuid.UUID) -> List[Obligation]:
        ...

    @abstractmethod
    def load_by_status(self, status: ObligationStatus) -> List[Obligation]:
        ...

    @abstractmethod
    def load_by_linked_transaction(self, transaction_id: str) -> List[Obligation]:
        """Obligations already settled by the given ledger transaction"""


class AccountRepository(ABC):
    """Account collaborator surface"""

    @abstractmethod
    def load_account(self, account_id: uuid.UUID) -> Optional[Account]:
        ...

    @abstractmethod
    def load_accounts(self) -> List[Account]:
        ...

    @abstractmethod
    def save_account(self, account: Account) -> None:
        ...


class TransactionLedger(ABC):
    """Read-only view of the external transaction ledger"""

    @abstractmethod
    async def get_transactions(self, account_id: uuid.UUID) -> List[Transaction]:
        """
        Every recorded transaction of the account.

        Raises:
            LedgerAPIError: The ledger could not be read
        """
