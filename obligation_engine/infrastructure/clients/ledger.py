"""Transaction ledger HTTP client for fetching an account's transaction history"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from obligation_engine.config import settings
from obligation_engine.domain.exceptions import LedgerAPIError
from obligation_engine.domain.models import BalanceSnapshot, Direction, Transaction
from obligation_engine.domain.repositories import TransactionLedger


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def parse_transaction(payload: Dict[str, Any]) -> Transaction:
    """Map one ledger JSON record onto the domain Transaction"""
    snapshot_data = payload.get("snapshot")
    snapshot = None
    if snapshot_data:
        snapshot = BalanceSnapshot(
            available_balance=_optional_decimal(snapshot_data.get("available_balance")),
            available_credit=_optional_decimal(snapshot_data.get("available_credit")),
        )

    account_id = payload.get("account_id")
    return Transaction(
        transaction_id=str(payload["transaction_id"]),
        date=date.fromisoformat(payload["date"]),
        amount=Decimal(str(payload["amount"])),
        currency=payload["currency"],
        counterparty=payload.get("counterparty") or "",
        direction=Direction(str(payload["direction"]).upper()),
        account_id=uuid.UUID(account_id) if account_id else None,
        snapshot=snapshot,
        instrument_number=payload.get("instrument_number"),
    )


class LedgerClient(TransactionLedger):
    """Client for the external, read-only transaction ledger API"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.ledger_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def get_transactions(self, account_id: uuid.UUID) -> List[Transaction]:
        """
        Fetch every recorded transaction for an account.

        Raises:
            LedgerAPIError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/ledger/transactions",
                    params={"account_id": str(account_id)},
                )
                response.raise_for_status()
                data = response.json()

                return [parse_transaction(txn) for txn in data.get("transactions", [])]

            except httpx.TimeoutException as e:
                raise LedgerAPIError(f"Ledger API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise LedgerAPIError(f"Ledger API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise LedgerAPIError(f"Ledger API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError, ArithmeticError) as e:
                raise LedgerAPIError(f"Invalid transaction data from ledger: {e}") from e
