"""Obligation lifecycle manager - owns the status state machine"""

import logging
import threading
import uuid
from dataclasses import fields, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Union

from obligation_engine.domain.exceptions import (
    InvalidObligationError,
    InvalidTransitionError,
    NotFoundError,
    TransactionAlreadyLinkedError,
)
from obligation_engine.domain.models import (
    ALLOWED_TRANSITIONS,
    Obligation,
    ObligationDraft,
    ObligationStatus,
    SeriesPlan,
    Transaction,
)
from obligation_engine.domain.pairing import check_can_pair
from obligation_engine.domain.repositories import ObligationRepository
from obligation_engine.utils.date_utils import parse_iso_date

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "amount",
        "currency",
        "counterparty",
        "category",
        "direction",
        "due_date",
        "account_id",
        "recurrence",
        "is_instrument",
        "instrument_number",
        "instrument_image_ref",
        "note",
    }
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_draft(draft: ObligationDraft) -> ObligationDraft:
    """
    Structural validation at the creation boundary.

    Returns a normalized copy (Decimal amount, date due date, trimmed currency).

    Raises:
        InvalidObligationError: Non-positive or non-numeric amount, unparseable
            due date, empty currency or recurrence interval below 1
    """
    try:
        amount = Decimal(str(draft.amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidObligationError(f"Amount is not a number: {draft.amount!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise InvalidObligationError(f"Amount must be positive, got {draft.amount}")

    try:
        due_date = parse_iso_date(draft.due_date)
    except ValueError as e:
        raise InvalidObligationError(f"Unparseable due date: {draft.due_date!r}") from e

    currency = (draft.currency or "").strip()
    if not currency:
        raise InvalidObligationError("Currency code is required")

    if draft.recurrence is not None and draft.recurrence.interval < 1:
        raise InvalidObligationError(
            f"Recurrence interval must be >= 1, got {draft.recurrence.interval}"
        )

    return replace(draft, amount=amount, due_date=due_date, currency=currency)


def apply_transition(obligation: Obligation, target: ObligationStatus) -> None:
    """Guard a status change against the transition table"""
    if target not in ALLOWED_TRANSITIONS[obligation.status]:
        raise InvalidTransitionError(
            f"Obligation {obligation.id} cannot move from {obligation.status.value} to {target.value}"
        )


class ObligationLifecycle:
    """
    Applies lifecycle operations against an injected repository.

    Read-then-write operations (sweep, settle, skip) run under a lock so two
    confirmation flows racing on one obligation cannot both succeed: the loser
    sees a terminal status and gets InvalidTransitionError.
    """

    def __init__(
        self,
        repository: ObligationRepository,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.today = today
        self.now = now
        self._lock = threading.RLock()

    def create(self, draft: ObligationDraft) -> Obligation:
        """Validate a draft and persist it as a new PENDING obligation"""
        obligation = self._materialize(validate_draft(draft), self.now())
        self.repository.save(obligation)
        logger.info(
            "Obligation created",
            extra={"obligation_id": str(obligation.id), "due_date": obligation.due_date.isoformat()},
        )
        return obligation

    def create_series(self, plan: SeriesPlan) -> List[Obligation]:
        """
        Persist a generated series.

        Every draft is validated before the first save so an invalid draft
        never leaves a partial series behind.
        """
        validated = [replace(validate_draft(d), series_id=plan.series_id) for d in plan.drafts]
        timestamp = self.now()
        obligations = [self._materialize(d, timestamp) for d in validated]

        for obligation in obligations:
            self.repository.save(obligation)

        logger.info(
            "Obligation series created",
            extra={"series_id": str(plan.series_id), "count": len(obligations)},
        )
        return obligations

    def get(self, obligation_id: uuid.UUID) -> Obligation:
        obligation = self.repository.load_by_id(obligation_id)
        if obligation is None:
            raise NotFoundError(f"Obligation {obligation_id} not found")
        return obligation

    def sweep_overdue(self) -> List[Obligation]:
        """
        Flag every PENDING obligation due strictly before today as OVERDUE.

        Idempotent: OVERDUE and terminal obligations are left alone.

        Raises:
            InvalidTransitionError: A PENDING record carries settlement data;
                nothing is saved in that case
        """
        with self._lock:
            today = self.today()
            due = [o for o in self.repository.load_by_status(ObligationStatus.PENDING) if o.due_date < today]

            for obligation in due:
                if not obligation.is_consistent():
                    raise InvalidTransitionError(
                        f"Obligation {obligation.id} is PENDING but carries settlement data"
                    )

            timestamp = self.now()
            updated = []
            for obligation in due:
                apply_transition(obligation, ObligationStatus.OVERDUE)
                obligation = replace(obligation, status=ObligationStatus.OVERDUE, updated_at=timestamp)
                self.repository.save(obligation)
                updated.append(obligation)

        logger.info("Overdue sweep completed", extra={"swept": len(updated), "as_of": today.isoformat()})
        return updated

    def settle(
        self,
        obligation_id: uuid.UUID,
        transaction_id: str,
        cleared_date: Union[date, str],
    ) -> Obligation:
        """Link a confirmed transaction and mark the obligation SETTLED"""
        if not transaction_id:
            raise InvalidObligationError("A linked transaction id is required to settle")
        try:
            cleared = parse_iso_date(cleared_date)
        except ValueError as e:
            raise InvalidObligationError(f"Unparseable cleared date: {cleared_date!r}") from e

        with self._lock:
            obligation = self._load_for_transition(obligation_id)
            apply_transition(obligation, ObligationStatus.SETTLED)
            already_linked = [
                o for o in self.repository.load_by_linked_transaction(transaction_id) if o.id != obligation_id
            ]
            if already_linked:
                raise TransactionAlreadyLinkedError(
                    f"Transaction {transaction_id} already settles obligation {already_linked[0].id}"
                )
            settled = replace(
                obligation,
                status=ObligationStatus.SETTLED,
                linked_transaction_id=transaction_id,
                cleared_date=cleared,
                updated_at=self.now(),
            )
            self.repository.save(settled)

        logger.info(
            "Obligation settled",
            extra={"obligation_id": str(obligation_id), "transaction_id": transaction_id},
        )
        return settled

    def skip(self, obligation_id: uuid.UUID, note: Optional[str] = None) -> Obligation:
        """Mark the obligation SKIPPED, optionally replacing its note"""
        with self._lock:
            obligation = self._load_for_transition(obligation_id)
            apply_transition(obligation, ObligationStatus.SKIPPED)
            skipped = replace(
                obligation,
                status=ObligationStatus.SKIPPED,
                note=note if note is not None else obligation.note,
                updated_at=self.now(),
            )
            self.repository.save(skipped)

        logger.info("Obligation skipped", extra={"obligation_id": str(obligation_id)})
        return skipped

    def pair(self, obligation_id: uuid.UUID, transaction: Transaction) -> Obligation:
        """
        Settle an obligation with a ledger transaction picked by hand.

        The transaction must be unpaired and share the obligation's account and
        direction; the cleared date is the transaction date.
        """
        with self._lock:
            obligation = self._load_for_transition(obligation_id)
            apply_transition(obligation, ObligationStatus.SETTLED)
            check_can_pair(
                transaction,
                obligation,
                self.repository.load_by_linked_transaction(transaction.transaction_id),
            )
            return self.settle(obligation_id, transaction.transaction_id, transaction.date)

    def update(self, obligation_id: uuid.UUID, **changes) -> Obligation:
        """
        Edit the descriptive fields of an open (PENDING or OVERDUE) obligation.

        Status, settlement link, series and timestamps are not editable.

        Raises:
            InvalidObligationError: Unknown field or an invalid resulting obligation
            InvalidTransitionError: The obligation is SETTLED or SKIPPED
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidObligationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        with self._lock:
            obligation = self._load_for_transition(obligation_id)
            if obligation.status.is_terminal:
                raise InvalidTransitionError(
                    f"Obligation {obligation_id} is {obligation.status.value} and can no longer be edited"
                )

            draft = ObligationDraft(
                **{f.name: changes.get(f.name, getattr(obligation, f.name)) for f in fields(ObligationDraft)}
            )
            validated = validate_draft(draft)
            updated = replace(
                obligation,
                updated_at=self.now(),
                **{name: getattr(validated, name) for name in EDITABLE_FIELDS},
            )
            self.repository.save(updated)

        logger.info(
            "Obligation updated",
            extra={"obligation_id": str(obligation_id), "fields": sorted(changes)},
        )
        return updated

    def list_all(self) -> List[Obligation]:
        return sorted(self.repository.load_all(), key=_due_then_created)

    def by_status(self, status: ObligationStatus) -> List[Obligation]:
        return sorted(self.repository.load_by_status(status), key=_due_then_created)

    def upcoming(self, days: int = 30) -> List[Obligation]:
        """PENDING obligations due within [today, today + days], soonest first"""
        today = self.today()
        horizon = today + timedelta(days=days)
        pending = self.repository.load_by_status(ObligationStatus.PENDING)
        return sorted((o for o in pending if today <= o.due_date <= horizon), key=_due_then_created)

    def delete_series(self, series_id: uuid.UUID) -> int:
        """Explicitly remove every obligation of a series, whatever its status"""
        with self._lock:
            members = self.repository.load_by_series(series_id)
            if not members:
                raise NotFoundError(f"Series {series_id} not found")
            for obligation in members:
                self.repository.delete(obligation.id)

        logger.info("Obligation series deleted", extra={"series_id": str(series_id), "count": len(members)})
        return len(members)

    def _load_for_transition(self, obligation_id: uuid.UUID) -> Obligation:
        obligation = self.repository.load_by_id(obligation_id, lock=True)
        if obligation is None:
            raise NotFoundError(f"Obligation {obligation_id} not found")
        return obligation

    @staticmethod
    def _materialize(draft: ObligationDraft, timestamp: datetime) -> Obligation:
        return Obligation(
            id=uuid.uuid4(),
            amount=draft.amount,
            currency=draft.currency,
            counterparty=draft.counterparty,
            category=draft.category,
            direction=draft.direction,
            due_date=draft.due_date,
            status=ObligationStatus.PENDING,
            created_at=timestamp,
            updated_at=timestamp,
            account_id=draft.account_id,
            recurrence=draft.recurrence,
            series_id=draft.series_id,
            is_instrument=draft.is_instrument,
            instrument_number=draft.instrument_number,
            instrument_image_ref=draft.instrument_image_ref,
            note=draft.note,
        )


def _due_then_created(obligation: Obligation):
    # sorted() is stable, so equal timestamps keep repository (creation) order
    return (obligation.due_date, obligation.created_at)
