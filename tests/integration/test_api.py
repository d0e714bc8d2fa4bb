"""Integration tests for API endpoints"""

import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from obligation_engine.domain.exceptions import LedgerAPIError
from obligation_engine.domain.models import BalanceSnapshot, Direction, Transaction

pytestmark = pytest.mark.integration


def create_obligation(client: TestClient, **overrides) -> dict:
    payload = {
        "amount": "7000",
        "currency": "AED",
        "counterparty": "Landlord",
        "category": "Rent",
        "direction": "DEBIT",
        "due_date": "2026-01-20",
    }
    payload.update(overrides)
    response = client.post("/v1/obligations", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def put_account(client: TestClient, account_id: uuid.UUID, **overrides) -> dict:
    payload = {"name": "Current Account", "currency": "AED", "balance": "1000"}
    payload.update(overrides)
    response = client.put(f"/v1/accounts/{account_id}", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def card_transactions():
    """Ledger history for a card: snapshot on Jan 10 then two debits"""

    def build(account_id: uuid.UUID):
        return [
            Transaction(
                transaction_id="tx_snap",
                date=date(2026, 1, 10),
                amount=Decimal("100"),
                currency="AED",
                counterparty="Supermarket",
                direction=Direction.DEBIT,
                account_id=account_id,
                snapshot=BalanceSnapshot(available_balance=Decimal("-11200")),
            ),
            Transaction(
                transaction_id="tx_1",
                date=date(2026, 1, 12),
                amount=Decimal("400"),
                currency="AED",
                counterparty="Fuel",
                direction=Direction.DEBIT,
                account_id=account_id,
            ),
            Transaction(
                transaction_id="tx_2",
                date=date(2026, 1, 13),
                amount=Decimal("250"),
                currency="AED",
                counterparty="Pharmacy",
                direction=Direction.DEBIT,
                account_id=account_id,
            ),
        ]

    return build


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    create_obligation(client)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "obligation_created" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_create_and_get_obligation(client: TestClient):
    created = create_obligation(client, note="January rent")

    assert created["status"] == "PENDING"
    assert Decimal(created["amount"]) == Decimal("7000")

    response = client.get(f"/v1/obligations/{created['id']}")
    assert response.status_code == 200
    assert response.json()["note"] == "January rent"


def test_create_obligation_rejects_non_positive_amount(client: TestClient):
    response = client.post(
        "/v1/obligations",
        json={"amount": "0", "currency": "AED", "direction": "DEBIT", "due_date": "2026-01-20"},
    )
    assert response.status_code == 422


def test_get_unknown_obligation_is_404(client: TestClient):
    assert client.get(f"/v1/obligations/{uuid.uuid4()}").status_code == 404


def test_settle_twice_is_rejected(client: TestClient):
    """Test the first settlement wins and the second gets 409"""
    created = create_obligation(client)
    url = f"/v1/obligations/{created['id']}/settle"

    first = client.post(url, json={"transaction_id": "tx_100", "cleared_date": "2026-01-20"})
    assert first.status_code == 200
    assert first.json()["status"] == "SETTLED"
    assert first.json()["linked_transaction_id"] == "tx_100"

    second = client.post(url, json={"transaction_id": "tx_200", "cleared_date": "2026-01-21"})
    assert second.status_code == 409

    stored = client.get(f"/v1/obligations/{created['id']}").json()
    assert stored["linked_transaction_id"] == "tx_100"
    assert stored["cleared_date"] == "2026-01-20"


def test_skip_then_list_by_status(client: TestClient):
    kept = create_obligation(client, counterparty="DEWA")
    skipped = create_obligation(client, counterparty="Gym")

    response = client.post(f"/v1/obligations/{skipped['id']}/skip", json={"note": "Membership paused"})
    assert response.status_code == 200
    assert response.json()["note"] == "Membership paused"

    pending = client.get("/v1/obligations", params={"status": "PENDING"}).json()
    assert [o["id"] for o in pending] == [kept["id"]]
    skipped_list = client.get("/v1/obligations", params={"status": "SKIPPED"}).json()
    assert [o["id"] for o in skipped_list] == [skipped["id"]]


def test_sweep_marks_past_due_overdue_once(client: TestClient):
    past_due = create_obligation(client, due_date="2026-01-10")
    create_obligation(client, due_date="2026-01-15")

    first = client.post("/v1/obligations/sweep")
    assert first.status_code == 200
    assert first.json()["swept"] == 1
    assert first.json()["obligations"][0]["id"] == past_due["id"]

    second = client.post("/v1/obligations/sweep")
    assert second.json()["swept"] == 0
    assert client.get(f"/v1/obligations/{past_due['id']}").json()["status"] == "OVERDUE"


def test_upcoming_window(client: TestClient):
    soon = create_obligation(client, due_date="2026-01-16")
    create_obligation(client, due_date="2026-03-01")
    create_obligation(client, due_date="2026-01-01")

    response = client.get("/v1/obligations/upcoming", params={"days": 7})

    assert [o["id"] for o in response.json()] == [soon["id"]]


def test_series_preview(client: TestClient):
    response = client.post(
        "/v1/series/preview",
        json={"start_date": "2026-01-31", "cadence": "MONTHLY", "interval": 1, "count": 3},
    )
    assert response.status_code == 200
    assert response.json()["dates"] == ["2026-01-31", "2026-02-28", "2026-03-31"]


def test_series_preview_rejects_zero_count(client: TestClient):
    response = client.post("/v1/series/preview", json={"start_date": "2026-01-01", "count": 0})
    assert response.status_code == 422


def test_series_preview_rejects_interval_past_year_9999(client: TestClient):
    response = client.post(
        "/v1/series/preview",
        json={"start_date": "2026-01-01", "cadence": "CUSTOM", "interval": 10000000, "count": 2},
    )
    assert response.status_code == 422


def test_series_create_rejects_interval_past_year_9999(client: TestClient):
    response = client.post(
        "/v1/series",
        json={
            "start_date": "2026-01-01",
            "cadence": "MONTHLY",
            "interval": 200000,
            "count": 2,
            "amount": "100",
            "currency": "AED",
        },
    )
    assert response.status_code == 422
    assert client.get("/v1/obligations").json() == []


def test_series_create_validate_and_delete(client: TestClient):
    """Test a book of six postdated rent cheques"""
    response = client.post(
        "/v1/series",
        json={
            "start_date": "2026-02-01",
            "cadence": "MONTHLY",
            "interval": 2,
            "count": 6,
            "amount": "5000",
            "currency": "AED",
            "counterparty": "Landlord",
            "category": "Rent",
            "is_instrument": True,
            "starting_instrument_number": 100231,
        },
    )
    assert response.status_code == 201
    body = response.json()
    series_id = body["series_id"]
    assert [o["instrument_number"] for o in body["obligations"]] == [str(100231 + i) for i in range(6)]
    assert {o["series_id"] for o in body["obligations"]} == {series_id}

    validation = client.get(f"/v1/series/{series_id}/validation").json()
    assert validation["is_valid"] is True
    assert validation["suggested_next_number"] == "100237"

    deleted = client.delete(f"/v1/series/{series_id}")
    assert deleted.json() == {"series_id": series_id, "deleted": 6}
    assert client.delete(f"/v1/series/{series_id}").status_code == 404
    assert client.get(f"/v1/series/{series_id}/validation").status_code == 404


def test_loan_series_from_account_terms(client: TestClient):
    account_id = uuid.uuid4()
    put_account(
        client,
        account_id,
        name="Car Loan",
        balance="-3000",
        loan={"principal": "3000", "installment_count": 4, "start_date": "2026-02-01"},
    )

    response = client.post(f"/v1/accounts/{account_id}/loan-series", json={})

    assert response.status_code == 201
    obligations = response.json()["obligations"]
    assert [Decimal(o["amount"]) for o in obligations] == [Decimal("750")] * 4
    assert [o["due_date"] for o in obligations] == ["2026-02-01", "2026-03-01", "2026-04-01", "2026-05-01"]


def test_loan_series_without_terms_is_422(client: TestClient):
    account_id = uuid.uuid4()
    put_account(client, account_id)
    assert client.post(f"/v1/accounts/{account_id}/loan-series", json={}).status_code == 422


def test_match_suggestions(client: TestClient):
    """Test rent cleared two weeks after its due date is suggested"""
    rent = create_obligation(client, due_date="2026-01-01")
    create_obligation(client, counterparty="Employer", direction="CREDIT", amount="15000")

    response = client.post(
        "/v1/matches",
        json={
            "transaction_id": "tx_rent",
            "date": "2026-01-15",
            "amount": "7000",
            "currency": "AED",
            "counterparty": "Landlord",
            "direction": "DEBIT",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["best_match"]["obligation"]["id"] == rent["id"]
    assert data["best_match"]["score"] == 210
    assert len(data["candidates"]) == 1
    assert data["instrument_match"] is None
    # Suggesting never settles
    assert client.get(f"/v1/obligations/{rent['id']}").json()["status"] == "PENDING"


def test_match_by_instrument_number(client: TestClient):
    cheque = create_obligation(client, is_instrument=True, instrument_number="100231", amount="5000")

    response = client.post(
        "/v1/matches",
        json={
            "transaction_id": "tx_chq",
            "date": "2026-01-20",
            "amount": "5000",
            "currency": "AED",
            "counterparty": "CHQ 100231",
            "direction": "DEBIT",
            "instrument_number": "100231",
        },
    )

    instrument_match = response.json()["instrument_match"]
    assert instrument_match["confidence"] == "HIGH"
    assert instrument_match["obligation_id"] == cheque["id"]


@patch("obligation_engine.infrastructure.clients.ledger.LedgerClient.get_transactions")
def test_reconciliation_flags_critical_drift(mock_ledger: AsyncMock, client: TestClient, card_transactions):
    account_id = uuid.uuid4()
    put_account(client, account_id, name="Credit Card", balance="-12550")
    mock_ledger.return_value = card_transactions(account_id)

    response = client.get(f"/v1/accounts/{account_id}/reconciliation")

    assert response.status_code == 200
    data = response.json()
    assert data["needs_reconciliation"] is True
    assert data["severity"] == "critical"
    assert Decimal(data["expected_balance"]) == Decimal("-11850")
    assert Decimal(data["difference"]) == Decimal("700")
    assert data["last_snapshot"]["transaction_id"] == "tx_snap"


@patch("obligation_engine.infrastructure.clients.ledger.LedgerClient.get_transactions")
def test_reconcile_all_lists_only_drifting_accounts(mock_ledger: AsyncMock, client: TestClient, card_transactions):
    healthy = uuid.uuid4()
    drifting = uuid.uuid4()
    put_account(client, healthy, name="Card A", balance="-11850")
    put_account(client, drifting, name="Card B", balance="-13000")
    mock_ledger.side_effect = lambda account_id: card_transactions(account_id)

    response = client.get("/v1/accounts/reconciliation")

    assert response.status_code == 200
    assert [r["account_id"] for r in response.json()] == [str(drifting)]


@patch("obligation_engine.infrastructure.clients.ledger.LedgerClient.get_transactions")
def test_reconciliation_ledger_unavailable(mock_ledger: AsyncMock, client: TestClient):
    account_id = uuid.uuid4()
    put_account(client, account_id)
    mock_ledger.side_effect = LedgerAPIError("Ledger API timeout after 5.0s")

    response = client.get(f"/v1/accounts/{account_id}/reconciliation")

    assert response.status_code == 503


def test_reconciliation_unknown_account_is_404(client: TestClient):
    assert client.get(f"/v1/accounts/{uuid.uuid4()}/reconciliation").status_code == 404


def test_funds_warning(client: TestClient):
    account_id = uuid.uuid4()
    put_account(client, account_id, balance="1000")
    create_obligation(client, account_id=str(account_id), amount="600", due_date="2026-01-18")
    create_obligation(client, account_id=str(account_id), amount="700", due_date="2026-01-25")

    data = client.get(f"/v1/accounts/{account_id}/funds-warning").json()

    assert data["insufficient"] is True
    assert Decimal(data["shortage"]) == Decimal("300")
    assert data["days_until_first"] == 3
    assert len(data["affected"]) == 2

    narrow = client.get(f"/v1/accounts/{account_id}/funds-warning", params={"days": 5}).json()
    assert narrow["insufficient"] is False


def test_all_funds_warnings_lists_only_short_accounts(client: TestClient):
    short = uuid.uuid4()
    healthy = uuid.uuid4()
    put_account(client, short, name="Current Account", balance="1000")
    put_account(client, healthy, name="Savings", balance="5000")
    create_obligation(client, account_id=str(short), amount="600", due_date="2026-01-18")
    create_obligation(client, account_id=str(short), amount="700", due_date="2026-01-25")
    create_obligation(client, account_id=str(healthy), amount="600", due_date="2026-01-18")

    response = client.get("/v1/accounts/funds-warnings")

    assert response.status_code == 200
    data = response.json()
    assert [w["account_id"] for w in data] == [str(short)]
    assert Decimal(data[0]["shortage"]) == Decimal("300")


def test_update_obligation(client: TestClient):
    created = create_obligation(client, note="Rent")
    url = f"/v1/obligations/{created['id']}"

    response = client.patch(url, json={"amount": "7250", "due_date": "2026-02-01"})

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["amount"]) == Decimal("7250")
    assert data["due_date"] == "2026-02-01"
    assert data["note"] == "Rent"
    assert data["status"] == "PENDING"

    assert client.patch(url, json={"amount": "0"}).status_code == 422
    assert client.patch(f"/v1/obligations/{uuid.uuid4()}", json={"note": "x"}).status_code == 404


def test_update_settled_obligation_is_409(client: TestClient):
    created = create_obligation(client)
    client.post(f"/v1/obligations/{created['id']}/settle", json={"transaction_id": "tx_1", "cleared_date": "2026-01-20"})

    response = client.patch(f"/v1/obligations/{created['id']}", json={"amount": "100"})

    assert response.status_code == 409
    assert Decimal(client.get(f"/v1/obligations/{created['id']}").json()["amount"]) == Decimal("7000")


def test_settle_with_transaction_linked_elsewhere_is_409(client: TestClient):
    first = create_obligation(client)
    second = create_obligation(client, counterparty="Other")
    body = {"transaction_id": "tx_shared", "cleared_date": "2026-01-20"}

    assert client.post(f"/v1/obligations/{first['id']}/settle", json=body).status_code == 200
    assert client.post(f"/v1/obligations/{second['id']}/settle", json=body).status_code == 409
    assert client.get(f"/v1/obligations/{second['id']}").json()["status"] == "PENDING"


def test_create_obligation_from_transaction(client: TestClient):
    account_id = uuid.uuid4()
    transaction = {
        "transaction_id": "tx_dewa",
        "date": "2026-01-15",
        "amount": "640.25",
        "currency": "AED",
        "counterparty": "DEWA",
        "direction": "DEBIT",
        "account_id": str(account_id),
    }

    response = client.post("/v1/obligations/from-transaction", json={"transaction": transaction, "category": "Utilities"})

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["due_date"] == "2026-02-15"
    assert data["recurrence"]["pattern"] == "MONTHLY"
    assert data["account_id"] == str(account_id)
    assert data["note"] == "Created from transaction on 2026-01-15 - DEWA"

    custom = client.post(
        "/v1/obligations/from-transaction",
        json={
            "transaction": transaction,
            "recurrence": {"pattern": "MONTHLY", "interval": 400, "first_due_date": "2026-02-01"},
        },
    )
    assert custom.status_code == 422

    unlinked = dict(transaction, account_id=None)
    assert client.post("/v1/obligations/from-transaction", json={"transaction": unlinked}).status_code == 422


@patch("obligation_engine.infrastructure.clients.ledger.LedgerClient.get_transactions")
def test_pairing_candidates(mock_ledger: AsyncMock, client: TestClient):
    account_id = uuid.uuid4()
    obligation = create_obligation(client, account_id=str(account_id))
    other = create_obligation(client, account_id=str(account_id), counterparty="Other")
    client.post(f"/v1/obligations/{other['id']}/settle", json={"transaction_id": "tx_taken", "cleared_date": "2026-01-20"})

    def tx(transaction_id, day, amount, direction=Direction.DEBIT):
        return Transaction(
            transaction_id=transaction_id,
            date=date(2026, 1, day),
            amount=Decimal(amount),
            currency="AED",
            counterparty="Landlord",
            direction=direction,
            account_id=account_id,
        )

    mock_ledger.return_value = [
        tx("tx_close", 28, "7300"),
        tx("tx_exact", 21, "7000"),
        tx("tx_taken", 20, "7000"),
        tx("tx_refund", 21, "7000", Direction.CREDIT),
    ]

    response = client.get(f"/v1/obligations/{obligation['id']}/pairing-candidates")

    assert response.status_code == 200
    data = response.json()
    assert [c["transaction"]["transaction_id"] for c in data["candidates"]] == ["tx_exact", "tx_close"]
    assert [c["confidence"] for c in data["candidates"]] == ["HIGH", "MEDIUM"]
    assert data["summary"] == {"total": 2, "high": 1, "medium": 1, "low": 0, "none": 0}
    mock_ledger.assert_awaited_once_with(account_id)


@patch("obligation_engine.infrastructure.clients.ledger.LedgerClient.get_transactions")
def test_pairing_candidates_need_an_account(mock_ledger: AsyncMock, client: TestClient):
    obligation = create_obligation(client)

    response = client.get(f"/v1/obligations/{obligation['id']}/pairing-candidates")

    assert response.status_code == 422
    mock_ledger.assert_not_called()


@patch("obligation_engine.infrastructure.clients.ledger.LedgerClient.get_transactions")
def test_pairing_candidates_ledger_unavailable(mock_ledger: AsyncMock, client: TestClient):
    obligation = create_obligation(client, account_id=str(uuid.uuid4()))
    mock_ledger.side_effect = LedgerAPIError("Ledger API timeout")

    assert client.get(f"/v1/obligations/{obligation['id']}/pairing-candidates").status_code == 503


def test_pair_obligation(client: TestClient):
    account_id = uuid.uuid4()
    obligation = create_obligation(client, account_id=str(account_id))
    other = create_obligation(client, account_id=str(account_id))
    transaction = {
        "transaction_id": "tx_rent",
        "date": "2026-01-21",
        "amount": "7000",
        "currency": "AED",
        "counterparty": "Landlord",
        "direction": "DEBIT",
        "account_id": str(account_id),
    }

    response = client.post(f"/v1/obligations/{obligation['id']}/pair", json=transaction)

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "SETTLED"
    assert response.json()["linked_transaction_id"] == "tx_rent"
    assert response.json()["cleared_date"] == "2026-01-21"

    assert client.post(f"/v1/obligations/{other['id']}/pair", json=transaction).status_code == 409

    elsewhere = dict(transaction, transaction_id="tx_other", account_id=str(uuid.uuid4()))
    assert client.post(f"/v1/obligations/{other['id']}/pair", json=elsewhere).status_code == 422
    assert client.get(f"/v1/obligations/{other['id']}").json()["status"] == "PENDING"
