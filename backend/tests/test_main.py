from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.domain import BalanceResult, BalanceSnapshot, GatewayOutcome, OfferBatch, RawOfferEntry
from app.main import _balance_inquiry, _gateways, _offer_service, _recharge_store, _settings, app
from gateways.normalize import normalize_offer
from gateways.offer_parsing import OfferParsingRules

from conftest import RecordingStore, StubGateway


RECHARGE_BODY = {
    "gateway": "ev",
    "retailer_code": "R012345",
    "retailer_msisdn": "1819000111",
    "subscriber_number": "01711222333",
    "amount": 5000,
    "user_pin": "1234",
    "payment_type": 1,
}


@pytest.fixture
def client(test_settings):
    """Test client that cleans up dependency overrides after each test."""
    app.dependency_overrides[_settings] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthcheck(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_recharge_success_exposes_only_result_fields(client):
    store = RecordingStore(fail_log=True)
    outcome = GatewayOutcome(gateway="ev", status_code="200", message="Txn Number 12345678. Balance updated")
    app.dependency_overrides[_gateways] = lambda: {"ev": StubGateway(outcome)}
    app.dependency_overrides[_recharge_store] = lambda: store

    response = client.post("/recharge", json=RECHARGE_BODY, headers={"X-Login-Provider": "app"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Txn Number 123***78. Balance updated",
        "transactionId": "12345678",
    }


def test_recharge_passes_login_provider(client):
    store = RecordingStore()
    outcome = GatewayOutcome(gateway="iris", status_code="0", message="Transaction ID: IR1 done")
    app.dependency_overrides[_gateways] = lambda: {"iris": StubGateway(outcome, name="iris")}
    app.dependency_overrides[_recharge_store] = lambda: store

    response = client.post(
        "/recharge", json={**RECHARGE_BODY, "gateway": "iris"}, headers={"X-Login-Provider": "google"}
    )

    assert response.json()["success"] is True
    assert store.logged[0].login_provider == "google"
    assert store.logged[0].gateway == "iris"


def test_recharge_unknown_gateway(client):
    app.dependency_overrides[_gateways] = lambda: {}
    app.dependency_overrides[_recharge_store] = lambda: RecordingStore()

    response = client.post("/recharge", json=RECHARGE_BODY)

    assert response.status_code == 400


def test_recharge_rejects_invalid_body(client):
    response = client.post("/recharge", json={**RECHARGE_BODY, "gateway": "sms"})

    assert response.status_code == 422


def test_offers_endpoint(client):
    offer = normalize_offer(
        RawOfferEntry(
            sequence="1",
            offer_id="OF100",
            offer_name="Data Pack",
            display_name="*10gb star 30days 500tk",
            commission="12",
            recharge_amount="500",
        ),
        "T1",
        OfferParsingRules(),
    )
    service = MagicMock()
    service.fetch.return_value = OfferBatch(
        status_code="0", status_message="Success", transaction_id="T1", offers=[offer]
    )
    app.dependency_overrides[_offer_service] = lambda: service

    response = client.post(
        "/offers",
        json={"retailer_code": "R012345", "retailer_msisdn": "01819000111", "subscriber_msisdn": "01711222333"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["transaction_id"] == "T1"
    (item,) = body["offers"]
    assert item["offer_class"] == "data"
    assert item["has_data_pack"] is True
    assert item["has_wildcard_marker"] is True
    assert item["amount"] == 500
    assert "diagnostics" not in item
    service.fetch.assert_called_once()


def test_balance_endpoints(client):
    inquiry = MagicMock()
    inquiry.run.return_value = BalanceResult(success=True, message="ok", balance=10.5, display_time="x")
    inquiry.cached_balance.side_effect = lambda code: (
        BalanceSnapshot(
            retailer_code=code,
            itopup_number=None,
            balance=10.5,
            updated_at=datetime(2026, 10, 19, 9, 0),
            display_time="09:00:00 AM, 19 Oct 2026",
        )
        if code == "R012345"
        else None
    )
    app.dependency_overrides[_balance_inquiry] = lambda: inquiry

    refreshed = client.post(
        "/balance", json={"retailer_code": "R012345", "retailer_msisdn": "1819000111", "user_pin": "1234"}
    )
    cached = client.get("/balance/R012345")
    missing = client.get("/balance/R000000")

    assert refreshed.json()["balance"] == 10.5
    inquiry.run.assert_called_once_with("R012345", "1819000111", "1234")
    assert cached.json()["display_time"] == "09:00:00 AM, 19 Oct 2026"
    assert missing.status_code == 404
