from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock

from app.domain import BalanceSnapshot, GatewayOutcome
from gateways.errors import GatewayTransportError
from recharge.balance import BalanceInquiry


def _client(outcome: GatewayOutcome | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    if error is not None:
        client.submit.side_effect = error
    else:
        client.submit.return_value = outcome
    return client


def test_balance_inquiry_updates_snapshot(test_settings, recording_store):
    outcome = GatewayOutcome(
        gateway="ev",
        status_code="200",
        message="Your balance is Tk 12,000.75",
        timestamp="19/10/2026 09:30:00",
    )
    client = _client(outcome)
    inquiry = BalanceInquiry(client, recording_store, settings=test_settings, trace_logger=MagicMock())

    result = inquiry.run("R012345", "1819000111", "1234")

    client.build_balance_request.assert_called_once_with("1819000111", "1234")
    assert result.success is True
    assert result.balance == 12000.75
    assert result.display_time == "09:30:00 AM, 19 Oct 2026"
    assert recording_store.snapshots == [
        ("R012345", 12000.75, datetime(2026, 10, 19, 9, 30), "1819000111")
    ]


def test_balance_inquiry_failure_returns_normalized_message(test_settings, recording_store):
    outcome = GatewayOutcome(gateway="ev", status_code="17017", message="Wrong PIN supplied")
    inquiry = BalanceInquiry(_client(outcome), recording_store, settings=test_settings)

    result = inquiry.run("R012345", "1819000111", "0000")

    assert result.success is False
    assert result.message == "The PIN you entered is not correct."
    assert recording_store.snapshots == []


def test_balance_inquiry_transport_error(test_settings, recording_store):
    client = _client(error=GatewayTransportError("ev", "Service Unavailable"))
    inquiry = BalanceInquiry(client, recording_store, settings=test_settings)

    result = inquiry.run("R012345", "1819000111", "1234")

    assert result.success is False
    assert result.message == "The operator service is busy right now. Please try again later."


def test_snapshot_failure_is_traced_not_returned(test_settings, recording_store):
    recording_store.fail_snapshot = True
    outcome = GatewayOutcome(
        gateway="ev", status_code="200", message="Balance: 500", timestamp="19/10/2026 09:30:00"
    )
    trace = MagicMock()
    inquiry = BalanceInquiry(_client(outcome), recording_store, settings=test_settings, trace_logger=trace)

    result = inquiry.run("R012345", "1819000111", "1234")

    assert result.success is True
    assert result.balance == 500.0
    trace.bind.assert_called_once_with(origin="ev.balance")


def test_cached_balance_renders_display_time(test_settings):
    store = MagicMock()
    store.get_balance_snapshot.return_value = BalanceSnapshot(
        retailer_code="R012345",
        itopup_number="1819000111",
        balance=250.0,
        updated_at=datetime(2026, 10, 19, 18, 0, 5),
    )
    inquiry = BalanceInquiry(MagicMock(), store, settings=test_settings)

    snapshot = inquiry.cached_balance("R012345")

    assert snapshot.display_time == "06:00:05 PM, 19 Oct 2026"
    assert snapshot.balance == 250.0


def test_cached_balance_missing(test_settings):
    store = MagicMock()
    store.get_balance_snapshot.return_value = None

    assert BalanceInquiry(MagicMock(), store, settings=test_settings).cached_balance("R0") is None
