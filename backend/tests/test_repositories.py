from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from app.db import session_scope
from app.domain import GatewayOutcome, PaymentType, RechargeAttempt
from app.models import TransactionLog
from app.repositories import BalanceRepository, SqlRechargeStore
from app.repositories.transaction_repository import (
    major_units,
    retailer_with_zero,
    subscriber_with_prefix,
)


def _logged(session, retailer_code: str) -> list[TransactionLog]:
    query = select(TransactionLog).where(TransactionLog.retailer_code == retailer_code)
    return list(session.execute(query).scalars())


def _attempt(recharge_request, **overrides) -> RechargeAttempt:
    attempt = RechargeAttempt(request=recharge_request, gateway="ev", login_provider="app")
    attempt.outcome = GatewayOutcome(
        gateway="ev",
        status_code="200",
        message="Txn Number R1. " + "x" * 2000,
        transaction_id="R1",
    )
    attempt.success = True
    attempt.provider_transaction_id = "R1"
    for key, value in overrides.items():
        setattr(attempt, key, value)
    return attempt


def test_transaction_log_fields(session_factory, test_settings, recharge_request):
    store = SqlRechargeStore(session_factory, settings=test_settings)

    assert store.save_transaction_log(_attempt(recharge_request)) is True

    with session_scope(session_factory) as session:
        (record,) = _logged(session, "R012345")
        assert record.tran_type == "ITOP'UP"
        assert Decimal(str(record.amount)) == Decimal("50")
        assert record.subscriber_msisdn == "8801711222333"
        assert record.retailer_msisdn == "01819000111"
        assert record.provider_txn_id == "R1"
        assert record.response_txn_id == "R1"
        assert record.login_provider == "app"
        assert len(record.tran_msg) == test_settings.transaction_message_max_length


def test_postpaid_is_logged_as_bill_pay(session_factory, test_settings, recharge_request):
    store = SqlRechargeStore(session_factory, settings=test_settings)
    request = replace(recharge_request, payment_type=PaymentType.POSTPAID)

    store.save_transaction_log(_attempt(request))

    with session_scope(session_factory) as session:
        (record,) = _logged(session, "R012345")
        assert record.tran_type == "Bill Pay"


def test_balance_snapshot_updates_registered_retailer_only(session_factory, test_settings):
    store = SqlRechargeStore(session_factory, settings=test_settings)
    with session_scope(session_factory) as session:
        BalanceRepository(session).register("R012345", "1819000111")

    stamp = datetime(2026, 10, 19, 10, 15)
    assert store.update_balance_snapshot("R012345", 4500.0, stamp) == 1
    assert store.update_balance_snapshot("R999999", 10.0, stamp) == 0

    snapshot = store.get_balance_snapshot("R012345")
    assert snapshot is not None
    assert snapshot.balance == 4500.0
    assert snapshot.updated_at == stamp
    assert snapshot.itopup_number == "1819000111"
    assert store.get_balance_snapshot("R999999") is None


def test_last_writer_wins(session_factory, test_settings):
    store = SqlRechargeStore(session_factory, settings=test_settings)
    with session_scope(session_factory) as session:
        BalanceRepository(session).register("R012345")

    store.update_balance_snapshot("R012345", 100.0, datetime(2026, 10, 19, 10, 0))
    store.update_balance_snapshot("R012345", 80.0, datetime(2026, 10, 19, 9, 0))

    assert store.get_balance_snapshot("R012345").balance == 80.0


def test_log_field_helpers():
    assert major_units("12345") == Decimal("123.45")
    assert major_units("abc") == Decimal(0)
    assert subscriber_with_prefix("01711222333") == "8801711222333"
    assert subscriber_with_prefix("8801711222333") == "8801711222333"
    assert retailer_with_zero("1819000111") == "01819000111"
    assert retailer_with_zero("01819000111") == "01819000111"
