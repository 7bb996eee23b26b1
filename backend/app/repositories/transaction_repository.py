"""Transaction log persistence."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from app.domain import PaymentType, RechargeAttempt
from app.models import TransactionLog


TRAN_TYPE_LABELS = {
    PaymentType.PREPAID: "ITOP'UP",
    PaymentType.POSTPAID: "Bill Pay",
}
COUNTRY_PREFIX = "88"


def major_units(amount: str) -> Decimal:
    """Gateway amounts are in minor units; logs keep major units."""

    try:
        return Decimal(amount.strip()) / 100
    except (InvalidOperation, AttributeError):
        return Decimal(0)


def subscriber_with_prefix(number: str) -> str:
    cleaned = number.strip()
    if len(cleaned) == 11:
        return COUNTRY_PREFIX + cleaned
    return cleaned


def retailer_with_zero(number: str) -> str:
    cleaned = number.strip()
    return cleaned if cleaned.startswith("0") else "0" + cleaned


class TransactionRepository:
    def __init__(self, session: Session, *, message_max_length: int = 1000) -> None:
        self._session = session
        self._message_max_length = message_max_length

    def add_attempt(self, attempt: RechargeAttempt) -> TransactionLog:
        request = attempt.request
        outcome = attempt.outcome
        raw_message = outcome.message if outcome else attempt.message
        record = TransactionLog(
            retailer_code=request.retailer_code,
            gateway=attempt.gateway,
            tran_type=TRAN_TYPE_LABELS[PaymentType.coerce(request.payment_type)],
            amount=major_units(request.amount),
            subscriber_msisdn=subscriber_with_prefix(request.subscriber_number),
            retailer_msisdn=retailer_with_zero(request.retailer_msisdn),
            provider_txn_id=outcome.transaction_id if outcome else None,
            response_txn_id=attempt.provider_transaction_id or None,
            login_provider=attempt.login_provider,
            is_success=attempt.success,
            tran_msg=(raw_message or "")[: self._message_max_length],
            email=request.email,
            lat=request.lat,
            lng=request.lng,
        )
        self._session.add(record)
        self._session.flush()
        return record
