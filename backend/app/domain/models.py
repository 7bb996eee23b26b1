"""Typed domain representations shared by gateways, orchestration, and persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentType(IntEnum):
    PREPAID = 1
    POSTPAID = 2

    @classmethod
    def coerce(cls, value: Any) -> "PaymentType":
        """Map raw payment codes to a flavor; an unset code means prepaid."""

        if isinstance(value, PaymentType):
            return value
        if value in (None, "", 0, "0"):
            return cls.PREPAID
        return cls(int(value))


class OfferClass(str, Enum):
    DATA = "data"
    COMBO = "combo"
    VOICE = "voice"
    RATE_CUTTER = "rate_cutter"
    SMS = "sms"
    UNCLASSIFIED = "unclassified"

    @property
    def label(self) -> str:
        return {
            OfferClass.DATA: "Data",
            OfferClass.COMBO: "Combo",
            OfferClass.VOICE: "Voice",
            OfferClass.RATE_CUTTER: "Rate Cutter",
            OfferClass.SMS: "SMS",
            OfferClass.UNCLASSIFIED: "",
        }[self]


@dataclass(slots=True, frozen=True)
class RawOfferEntry:
    """One offer item exactly as the gateway catalog returned it."""

    sequence: str
    offer_id: str
    offer_name: str
    display_name: str
    commission: str
    recharge_amount: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RawOfferEntry":
        def text(*keys: str) -> str:
            for key in keys:
                value = payload.get(key)
                if value is not None:
                    return str(value)
            return ""

        return cls(
            sequence=text("sno", "sequence"),
            offer_id=text("offerID", "offerId", "offer_id"),
            offer_name=text("offerName", "offer_name"),
            display_name=text("offerDisplayName", "display_name"),
            commission=text("offerCommission", "commission"),
            recharge_amount=text("rechargeAmount", "recharge_amount"),
        )


@dataclass(slots=True, frozen=True)
class NormalizedOffer:
    """Canonical offer derived once from a :class:`RawOfferEntry`."""

    sequence: str
    offer_id: str
    description: str
    amount: int
    commission: int
    transaction_id: str | None
    validity_days: int
    data_mb: int
    per_day_data_mb: int
    streaming_mb: int
    voice_minutes: int
    sms_count: int
    is_rate_cutter: bool
    has_wildcard_marker: bool
    offer_class: OfferClass
    offer_type: str
    diagnostics: tuple[str, ...] = ()

    @property
    def has_data_pack(self) -> bool:
        return self.data_mb != 0 or self.per_day_data_mb != 0

    @property
    def has_streaming_pack(self) -> bool:
        return self.streaming_mb != 0

    @property
    def has_voice_pack(self) -> bool:
        return self.voice_minutes != 0

    @property
    def has_sms_pack(self) -> bool:
        return self.sms_count != 0

    @property
    def has_rate_cutter_pack(self) -> bool:
        return self.is_rate_cutter


@dataclass(slots=True)
class OfferBatch:
    """Normalized catalog response for one offer query."""

    status_code: str | None
    status_message: str
    transaction_id: str | None
    has_pack_status: bool = False
    offers: list[NormalizedOffer] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class GatewayOutcome:
    """Decoded result of one provider call."""

    gateway: str
    status_code: str
    message: str
    transaction_id: str | None = None
    timestamp: str | None = None
    received_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True, frozen=True)
class RechargeRequest:
    retailer_code: str
    retailer_msisdn: str
    subscriber_number: str
    amount: str
    user_pin: str
    payment_type: PaymentType = PaymentType.PREPAID
    email: str | None = None
    lat: str | None = None
    lng: str | None = None

    def summary(self) -> dict[str, Any]:
        """Loggable view of the request; the PIN is never included."""

        return {
            "retailer_code": self.retailer_code,
            "retailer_msisdn": self.retailer_msisdn,
            "subscriber_number": self.subscriber_number,
            "amount": self.amount,
            "payment_type": int(self.payment_type),
        }


class RechargeState(str, Enum):
    BUILT = "built"
    SUBMITTED = "submitted"
    INTERPRETED = "interpreted"
    LOGGED = "logged"
    RECONCILED = "reconciled"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class RechargeAttempt:
    """Working state of a single orchestration run."""

    request: RechargeRequest
    gateway: str
    login_provider: str | None = None
    state: RechargeState | None = None
    history: list[RechargeState] = field(default_factory=list)
    outcome: GatewayOutcome | None = None
    success: bool = False
    message: str = ""
    provider_transaction_id: str = ""
    diagnostics: list[str] = field(default_factory=list)
    degraded: bool = False
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    def transition(self, state: RechargeState) -> None:
        self.state = state
        self.history.append(state)

    def add_diagnostic(self, note: str) -> None:
        self.diagnostics.append(note)
        self.degraded = True

    def mark_failed(self, message: str) -> None:
        self.success = False
        self.message = message
        self.transition(RechargeState.FAILED)
        self.finished_at = utcnow()

    def mark_done(self) -> None:
        self.transition(RechargeState.DONE)
        self.finished_at = utcnow()


@dataclass(slots=True, frozen=True)
class RechargeResult:
    """The only view of an orchestration run a client may see."""

    success: bool
    message: str
    transaction_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "transactionId": self.transaction_id,
        }


@dataclass(slots=True, frozen=True)
class BalanceSnapshot:
    retailer_code: str
    itopup_number: str | None
    balance: float
    updated_at: datetime | None
    display_time: str | None = None


@dataclass(slots=True, frozen=True)
class BalanceResult:
    success: bool
    message: str
    balance: float | None = None
    display_time: str | None = None
