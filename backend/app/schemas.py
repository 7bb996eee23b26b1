from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class OfferRequest(BaseModel):
    retailer_code: str = Field(min_length=1)
    retailer_msisdn: str = Field(min_length=1)
    subscriber_msisdn: str = Field(min_length=1)
    amount: str = "0"

    @field_validator("retailer_code", "retailer_msisdn", "subscriber_msisdn", "amount", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return _strip(value)


class Offer(BaseModel):
    sequence: str
    offer_id: str
    description: str
    amount: int
    commission: int
    validity_days: int
    data_mb: int
    per_day_data_mb: int
    streaming_mb: int
    voice_minutes: int
    sms_count: int
    has_data_pack: bool
    has_streaming_pack: bool
    has_voice_pack: bool
    has_sms_pack: bool
    has_rate_cutter_pack: bool
    has_wildcard_marker: bool
    offer_class: str
    offer_type: str

    model_config = {"from_attributes": True}

    @field_validator("offer_class", mode="before")
    @classmethod
    def _enum_value(cls, value: Any) -> Any:
        return getattr(value, "value", value)


class OfferList(BaseModel):
    status_code: str | None = None
    status_message: str
    transaction_id: str | None = None
    has_pack_status: bool = False
    offers: list[Offer]

    model_config = {"from_attributes": True}


class RechargeRequest(BaseModel):
    gateway: Literal["ev", "iris"] = "ev"
    retailer_code: str = Field(min_length=1)
    retailer_msisdn: str = Field(min_length=1)
    subscriber_number: str = Field(min_length=1)
    amount: str = Field(min_length=1, description="Amount in gateway minor units")
    user_pin: str = Field(min_length=1)
    payment_type: int = Field(default=1, ge=0, le=2)
    email: str | None = None
    lat: str | None = None
    lng: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return _strip(value)


class RechargeResponse(BaseModel):
    success: bool
    message: str
    transactionId: str = ""


class BalanceRequest(BaseModel):
    retailer_code: str = Field(min_length=1)
    retailer_msisdn: str = Field(min_length=1)
    user_pin: str = Field(min_length=1)


class BalanceResponse(BaseModel):
    success: bool
    message: str
    balance: float | None = None
    display_time: str | None = None


class BalanceSnapshot(BaseModel):
    retailer_code: str
    itopup_number: str | None = None
    balance: float
    updated_at: datetime | None = None
    display_time: str | None = None

    model_config = {"from_attributes": True}
