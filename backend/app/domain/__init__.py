"""Domain models for offers, gateway outcomes, and recharge attempts."""

from .models import (
    BalanceResult,
    BalanceSnapshot,
    GatewayOutcome,
    NormalizedOffer,
    OfferBatch,
    OfferClass,
    PaymentType,
    RawOfferEntry,
    RechargeAttempt,
    RechargeRequest,
    RechargeResult,
    RechargeState,
)

__all__ = [
    "BalanceResult",
    "BalanceSnapshot",
    "GatewayOutcome",
    "NormalizedOffer",
    "OfferBatch",
    "OfferClass",
    "PaymentType",
    "RawOfferEntry",
    "RechargeAttempt",
    "RechargeRequest",
    "RechargeResult",
    "RechargeState",
]
