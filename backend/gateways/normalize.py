from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

from loguru import logger

from app.domain import NormalizedOffer, OfferBatch, OfferClass, RawOfferEntry

from .offer_parsing import OfferParsingRules, ParsedOffer, parse_offer_text, to_int


_DIGIT = re.compile(r"\d")
_ZERO_VALUES = {"", "0", "0.0", "0.00"}


def _is_zero(value: str | None) -> bool:
    return (value or "").strip() in _ZERO_VALUES


def parse_offer_list(raw: Any) -> list[RawOfferEntry]:
    """Decode an IRIS ``OffersList`` value, which arrives either as a list or a JSON string."""

    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable offer list payload")
            return []
    if not isinstance(raw, list):
        return []
    return [RawOfferEntry.from_payload(item) for item in raw if isinstance(item, dict)]


def classify(parsed: ParsedOffer) -> OfferClass:
    """Single class tag, first match wins: data, then voice, then SMS."""

    has_voice = to_int(parsed.voice.minutes) != 0
    has_sms = to_int(parsed.sms) != 0
    has_data = to_int(parsed.data.total_mb) != 0 or to_int(parsed.data.per_day_mb) != 0

    if has_data:
        return OfferClass.COMBO if has_voice or has_sms else OfferClass.DATA
    if has_voice:
        return OfferClass.VOICE
    if parsed.voice.is_rate_cutter:
        return OfferClass.RATE_CUTTER
    if has_sms:
        return OfferClass.SMS
    return OfferClass.UNCLASSIFIED


def is_pack_status(entry: RawOfferEntry, promo_marker: str) -> bool:
    marker = promo_marker.lower()
    names = f"{entry.offer_name} {entry.display_name}".lower()
    return (
        marker in names
        and _is_zero(entry.commission)
        and _is_zero(entry.recharge_amount)
    )


def normalize_offer(
    entry: RawOfferEntry,
    transaction_id: str | None,
    rules: OfferParsingRules,
    gateway_label: str = "IRIS",
) -> NormalizedOffer:
    parsed = parse_offer_text(entry.display_name, rules)

    amount = to_int(parsed.amount) or to_int(entry.recharge_amount)
    commission = to_int(parsed.commission) or to_int(entry.commission)
    offer_class = classify(parsed)
    offer_type = " ".join(part for part in (gateway_label, offer_class.label) if part)

    return NormalizedOffer(
        sequence=entry.sequence,
        offer_id=entry.offer_id,
        description=entry.display_name.strip(),
        amount=amount,
        commission=commission,
        transaction_id=transaction_id,
        validity_days=to_int(parsed.validity_days),
        data_mb=to_int(parsed.data.total_mb),
        per_day_data_mb=to_int(parsed.data.per_day_mb),
        streaming_mb=to_int(parsed.data.streaming_mb),
        voice_minutes=to_int(parsed.voice.minutes),
        sms_count=to_int(parsed.sms),
        is_rate_cutter=parsed.voice.is_rate_cutter,
        has_wildcard_marker=parsed.has_wildcard_marker,
        offer_class=offer_class,
        offer_type=offer_type,
        diagnostics=parsed.diagnostics,
    )


def normalize_offers(
    entries: Iterable[RawOfferEntry],
    *,
    transaction_id: str | None,
    status_code: str | None,
    status_message: str,
    rules: OfferParsingRules,
    gateway_label: str = "IRIS",
) -> OfferBatch:
    batch = OfferBatch(
        status_code=status_code,
        status_message=status_message,
        transaction_id=transaction_id,
    )
    dropped = 0
    for entry in entries:
        if is_pack_status(entry, rules.promo_marker):
            batch.status_message = entry.display_name.strip()
            batch.has_pack_status = True
            continue
        if not entry.display_name.strip():
            dropped += 1
            continue
        if not _DIGIT.search(entry.display_name):
            dropped += 1
            continue
        offer = normalize_offer(entry, transaction_id, rules, gateway_label)
        if offer.diagnostics:
            logger.debug(
                "Offer {} parsed with diagnostics: {}", offer.offer_id, "; ".join(offer.diagnostics)
            )
        batch.offers.append(offer)

    if dropped:
        logger.debug("Dropped {} offer entries without a usable display name", dropped)
    return batch


__all__ = [
    "classify",
    "is_pack_status",
    "normalize_offer",
    "normalize_offers",
    "parse_offer_list",
]
