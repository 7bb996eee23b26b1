"""Extract structured fields from free-text gateway offer descriptions.

Every function here is total: malformed or missing tokens degrade to a zero
value, and anything unexpected is reported through a ``diagnostic`` field on
the returned result instead of being raised.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.core.config import Settings


ZERO = "0"

# A number optionally followed by an alphabetic unit: "10gb", "30 days", "500tk", "2910".
_NUMBER_UNIT = re.compile(r"(?<![\d.])(\d+(?:\.\d+)?)(?:\s*([a-z৳]+))?")
# Unit spelled before the number: "validity 7", "days 30".
_UNIT_NUMBER = re.compile(r"\b(validity|days?|months?|weeks?)\s*[:\-]?\s*(\d+)\b")

_CURRENCY_UNITS = frozenset({"tk", "taka", "bdt", "৳"})
_DAY_UNITS = frozenset({"d", "day", "days", "dys"})
_WEEK_UNITS = frozenset({"w", "wk", "week", "weeks"})
_MONTH_UNITS = frozenset({"mon", "month", "months"})
_HOUR_UNITS = frozenset({"h", "hr", "hrs", "hour", "hours"})
_DATA_UNITS = {"gb": 1024, "mb": 1}
_MINUTE_UNITS = frozenset({"min", "mins", "minute", "minutes"})
_SMS_UNITS = frozenset({"sms"})

_PER_DAY = re.compile(r"per\s*day|/\s*day\b|/\s*d\b|\bdaily\b|\bperday\b")
_STREAMING_KEYWORDS = frozenset({"toffee", "streaming", "bioscope", "youtube", "facebook", "social"})
_RATE_CUTTER = re.compile(
    r"rate\s*cutter|\bp\s*/\s*s(?:ec)?\b|paisa\s*/\s*(?:s|sec|min)\b|\bpoisha\b"
)
_WORD = re.compile(r"[a-z]+")


@dataclass(slots=True, frozen=True)
class OfferParsingRules:
    """Gateway quirks observed in production offer names, kept configurable."""

    promo_marker: str = "pop up"
    wildcard_pattern: str = r"(star|\*)"
    strip_pattern: str = r"[&#;$]"
    amount_suffix_rules: tuple[tuple[str, str], ...] = ((r"^(\d+)10$", r"\1"),)
    commission_pattern: str = (
        r"\b(?:commission|comm|com)\b\s*[:\-]?\s*(?:tk\.?\s*)?(\d+(?:\.\d+)?)"
    )
    error_max_length: int = 50

    @classmethod
    def from_settings(cls, settings: "Settings") -> "OfferParsingRules":
        return cls(
            promo_marker=settings.offer_promo_marker,
            wildcard_pattern=settings.offer_wildcard_pattern,
            strip_pattern=settings.offer_strip_pattern,
            amount_suffix_rules=tuple(tuple(rule) for rule in settings.offer_amount_suffix_rules),
            commission_pattern=settings.offer_commission_pattern,
            error_max_length=settings.offer_error_max_length,
        )


@dataclass(slots=True, frozen=True)
class ParseResult:
    value: str = ZERO
    diagnostic: str | None = None


@dataclass(slots=True, frozen=True)
class HeadToken:
    value: str
    has_wildcard_marker: bool = False
    diagnostic: str | None = None


@dataclass(slots=True, frozen=True)
class VoiceParse:
    minutes: str = ZERO
    is_rate_cutter: bool = False
    diagnostic: str | None = None


@dataclass(slots=True, frozen=True)
class DataParse:
    total_mb: str = ZERO
    per_day_mb: str = ZERO
    streaming_mb: str = ZERO
    diagnostic: str | None = None


@dataclass(slots=True, frozen=True)
class ParsedOffer:
    """All independent extractions for one offer display name."""

    offer_text: str
    amount: str
    commission: str
    validity_days: str
    data: DataParse
    voice: VoiceParse
    sms: str
    has_wildcard_marker: bool
    diagnostics: tuple[str, ...] = field(default_factory=tuple)


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


def _format_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def _to_decimal(raw: str) -> Decimal | None:
    try:
        return Decimal(raw)
    except (InvalidOperation, ValueError):
        return None


def to_int(value: str | None) -> int:
    """Whole-number view of a parsed field; anything non-numeric becomes 0."""

    if not value:
        return 0
    number = _to_decimal(value.replace(",", "").strip())
    if number is None or not number.is_finite():
        return 0
    return int(number)


def _pairs(text: str | None) -> list[tuple[str, str | None, re.Match[str]]]:
    if not text:
        return []
    return [(m.group(1), m.group(2), m) for m in _NUMBER_UNIT.finditer(text.lower())]


def strip_head_token(head: str | None, rules: OfferParsingRules) -> HeadToken:
    """Strip the promotional marker and the configured amount quirks from a head token."""

    token = (head or "").strip().lower()
    has_marker = False
    try:
        has_marker = re.search(rules.wildcard_pattern, token, re.IGNORECASE) is not None
        token = re.sub(rules.strip_pattern, "", token)
        if token[:1] == "*":
            token = token[1:]
        for pattern, replacement in rules.amount_suffix_rules:
            if re.search(pattern, token):
                token = re.sub(pattern, replacement, token, count=1)
                break
    except (re.error, IndexError) as exc:
        message = _truncate(str(exc), rules.error_max_length)
        return HeadToken(value=message, has_wildcard_marker=has_marker, diagnostic=message)
    return HeadToken(value=token, has_wildcard_marker=has_marker)


def parse_amount(text: str | None) -> ParseResult:
    """Currency-qualified number first, then the first bare number, else "0"."""

    pairs = _pairs(text)
    for number, unit, _ in pairs:
        if unit in _CURRENCY_UNITS:
            return ParseResult(number)
    for number, unit, _ in pairs:
        if unit is None:
            return ParseResult(number)
    return ParseResult()


def parse_validity(text: str | None) -> ParseResult:
    candidates: list[tuple[str, str]] = [(number, unit) for number, unit, _ in _pairs(text) if unit]
    if text:
        candidates.extend(
            (number, "days" if keyword == "validity" else keyword)
            for keyword, number in _UNIT_NUMBER.findall(text.lower())
        )
    for number, unit in candidates:
        amount = _to_decimal(number)
        if amount is None:
            continue
        if unit in _DAY_UNITS:
            days = amount
        elif unit in _WEEK_UNITS:
            days = amount * 7
        elif unit in _MONTH_UNITS:
            days = amount * 30
        elif unit in _HOUR_UNITS:
            days = Decimal(math.ceil(amount / 24))
        else:
            continue
        return ParseResult(_format_number(days))
    return ParseResult()


def _is_streaming(text: str, match: re.Match[str]) -> bool:
    following = _WORD.findall(text[match.end():])[:1]
    preceding = _WORD.findall(text[: match.start()])[-1:]
    return any(word in _STREAMING_KEYWORDS for word in following + preceding)


def parse_data(text: str | None) -> DataParse:
    """Data allowance in MB, split into total, per-day, and streaming buckets."""

    if not text:
        return DataParse()
    lowered = text.lower()
    allowance: Decimal | None = None
    streaming = Decimal(0)
    for number, unit, match in _pairs(lowered):
        if unit not in _DATA_UNITS:
            continue
        amount = _to_decimal(number)
        if amount is None:
            continue
        megabytes = amount * _DATA_UNITS[unit]
        if _is_streaming(lowered, match):
            streaming += megabytes
        elif allowance is None:
            allowance = megabytes

    total = per_day = ZERO
    if allowance is not None:
        if _PER_DAY.search(lowered):
            per_day = str(int(allowance))
        else:
            total = str(int(allowance))
    return DataParse(total_mb=total, per_day_mb=per_day, streaming_mb=str(int(streaming)))


def parse_voice(text: str | None) -> VoiceParse:
    """Voice minutes plus the rate-cutter flag, which needs no minute count."""

    if not text:
        return VoiceParse()
    is_rate_cutter = _RATE_CUTTER.search(text.lower()) is not None
    for number, unit, _ in _pairs(text):
        if unit in _MINUTE_UNITS:
            return VoiceParse(minutes=str(to_int(number)), is_rate_cutter=is_rate_cutter)
    return VoiceParse(is_rate_cutter=is_rate_cutter)


def parse_sms(text: str | None) -> ParseResult:
    for number, unit, _ in _pairs(text):
        if unit in _SMS_UNITS:
            return ParseResult(str(to_int(number)))
    return ParseResult()


def parse_commission(display_name: str | None, pattern: str) -> ParseResult:
    if not display_name:
        return ParseResult()
    try:
        match = re.search(pattern, display_name.lower())
        value = match.group(1) if match else ZERO
    except (re.error, IndexError) as exc:
        return ParseResult(diagnostic=f"commission: {exc}")
    return ParseResult(value)


def parse_offer_text(display_name: str | None, rules: OfferParsingRules) -> ParsedOffer:
    """Run every extraction over an offer display name."""

    diagnostics: list[str] = []
    lowered = (display_name or "").lower()

    commission = parse_commission(lowered, rules.commission_pattern)
    body = lowered
    if commission.value != ZERO:
        body = re.sub(rules.commission_pattern, " ", lowered, count=1)

    head, _, rest = body.strip().partition(" ")
    head_token = strip_head_token(head, rules)
    if head_token.diagnostic:
        # The amount carries the truncated error text; the rest still parses.
        diagnostics.append(head_token.diagnostic)
        offer_text = " ".join(part for part in (head, rest.strip()) if part)
        amount = ParseResult(head_token.value)
    else:
        offer_text = " ".join(part for part in (head_token.value, rest.strip()) if part)
        amount = parse_amount(offer_text)

    validity = parse_validity(offer_text)
    data = parse_data(offer_text)
    voice = parse_voice(offer_text)
    sms = parse_sms(offer_text)

    for result in (amount, validity, data, voice, sms, commission):
        if result.diagnostic:
            diagnostics.append(result.diagnostic)

    return ParsedOffer(
        offer_text=offer_text,
        amount=amount.value,
        commission=commission.value,
        validity_days=validity.value,
        data=data,
        voice=voice,
        sms=sms.value,
        has_wildcard_marker=head_token.has_wildcard_marker,
        diagnostics=tuple(diagnostics),
    )


__all__ = [
    "DataParse",
    "HeadToken",
    "OfferParsingRules",
    "ParseResult",
    "ParsedOffer",
    "VoiceParse",
    "parse_amount",
    "parse_commission",
    "parse_data",
    "parse_offer_text",
    "parse_sms",
    "parse_validity",
    "parse_voice",
    "strip_head_token",
    "to_int",
]
