"""Turn raw gateway outcomes into a success flag and a message safe to show a retailer.

Raw provider text never leaves this module unmodified on the failure path: it
is either rewritten by the ordered redaction rules or masked by the fallback
redaction. Interpretation is idempotent, which is checked once when the
interpreter is built rather than on every call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from app.core.config import Settings, settings as default_settings
from app.domain import GatewayOutcome

from .offer_parsing import ParseResult


_LONG_DIGITS = re.compile(r"\d{6,}")
_WHITESPACE = re.compile(r"\s+")
_TXN_ANCHORS = ("txn number", "transaction id")
_INNER_ANCHOR = "transaction id"
_ID_PREFIX = re.compile(r"^(?:\s|[:#=\-])*(?:is\b)?(?:\s|[:#=\-])*")


def truncate(text: str | None, limit: int) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit]


def _mask(match: re.Match[str]) -> str:
    digits = match.group(0)
    return digits[:3] + "*" * (len(digits) - 5) + digits[-2:]


@dataclass(slots=True, frozen=True)
class Interpretation:
    success: bool
    message: str


@dataclass(slots=True, frozen=True)
class TimestampParse:
    value: datetime | None = None
    display: str | None = None
    diagnostic: str | None = None


class MessageInterpreter:
    """Classify provider outcomes and normalize their free-text messages."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or default_settings
        self.success_codes = dict(self.settings.success_status_codes)
        self.no_response_message = self.settings.no_response_message
        self.max_length = self.settings.message_max_length
        self.rules: list[tuple[re.Pattern[str], str]] = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in self.settings.redaction_rules
        ]
        self.balance_pattern = re.compile(self.settings.balance_pattern, re.IGNORECASE)
        self._check_idempotent()

    def _check_idempotent(self) -> None:
        outputs = [replacement for _, replacement in self.rules] + [self.no_response_message]
        for pattern, _ in self.rules:
            for output in outputs:
                if pattern.search(output):
                    raise ValueError(
                        f"Redaction rule {pattern.pattern!r} matches its own output {output!r}"
                    )
        for output in outputs:
            if not output.strip():
                raise ValueError("Redaction replacements must not be blank")
            if self.redact(output) != output:
                raise ValueError(f"Message {output!r} is altered by redaction")

    def is_success(self, outcome: GatewayOutcome) -> bool:
        expected = self.success_codes.get(outcome.gateway.lower())
        if expected is None:
            return False
        return (outcome.status_code or "").strip() == expected

    def redact(self, message: str | None) -> str:
        """Mask long digit runs, collapse whitespace, and cap the length."""

        if not message:
            return ""
        masked = _LONG_DIGITS.sub(_mask, message)
        collapsed = _WHITESPACE.sub(" ", masked).strip()
        return truncate(collapsed, self.max_length).strip()

    def normalize_message(self, raw: str | None) -> str:
        if not raw or not raw.strip():
            return self.no_response_message
        collapsed = _WHITESPACE.sub(" ", raw).strip()
        redacted = self.redact(raw)
        # Rules see the text as it will be shown, so a second pass finds nothing new.
        for pattern, replacement in self.rules:
            if pattern.search(collapsed) or pattern.search(redacted):
                return replacement
        return redacted

    def interpret(self, outcome: GatewayOutcome) -> Interpretation:
        if self.is_success(outcome):
            return Interpretation(success=True, message=self.redact(outcome.message))
        return Interpretation(success=False, message=self.normalize_message(outcome.message))

    def extract_transaction_id(self, message: str | None) -> ParseResult:
        """Pull a provider transaction reference out of free text; empty when absent."""

        if not message:
            return ParseResult(value="")
        try:
            lowered = message.lower()
            segment = next(
                (part for part in lowered.split(",") if any(a in part for a in _TXN_ANCHORS)),
                None,
            )
            if segment is None:
                return ParseResult(value="")

            anchor = next(a for a in _TXN_ANCHORS if a in segment)
            remainder = segment.split(anchor, 1)[1]
            if _INNER_ANCHOR in remainder:
                remainder = remainder.split(_INNER_ANCHOR, 1)[1]
            remainder = _ID_PREFIX.sub("", remainder)
            token = remainder.split()[0] if remainder.split() else ""
            return ParseResult(value=token.rstrip(".").upper())
        except (IndexError, ValueError, StopIteration) as exc:
            return ParseResult(
                value="",
                diagnostic=truncate(f"transaction id: {exc}", self.settings.diagnostic_max_length),
            )

    def parse_balance(self, message: str | None) -> ParseResult:
        if not message:
            return ParseResult(value="", diagnostic="balance: empty message")
        match = self.balance_pattern.search(message)
        if not match or not match.groups():
            return ParseResult(value="", diagnostic="balance: no balance figure in message")
        figure = (match.group(1) or "").replace(",", "")
        try:
            float(figure)
        except ValueError:
            return ParseResult(value="", diagnostic=f"balance: unreadable figure {figure!r}")
        return ParseResult(value=figure)

    def parse_timestamp(self, raw: str | None) -> TimestampParse:
        """Read a gateway timestamp and render it the way balances are displayed."""

        if not raw or not raw.strip():
            return TimestampParse(diagnostic="timestamp: missing")
        try:
            value = datetime.strptime(raw.strip(), self.settings.gateway_timestamp_format)
        except ValueError as exc:
            return TimestampParse(
                diagnostic=truncate(f"timestamp: {exc}", self.settings.diagnostic_max_length)
            )
        return TimestampParse(value=value, display=value.strftime(self.settings.balance_display_format))

    def settlement_time(self, outcome: GatewayOutcome) -> TimestampParse:
        """Gateway timestamp of an outcome, or its local receive time when none is usable."""

        stamp = self.parse_timestamp(outcome.timestamp)
        if stamp.value is not None:
            return stamp
        value = outcome.received_at.astimezone().replace(tzinfo=None)
        return TimestampParse(
            value=value,
            display=value.strftime(self.settings.balance_display_format),
            diagnostic=stamp.diagnostic,
        )


__all__ = ["Interpretation", "MessageInterpreter", "TimestampParse", "truncate"]
