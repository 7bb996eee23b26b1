import json
import re
from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_REDACTION_RULES: list[tuple[str, str]] = [
    (
        r"\b(invalid|incorrect|wrong)\s+pin\b|\bpin\b.*\b(invalid|incorrect|wrong|mismatch)\b",
        "The PIN you entered is not correct.",
    ),
    (
        r"insufficient|not\s+enough\s+balance|low\s+balance",
        "Your balance is not sufficient for this transaction.",
    ),
    (
        r"\b(same|duplicate|similar)\s+(request|transaction|recharge)\b",
        "Another request for this subscriber is already being processed. Please try again later.",
    ),
    (
        r"amount.*\b(range|minimum|maximum|not\s+allowed|invalid)\b|\b(minimum|maximum)\b.*amount",
        "This recharge value cannot be processed for the subscriber.",
    ),
    (
        r"\b(receiver|msisdn|number)\b.*\b(not\s+found|invalid|barred|suspended|not\s+allowed|does\s+not\s+exist)\b",
        "The subscriber number is not eligible for this recharge.",
    ),
    (
        r"time[d\s-]*out|not\s+responding|connection\s+(refused|reset|closed)|service\s+unavailable",
        "The operator service is busy right now. Please try again later.",
    ),
]


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme in {"postgres", "postgresql"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("target_session_attrs", "read-write")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


def _compile_or_raise(pattern: str, field_name: str) -> str:
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"{field_name} contains an invalid pattern {pattern!r}: {exc}") from exc
    return pattern


def _parse_rule_pairs(value: Any, field_name: str) -> list[tuple[str, str]]:
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return []
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{field_name} must be a JSON list of [pattern, replacement] pairs") from exc
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{field_name} must be a list of [pattern, replacement] pairs")
    pairs: list[tuple[str, str]] = []
    for item in value:
        if isinstance(item, dict):
            item = (item.get("pattern"), item.get("replacement"))
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ValueError(f"{field_name} entries must be [pattern, replacement] pairs")
        pattern, replacement = (str(part) if part is not None else "" for part in item)
        if not pattern:
            raise ValueError(f"{field_name} entries require a non-empty pattern")
        pairs.append((_compile_or_raise(pattern, field_name), replacement))
    return pairs


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/topup_broker.db",
        description="SQLAlchemy compatible database URL",
    )
    ev_base_url: AnyUrl | str = Field(
        default="http://ev.example.invalid",
        description="Base URL of the EV XML gateway",
    )
    ev_recharge_path: str = Field(
        default="/pretups/C2SReceiver",
        description="Relative path for EV recharge and bill payment commands",
    )
    ev_balance_path: str = Field(
        default="/pretups/C2SReceiver",
        description="Relative path for EV balance inquiry commands",
    )
    ev_network_code: str = Field(default="BD", description="EV external network code")
    iris_base_url: AnyUrl | str = Field(
        default="http://iris.example.invalid",
        description="Base URL of the IRIS JSON gateway",
    )
    iris_offer_path: str = Field(default="/getDigitalOffer")
    iris_recharge_path: str = Field(default="/continueRecharge")
    iris_username: str | None = Field(default=None, description="IRIS API username")
    iris_password: str | None = Field(default=None, description="IRIS API password")
    iris_channel: str = Field(default="RSO_APP", description="IRIS channel identifier")
    iris_gateway_code: str = Field(default="RETAILER", description="IRIS gateway code")
    gateway_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound in seconds for a single gateway call",
        gt=0,
    )
    success_status_codes: dict[str, str] = Field(
        default_factory=lambda: {"ev": "200", "iris": "0"},
        description="Status code denoting settlement success, keyed by gateway name",
    )
    redaction_rules: list[tuple[str, str]] | str = Field(
        default_factory=lambda: list(DEFAULT_REDACTION_RULES),
        description="Ordered [pattern, replacement] rules rewriting raw gateway messages",
    )
    no_response_message: str = Field(
        default="No response was received from the operator. Please try again.",
        description="Message shown when a gateway returns an empty message",
    )
    no_offer_message: str = Field(
        default="No offer is available for this subscriber right now.",
        description="Message shown when the offer catalog call returns nothing",
    )
    diagnostic_max_length: int = Field(
        default=256, description="Truncation length for diagnostic trace entries", ge=16
    )
    message_max_length: int = Field(
        default=500, description="Truncation length for caller-facing messages", ge=16
    )
    transaction_message_max_length: int = Field(
        default=1000, description="Truncation length for gateway messages stored in transaction logs", ge=16
    )
    balance_pattern: str = Field(
        default=r"balance(?:\s+is)?\s*(?:tk\.?|bdt|taka)?\s*[:=]?\s*([\d,]+(?:\.\d+)?)",
        description="Pattern whose first group captures the balance figure in a gateway message",
    )
    gateway_timestamp_format: str = Field(default="%d/%m/%Y %H:%M:%S")
    balance_display_format: str = Field(default="%I:%M:%S %p, %d %b %Y")
    offer_promo_marker: str = Field(
        default="pop up",
        description="Keyword flagging a pack status entry inside an offer list",
    )
    offer_wildcard_pattern: str = Field(default=r"(star|\*)")
    offer_strip_pattern: str = Field(default=r"[&#;$]")
    offer_amount_suffix_rules: list[tuple[str, str]] | str = Field(
        default_factory=lambda: [(r"^(\d+)10$", r"\1")],
        description="Ordered [pattern, replacement] rewrites applied to an offer's head token",
    )
    offer_commission_pattern: str = Field(
        default=r"\b(?:commission|comm|com)\b\s*[:\-]?\s*(?:tk\.?\s*)?(\d+(?:\.\d+)?)",
    )
    offer_error_max_length: int = Field(default=50, ge=1)
    trace_log_path: str | None = Field(
        default="./logs/trace.log",
        description="File receiving out-of-band diagnostic traces (blank disables the sink)",
    )

    @field_validator("redaction_rules", "offer_amount_suffix_rules", mode="before")
    @classmethod
    def _parse_rules(cls, value: Any, info) -> list[tuple[str, str]]:
        if value is None:
            return []
        return _parse_rule_pairs(value, info.field_name.upper())

    @field_validator(
        "balance_pattern",
        "offer_wildcard_pattern",
        "offer_strip_pattern",
        "offer_commission_pattern",
    )
    @classmethod
    def _validate_pattern(cls, value: str, info) -> str:
        return _compile_or_raise(value, info.field_name.upper())

    @field_validator("success_status_codes", mode="before")
    @classmethod
    def _parse_status_codes(cls, value: Any) -> dict[str, str]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("SUCCESS_STATUS_CODES must be a JSON object") from exc
        if not isinstance(value, dict):
            raise ValueError("SUCCESS_STATUS_CODES must map gateway names to status codes")
        return {str(key).lower(): str(code) for key, code in value.items()}

    @field_validator("trace_log_path", mode="before")
    @classmethod
    def _blank_trace_path(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
