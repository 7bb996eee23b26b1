from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import httpx
from loguru import logger

from app.core.config import Settings, settings as default_settings
from app.domain import GatewayOutcome, PaymentType, RechargeRequest

from .errors import GatewayTransportError, RechargeRequestError
from .ev_xml import (
    BALANCE_FIELDS,
    BALANCE_INQUIRY,
    POSTPAID_BILL_PAY,
    PREPAID_TOPUP,
    RECHARGE_FIELDS,
    build_command_xml,
    parse_command_response,
)


_PIN_ELEMENT = re.compile(rb"<PIN>.*?</PIN>", re.IGNORECASE | re.DOTALL)
_SECRET_KEYS = {"pin", "userpin", "password"}
_DIGITS = re.compile(r"^\d+$")


@dataclass(slots=True, frozen=True)
class GatewayRequest:
    """A request ready to be posted to a gateway path."""

    path: str
    kind: str
    content: bytes | None = None
    json: dict[str, Any] | None = field(default=None)

    def masked(self) -> str:
        if self.content is not None:
            return _PIN_ELEMENT.sub(b"<PIN>****</PIN>", self.content).decode("utf-8", "replace")
        return str(
            {
                key: ("****" if key.lower() in _SECRET_KEYS else value)
                for key, value in (self.json or {}).items()
            }
        )


class Gateway(Protocol):
    name: str

    def build_recharge_request(self, request: RechargeRequest) -> GatewayRequest:
        ...

    def submit(self, payload: GatewayRequest) -> GatewayOutcome:
        ...


def _require(value: str | None, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise RechargeRequestError(f"{label} is required")
    return cleaned


def _require_digits(value: str | None, label: str) -> str:
    cleaned = _require(value, label)
    if not _DIGITS.match(cleaned):
        raise RechargeRequestError(f"{label} must contain digits only")
    return cleaned


def _drop_first(value: str) -> str:
    return value[1:] if value else value


def iris_status_code(reply: dict[str, Any]) -> str:
    """IRIS sends statusCode as a string or a bare number; 0 is a real code."""

    value = reply.get("statusCode")
    return "" if value is None else str(value).strip()


class _HttpGateway:
    name = ""

    def __init__(
        self,
        *,
        base_url: str,
        settings: Settings | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.base_url = base_url
        self.timeout = timeout or self.settings.gateway_timeout_seconds
        client_kwargs: dict[str, Any] = {"base_url": self.base_url, "timeout": self.timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.Client(**client_kwargs)

    def _post(self, payload: GatewayRequest) -> httpx.Response:
        logger.info("{} POST {} kind={}", self.name.upper(), payload.path, payload.kind)
        logger.debug("{} request body {}", self.name.upper(), payload.masked())
        try:
            if payload.content is not None:
                response = self.client.post(
                    payload.path,
                    content=payload.content,
                    headers={"Content-Type": "text/xml; charset=utf-8"},
                )
            else:
                response = self.client.post(payload.path, json=payload.json)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("{} call to {} failed: {}", self.name.upper(), payload.path, exc)
            raise GatewayTransportError(self.name, str(exc) or exc.__class__.__name__) from exc
        logger.debug("{} response {} {}", self.name.upper(), response.status_code, response.text)
        return response

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EvClient(_HttpGateway):
    """XML client for the EV recharge gateway."""

    name = "ev"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        settings: Settings | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        resolved = settings or default_settings
        super().__init__(
            base_url=base_url or str(resolved.ev_base_url),
            settings=resolved,
            timeout=timeout,
            transport=transport,
        )

    def build_recharge_request(self, request: RechargeRequest) -> GatewayRequest:
        payment_type = PaymentType.coerce(request.payment_type)
        command = PREPAID_TOPUP if payment_type is PaymentType.PREPAID else POSTPAID_BILL_PAY
        fields = {
            "TYPE": command,
            "EXTNWCODE": self.settings.ev_network_code,
            "MSISDN": _require_digits(request.retailer_msisdn, "Retailer MSISDN"),
            "PIN": _require(request.user_pin, "PIN"),
            "MSISDN2": _require_digits(request.subscriber_number, "Subscriber number"),
            "AMOUNT": _require_digits(request.amount, "Amount"),
            "LANGUAGE1": "0",
            "LANGUAGE2": "1",
            "SELECTOR": "1",
        }
        return GatewayRequest(
            path=self.settings.ev_recharge_path,
            kind=command,
            content=build_command_xml(fields, RECHARGE_FIELDS),
        )

    def build_balance_request(self, retailer_msisdn: str, pin: str) -> GatewayRequest:
        fields = {
            "TYPE": BALANCE_INQUIRY,
            "EXTNWCODE": self.settings.ev_network_code,
            "MSISDN": _require_digits(retailer_msisdn, "Retailer MSISDN"),
            "PIN": _require(pin, "PIN"),
        }
        return GatewayRequest(
            path=self.settings.ev_balance_path,
            kind=BALANCE_INQUIRY,
            content=build_command_xml(fields, BALANCE_FIELDS),
        )

    def submit(self, payload: GatewayRequest) -> GatewayOutcome:
        response = self._post(payload)
        return parse_command_response(response.content)


class IrisClient(_HttpGateway):
    """JSON client for the IRIS offer and recharge endpoints."""

    name = "iris"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        settings: Settings | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        resolved = settings or default_settings
        super().__init__(
            base_url=base_url or str(resolved.iris_base_url),
            settings=resolved,
            timeout=timeout,
            transport=transport,
        )

    def _credentials(self) -> dict[str, Any]:
        return {
            "username": self.settings.iris_username or "",
            "password": self.settings.iris_password or "",
            "channel": self.settings.iris_channel,
            "gatewayCode": self.settings.iris_gateway_code,
        }

    @staticmethod
    def transaction_id(retailer_code: str, now: datetime | None = None) -> str:
        moment = now or datetime.now()
        return f"{_drop_first(retailer_code)}.{moment:%Y%m%d}.{moment:%H%M%S%f}"

    def build_offer_request(
        self,
        *,
        retailer_code: str,
        retailer_msisdn: str,
        subscriber_msisdn: str,
        amount: str | int,
        now: datetime | None = None,
    ) -> GatewayRequest:
        body = self._credentials()
        body.update(
            {
                "retailerMsisdn": _drop_first(retailer_msisdn.strip()),
                "subscriberMsisdn": _drop_first(subscriber_msisdn.strip()),
                "transactionID": self.transaction_id(retailer_code, now),
                "rechargeAmount": str(amount),
            }
        )
        return GatewayRequest(path=self.settings.iris_offer_path, kind="getDigitalOffer", json=body)

    def fetch_offers(self, payload: GatewayRequest) -> dict[str, Any]:
        """Post an offer query and return the ``response`` object of the reply."""

        response = self._post(payload)
        return self._response_object(response)

    def build_recharge_request(self, request: RechargeRequest) -> GatewayRequest:
        retailer_code = _require(request.retailer_code, "Retailer code")
        body = self._credentials()
        body.update(
            {
                "retailerMsisdn": _drop_first(_require_digits(request.retailer_msisdn, "Retailer MSISDN")),
                "subscriberMsisdn": _drop_first(
                    _require_digits(request.subscriber_number, "Subscriber number")
                ),
                "amount": _require_digits(request.amount, "Amount"),
                "userPin": _require(request.user_pin, "PIN"),
                "paymentType": int(PaymentType.coerce(request.payment_type)),
                "transactionID": self.transaction_id(retailer_code),
            }
        )
        return GatewayRequest(path=self.settings.iris_recharge_path, kind="continueRecharge", json=body)

    def submit(self, payload: GatewayRequest) -> GatewayOutcome:
        reply = self._response_object(self._post(payload))
        return GatewayOutcome(
            gateway=self.name,
            status_code=iris_status_code(reply),
            message=str(reply.get("statusMessage") or ""),
            transaction_id=reply.get("transactionID") or reply.get("transactionId"),
            timestamp=reply.get("dateTime") or reply.get("transactionDate"),
        )

    def _response_object(self, response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise GatewayTransportError(self.name, "IRIS gateway returned invalid JSON") from exc
        if not isinstance(payload, dict):
            return {}
        inner = payload.get("response")
        return inner if isinstance(inner, dict) else payload


__all__ = ["EvClient", "Gateway", "GatewayRequest", "IrisClient", "iris_status_code"]
