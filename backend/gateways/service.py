from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from app.core.config import Settings, settings as default_settings
from app.domain import OfferBatch

from .client import IrisClient, iris_status_code
from .errors import GatewayTransportError
from .messages import MessageInterpreter, truncate
from .normalize import normalize_offers, parse_offer_list
from .offer_parsing import OfferParsingRules


@dataclass(slots=True, frozen=True)
class OfferQuery:
    retailer_code: str
    retailer_msisdn: str
    subscriber_msisdn: str
    amount: str = "0"


class OfferCatalogService:
    """Fetch an IRIS offer catalog and turn it into normalized offers."""

    def __init__(
        self,
        client: IrisClient,
        *,
        settings: Settings | None = None,
        interpreter: MessageInterpreter | None = None,
    ) -> None:
        self.client = client
        self.settings = settings or default_settings
        self.interpreter = interpreter or MessageInterpreter(self.settings)
        self.rules = OfferParsingRules.from_settings(self.settings)

    def fetch(self, query: OfferQuery) -> OfferBatch:
        payload = self.client.build_offer_request(
            retailer_code=query.retailer_code,
            retailer_msisdn=query.retailer_msisdn,
            subscriber_msisdn=query.subscriber_msisdn,
            amount=query.amount,
        )
        transaction_id = (payload.json or {}).get("transactionID")

        try:
            reply = self.client.fetch_offers(payload)
        except GatewayTransportError as exc:
            logger.warning("IRIS offer call failed for retailer {}: {}", query.retailer_code, exc)
            message = truncate(
                self.interpreter.normalize_message(str(exc)), self.settings.diagnostic_max_length
            )
            return OfferBatch(status_code=None, status_message=message, transaction_id=transaction_id)

        status_code = iris_status_code(reply)
        status_message = str(reply.get("statusMessage") or "")
        if status_code != self.settings.success_status_codes.get("iris", "0"):
            message = self.interpreter.normalize_message(status_message)
            if not reply:
                message = self.settings.no_offer_message
            return OfferBatch(status_code=status_code or None, status_message=message, transaction_id=transaction_id)

        entries = parse_offer_list(reply.get("OffersList") or reply.get("offersList"))
        if not entries:
            return OfferBatch(
                status_code=status_code,
                status_message=self.settings.no_offer_message,
                transaction_id=transaction_id,
            )

        batch = normalize_offers(
            entries,
            transaction_id=transaction_id,
            status_code=status_code,
            status_message=self.interpreter.redact(status_message),
            rules=self.rules,
        )
        logger.info(
            "Normalized {} of {} IRIS offers for retailer {}",
            len(batch.offers),
            len(entries),
            query.retailer_code,
        )
        return batch


__all__ = ["OfferCatalogService", "OfferQuery"]
