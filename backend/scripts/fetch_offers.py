import argparse
import json
from dataclasses import asdict

from loguru import logger

from app.core.config import get_settings
from gateways.client import IrisClient
from gateways.service import OfferCatalogService, OfferQuery


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch and normalize an IRIS offer catalog")
    parser.add_argument("--retailer-code", required=True, help="Retailer code, e.g. R012345")
    parser.add_argument("--retailer-msisdn", required=True, help="Retailer MSISDN with leading 0")
    parser.add_argument("--subscriber", required=True, help="Subscriber MSISDN with leading 0")
    parser.add_argument("--amount", default="0", help="Recharge amount filter (0 for all offers)")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation for the output")
    return parser.parse_args(argv)


def batch_to_json(batch, indent: int | None = 2) -> str:
    payload = asdict(batch)
    for offer in payload["offers"]:
        offer["offer_class"] = getattr(offer["offer_class"], "value", offer["offer_class"])
        offer["diagnostics"] = list(offer["diagnostics"])
    return json.dumps(payload, indent=indent, ensure_ascii=False)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()

    with IrisClient(settings=settings) as client:
        service = OfferCatalogService(client, settings=settings)
        batch = service.fetch(
            OfferQuery(
                retailer_code=args.retailer_code,
                retailer_msisdn=args.retailer_msisdn,
                subscriber_msisdn=args.subscriber,
                amount=args.amount,
            )
        )

    logger.info("Fetched {} offers (status {})", len(batch.offers), batch.status_code)
    print(batch_to_json(batch, indent=args.indent))


if __name__ == "__main__":
    main()
