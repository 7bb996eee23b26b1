from __future__ import annotations

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, FastAPI, Header, HTTPException, Request

from gateways.client import EvClient, Gateway, IrisClient
from gateways.service import OfferCatalogService, OfferQuery
from recharge.balance import BalanceInquiry
from recharge.context import RechargeContext
from recharge.orchestrator import RechargeOrchestrator

from . import domain, schemas
from .core.config import Settings, get_settings, settings
from .core.logging import configure_logging
from .db import SessionLocal, init_db
from .repositories import SqlRechargeStore

app = FastAPI(title="Top-up Broker API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Create tables and attach the trace sink when the API boots."""

    init_db()
    configure_logging(get_settings())


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness check for infrastructure monitors."""

    return {"status": "ok"}


def _settings() -> Settings:
    return get_settings()


def _recharge_store(config: Settings = Depends(_settings)) -> SqlRechargeStore:
    """Persistence collaborator sharing the process-wide session factory."""

    return SqlRechargeStore(SessionLocal, settings=config)


def _gateways(config: Settings = Depends(_settings)) -> Generator[dict[str, Gateway], None, None]:
    with EvClient(settings=config) as ev, IrisClient(settings=config) as iris:
        yield {ev.name: ev, iris.name: iris}


def _offer_service(config: Settings = Depends(_settings)) -> Generator[OfferCatalogService, None, None]:
    with IrisClient(settings=config) as client:
        yield OfferCatalogService(client, settings=config)


def _balance_inquiry(
    config: Settings = Depends(_settings),
    store: SqlRechargeStore = Depends(_recharge_store),
) -> Generator[BalanceInquiry, None, None]:
    with EvClient(settings=config) as client:
        yield BalanceInquiry(client, store, settings=config)


@app.post("/offers", response_model=schemas.OfferList, tags=["offers"])
def fetch_offers(payload: schemas.OfferRequest, service: OfferCatalogService = Depends(_offer_service)):
    """Query the IRIS catalog for a subscriber and return normalized offers."""

    batch = service.fetch(
        OfferQuery(
            retailer_code=payload.retailer_code,
            retailer_msisdn=payload.retailer_msisdn,
            subscriber_msisdn=payload.subscriber_msisdn,
            amount=payload.amount,
        )
    )
    return schemas.OfferList.model_validate(batch)


@app.post("/recharge", response_model=schemas.RechargeResponse, tags=["recharge"])
def submit_recharge(
    payload: schemas.RechargeRequest,
    request: Request,
    x_login_provider: Annotated[str | None, Header()] = None,
    user_agent: Annotated[str | None, Header()] = None,
    gateways: dict[str, Gateway] = Depends(_gateways),
    store: SqlRechargeStore = Depends(_recharge_store),
    config: Settings = Depends(_settings),
):
    """Run one recharge through the selected gateway."""

    gateway = gateways.get(payload.gateway)
    if gateway is None:
        raise HTTPException(status_code=400, detail="Unsupported gateway")

    recharge_request = domain.RechargeRequest(
        retailer_code=payload.retailer_code,
        retailer_msisdn=payload.retailer_msisdn,
        subscriber_number=payload.subscriber_number,
        amount=payload.amount,
        user_pin=payload.user_pin,
        payment_type=domain.PaymentType.coerce(payload.payment_type),
        email=payload.email,
        lat=payload.lat,
        lng=payload.lng,
    )
    context = RechargeContext.create(
        config,
        login_provider=x_login_provider,
        user_agent=user_agent,
        ip_address=request.client.host if request.client else None,
    )
    result = RechargeOrchestrator(gateway, store, settings=config).run(recharge_request, context)
    return result.to_dict()


@app.post("/balance", response_model=schemas.BalanceResponse, tags=["balance"])
def refresh_balance(payload: schemas.BalanceRequest, inquiry: BalanceInquiry = Depends(_balance_inquiry)):
    """Ask EV for the retailer's current balance and refresh the cached snapshot."""

    result = inquiry.run(payload.retailer_code, payload.retailer_msisdn, payload.user_pin)
    return schemas.BalanceResponse(
        success=result.success,
        message=result.message,
        balance=result.balance,
        display_time=result.display_time,
    )


@app.get("/balance/{retailer_code}", response_model=schemas.BalanceSnapshot, tags=["balance"])
def cached_balance(retailer_code: str, inquiry: BalanceInquiry = Depends(_balance_inquiry)):
    """Return the last stored balance snapshot for a retailer."""

    snapshot = inquiry.cached_balance(retailer_code)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Balance snapshot not found")
    return schemas.BalanceSnapshot.model_validate(snapshot)
