from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.db import Base
from app.domain import GatewayOutcome, RechargeAttempt, RechargeRequest
from gateways.client import GatewayRequest
from gateways.errors import GatewayTransportError


@pytest.fixture
def sample_offers_payload() -> dict[str, object]:
    path = Path(__file__).parent / "data" / "iris_offers.json"
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'topup_broker.db'}",
        trace_log_path="",
        iris_username="retail-app",
        iris_password="secret",
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def session_factory():
    from app import models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=True, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def recharge_request() -> RechargeRequest:
    return RechargeRequest(
        retailer_code="R012345",
        retailer_msisdn="1819000111",
        subscriber_number="01711222333",
        amount="5000",
        user_pin="1234",
    )


class StubGateway:
    """Gateway double returning a canned outcome or raising a transport error."""

    def __init__(self, outcome: GatewayOutcome | None = None, *, error: str | None = None, name: str = "ev"):
        self.name = name
        self.outcome = outcome
        self.error = error
        self.submitted: list[GatewayRequest] = []

    def build_recharge_request(self, request: RechargeRequest) -> GatewayRequest:
        return GatewayRequest(path="/recharge", kind="stub", json={"amount": request.amount})

    def submit(self, payload: GatewayRequest) -> GatewayOutcome:
        self.submitted.append(payload)
        if self.error is not None:
            raise GatewayTransportError(self.name, self.error)
        assert self.outcome is not None
        return self.outcome


@dataclass
class RecordingStore:
    """In-memory persistence collaborator; can be told to fail either operation."""

    fail_log: bool = False
    fail_snapshot: bool = False
    snapshot_rows: int = 1
    logged: list[RechargeAttempt] = field(default_factory=list)
    snapshots: list[tuple[str, float, datetime | None, str | None]] = field(default_factory=list)

    def save_transaction_log(self, attempt: RechargeAttempt) -> bool:
        if self.fail_log:
            raise RuntimeError("database is locked")
        self.logged.append(attempt)
        return True

    def update_balance_snapshot(self, retailer_code, amount, timestamp, itopup_number=None) -> int:
        if self.fail_snapshot:
            raise RuntimeError("balance table unavailable")
        self.snapshots.append((retailer_code, amount, timestamp, itopup_number))
        return self.snapshot_rows

    def get_balance_snapshot(self, retailer_code):
        return None


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()
