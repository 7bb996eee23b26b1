from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionLog(Base):
    __tablename__ = "transaction_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    retailer_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    gateway: Mapped[str] = mapped_column(String(10), nullable=False)
    tran_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    subscriber_msisdn: Mapped[str] = mapped_column(String(20), nullable=False)
    retailer_msisdn: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_txn_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    response_txn_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    login_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tran_msg: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lat: Mapped[str | None] = mapped_column(String(50), nullable=True)
    lng: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class BalanceSnapshotRecord(Base):
    __tablename__ = "balance_snapshots"

    retailer_code: Mapped[str] = mapped_column(String(50), primary_key=True)
    itopup_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    balance: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False, default=0)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
