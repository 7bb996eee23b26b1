"""Cached retailer balance snapshots."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.domain import BalanceSnapshot
from app.models import BalanceSnapshotRecord


class BalanceRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def register(self, retailer_code: str, itopup_number: str | None = None) -> BalanceSnapshotRecord:
        existing = self._session.get(BalanceSnapshotRecord, retailer_code)
        if existing is None:
            existing = BalanceSnapshotRecord(retailer_code=retailer_code, balance=0)
            self._session.add(existing)
        if itopup_number:
            existing.itopup_number = itopup_number
        self._session.flush()
        return existing

    def update_snapshot(
        self,
        retailer_code: str,
        amount: float,
        timestamp: datetime | None,
        itopup_number: str | None = None,
    ) -> int:
        """Overwrite a registered snapshot; last writer wins. Returns rows touched."""

        values: dict[str, object] = {"balance": amount, "updated_at": timestamp}
        if itopup_number:
            values["itopup_number"] = itopup_number
        statement = (
            update(BalanceSnapshotRecord)
            .where(BalanceSnapshotRecord.retailer_code == retailer_code)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(statement)
        return result.rowcount or 0

    def get_snapshot(self, retailer_code: str) -> BalanceSnapshot | None:
        record = self._session.get(BalanceSnapshotRecord, retailer_code)
        if record is None:
            return None
        return BalanceSnapshot(
            retailer_code=record.retailer_code,
            itopup_number=record.itopup_number,
            balance=float(record.balance or 0),
            updated_at=record.updated_at,
        )
