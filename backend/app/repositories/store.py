"""SQL-backed persistence collaborator for recharge and balance flows."""

from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, settings as default_settings
from app.db import session_scope
from app.domain import BalanceSnapshot, RechargeAttempt

from .balance_repository import BalanceRepository
from .transaction_repository import TransactionRepository


class SqlRechargeStore:
    """Hold one session factory and open a scoped session per operation."""

    def __init__(self, session_factory: sessionmaker[Session], *, settings: Settings | None = None) -> None:
        self._session_factory = session_factory
        self._settings = settings or default_settings

    def save_transaction_log(self, attempt: RechargeAttempt) -> bool:
        with session_scope(self._session_factory) as session:
            repo = TransactionRepository(
                session, message_max_length=self._settings.transaction_message_max_length
            )
            record = repo.add_attempt(attempt)
            logger.debug("Stored transaction log {} for retailer {}", record.id, record.retailer_code)
        return True

    def update_balance_snapshot(
        self,
        retailer_code: str,
        amount: float,
        timestamp: datetime | None,
        itopup_number: str | None = None,
    ) -> int:
        with session_scope(self._session_factory) as session:
            return BalanceRepository(session).update_snapshot(
                retailer_code, amount, timestamp, itopup_number
            )

    def get_balance_snapshot(self, retailer_code: str) -> BalanceSnapshot | None:
        with session_scope(self._session_factory) as session:
            return BalanceRepository(session).get_snapshot(retailer_code)
