"""Repository abstractions for database interactions."""

from .balance_repository import BalanceRepository
from .store import SqlRechargeStore
from .transaction_repository import TransactionRepository

__all__ = [
    "BalanceRepository",
    "SqlRechargeStore",
    "TransactionRepository",
]
