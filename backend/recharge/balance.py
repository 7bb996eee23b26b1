from __future__ import annotations

from datetime import datetime
from typing import Protocol

from loguru import logger

from app.core.config import Settings, settings as default_settings
from app.core.logging import trace_logger as default_trace_logger
from app.domain import BalanceResult, BalanceSnapshot
from gateways.client import EvClient
from gateways.errors import GatewayTransportError, RechargeRequestError
from gateways.messages import MessageInterpreter, truncate


class BalanceStore(Protocol):
    def update_balance_snapshot(
        self,
        retailer_code: str,
        amount: float,
        timestamp: datetime | None,
        itopup_number: str | None = None,
    ) -> int:
        ...

    def get_balance_snapshot(self, retailer_code: str) -> BalanceSnapshot | None:
        ...


class BalanceInquiry:
    """Ask EV for a retailer's stock balance and refresh the cached snapshot."""

    def __init__(
        self,
        client: EvClient,
        store: BalanceStore,
        *,
        settings: Settings | None = None,
        interpreter: MessageInterpreter | None = None,
        trace_logger=None,
    ) -> None:
        self.client = client
        self.store = store
        self.settings = settings or default_settings
        self.interpreter = interpreter or MessageInterpreter(self.settings)
        self.trace_logger = trace_logger or default_trace_logger

    def run(self, retailer_code: str, retailer_msisdn: str, pin: str) -> BalanceResult:
        try:
            payload = self.client.build_balance_request(retailer_msisdn, pin)
            outcome = self.client.submit(payload)
        except (RechargeRequestError, GatewayTransportError) as exc:
            logger.info("Balance inquiry failed for retailer {}: {}", retailer_code, exc)
            return BalanceResult(success=False, message=self.interpreter.normalize_message(str(exc)))

        interpretation = self.interpreter.interpret(outcome)
        if not interpretation.success:
            return BalanceResult(success=False, message=interpretation.message)

        diagnostics: list[str] = []
        balance = self.interpreter.parse_balance(outcome.message)
        stamp = self.interpreter.settlement_time(outcome)
        for diagnostic in (balance.diagnostic, stamp.diagnostic):
            if diagnostic:
                diagnostics.append(diagnostic)

        amount = float(balance.value) if balance.value else None
        if amount is not None:
            try:
                rows = self.store.update_balance_snapshot(
                    retailer_code, amount, stamp.value, retailer_msisdn
                )
            except Exception as exc:  # noqa: BLE001
                diagnostics.append(f"snapshot: {exc}")
            else:
                if not rows:
                    diagnostics.append("snapshot: no balance snapshot updated")

        if diagnostics:
            self.trace_logger.bind(origin="ev.balance").info(
                "retailer={} diagnostics={}",
                retailer_code,
                truncate(" | ".join(diagnostics), self.settings.diagnostic_max_length),
            )

        return BalanceResult(
            success=True,
            message=interpretation.message,
            balance=amount,
            display_time=stamp.display,
        )

    def cached_balance(self, retailer_code: str) -> BalanceSnapshot | None:
        snapshot = self.store.get_balance_snapshot(retailer_code)
        if snapshot is None or snapshot.display_time or snapshot.updated_at is None:
            return snapshot
        return BalanceSnapshot(
            retailer_code=snapshot.retailer_code,
            itopup_number=snapshot.itopup_number,
            balance=snapshot.balance,
            updated_at=snapshot.updated_at,
            display_time=snapshot.updated_at.strftime(self.settings.balance_display_format),
        )


__all__ = ["BalanceInquiry", "BalanceStore"]
