"""Drive one recharge from request to caller-facing result.

Only the submission and its interpretation decide whether a recharge
succeeded. Everything after that (transaction log, balance snapshot,
transaction-id extraction) is bookkeeping: failures there are collected as
diagnostics on the attempt, written to the trace channel, and never change
the result returned to the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from loguru import logger

from app.core.config import Settings, settings as default_settings
from app.core.logging import trace_logger as default_trace_logger
from app.domain import RechargeAttempt, RechargeRequest, RechargeResult, RechargeState
from gateways.client import Gateway
from gateways.errors import GatewayTransportError, RechargeRequestError
from gateways.messages import MessageInterpreter, truncate

from .context import RechargeContext


class RechargeStore(Protocol):
    def save_transaction_log(self, attempt: RechargeAttempt) -> bool:
        ...

    def update_balance_snapshot(
        self,
        retailer_code: str,
        amount: float,
        timestamp: datetime | None,
        itopup_number: str | None = None,
    ) -> int:
        ...


class RechargeOrchestrator:
    def __init__(
        self,
        gateway: Gateway,
        store: RechargeStore,
        *,
        settings: Settings | None = None,
        interpreter: MessageInterpreter | None = None,
        trace_logger=None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.settings = settings or default_settings
        self.interpreter = interpreter or MessageInterpreter(self.settings)
        self.trace_logger = trace_logger or default_trace_logger

    def run(self, request: RechargeRequest, context: RechargeContext) -> RechargeResult:
        attempt = RechargeAttempt(
            request=request,
            gateway=self.gateway.name,
            login_provider=context.login_provider,
        )

        try:
            payload = self.gateway.build_recharge_request(request)
        except RechargeRequestError as exc:
            attempt.mark_failed(self.interpreter.normalize_message(str(exc)))
            logger.info("Rejected recharge request for retailer {}: {}", request.retailer_code, exc)
            return self._finish(attempt, context)
        attempt.transition(RechargeState.BUILT)
        logger.info("Submitting {} recharge {}", self.gateway.name.upper(), request.summary())

        try:
            outcome = self.gateway.submit(payload)
        except GatewayTransportError as exc:
            attempt.mark_failed(self.interpreter.normalize_message(str(exc)))
            attempt.add_diagnostic(self._note("submit", exc))
            return self._finish(attempt, context)
        attempt.outcome = outcome
        attempt.transition(RechargeState.SUBMITTED)

        # From here on the provider has settled; every remaining step runs to completion.
        interpretation = self.interpreter.interpret(outcome)
        attempt.success = interpretation.success
        attempt.message = interpretation.message
        if not interpretation.success:
            attempt.mark_failed(interpretation.message)
            logger.info(
                "{} rejected recharge for retailer {} with status {}",
                self.gateway.name.upper(),
                request.retailer_code,
                outcome.status_code,
            )
            return self._finish(attempt, context)

        extracted = self.interpreter.extract_transaction_id(outcome.message)
        attempt.provider_transaction_id = extracted.value
        if extracted.diagnostic:
            attempt.add_diagnostic(extracted.diagnostic)
        attempt.transition(RechargeState.INTERPRETED)

        self._log_transaction(attempt)
        attempt.transition(RechargeState.LOGGED)

        self._reconcile_balance(attempt)
        attempt.transition(RechargeState.RECONCILED)

        attempt.mark_done()
        return self._finish(attempt, context)

    def _note(self, step: str, detail: object) -> str:
        return truncate(f"{step}: {detail}", self.settings.diagnostic_max_length)

    def _log_transaction(self, attempt: RechargeAttempt) -> None:
        try:
            saved = self.store.save_transaction_log(attempt)
        except Exception as exc:  # noqa: BLE001
            attempt.add_diagnostic(self._note("transaction log", exc))
            return
        if not saved:
            attempt.add_diagnostic(self._note("transaction log", "not saved"))

    def _reconcile_balance(self, attempt: RechargeAttempt) -> None:
        outcome = attempt.outcome
        if outcome is None:
            return

        balance = self.interpreter.parse_balance(outcome.message)
        if balance.diagnostic:
            attempt.add_diagnostic(self._note("reconcile", balance.diagnostic))
            return
        stamp = self.interpreter.settlement_time(outcome)
        if stamp.diagnostic:
            attempt.add_diagnostic(self._note("reconcile", stamp.diagnostic))

        try:
            rows = self.store.update_balance_snapshot(
                attempt.request.retailer_code,
                float(balance.value),
                stamp.value,
                attempt.request.retailer_msisdn,
            )
        except Exception as exc:  # noqa: BLE001
            attempt.add_diagnostic(self._note("reconcile", exc))
            return
        if not rows:
            attempt.add_diagnostic(self._note("reconcile", "no balance snapshot updated"))

    def _finish(self, attempt: RechargeAttempt, context: RechargeContext) -> RechargeResult:
        if attempt.diagnostics:
            self.trace_logger.bind(origin=f"{self.gateway.name}.recharge").info(
                "run={} retailer={} agent={} state={} diagnostics={}",
                context.run_id,
                attempt.request.retailer_code,
                context.user_agent,
                attempt.state.value if attempt.state else None,
                " | ".join(attempt.diagnostics),
            )
        return RechargeResult(
            success=attempt.success,
            message=attempt.message,
            transaction_id=attempt.provider_transaction_id if attempt.success else "",
        )


__all__ = ["RechargeOrchestrator", "RechargeStore"]
