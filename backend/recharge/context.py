from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from app.core.config import Settings


@dataclass(slots=True)
class RechargeContext:
    """Per-call inputs for an orchestration run that do not belong to the request itself."""

    run_id: str
    login_provider: str | None
    settings: Settings
    user_agent: str | None = None
    ip_address: str | None = None

    @classmethod
    def create(
        cls,
        settings: Settings,
        *,
        login_provider: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> "RechargeContext":
        return cls(
            run_id=uuid4().hex,
            login_provider=login_provider,
            settings=settings,
            user_agent=user_agent,
            ip_address=ip_address,
        )
