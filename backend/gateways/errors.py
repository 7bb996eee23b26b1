from __future__ import annotations


class GatewayTransportError(RuntimeError):
    """The gateway could not be reached or answered with an unusable payload."""

    def __init__(self, gateway: str, message: str) -> None:
        super().__init__(message)
        self.gateway = gateway


class EvResponseError(GatewayTransportError):
    """The EV gateway answered with XML that cannot be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__("ev", message)


class RechargeRequestError(ValueError):
    """A recharge request is missing data the gateway requires."""


__all__ = ["EvResponseError", "GatewayTransportError", "RechargeRequestError"]
