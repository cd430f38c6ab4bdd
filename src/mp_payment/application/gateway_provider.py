# src/mp_payment/application/gateway_provider.py
"""Process-wide payment gateway, installed once by the application lifespan."""

from src.mp_payment.domain.gateway import PaymentGatewayProtocol

_gateway: PaymentGatewayProtocol | None = None


def install_gateway(gateway: PaymentGatewayProtocol | None) -> None:
    global _gateway  # noqa: PLW0603
    _gateway = gateway


def get_gateway() -> PaymentGatewayProtocol:
    if _gateway is None:
        raise RuntimeError("payment gateway not installed; is the app lifespan running?")
    return _gateway
