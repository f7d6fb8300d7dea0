"""Merchant package."""

from .payment_client import (
    PaymentClient,
    GatewayResponse,
)

from .session import (
    PaymentSession,
    CartItem,
)

from .transport import (
    Transport,
    UrllibTransport,
)

__all__ = [
    # Client
    "PaymentClient",
    "GatewayResponse",
    # Session
    "PaymentSession",
    "CartItem",
    # Transport
    "Transport",
    "UrllibTransport",
]
