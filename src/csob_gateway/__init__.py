"""Client for a card payment gateway with RSA-signed requests and responses."""

from .config import GatewaySettings, configure_logging
from .merchant import (
    CartItem,
    GatewayResponse,
    PaymentClient,
    PaymentSession,
    Transport,
    UrllibTransport,
)
from .shared import (
    CartFullError,
    GatewayError,
    KeyLoadError,
    KeyStore,
    PaymentError,
    PaymentOutcome,
    PaymentStatus,
    ProtocolError,
    SignatureEngine,
    TransportError,
    ValidationError,
    VerificationError,
    create_sign_string,
)

__version__ = "0.1.0"

__all__ = [
    "GatewaySettings",
    "configure_logging",
    "CartItem",
    "GatewayResponse",
    "PaymentClient",
    "PaymentSession",
    "Transport",
    "UrllibTransport",
    "CartFullError",
    "GatewayError",
    "KeyLoadError",
    "KeyStore",
    "PaymentError",
    "PaymentOutcome",
    "PaymentStatus",
    "ProtocolError",
    "SignatureEngine",
    "TransportError",
    "ValidationError",
    "VerificationError",
    "create_sign_string",
]
