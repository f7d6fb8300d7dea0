"""Shared package initialization."""

from .constants import (
    Operation,
    PaymentStatus,
    PaymentOutcome,
    AVAILABLE_LANGUAGES,
    Config,
    base_url,
    classify_outcome,
    to_minor_units,
)

from .exceptions import (
    PaymentError,
    ValidationError,
    CartFullError,
    KeyLoadError,
    TransportError,
    ProtocolError,
    VerificationError,
    GatewayError,
)

from .signing import (
    KeyStore,
    SignatureEngine,
    create_sign_string,
    create_response_sign_string,
)

__all__ = [
    # Constants
    "Operation",
    "PaymentStatus",
    "PaymentOutcome",
    "AVAILABLE_LANGUAGES",
    "Config",
    "base_url",
    "classify_outcome",
    "to_minor_units",
    # Exceptions
    "PaymentError",
    "ValidationError",
    "CartFullError",
    "KeyLoadError",
    "TransportError",
    "ProtocolError",
    "VerificationError",
    "GatewayError",
    # Signing
    "KeyStore",
    "SignatureEngine",
    "create_sign_string",
    "create_response_sign_string",
]
