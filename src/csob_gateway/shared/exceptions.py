"""
Exception hierarchy for the gateway client.

Every failure surfaces to the caller of init/reverse/close/status or
get_process_url as a subclass of PaymentError.
"""

from typing import Optional


class PaymentError(Exception):
    """Base exception for payment errors."""
    def __init__(self, message: str, code: str = None, http_status: int = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status


class ValidationError(PaymentError):
    """
    Session data is incomplete or the session can no longer be used.

    Raised before any network traffic; the caller fixes the input and
    tries again.
    """
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="validation_error")
        self.field = field


class CartFullError(ValidationError):
    """The cart already holds the maximum number of items."""
    def __init__(self, message: str = "Max 2 items can be in the cart"):
        super().__init__(message, field="cart")


class KeyLoadError(PaymentError):
    """A private or public key file is missing or unparsable."""
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, code="key_error")
        self.path = path


class TransportError(PaymentError):
    """Connection failure or non-success HTTP status."""
    def __init__(self, message: str, http_status: int = None):
        super().__init__(message, code="transport_error", http_status=http_status)


class ProtocolError(PaymentError):
    """The gateway answered with a body that is not a usable response."""
    def __init__(self, message: str, http_status: int = None):
        super().__init__(message, code="protocol_error", http_status=http_status)


class VerificationError(PaymentError):
    """
    A signature did not match its message.

    Treat as a security event: the response must not be used.
    """
    def __init__(self, message: str = "Response verification failed"):
        super().__init__(message, code="verification_error")


class GatewayError(PaymentError):
    """The gateway rejected the operation."""
    def __init__(
        self,
        message: str,
        result_code: Optional[int] = None,
        payment_status: Optional[int] = None,
    ):
        super().__init__(message, code="gateway_error")
        self.result_code = result_code
        self.payment_status = payment_status
