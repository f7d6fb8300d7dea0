"""
Shared constants and configuration for the gateway client.

This module defines the protocol constants of the eAPI v1.6 payment
gateway and the small state machine used to classify gateway results.
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum, IntEnum
from typing import Mapping, Optional, Union


# =============================================================================
# ENDPOINTS
# =============================================================================

PRODUCTION_URL = "https://api.platebnibrana.csob.cz/api/v1.6/payment/"
TEST_URL = "https://iapi.iplatebnibrana.csob.cz/api/v1.6/payment/"


def base_url(production: bool) -> str:
    """Endpoint base for the selected environment."""
    return PRODUCTION_URL if production else TEST_URL


# =============================================================================
# OPERATIONS
# =============================================================================

class Operation(str, Enum):
    """Gateway operations reachable through a signed JSON body."""
    INIT = "init"
    REVERSE = "reverse"
    CLOSE = "close"

    @property
    def http_method(self) -> str:
        """Update-style operations use PUT, everything else POST."""
        if self in (Operation.REVERSE, Operation.CLOSE):
            return "PUT"
        return "POST"


# Fixed values sent with every payment/init
PAY_OPERATION = "payment"
PAY_METHOD = "card"
CLOSE_PAYMENT = True
RETURN_METHOD = "GET"

DTTM_FORMAT = "%Y%m%d%H%M%S"

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json;charset=UTF-8",
}


# =============================================================================
# PAYMENT STATUS
# =============================================================================

class PaymentStatus(IntEnum):
    """Payment status codes reported by the gateway."""
    CREATED = 1
    IN_PROGRESS = 2
    CANCELLED = 3
    AUTHORIZED = 4          # Confirmed, waiting for close or reverse
    REVERSED = 5
    DECLINED = 6
    WAITING_SETTLEMENT = 7  # Closed
    SETTLED = 8
    REFUND_PROCESSING = 9
    REFUNDED = 10


class PaymentOutcome(str, Enum):
    """What a single operation did to the payment, as seen by the client."""
    CREATED = "created"
    REVERSED = "reversed"
    CLOSED = "closed"
    FAILED = "failed"


RESULT_OK = 0

# Operation → (paymentStatus the gateway must report, outcome on success)
EXPECTED_STATUS = {
    Operation.INIT: (PaymentStatus.CREATED, PaymentOutcome.CREATED),
    Operation.REVERSE: (PaymentStatus.REVERSED, PaymentOutcome.REVERSED),
    Operation.CLOSE: (PaymentStatus.WAITING_SETTLEMENT, PaymentOutcome.CLOSED),
}


def classify_outcome(
    operation: Operation,
    result_code: Union[int, str, None],
    payment_status: Union[int, str, None],
) -> PaymentOutcome:
    """
    Map a gateway resultCode/paymentStatus pair to an outcome.

    Only the exact pair the operation is defined to produce counts as
    success; every other combination is FAILED.
    """
    expected_status, outcome = EXPECTED_STATUS[Operation(operation)]

    try:
        code = int(result_code)
        status = int(payment_status)
    except (TypeError, ValueError):
        return PaymentOutcome.FAILED

    if code == RESULT_OK and status == expected_status:
        return outcome
    return PaymentOutcome.FAILED


# =============================================================================
# LANGUAGES
# =============================================================================

AVAILABLE_LANGUAGES = (
    "CZ", "EN", "DE", "FR", "HU", "IT", "JP", "PL",
    "PT", "RO", "RU", "SK", "ES", "TR", "VN",
)
DEFAULT_LANGUAGE = "EN"


# =============================================================================
# CONFIGURATION
# =============================================================================

class Config:
    """Configuration constants."""

    # Cart limits
    MAX_CART_ITEMS = 2
    MAX_ITEM_DESCRIPTION_LENGTH = 40
    TRUNCATED_DESCRIPTION_LENGTH = 37
    TRUNCATION_SUFFIX = "..."

    # Minor units per major unit
    MINOR_UNITS = 100

    # Transport
    CONNECT_TIMEOUT_SECONDS = 20

    # Public keys shipped next to the package
    PRODUCTION_PUBLIC_KEY = "mips_platebnibrana.csob.cz.pub"
    TEST_PUBLIC_KEY = "mips_iplatebnibrana.csob.cz.pub"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def to_minor_units(amount: Union[int, float, str, Decimal]) -> int:
    """
    Convert an amount in currency units to minor units.

    Args:
        amount: Amount like 100.00 or "19.99"

    Returns:
        Integer amount like 10000 or 1999
    """
    value = Decimal(str(amount)) * Config.MINOR_UNITS
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def truncate_description(description: str) -> str:
    """
    Shorten an item description to the gateway limit.

    Descriptions over 40 characters are stripped and cut to 37
    characters followed by an ellipsis.
    """
    if len(description) <= Config.MAX_ITEM_DESCRIPTION_LENGTH:
        return description
    return (
        description.strip()[:Config.TRUNCATED_DESCRIPTION_LENGTH]
        + Config.TRUNCATION_SUFFIX
    )


def parse_payment_status(response: Mapping) -> Optional[PaymentStatus]:
    """Read paymentStatus from a response, None when absent or unknown."""
    raw = response.get("paymentStatus")
    if raw is None:
        return None
    try:
        return PaymentStatus(int(raw))
    except (TypeError, ValueError):
        return None
