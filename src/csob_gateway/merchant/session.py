"""
Payment session

Collects everything the gateway needs for payment/init: the cart,
the order reference, the return URL and a few display options.

A session belongs to one payment attempt. Once init succeeds the
session is frozen; start a new one for the next attempt.

WARNING: the gateway accepts at most 2 cart items
(e.g. "Your purchase" and "Shipping & Handling").
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Union

import structlog

from ..shared.constants import (
    AVAILABLE_LANGUAGES,
    DEFAULT_LANGUAGE,
    Config,
    to_minor_units,
    truncate_description,
)
from ..shared.exceptions import CartFullError, ValidationError

logger = structlog.get_logger(__name__)


@dataclass
class CartItem:
    """An item in the gateway cart."""
    name: str                          # Max 20 characters
    amount: Union[Decimal, float, int, str]  # In currency units, not cents
    quantity: int = 1
    description: str = ""              # Max 40 characters

    def to_payload(self) -> Dict:
        """Cart item as sent on the wire, amount in minor units."""
        return {
            "name": self.name,
            "quantity": self.quantity,
            "amount": to_minor_units(self.amount),
            "description": self.description,
        }


class PaymentSession:
    """
    Mutable request-building state for one payment.

    Usage:
        session = (
            PaymentSession("M1MIPS0000")
            .add_to_cart("Goods", 100.00)
            .set_order_id("1001")
            .set_return_url("https://shop/return")
            .set_description("Order #1001")
        )
    """

    def __init__(self, merchant_id: str):
        self.merchant_id = merchant_id
        self.order_id: Optional[str] = None
        self.description: Optional[str] = None
        self.return_url: Optional[str] = None
        self.language = DEFAULT_LANGUAGE
        self.merchant_data = ""
        self.pay_id: Optional[str] = None
        self._cart: List[CartItem] = []

    @property
    def cart(self) -> List[CartItem]:
        return list(self._cart)

    @property
    def submitted(self) -> bool:
        return self.pay_id is not None

    def _ensure_open(self):
        if self.submitted:
            raise ValidationError(
                f"Session already submitted as payment {self.pay_id}",
                field="session",
            )

    def add_to_cart(
        self,
        name: str,
        amount: Union[Decimal, float, int, str],
        quantity: int = 1,
        description: str = "",
    ) -> "PaymentSession":
        """
        Append an item to the cart.

        Args:
            name: Item name, max 20 characters
            amount: Price in currency units (converted to minor units on init)
            quantity: Number of pieces
            description: Max 40 characters, longer values are shortened

        Raises:
            CartFullError: If the cart already has 2 items
        """
        self._ensure_open()

        if len(self._cart) >= Config.MAX_CART_ITEMS:
            raise CartFullError()

        self._cart.append(CartItem(
            name=name,
            amount=amount,
            quantity=quantity,
            description=truncate_description(description),
        ))
        return self

    def clear_cart(self) -> "PaymentSession":
        """Remove current items from cart, allowing to add other items."""
        self._ensure_open()
        self._cart = []
        return self

    def set_language(self, language: str) -> "PaymentSession":
        """
        Set the language of the payment page.

        Unknown codes are ignored and the current language is kept.
        """
        self._ensure_open()
        code = language.upper()

        if code in AVAILABLE_LANGUAGES:
            self.language = code
        else:
            logger.warning(
                "unsupported_language_ignored",
                language=language,
                current=self.language,
            )
        return self

    def set_merchant_data(self, merchant_data: str) -> "PaymentSession":
        """
        Any additional data returned in the redirect back to the shop.

        Must be BASE64 encoded by the caller; maximum length is 255.
        """
        self._ensure_open()
        self.merchant_data = merchant_data
        return self

    def set_return_url(self, return_url: str) -> "PaymentSession":
        self._ensure_open()
        self.return_url = return_url
        return self

    def set_description(self, description: str) -> "PaymentSession":
        self._ensure_open()
        self.description = description
        return self

    def set_order_id(self, order_id: str) -> "PaymentSession":
        self._ensure_open()
        self.order_id = order_id
        return self

    def validate_for_submission(self):
        """
        Check the session can be sent to payment/init.

        Raises:
            ValidationError: Naming the first missing field
        """
        self._ensure_open()

        if not self._cart:
            raise ValidationError("Cart is empty", field="cart")
        if not self.return_url:
            raise ValidationError("Return url is required", field="return_url")
        if not self.order_id:
            raise ValidationError("OrderId is required", field="order_id")
        if not self.description:
            raise ValidationError("Description is required", field="description")

    def cart_payload(self) -> List[Dict]:
        return [item.to_payload() for item in self._cart]

    def to_payload_fields(self) -> Dict:
        """Session part of the payment/init body, keyed by wire name."""
        return {
            "merchantId": self.merchant_id,
            "orderNo": self.order_id,
            "returnUrl": self.return_url,
            "cart": self.cart_payload(),
            "description": self.description,
            "merchantData": self.merchant_data,
            "language": self.language,
        }

    def mark_submitted(self, pay_id: str):
        """Freeze the session once the gateway created the payment."""
        self.pay_id = pay_id
