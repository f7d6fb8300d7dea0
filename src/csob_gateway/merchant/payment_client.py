"""
Merchant Payment Client

This is what a merchant's backend uses to talk to the card payment
gateway (eAPI v1.6). Every request is signed with the merchant private
key and every response is verified with the gateway public key before
anything else looks at it.

Example usage:
    client = PaymentClient(
        merchant_id="M1MIPS0000",
        private_key_file="keys/rsa_M1MIPS0000.key",
    )

    session = client.new_session()
    session.add_to_cart("Goods", 100.00).set_order_id("1001")
    session.set_return_url("https://shop/return").set_description("Order #1001")

    pay_id = client.init(session, 100.00, "czk")
    redirect_customer_to(client.get_process_url(pay_id))
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Union
from decimal import Decimal
from urllib.parse import quote_plus

import structlog

from ..config import configure_logging
from ..shared.constants import (
    CLOSE_PAYMENT,
    DTTM_FORMAT,
    PAY_METHOD,
    PAY_OPERATION,
    REQUEST_HEADERS,
    RETURN_METHOD,
    Operation,
    PaymentOutcome,
    PaymentStatus,
    base_url,
    classify_outcome,
    parse_payment_status,
    to_minor_units,
)
from ..shared.exceptions import (
    GatewayError,
    ProtocolError,
    TransportError,
    VerificationError,
)
from ..shared.signing import (
    KeyStore,
    SignatureEngine,
    create_response_sign_string,
)
from .session import PaymentSession
from .transport import Transport, UrllibTransport

logger = structlog.get_logger(__name__)

REQUIRED_RESPONSE_FIELDS = ("payId", "dttm", "resultCode", "resultMessage")


@dataclass
class GatewayResponse:
    """A verified gateway response."""
    data: Dict

    def __getattr__(self, name):
        return self.data.get(name)

    def __getitem__(self, key):
        return self.data[key]

    @property
    def pay_id(self) -> str:
        return self.data["payId"]

    @property
    def result_code(self) -> int:
        return int(self.data["resultCode"])

    @property
    def result_message(self) -> str:
        return self.data["resultMessage"]

    @property
    def payment_status(self) -> Optional[PaymentStatus]:
        return parse_payment_status(self.data)


def default_clock() -> datetime:
    return datetime.now()


class PaymentClient:
    """
    Payment Gateway Client.

    Usage:
        client = PaymentClient("M1MIPS0000", "merchant.key", production=False)

        pay_id = client.init(session, 100.00, "CZK")
        url = client.get_process_url(pay_id)

        # Later, before the payment is closed
        client.reverse(pay_id)
    """

    def __init__(
        self,
        merchant_id: str,
        private_key_file: str,
        production: bool = False,
        transport: Optional[Transport] = None,
        key_store: Optional[KeyStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        private_key_password: Optional[str] = None,
        api_base: Optional[str] = None,
    ):
        """
        Initialize the payment client.

        Args:
            merchant_id: Merchant ID issued by the bank
            private_key_file: Path to the merchant PEM private key
            production: Use the production endpoint and public key
            transport: Sends requests (default: urllib)
            key_store: Loads and caches keys (default: packaged public keys)
            clock: Returns the current time for dttm fields
            private_key_password: Passphrase of the private key, if any
            api_base: Endpoint override, e.g. for a local gateway
        """
        self.merchant_id = merchant_id
        self.production = production
        self.api_base = api_base or base_url(production)
        self.transport = transport or UrllibTransport()
        self.clock = clock or default_clock
        self.signer = SignatureEngine(
            private_key_file,
            production=production,
            key_store=key_store,
            private_key_password=private_key_password,
        )

    @classmethod
    def from_settings(cls, settings, transport: Optional[Transport] = None) -> "PaymentClient":
        """Build a client from GatewaySettings and apply its log level."""
        configure_logging(settings.log_level)
        key_store = KeyStore(
            production_public_key_file=settings.production_public_key_file,
            test_public_key_file=settings.test_public_key_file,
        )
        return cls(
            merchant_id=settings.merchant_id,
            private_key_file=settings.private_key_file,
            production=settings.production,
            transport=transport or UrllibTransport(timeout=settings.timeout),
            key_store=key_store,
            private_key_password=settings.private_key_password,
        )

    def new_session(self) -> PaymentSession:
        """Start collecting data for a new payment."""
        return PaymentSession(self.merchant_id)

    def _dttm(self) -> str:
        return self.clock().strftime(DTTM_FORMAT)

    # =========================================================================
    # Operations
    # =========================================================================

    def init(
        self,
        session: PaymentSession,
        total_amount: Union[Decimal, float, int, str],
        currency: str,
    ) -> str:
        """
        Create the payment on the gateway.

        Args:
            session: Filled-in session for this payment
            total_amount: Amount in currency units (e.g. 100.00)
            currency: ISO code, any case

        Returns:
            payId assigned by the gateway

        Raises:
            ValidationError: Session incomplete, nothing is sent
            GatewayError: Payment was not created
            ProtocolError: Success response without a payId
        """
        session.validate_for_submission()
        fields = session.to_payload_fields()

        payload = {
            "merchantId": fields["merchantId"],
            "orderNo": fields["orderNo"],
            "dttm": self._dttm(),
            "payOperation": PAY_OPERATION,
            "payMethod": PAY_METHOD,
            "totalAmount": to_minor_units(total_amount),
            "currency": currency.upper(),
            "closePayment": CLOSE_PAYMENT,
            "returnUrl": fields["returnUrl"],
            "returnMethod": RETURN_METHOD,
            "cart": fields["cart"],
            "description": fields["description"],
            "merchantData": fields["merchantData"],
            "language": fields["language"],
        }

        response = self.connect(Operation.INIT, payload)
        self._expect(Operation.INIT, response)

        if not response.data.get("payId"):
            raise ProtocolError("Gateway created the payment without a payId")

        session.mark_submitted(response.pay_id)
        logger.info(
            "payment_created",
            pay_id=response.pay_id,
            order_no=session.order_id,
            total_amount=payload["totalAmount"],
            currency=payload["currency"],
        )
        return response.pay_id

    def reverse(self, pay_id: str) -> bool:
        """
        Cancel an authorized payment before it is closed.

        Raises:
            GatewayError: Payment was not reversed
        """
        response = self.connect(Operation.REVERSE, self._pay_id_payload(pay_id))
        self._expect(Operation.REVERSE, response)

        logger.info("payment_reversed", pay_id=pay_id)
        return True

    def close(self, pay_id: str) -> bool:
        """
        Send an authorized payment to settlement without waiting for
        the gateway to close it.

        Raises:
            GatewayError: Payment was not closed
        """
        response = self.connect(Operation.CLOSE, self._pay_id_payload(pay_id))
        self._expect(Operation.CLOSE, response)

        logger.info("payment_closed", pay_id=pay_id)
        return True

    def status(self, pay_id: str) -> PaymentStatus:
        """
        Ask the gateway for the current state of a payment.

        Raises:
            GatewayError: Gateway refused the query
            ProtocolError: Response carries no known paymentStatus
        """
        url = self.api_base + self._signed_path("status", pay_id)
        response = self._send(url, "GET", None, operation="status")

        if response.result_code != 0:
            logger.warning(
                "payment_status_failed",
                pay_id=pay_id,
                result_code=response.result_code,
                result_message=response.result_message,
            )
            raise GatewayError(response.result_message, result_code=response.result_code)

        status = response.payment_status
        if status is None:
            raise ProtocolError(
                f"Unknown paymentStatus: {response.data.get('paymentStatus')!r}"
            )

        logger.info("payment_status", pay_id=pay_id, payment_status=status.name)
        return status

    def get_process_url(self, pay_id: str) -> str:
        """
        URL the customer is redirected to for card entry.

        Pure construction, no request is made.
        """
        return self.api_base + self._signed_path("process", pay_id)

    # =========================================================================
    # Protocol
    # =========================================================================

    def connect(self, operation: Union[Operation, str], payload: Dict) -> GatewayResponse:
        """
        Sign payload, send it, and return the verified response.

        The signature covers payload values in their insertion order.
        """
        operation = Operation(operation)

        data = dict(payload)
        data.pop("signature", None)
        data["signature"] = self.signer.sign_fields(data)

        logger.debug("gateway_request", operation=operation.value, fields=list(payload))

        body = json.dumps(data).encode("utf-8")
        return self._send(
            self.api_base + operation.value,
            operation.http_method,
            body,
            operation=operation.value,
        )

    def verify_response(self, response: Dict) -> bool:
        """
        Check the gateway signature of a decoded response.

        Raises:
            VerificationError: If the signature is missing or wrong
        """
        text = create_response_sign_string(response)
        return self.signer.verify(text, response.get("signature"))

    def _send(self, url: str, method: str, body: Optional[bytes], operation: str) -> GatewayResponse:
        status_code, raw = self.transport.send(url, method, body, dict(REQUEST_HEADERS))

        if not 200 <= status_code < 300:
            logger.warning("gateway_http_error", operation=operation, http_status=status_code)
            raise TransportError(
                f"Response error http code - {status_code}",
                http_status=status_code,
            )

        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ProtocolError(f"Response is not valid JSON: {e}", http_status=status_code)

        if not isinstance(decoded, dict):
            raise ProtocolError("Response is not a JSON object", http_status=status_code)

        missing = [name for name in REQUIRED_RESPONSE_FIELDS if name not in decoded]
        if missing:
            raise ProtocolError(
                f"Response is missing {', '.join(missing)}",
                http_status=status_code,
            )

        try:
            int(decoded["resultCode"])
        except (TypeError, ValueError):
            raise ProtocolError(
                f"Invalid resultCode: {decoded['resultCode']!r}",
                http_status=status_code,
            )

        try:
            self.verify_response(decoded)
        except VerificationError:
            logger.error(
                "gateway_response_verification_failed",
                operation=operation,
                pay_id=decoded.get("payId"),
            )
            raise

        return GatewayResponse(decoded)

    def _expect(self, operation: Operation, response: GatewayResponse):
        """Raise GatewayError unless the response is the operation's success."""
        outcome = classify_outcome(
            operation,
            response.data.get("resultCode"),
            response.data.get("paymentStatus"),
        )
        if outcome is PaymentOutcome.FAILED:
            logger.warning(
                "gateway_rejected",
                operation=operation.value,
                pay_id=response.data.get("payId"),
                result_code=response.data.get("resultCode"),
                payment_status=response.data.get("paymentStatus"),
                result_message=response.result_message,
            )
            raise GatewayError(
                response.result_message,
                result_code=response.data.get("resultCode"),
                payment_status=response.data.get("paymentStatus"),
            )
        return outcome

    def _pay_id_payload(self, pay_id: str) -> Dict:
        return {
            "merchantId": self.merchant_id,
            "payId": pay_id,
            "dttm": self._dttm(),
        }

    def _signed_path(self, action: str, pay_id: str) -> str:
        dttm = self._dttm()
        signature = self.signer.sign_fields([self.merchant_id, pay_id, dttm])
        return f"{action}/{self.merchant_id}/{pay_id}/{dttm}/{quote_plus(signature)}"
