"""
In-process sandbox of the payment gateway.

Plays the gateway's side of the protocol so the client can be run
end to end without network access:
- Verifies merchant signatures on requests and process URLs
- Keeps payments in memory and moves them through their states
- Signs every response with its own gateway key

It implements the transport interface, so it plugs straight into
PaymentClient(transport=...).
"""

import json
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote_plus, urlparse

import structlog
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .shared.constants import DTTM_FORMAT, PaymentStatus
from .shared.exceptions import VerificationError
from .shared.signing import (
    create_response_sign_string,
    create_sign_string,
    sign_text,
    verify_text,
)

logger = structlog.get_logger(__name__)


# Gateway result codes
RESULT_OK = 0
RESULT_MISSING_PARAMETER = 100
RESULT_INVALID_PARAMETER = 110
RESULT_PAYMENT_NOT_FOUND = 140
RESULT_INVALID_STATE = 150


@dataclass
class SandboxPayment:
    """A payment as the sandbox gateway stores it."""
    pay_id: str
    merchant_id: str
    order_no: str
    total_amount: int
    currency: str
    status: PaymentStatus = PaymentStatus.CREATED
    auth_code: Optional[str] = None


def generate_key() -> rsa.RSAPrivateKey:
    """Fresh 2048-bit RSA key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def private_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def public_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class SandboxGateway:
    """
    Gateway simulator behind the transport interface.

    Usage:
        gateway = SandboxGateway(merchant_public_key=merchant_key.public_key())
        client = PaymentClient(..., transport=gateway)

        pay_id = client.init(session, 100, "CZK")
        gateway.process(client.get_process_url(pay_id))  # customer pays
        client.reverse(pay_id)
    """

    def __init__(
        self,
        merchant_public_key: rsa.RSAPublicKey,
        gateway_key: Optional[rsa.RSAPrivateKey] = None,
    ):
        self.merchant_public_key = merchant_public_key
        self.gateway_key = gateway_key or generate_key()
        self.payments: Dict[str, SandboxPayment] = {}
        self.requests: List[Tuple[str, str]] = []

    @property
    def public_key_pem(self) -> bytes:
        """What the merchant configures as the gateway public key."""
        return public_key_pem(self.gateway_key)

    # =========================================================================
    # Transport interface
    # =========================================================================

    def send(
        self,
        url: str,
        method: str,
        body: Optional[bytes],
        headers: Dict[str, str],
    ) -> Tuple[int, bytes]:
        self.requests.append((method, url))
        action, args = self._route(url)

        if method == "POST" and action == "init":
            response = self._init(json.loads(body))
        elif method == "PUT" and action == "reverse":
            response = self._transition(
                json.loads(body), PaymentStatus.AUTHORIZED, PaymentStatus.REVERSED
            )
        elif method == "PUT" and action == "close":
            response = self._transition(
                json.loads(body), PaymentStatus.AUTHORIZED, PaymentStatus.WAITING_SETTLEMENT
            )
        elif method == "GET" and action == "status":
            response = self._status(args)
        else:
            return 404, b'{"error": "not found"}'

        return 200, json.dumps(self._signed(response)).encode("utf-8")

    # =========================================================================
    # Customer side
    # =========================================================================

    def process(self, process_url: str) -> SandboxPayment:
        """
        Simulate the customer entering card details on the payment page.

        Raises:
            VerificationError: If the URL signature is not the merchant's
            KeyError: If the payment does not exist
        """
        action, args = self._route(process_url)
        if action != "process" or len(args) != 4:
            raise ValueError(f"Not a process URL: {process_url}")

        merchant_id, pay_id, dttm, signature = args
        verify_text(
            self.merchant_public_key,
            create_sign_string([merchant_id, pay_id, dttm]),
            unquote_plus(signature),
        )

        payment = self.payments[pay_id]
        if payment.status == PaymentStatus.CREATED:
            payment.status = PaymentStatus.AUTHORIZED
            payment.auth_code = f"{secrets.randbelow(10 ** 6):06d}"
        logger.info("sandbox_payment_processed", pay_id=pay_id, status=payment.status.name)
        return payment

    # =========================================================================
    # Handlers
    # =========================================================================

    def _route(self, url: str) -> Tuple[str, List[str]]:
        segments = [s for s in urlparse(url).path.split("/") if s]
        if "payment" in segments:
            segments = segments[segments.index("payment") + 1:]
        if not segments:
            return "", []
        return segments[0], segments[1:]

    def _request_signature_ok(self, data: Dict) -> bool:
        fields = dict(data)
        signature = fields.pop("signature", None)
        try:
            verify_text(self.merchant_public_key, create_sign_string(fields), signature)
        except VerificationError:
            logger.warning("sandbox_request_signature_invalid")
            return False
        return True

    def _result(self, pay_id, code: int, message: str, status: Optional[PaymentStatus] = None) -> Dict:
        response = {
            "payId": pay_id,
            "dttm": datetime.now().strftime(DTTM_FORMAT),
            "resultCode": code,
            "resultMessage": message,
        }
        if status is not None:
            response["paymentStatus"] = int(status)
        return response

    def _init(self, data: Dict) -> Dict:
        if not self._request_signature_ok(data):
            return self._result(None, RESULT_INVALID_PARAMETER, "Invalid signature")

        for name in ("merchantId", "orderNo", "dttm", "totalAmount", "currency", "returnUrl"):
            if not data.get(name):
                return self._result(None, RESULT_MISSING_PARAMETER, f"Missing parameter {name}")

        payment = SandboxPayment(
            pay_id=secrets.token_hex(8)[:15],
            merchant_id=data["merchantId"],
            order_no=data["orderNo"],
            total_amount=data["totalAmount"],
            currency=data["currency"],
        )
        self.payments[payment.pay_id] = payment
        logger.info("sandbox_payment_created", pay_id=payment.pay_id, order_no=payment.order_no)

        return self._result(payment.pay_id, RESULT_OK, "OK", payment.status)

    def _transition(self, data: Dict, required: PaymentStatus, target: PaymentStatus) -> Dict:
        pay_id = data.get("payId")
        if not self._request_signature_ok(data):
            return self._result(pay_id, RESULT_INVALID_PARAMETER, "Invalid signature")

        payment = self.payments.get(pay_id)
        if payment is None:
            return self._result(pay_id, RESULT_PAYMENT_NOT_FOUND, "Payment not found")

        if payment.status != required:
            return self._result(
                pay_id, RESULT_INVALID_STATE, "Payment not in valid state", payment.status
            )

        payment.status = target
        return self._result(pay_id, RESULT_OK, "OK", payment.status)

    def _status(self, args: List[str]) -> Dict:
        if len(args) != 4:
            return self._result(None, RESULT_MISSING_PARAMETER, "Missing parameter")

        merchant_id, pay_id, dttm, signature = args
        try:
            verify_text(
                self.merchant_public_key,
                create_sign_string([merchant_id, pay_id, dttm]),
                unquote_plus(signature),
            )
        except VerificationError:
            return self._result(pay_id, RESULT_INVALID_PARAMETER, "Invalid signature")

        payment = self.payments.get(pay_id)
        if payment is None:
            return self._result(pay_id, RESULT_PAYMENT_NOT_FOUND, "Payment not found")

        response = self._result(pay_id, RESULT_OK, "OK", payment.status)
        if payment.auth_code:
            response["authCode"] = payment.auth_code
        return response

    def _signed(self, response: Dict) -> Dict:
        response["signature"] = sign_text(
            self.gateway_key, create_response_sign_string(response)
        )
        return response
