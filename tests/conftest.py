"""
Shared fixtures: key pairs, a fixed clock and a scripted gateway.

Run with: python -m pytest tests/ -v
"""

import json
import sys
from datetime import datetime

import pytest

sys.path.insert(0, 'src')

from csob_gateway.merchant.payment_client import PaymentClient
from csob_gateway.sandbox import generate_key, private_key_pem, public_key_pem
from csob_gateway.shared.signing import (
    KeyStore,
    create_response_sign_string,
    sign_text,
)


MERCHANT_ID = "M1MIPS0000"
NOW = datetime(2024, 1, 15, 12, 30, 45)
DTTM = "20240115123045"


@pytest.fixture(scope="session")
def merchant_key():
    return generate_key()


@pytest.fixture(scope="session")
def gateway_key():
    return generate_key()


@pytest.fixture(scope="session")
def other_key():
    return generate_key()


@pytest.fixture
def key_files(tmp_path, merchant_key, gateway_key):
    """Merchant private key and gateway public key written as PEM."""
    private_file = tmp_path / "rsa_M1MIPS0000.key"
    private_file.write_bytes(private_key_pem(merchant_key))

    gateway_public_file = tmp_path / "mips_iplatebnibrana.csob.cz.pub"
    gateway_public_file.write_bytes(public_key_pem(gateway_key))

    return {
        "private": str(private_file),
        "gateway_public": str(gateway_public_file),
    }


@pytest.fixture
def key_store(key_files):
    return KeyStore(test_public_key_file=key_files["gateway_public"])


class ScriptedGateway:
    """
    Transport spy that answers with queued, gateway-signed responses.
    """

    def __init__(self, gateway_key):
        self.gateway_key = gateway_key
        self.calls = []
        self._responses = []

    def respond(self, data=None, status=200, body=None, sign=True, signing_key=None):
        """Queue a response. data is signed unless sign is False."""
        if body is None:
            data = dict(data)
            if sign:
                data["signature"] = sign_text(
                    signing_key or self.gateway_key,
                    create_response_sign_string(data),
                )
            body = json.dumps(data).encode("utf-8")
        self._responses.append((status, body))
        return self

    def send(self, url, method, body, headers):
        self.calls.append({
            "url": url,
            "method": method,
            "body": json.loads(body) if body else None,
            "headers": headers,
        })
        return self._responses.pop(0)


@pytest.fixture
def gateway(gateway_key):
    return ScriptedGateway(gateway_key)


@pytest.fixture
def client(key_files, key_store, gateway):
    return PaymentClient(
        merchant_id=MERCHANT_ID,
        private_key_file=key_files["private"],
        transport=gateway,
        key_store=key_store,
        clock=lambda: NOW,
    )


@pytest.fixture
def session(client):
    """Session from the reference order #1001."""
    return (
        client.new_session()
        .add_to_cart("Goods", 100.00, 1, "")
        .set_order_id("1001")
        .set_return_url("https://shop/return")
        .set_description("Order #1001")
    )


def gateway_result(pay_id="abc123", result_code=0, message="OK", **extra):
    data = {
        "payId": pay_id,
        "dttm": DTTM,
        "resultCode": result_code,
        "resultMessage": message,
    }
    data.update(extra)
    return data
