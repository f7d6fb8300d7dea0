#!/usr/bin/env python3
"""
Gateway Client Demo Runner

Walks a payment through its lifecycle against the in-process sandbox
gateway, with freshly generated merchant and gateway keys.

Usage:
    python run_demo.py          # init → redirect → status → reverse
    python run_demo.py close    # init → redirect → close
    python run_demo.py tamper   # response with a forged signature
"""

import os
import sys
import tempfile

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from csob_gateway import (
    KeyStore,
    PaymentClient,
    PaymentError,
    VerificationError,
    configure_logging,
)
from csob_gateway.sandbox import SandboxGateway, generate_key, private_key_pem

MERCHANT_ID = "M1MIPS0000"


def print_header(title):
    """Print a nice header."""
    print("\n")
    print("=" * 70)
    print(f"  {title}")
    print("=" * 70)


def build(workdir):
    """Client wired to a sandbox gateway through key files in workdir."""
    merchant_key = generate_key()
    sandbox = SandboxGateway(merchant_public_key=merchant_key.public_key())

    private_file = os.path.join(workdir, f"rsa_{MERCHANT_ID}.key")
    with open(private_file, "wb") as fp:
        fp.write(private_key_pem(merchant_key))

    public_file = os.path.join(workdir, "sandbox.pub")
    with open(public_file, "wb") as fp:
        fp.write(sandbox.public_key_pem)

    client = PaymentClient(
        MERCHANT_ID,
        private_file,
        transport=sandbox,
        key_store=KeyStore(test_public_key_file=public_file),
    )
    return client, sandbox


def create_payment(client, sandbox):
    session = (
        client.new_session()
        .add_to_cart("Goods", 100.00, 1, "Blue cotton t-shirt, size M")
        .add_to_cart("Shipping", 4.90)
        .set_order_id("1001")
        .set_return_url("https://shop.example/return")
        .set_description("Order #1001")
        .set_language("en")
    )

    pay_id = client.init(session, 104.90, "czk")
    print(f"   payId: {pay_id}")

    url = client.get_process_url(pay_id)
    print(f"   Redirect customer to: {url[:80]}...")

    sandbox.process(url)
    print(f"   Status after card entry: {client.status(pay_id).name}")
    return pay_id


def demo_reverse(client, sandbox):
    print_header("INIT → PROCESS → REVERSE")
    pay_id = create_payment(client, sandbox)

    client.reverse(pay_id)
    print(f"   Status after reverse: {client.status(pay_id).name}")


def demo_close(client, sandbox):
    print_header("INIT → PROCESS → CLOSE")
    pay_id = create_payment(client, sandbox)

    client.close(pay_id)
    print(f"   Status after close: {client.status(pay_id).name}")


def demo_tamper(client, sandbox):
    print_header("FORGED GATEWAY SIGNATURE")
    # Responses signed with a key the merchant does not trust
    sandbox.gateway_key = generate_key()

    session = (
        client.new_session()
        .add_to_cart("Goods", 100.00)
        .set_order_id("1002")
        .set_return_url("https://shop.example/return")
        .set_description("Order #1002")
    )
    try:
        client.init(session, 100.00, "CZK")
    except VerificationError as e:
        print(f"   Rejected: {e.message}")


def main():
    configure_logging("INFO")

    commands = {
        "reverse": demo_reverse,
        "close": demo_close,
        "tamper": demo_tamper,
    }
    command = sys.argv[1].lower() if len(sys.argv) > 1 else "reverse"

    if command not in commands:
        print(f"Unknown command: {command}")
        print("\nAvailable commands:")
        for cmd in commands:
            print(f"  {cmd}")
        return

    with tempfile.TemporaryDirectory() as workdir:
        client, sandbox = build(workdir)
        try:
            commands[command](client, sandbox)
        except PaymentError as e:
            print(f"\n⚠️  Error in demo: {e.message}")


if __name__ == "__main__":
    main()
