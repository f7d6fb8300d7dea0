"""
Signing utilities for the gateway protocol.

Every request the merchant sends is signed with the merchant's RSA
private key, and every response is signed by the gateway. Both sides
sign the same thing: a "sign string" built by joining the message
fields with '|' in a fixed, per-operation order.

Key concepts demonstrated:
- Positional canonical serialization (not sorted JSON)
- RSA PKCS#1 v1.5 signatures, base64 on the wire
- Key material loaded once and shared
"""

import base64
import binascii
import os
import threading
from typing import Any, Dict, Mapping, Optional, Tuple

import structlog
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .constants import Config
from .exceptions import KeyLoadError, VerificationError

logger = structlog.get_logger(__name__)

# eAPI v1.6 signs with SHA-1; the gateway verifies nothing else.
SIGNATURE_HASH = hashes.SHA1

KEYS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "keys")


# =============================================================================
# Canonical sign string
# =============================================================================

def _format_scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def create_sign_string(values: Any) -> str:
    """
    Flatten protocol fields into the string that gets signed.

    Sequences are walked depth-first and mappings contribute their
    values in insertion order, so a payload dict can be passed as-is.

    Examples:
        ["a", "b", ["c", "d"]] → "a|b|c|d"
        {"merchantId": "M1", "dttm": "20240101120000"} → "M1|20240101120000"
        [] → ""
    """
    if isinstance(values, Mapping):
        values = list(values.values())

    output = []
    for item in values:
        if isinstance(item, (Mapping, list, tuple)):
            output.append(create_sign_string(item))
        else:
            output.append(_format_scalar(item))

    return "|".join(output)


def create_response_sign_string(response: Mapping) -> str:
    """
    Build the string a gateway response is signed over.

    payId|dttm|resultCode|resultMessage, then paymentStatus, authCode
    and merchantData, each only when present and not null.
    """
    parts = [
        response.get("payId"),
        response.get("dttm"),
        response.get("resultCode"),
        response.get("resultMessage"),
    ]

    for optional in ("paymentStatus", "authCode", "merchantData"):
        if response.get(optional) is not None:
            parts.append(response[optional])

    return create_sign_string(parts)


# =============================================================================
# Key loading
# =============================================================================

class KeyStore:
    """
    Loads PEM keys from disk and keeps them for the life of the process.

    Keys are immutable once loaded, so one store can be shared by any
    number of clients and threads.
    """

    def __init__(
        self,
        production_public_key_file: Optional[str] = None,
        test_public_key_file: Optional[str] = None,
    ):
        self.production_public_key_file = production_public_key_file or os.path.join(
            KEYS_DIR, Config.PRODUCTION_PUBLIC_KEY
        )
        self.test_public_key_file = test_public_key_file or os.path.join(
            KEYS_DIR, Config.TEST_PUBLIC_KEY
        )
        self._private_keys: Dict[Tuple[str, Optional[bytes]], rsa.RSAPrivateKey] = {}
        self._public_keys: Dict[str, rsa.RSAPublicKey] = {}
        self._lock = threading.Lock()

    def public_key_file(self, production: bool) -> str:
        """Path of the gateway public key for the environment."""
        return self.production_public_key_file if production else self.test_public_key_file

    def load_private_key(self, path: str, password: Optional[bytes] = None) -> rsa.RSAPrivateKey:
        """
        Load the merchant private key.

        Raises:
            KeyLoadError: If the file is missing or not an RSA private key
        """
        with self._lock:
            key = self._private_keys.get((path, password))
            if key is None:
                data = self._read(path, "Private key not found")
                try:
                    key = serialization.load_pem_private_key(data, password=password)
                except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                    raise KeyLoadError(f"Private key could not be loaded: {e}", path=path)
                if not isinstance(key, rsa.RSAPrivateKey):
                    raise KeyLoadError("Private key is not an RSA key", path=path)
                self._private_keys[(path, password)] = key
                logger.debug("private_key_loaded", path=path)
            return key

    def load_public_key(self, production: bool) -> rsa.RSAPublicKey:
        """
        Load the gateway public key for production or test.

        Raises:
            KeyLoadError: If the file is missing or not an RSA public key
        """
        path = self.public_key_file(production)
        with self._lock:
            key = self._public_keys.get(path)
            if key is None:
                data = self._read(path, "Public key not found")
                try:
                    key = serialization.load_pem_public_key(data)
                except (ValueError, UnsupportedAlgorithm) as e:
                    raise KeyLoadError(f"Public key could not be loaded: {e}", path=path)
                if not isinstance(key, rsa.RSAPublicKey):
                    raise KeyLoadError("Public key is not an RSA key", path=path)
                self._public_keys[path] = key
                logger.debug("public_key_loaded", path=path, production=production)
            return key

    @staticmethod
    def _read(path: str, message: str) -> bytes:
        try:
            with open(path, "rb") as fp:
                return fp.read()
        except OSError as e:
            raise KeyLoadError(f"{message}: {path} ({e.strerror})", path=path)


_default_key_store = KeyStore()


def get_key_store() -> KeyStore:
    """Process-wide key store for the packaged public keys."""
    return _default_key_store


# =============================================================================
# Signatures
# =============================================================================

class SignatureEngine:
    """
    Sign outgoing messages and verify gateway signatures.

    The gateway public key (production or test) is chosen here, once,
    and never per call.
    """

    def __init__(
        self,
        private_key_file: str,
        production: bool = False,
        key_store: Optional[KeyStore] = None,
        private_key_password: Optional[str] = None,
    ):
        """
        Args:
            private_key_file: Path to the merchant's PEM private key
            production: Verify with the production key instead of test
            key_store: Where keys are loaded and cached
            private_key_password: Passphrase of the private key, if any
        """
        self.private_key_file = private_key_file
        self.production = production
        self.key_store = key_store or get_key_store()
        self._password = private_key_password.encode() if private_key_password else None

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        return self.key_store.load_private_key(self.private_key_file, self._password)

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.key_store.load_public_key(self.production)

    def sign(self, text: str) -> str:
        """
        Sign text with the merchant private key.

        Returns:
            Base64 encoded signature
        """
        return sign_text(self.private_key, text)

    def sign_fields(self, values: Any) -> str:
        """Sign the canonical string of an ordered field sequence."""
        return self.sign(create_sign_string(values))

    def verify(self, text: str, signature_base64: Optional[str]) -> bool:
        """
        Verify a gateway signature over text.

        Returns:
            True when the signature matches

        Raises:
            VerificationError: If the signature is malformed or does not match
        """
        return verify_text(self.public_key, text, signature_base64)


def sign_text(private_key: rsa.RSAPrivateKey, text: str) -> str:
    """RSA PKCS#1 v1.5 signature over UTF-8 text, base64 encoded."""
    signature = private_key.sign(
        text.encode("utf-8"),
        padding.PKCS1v15(),
        SIGNATURE_HASH(),
    )
    return base64.b64encode(signature).decode("ascii")


def verify_text(public_key: rsa.RSAPublicKey, text: str, signature_base64: Optional[str]) -> bool:
    """
    Check a base64 signature over UTF-8 text.

    Raises:
        VerificationError: Never returns False
    """
    if not signature_base64:
        raise VerificationError("Message is not signed")

    try:
        signature = base64.b64decode(signature_base64, validate=True)
    except (binascii.Error, ValueError):
        raise VerificationError("Signature is not valid base64")

    try:
        public_key.verify(
            signature,
            text.encode("utf-8"),
            padding.PKCS1v15(),
            SIGNATURE_HASH(),
        )
    except InvalidSignature:
        raise VerificationError()

    return True
