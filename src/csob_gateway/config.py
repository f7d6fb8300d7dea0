"""
Gateway client configuration.

Loads merchant settings from environment variables (prefix ``CSOB_``)
or a ``.env`` file. Production vs. test is an explicit setting and is
passed to the client at construction.
"""

import logging
from typing import Literal, Optional

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

from .shared.constants import Config


class GatewaySettings(BaseSettings):
    """
    Merchant settings for the payment gateway.

    Environment variables:
        CSOB_MERCHANT_ID: Merchant ID issued by the bank
        CSOB_PRIVATE_KEY_FILE: Path to the merchant PEM private key
        CSOB_PRODUCTION: Use the production endpoint and public key
    """

    model_config = SettingsConfigDict(
        env_prefix="CSOB_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    merchant_id: str
    private_key_file: str
    private_key_password: Optional[str] = None

    production: bool = False

    # Override the packaged gateway public keys
    production_public_key_file: Optional[str] = None
    test_public_key_file: Optional[str] = None

    timeout: int = Config.CONNECT_TIMEOUT_SECONDS
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


def configure_logging(level: str = "INFO"):
    """Console structlog output filtered at the given level."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level)
        ),
    )
