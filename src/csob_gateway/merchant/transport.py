"""
HTTP transport for the gateway client.

The client only needs one thing from the network: send a body with a
method and headers, get back a status code and the raw response body.
Anything with a matching ``send`` method can be injected, which is how
the tests and the sandbox gateway plug in.
"""

import http.client
import urllib.error
import urllib.request
from typing import Dict, Optional, Protocol, Tuple

import structlog

from ..shared.constants import Config
from ..shared.exceptions import TransportError

logger = structlog.get_logger(__name__)


class Transport(Protocol):
    """What the client calls to reach the gateway."""

    def send(
        self,
        url: str,
        method: str,
        body: Optional[bytes],
        headers: Dict[str, str],
    ) -> Tuple[int, bytes]:
        ...


class UrllibTransport:
    """
    Default transport built on urllib.

    HTTP error statuses are returned, not raised, so the client decides
    what counts as success. Connection failures raise TransportError.
    Nothing is retried.
    """

    def __init__(self, timeout: int = Config.CONNECT_TIMEOUT_SECONDS):
        self.timeout = timeout

    def send(
        self,
        url: str,
        method: str,
        body: Optional[bytes],
        headers: Dict[str, str],
    ) -> Tuple[int, bytes]:
        request = urllib.request.Request(url, data=body, headers=headers, method=method)

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                return response.status, response.read()

        except urllib.error.HTTPError as e:
            return e.code, e.read()

        except urllib.error.URLError as e:
            logger.warning("gateway_connection_failed", url=url, reason=str(e.reason))
            raise TransportError(f"Connection error: {e.reason}")

        except (OSError, http.client.HTTPException) as e:
            logger.warning("gateway_connection_failed", url=url, reason=str(e))
            raise TransportError(f"Connection error: {e}")
