"""HTTP transport used by the control-plane client."""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from .errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class Response:
    """Status code and raw body of one HTTP exchange."""
    status_code: int
    body: bytes = b''

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')


class HTTPTransport:
    """Sends requests to the control plane through a ``requests.Session``."""

    def __init__(self, base_url: str, timeout: float = 30, verify: bool = True,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.verify = verify

    def send(self, method: str, path: str, body: Optional[bytes] = None,
             headers: Optional[Dict[str, str]] = None) -> Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            resp = self.session.request(method, url, data=body, headers=headers, timeout=self.timeout)
            content = resp.content
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        logger.debug(f"{method} {url} -> {resp.status_code}")
        return Response(status_code=resp.status_code, body=content)

    def close(self) -> None:
        self.session.close()
