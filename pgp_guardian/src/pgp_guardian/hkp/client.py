# Implement key push (/pks/add) and key pull (/pks/lookup) against an HKP server.
from __future__ import annotations

from typing import Optional, Union

import httpx
import structlog

from ..crypto.keys import PublicKey
from ..models import Identifier
from ..utils.errors import ProtocolParseFailure, TransportFailure

logger = structlog.get_logger(__name__)

HKP_PORT = 11371
DEFAULT_TIMEOUT = 30.0
ADD_PATH = "/pks/add"
LOOKUP_PATH = "/pks/lookup"

_SCHEMES = {"http": "http", "https": "https", "hkp": "http", "hkps": "https"}


def normalize_server_url(server: str) -> str:
    """Turn ``hkp://host`` style addresses into a plain HTTP base URL.

    ``hkp`` maps to ``http`` on port 11371 unless a port is given; ``hkps``
    maps to ``https``. A bare host name is treated as ``hkp``.
    """
    text = server.strip()
    if "://" not in text:
        text = f"hkp://{text}"
    try:
        url = httpx.URL(text)
    except httpx.InvalidURL as exc:
        raise ValueError(f"Invalid key server address: {server!r}") from exc
    scheme = _SCHEMES.get(url.scheme)
    if scheme is None or not url.host:
        raise ValueError(f"Unsupported key server address: {server!r}")
    if url.query or url.fragment:
        raise ValueError(f"Key server address must not carry a query: {server!r}")
    if url.port is None and url.scheme == "hkp":
        url = url.copy_with(scheme=scheme, port=HKP_PORT)
    else:
        url = url.copy_with(scheme=scheme)
    return str(url).rstrip("/")


class HkpClient:
    """Stateless client for a single key server.

    Every call opens its own connection, makes exactly one request and
    reports failure straight away; there is no caching and no retry.
    """

    def __init__(
        self,
        server: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = normalize_server_url(server)
        self.timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"HkpClient({self.base_url!r})"

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = self._url(path)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                return client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportFailure(f"Timed out after {self.timeout}s talking to {url}", url=url) from exc
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Request to {url} failed: {exc}", url=url) from exc

    @staticmethod
    def _failure(action: str, response: httpx.Response) -> TransportFailure:
        body = response.text
        return TransportFailure(
            f"{action} failed with HTTP {response.status_code}: {body.strip()[:200]}",
            url=str(response.request.url),
            status_code=response.status_code,
            body=body,
        )

    def push_key(self, key: PublicKey) -> None:
        """Submit ``key`` (armored, with its signatures) to the server."""
        response = self._request("POST", ADD_PATH, data={"keytext": key.armored()})
        if not response.is_success:
            raise self._failure(f"Key upload of 0x{key.key_id_hex}", response)
        logger.info("key_pushed", key_id=key.key_id_hex, server=self.base_url)

    def fetch_key(self, key_id: Union[int, str, Identifier]) -> Optional[PublicKey]:
        """Fetch a key by id; ``None`` when the server has no such key.

        The returned key must actually carry the requested id, either as the
        primary key or as one of its subkeys.
        """
        ident = Identifier.parse(key_id)
        if ident.key_id is None:
            raise ValueError(f"Not a key id: {key_id!r}")
        digits = 8 if ident.width == 8 else 16
        search = f"0x{ident.key_id:0{digits}X}"
        response = self._request(
            "GET",
            LOOKUP_PATH,
            params={"op": "get", "options": "mr", "search": search},
        )
        if response.status_code == 404:
            logger.info("key_not_on_server", key_id=search, server=self.base_url)
            return None
        if not response.is_success:
            raise self._failure(f"Lookup of {search}", response)

        source = str(response.request.url)
        key = PublicKey.from_text(response.content, source=source)
        if key is None:
            raise ProtocolParseFailure(f"No public key in response from {source}")
        if not key.matches(ident):
            raise ProtocolParseFailure(
                f"Server returned key 0x{key.key_id_hex} when asked for {search}"
            )
        logger.info("key_fetched", key_id=key.key_id_hex, server=self.base_url)
        return key


__all__ = ["HkpClient", "normalize_server_url", "HKP_PORT"]
