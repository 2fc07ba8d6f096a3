"""HTTP and DNS access shared by all probes."""

from __future__ import annotations

import asyncio
import ipaddress
import json
import logging
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

import aiohttp
import dns.asyncresolver
import dns.exception
import dns.resolver

from cloudprovider import debug
from cloudprovider.providers.errors import (
    EndpointUnreachableError,
    MalformedResponseError,
    TransportError,
)

logger = logging.getLogger("cloudprovider.transport")

DEFAULT_CONNECT_TIMEOUT = 1.0
DEFAULT_REQUEST_TIMEOUT = 2.0

# Metadata documents are small; anything bigger is not one of ours.
MAX_BODY_BYTES = 64 * 1024

# Used only to pick the outbound interface, no packet is sent.
_ROUTE_PROBE_ADDRESS = ("192.0.2.1", 53)


@dataclass(frozen=True)
class HttpResponse:
    """A metadata endpoint's answer, reduced to what probes inspect."""

    url: str
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str = ""

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""

        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise MalformedResponseError(
                f"{self.url} returned invalid JSON: {exc}", evidence=self.body[:120]
            ) from exc


class Transport(Protocol):
    """Network access used by probes; tests substitute a fake."""

    async def request(
        self, method: str, url: str, headers: Optional[Dict[str, str]] = None
    ) -> HttpResponse:
        """Issue one HTTP request without retries."""

    async def reverse_lookup(self, address: str) -> List[str]:
        """Return the PTR names for an IP address."""

    async def public_addresses(self) -> List[str]:
        """Return the host's globally routable IPv4 addresses."""


class NetworkTransport:
    """Transport backed by aiohttp and dnspython."""

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout

    async def request(
        self, method: str, url: str, headers: Optional[Dict[str, str]] = None
    ) -> HttpResponse:
        debug.trace("http", ">", method=method, url=url, headers=headers or {})
        timeout = aiohttp.ClientTimeout(
            total=self.request_timeout, connect=self.connect_timeout
        )
        try:
            # trust_env stays off: metadata addresses must never go through a proxy.
            async with aiohttp.ClientSession(
                timeout=timeout, trust_env=False
            ) as session:
                async with session.request(
                    method, url, headers=headers, allow_redirects=False
                ) as response:
                    raw = await _read_capped(response, url)
                    result = HttpResponse(
                        url=url,
                        status=response.status,
                        headers=dict(response.headers),
                        body=_decode(raw, response.charset),
                    )
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError, OSError) as exc:
            reason = str(exc) or type(exc).__name__
            raise EndpointUnreachableError(f"{method} {url}: {reason}") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{method} {url}: {exc}") from exc

        debug.trace("http", "<", url=url, status=result.status, body=result.body[:200])
        return result

    async def reverse_lookup(self, address: str) -> List[str]:
        debug.trace("dns", ">", ptr=address)
        try:
            resolver = dns.asyncresolver.Resolver()
            resolver.lifetime = self.request_timeout
            resolver.timeout = self.connect_timeout
            answer = await resolver.resolve_address(address)
        except (
            dns.resolver.NXDOMAIN,
            dns.resolver.NoAnswer,
            dns.resolver.NoNameservers,
            dns.exception.Timeout,
        ) as exc:
            raise EndpointUnreachableError(f"PTR {address}: {exc}") from exc
        except dns.exception.DNSException as exc:
            raise TransportError(f"PTR {address}: {exc}") from exc

        names = [str(record.target).rstrip(".") for record in answer]
        debug.trace("dns", "<", ptr=address, names=names)
        return names

    async def public_addresses(self) -> List[str]:
        candidates: List[str] = []
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.connect(_ROUTE_PROBE_ADDRESS)
            candidates.append(sock.getsockname()[0])
        except OSError as exc:
            logger.debug("No default IPv4 route: %s", exc)
        finally:
            sock.close()

        # The resolver call can block for seconds, so it runs off the loop.
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(
                socket.gethostname(), None, family=socket.AF_INET
            )
        except OSError as exc:
            logger.debug("Could not resolve own hostname: %s", exc)
            infos = []
        candidates.extend(info[4][0] for info in infos)

        addresses: List[str] = []
        for candidate in candidates:
            if candidate in addresses:
                continue
            if ipaddress.ip_address(candidate).is_global:
                addresses.append(candidate)
        return addresses


async def _read_capped(response: aiohttp.ClientResponse, url: str) -> bytes:
    """Read the whole body, refusing anything over ``MAX_BODY_BYTES``."""

    chunks: List[bytes] = []
    size = 0
    async for chunk in response.content.iter_any():
        size += len(chunk)
        if size > MAX_BODY_BYTES:
            raise MalformedResponseError(
                f"{url} body exceeds {MAX_BODY_BYTES} bytes",
                evidence=b"".join(chunks)[:120].decode("utf-8", errors="replace"),
            )
        chunks.append(chunk)
    return b"".join(chunks)


def _decode(raw: bytes, charset: Optional[str]) -> str:
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        logger.debug("Unknown charset %r, decoding as utf-8", charset)
        return raw.decode("utf-8", errors="replace")
