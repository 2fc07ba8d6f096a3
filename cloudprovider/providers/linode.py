"""Linode detection through reverse DNS of the host's public addresses.

Linode assigns every public IPv4 address a PTR record under one of its own
domains, e.g. ``li123-45.members.linode.com``.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from cloudprovider.providers.base import Probe, ProviderID
from cloudprovider.providers.errors import (
    EndpointUnreachableError,
    MalformedResponseError,
    ProbeError,
)
from cloudprovider.providers.transport import Transport

logger = logging.getLogger("cloudprovider.probe.linode")

PTR_DOMAINS = ("linode.com", "linodeusercontent.com")


def has_provider_suffix(name: str, domains: Sequence[str] = PTR_DOMAINS) -> bool:
    """Return whether ``name`` is a host under one of ``domains``."""

    host = name.rstrip(".").lower()
    return any(host.endswith("." + domain) for domain in domains)


class LinodeProbe(Probe):
    provider = ProviderID.LINODE

    def __init__(self, domains: Sequence[str] = PTR_DOMAINS):
        self.domains = tuple(domains)

    async def check(self, transport: Transport) -> str:
        addresses = await transport.public_addresses()
        if not addresses:
            raise EndpointUnreachableError("host has no public IPv4 address")

        seen: List[str] = []
        last_error: ProbeError | None = None
        for address in addresses:
            try:
                names = await transport.reverse_lookup(address)
            except ProbeError as exc:
                logger.debug("PTR lookup for %s failed: %s", address, exc)
                last_error = exc
                continue
            for name in names:
                if has_provider_suffix(name, self.domains):
                    return name.rstrip(".")
            seen.extend(names)

        if seen:
            raise MalformedResponseError(
                "no PTR name under a Linode domain", evidence=", ".join(seen)
            )
        raise last_error or EndpointUnreachableError("no PTR records found")
