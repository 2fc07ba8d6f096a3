"""Probe interfaces and detection result types."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from cloudprovider.providers.errors import (
    MalformedResponseError,
    ProbeError,
    ProbeTimeoutError,
    ProviderNotFoundError,
)
from cloudprovider.providers.transport import HttpResponse, Transport

logger = logging.getLogger("cloudprovider.probe")


class ProviderID(str, Enum):
    """Cloud providers the detector can identify."""

    AWS = "aws"
    AZURE = "azure"
    DIGITALOCEAN = "digitalocean"
    GCE = "gce"
    LINODE = "linode"
    SCALEWAY = "scaleway"
    SOFTLAYER = "softlayer"
    VULTR = "vultr"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "ProviderID":
        """Parse a provider name, ignoring case and surrounding whitespace."""

        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ProviderNotFoundError(f"Unknown provider '{value}'") from exc

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def technique(self) -> str:
        return _TECHNIQUES[self]


_DISPLAY_NAMES = {
    ProviderID.AWS: "Amazon Web Services",
    ProviderID.AZURE: "Microsoft Azure",
    ProviderID.DIGITALOCEAN: "DigitalOcean",
    ProviderID.GCE: "Google Cloud Platform",
    ProviderID.LINODE: "Linode",
    ProviderID.SCALEWAY: "Scaleway",
    ProviderID.SOFTLAYER: "IBM Softlayer (Bluemix)",
    ProviderID.VULTR: "Vultr",
    ProviderID.UNKNOWN: "Unknown",
}

_TECHNIQUES = {
    ProviderID.AWS: "Instance identity document",
    ProviderID.AZURE: "Instance metadata service",
    ProviderID.DIGITALOCEAN: "Droplet metadata",
    ProviderID.GCE: "GCE instance metadata",
    ProviderID.LINODE: "Reverse domain name (PTR record)",
    ProviderID.SCALEWAY: "Instance metadata",
    ProviderID.SOFTLAYER: "Resource metadata API",
    ProviderID.VULTR: "Instance metadata",
    ProviderID.UNKNOWN: "",
}


class DetectionStatus(str, Enum):
    """How a detection call concluded."""

    IDENTIFIED = "identified"
    NOT_DETECTED = "not_detected"
    UNREACHABLE = "unreachable"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of running a single probe once."""

    provider: ProviderID
    matched: bool
    evidence: str = ""
    elapsed: float = 0.0
    err: Optional[BaseException] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "matched": self.matched,
            "evidence": self.evidence,
            "elapsed": round(self.elapsed, 4),
            "error": f"{type(self.err).__name__}: {self.err}" if self.err else None,
        }


@dataclass(frozen=True)
class DetectionOutcome:
    """Final decision of a detection call plus the results behind it."""

    provider: ProviderID
    status: DetectionStatus
    results: Tuple[ProbeResult, ...] = ()
    conflicts: Tuple[ProviderID, ...] = ()
    elapsed: float = 0.0

    @property
    def detected(self) -> bool:
        return self.provider is not ProviderID.UNKNOWN

    def as_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "status": self.status.value,
            "conflicts": [provider.value for provider in self.conflicts],
            "elapsed": round(self.elapsed, 4),
            "results": [result.as_dict() for result in self.results],
        }


class Probe(ABC):
    """One provider-specific detection technique.

    Subclasses implement :meth:`check`, which either returns the evidence
    string for a positive match or raises a :class:`ProbeError`. :meth:`run`
    turns both outcomes, timeouts included, into a :class:`ProbeResult`.
    """

    provider: ProviderID

    @abstractmethod
    async def check(self, transport: Transport) -> str:
        """Return evidence for a match or raise ``ProbeError``."""

    async def run(
        self, transport: Transport, timeout: Optional[float] = None
    ) -> ProbeResult:
        """Run the technique, never blocking longer than ``timeout`` seconds."""

        started = time.monotonic()
        try:
            evidence = await asyncio.wait_for(self.check(transport), timeout)
        except asyncio.TimeoutError:
            return self._failed(
                started, ProbeTimeoutError(_timeout_message(timeout))
            )
        except ProbeError as exc:
            return self._failed(started, exc)
        except Exception as exc:
            logger.warning(
                "%s probe raised unexpectedly", self.provider.value, exc_info=True
            )
            return self._failed(started, exc)

        return ProbeResult(
            provider=self.provider,
            matched=True,
            evidence=evidence,
            elapsed=time.monotonic() - started,
        )

    def _failed(self, started: float, err: BaseException) -> ProbeResult:
        evidence = ""
        if isinstance(err, MalformedResponseError):
            evidence = err.evidence
        return ProbeResult(
            provider=self.provider,
            matched=False,
            evidence=evidence,
            elapsed=time.monotonic() - started,
            err=err,
        )


class HttpProbe(Probe):
    """Probe that reads a metadata endpoint over HTTP."""

    method: str = "GET"
    url: str
    headers: Mapping[str, str] = {}

    async def check(self, transport: Transport) -> str:
        response = await transport.request(self.method, self.url, dict(self.headers))
        return self.evaluate(response)

    def evaluate(self, response: HttpResponse) -> str:
        """Apply the success predicate to a metadata response."""

        if response.status != 200:
            raise MalformedResponseError(
                f"{self.url} answered HTTP {response.status}",
                evidence=f"HTTP {response.status}",
            )
        evidence = self.inspect(response)
        if not evidence:
            raise MalformedResponseError(
                f"{self.url} answered without {self.provider.value} identity fields",
                evidence=response.body[:120],
            )
        return evidence

    @abstractmethod
    def inspect(self, response: HttpResponse) -> Optional[str]:
        """Return evidence from a 200 response, or None if unrecognised."""


def _timeout_message(timeout: Optional[float]) -> str:
    if timeout is None:
        return "probe timed out"
    return f"no answer within {timeout:.2f}s"


def json_object(response: HttpResponse) -> Dict[str, Any]:
    """Decode a response body that must be a JSON object."""

    data = response.json()
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"{response.url} did not return a JSON object",
            evidence=response.body[:120],
        )
    return data


def non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
