"""Concurrent cloud provider detection."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence

from cloudprovider.providers.base import (
    DetectionOutcome,
    DetectionStatus,
    ProbeResult,
    ProviderID,
)
from cloudprovider.providers.errors import (
    DeadlineExceededError,
    ProbeTimeoutError,
    TransportError,
)
from cloudprovider.providers.registry import (
    SUPPORTED_PROVIDERS,
    ProbeRegistry,
    default_registry,
    priority,
)
from cloudprovider.providers.transport import NetworkTransport, Transport

logger = logging.getLogger("cloudprovider.detector")


@dataclass(frozen=True)
class DetectorOptions:
    """Tunables for a :class:`Detector`.

    ``timeout`` bounds a whole detection call, ``probe_timeout`` each probe
    and ``connect_timeout`` each TCP connect or DNS query.
    """

    timeout: float = 3.0
    probe_timeout: float = 2.0
    connect_timeout: float = 1.0
    enabled_providers: FrozenSet[ProviderID] = field(default=SUPPORTED_PROVIDERS)

    def __post_init__(self) -> None:
        for name in ("timeout", "probe_timeout", "connect_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.connect_timeout > self.probe_timeout:
            raise ValueError("connect_timeout cannot exceed probe_timeout")
        enabled = frozenset(self.enabled_providers)
        unsupported = enabled - SUPPORTED_PROVIDERS
        if unsupported:
            names = ", ".join(sorted(provider.value for provider in unsupported))
            raise ValueError(f"Cannot enable unsupported providers: {names}")
        object.__setattr__(self, "enabled_providers", enabled)


class Detector:
    """Runs every enabled probe concurrently and picks a single provider."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        registry: Optional[ProbeRegistry] = None,
        options: Optional[DetectorOptions] = None,
    ):
        self.options = options or DetectorOptions()
        self.transport = transport or NetworkTransport(
            connect_timeout=self.options.connect_timeout,
            request_timeout=self.options.probe_timeout,
        )
        self.registry = registry or default_registry()

    async def detect(self, *, timeout: Optional[float] = None) -> DetectionOutcome:
        """Identify the provider hosting this machine.

        Args:
            timeout: Overall deadline in seconds; defaults to ``options.timeout``.

        Raises:
            DeadlineExceededError: if ``timeout`` has already run out.
        """

        budget = self.options.timeout if timeout is None else timeout
        if budget <= 0:
            raise DeadlineExceededError("detection deadline expired before start")

        probes = self.registry.ordered(self.options.enabled_providers)
        probe_timeout = min(self.options.probe_timeout, budget)
        started = time.monotonic()

        results: List[ProbeResult] = await asyncio.gather(
            *[probe.run(self.transport, timeout=probe_timeout) for probe in probes]
        )

        for result in results:
            logger.debug(
                "%s: matched=%s evidence=%r err=%s (%.3fs)",
                result.provider.value,
                result.matched,
                result.evidence,
                result.err,
                result.elapsed,
            )

        outcome = decide(results, elapsed=time.monotonic() - started)
        logger.info(
            "Detected provider %s (%s)", outcome.provider.value, outcome.status.value
        )
        return outcome

    def detect_sync(self, *, timeout: Optional[float] = None) -> DetectionOutcome:
        """Blocking variant of :meth:`detect` for code without an event loop."""

        return asyncio.run(self.detect(timeout=timeout))


def decide(results: Sequence[ProbeResult], elapsed: float = 0.0) -> DetectionOutcome:
    """Apply the precedence rule to a full set of probe results."""

    ordered = tuple(sorted(results, key=lambda result: priority(result.provider)))
    matched = [result.provider for result in ordered if result.matched]

    if matched:
        winner = matched[0]
        conflicts: tuple[ProviderID, ...] = ()
        if len(matched) > 1:
            conflicts = tuple(matched)
            logger.warning(
                "Several providers matched (%s); using %s",
                ", ".join(provider.value for provider in matched),
                winner.value,
            )
        return DetectionOutcome(
            provider=winner,
            status=DetectionStatus.IDENTIFIED,
            results=ordered,
            conflicts=conflicts,
            elapsed=elapsed,
        )

    return DetectionOutcome(
        provider=ProviderID.UNKNOWN,
        status=_unmatched_status(ordered),
        results=ordered,
        elapsed=elapsed,
    )


def _unmatched_status(results: Iterable[ProbeResult]) -> DetectionStatus:
    results = list(results)
    if any(isinstance(result.err, ProbeTimeoutError) for result in results):
        return DetectionStatus.TIMED_OUT
    if results and all(isinstance(result.err, TransportError) for result in results):
        return DetectionStatus.UNREACHABLE
    return DetectionStatus.NOT_DETECTED


_default_detector: Optional[Detector] = None
_default_lock = threading.Lock()


def get_default_detector() -> Detector:
    """Return the lazily built process-wide detector."""

    global _default_detector
    with _default_lock:
        if _default_detector is None:
            _default_detector = Detector()
        return _default_detector


async def detect_cloud_provider_async(timeout: Optional[float] = None) -> str:
    outcome = await get_default_detector().detect(timeout=timeout)
    return outcome.provider.value


def detect_cloud_provider(timeout: Optional[float] = None) -> str:
    """Return the id of the provider hosting this machine, or ``"unknown"``."""

    return get_default_detector().detect_sync(timeout=timeout).provider.value
