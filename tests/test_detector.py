"""Tests for concurrent detection and the precedence rule."""

import asyncio
import time

import pytest

from conftest import PUBLIC_ADDRESS, FakeTransport, signature_transport
from cloudprovider.providers.base import DetectionStatus, ProbeResult, ProviderID
from cloudprovider.providers.detector import Detector, DetectorOptions, decide
from cloudprovider.providers.errors import (
    DeadlineExceededError,
    EndpointUnreachableError,
    MalformedResponseError,
)
from cloudprovider.providers.registry import PRECEDENCE


@pytest.mark.asyncio
@pytest.mark.parametrize("provider", PRECEDENCE, ids=lambda p: p.value)
async def test_detects_single_matching_provider(provider):
    outcome = await Detector(transport=signature_transport(provider)).detect()

    assert outcome.provider is provider
    assert outcome.status is DetectionStatus.IDENTIFIED
    assert outcome.conflicts == ()
    assert [result.provider for result in outcome.results] == list(PRECEDENCE)


@pytest.mark.asyncio
async def test_aws_end_to_end():
    outcome = await Detector(transport=signature_transport(ProviderID.AWS)).detect()
    assert outcome.provider is ProviderID.AWS
    assert outcome.detected


@pytest.mark.asyncio
async def test_linode_end_to_end():
    transport = FakeTransport(ptr={PUBLIC_ADDRESS: ["host.linode.com"]})
    outcome = await Detector(transport=transport).detect()
    assert outcome.provider is ProviderID.LINODE


@pytest.mark.asyncio
async def test_everything_unreachable_is_unknown(unreachable_transport):
    outcome = await Detector(transport=unreachable_transport).detect()

    assert outcome.provider is ProviderID.UNKNOWN
    assert outcome.status is DetectionStatus.UNREACHABLE
    assert not outcome.detected
    assert all(not result.matched for result in outcome.results)


@pytest.mark.asyncio
async def test_multiple_matches_use_precedence_and_are_stable():
    transport = signature_transport(ProviderID.VULTR, ProviderID.DIGITALOCEAN)
    detector = Detector(transport=transport)

    for _ in range(5):
        outcome = await detector.detect()
        assert outcome.provider is ProviderID.DIGITALOCEAN
        assert outcome.conflicts == (ProviderID.DIGITALOCEAN, ProviderID.VULTR)


@pytest.mark.asyncio
async def test_repeated_detection_is_idempotent():
    detector = Detector(transport=signature_transport(ProviderID.SCALEWAY))
    answers = {(await detector.detect()).provider for _ in range(5)}
    assert answers == {ProviderID.SCALEWAY}


@pytest.mark.asyncio
async def test_hanging_probes_respect_deadline(hanging_transport):
    detector = Detector(transport=hanging_transport)

    started = time.monotonic()
    outcome = await detector.detect(timeout=0.2)
    elapsed = time.monotonic() - started

    assert elapsed < 0.2 + 0.5
    assert outcome.provider is ProviderID.UNKNOWN
    assert outcome.status is DetectionStatus.TIMED_OUT
    assert len(outcome.results) == len(PRECEDENCE)


@pytest.mark.asyncio
async def test_deadline_partially_hanging_keeps_fast_match(hanging_transport):
    transport = hanging_transport.merge(signature_transport(ProviderID.GCE))
    outcome = await Detector(transport=transport).detect(timeout=0.2)
    assert outcome.provider is ProviderID.GCE


@pytest.mark.asyncio
async def test_expired_deadline_raises(unreachable_transport):
    with pytest.raises(DeadlineExceededError):
        await Detector(transport=unreachable_transport).detect(timeout=0)


@pytest.mark.asyncio
async def test_enabled_providers_limit_probes():
    transport = signature_transport(ProviderID.AWS, ProviderID.GCE)
    options = DetectorOptions(enabled_providers=frozenset({ProviderID.GCE}))
    outcome = await Detector(transport=transport, options=options).detect()

    assert outcome.provider is ProviderID.GCE
    assert [result.provider for result in outcome.results] == [ProviderID.GCE]
    assert all("169.254.169.254/latest" not in url for _, url, _ in transport.requests)


@pytest.mark.asyncio
async def test_unexpected_probe_exception_is_recorded():
    class BrokenTransport(FakeTransport):
        async def public_addresses(self):
            raise KeyError("boom")

    outcome = await Detector(transport=BrokenTransport()).detect()

    linode = next(r for r in outcome.results if r.provider is ProviderID.LINODE)
    assert isinstance(linode.err, KeyError)
    assert outcome.provider is ProviderID.UNKNOWN
    assert outcome.status is DetectionStatus.NOT_DETECTED


@pytest.mark.asyncio
async def test_cancelling_detection_cancels_every_check(hanging_transport):
    task = asyncio.create_task(Detector(transport=hanging_transport).detect(timeout=5))
    await asyncio.sleep(0.05)
    assert hanging_transport.requests

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    current = asyncio.current_task()
    assert [t for t in asyncio.all_tasks() if t is not current and not t.done()] == []


def test_detect_sync():
    outcome = Detector(transport=signature_transport(ProviderID.AZURE)).detect_sync()
    assert outcome.provider is ProviderID.AZURE


def test_decide_distinguishes_no_match_from_outage():
    unreachable = EndpointUnreachableError("refused")
    malformed = MalformedResponseError("nope")

    outage = decide(
        [
            ProbeResult(ProviderID.AWS, False, err=unreachable),
            ProbeResult(ProviderID.GCE, False, err=unreachable),
        ]
    )
    assert outage.status is DetectionStatus.UNREACHABLE

    no_match = decide(
        [
            ProbeResult(ProviderID.AWS, False, err=unreachable),
            ProbeResult(ProviderID.GCE, False, err=malformed),
        ]
    )
    assert no_match.status is DetectionStatus.NOT_DETECTED
    assert no_match.provider is ProviderID.UNKNOWN


def test_decide_orders_results_by_precedence():
    outcome = decide(
        [
            ProbeResult(ProviderID.VULTR, True, evidence="v"),
            ProbeResult(ProviderID.AZURE, True, evidence="a"),
        ]
    )
    assert outcome.provider is ProviderID.AZURE
    assert [r.provider for r in outcome.results] == [ProviderID.AZURE, ProviderID.VULTR]
    assert outcome.as_dict()["conflicts"] == ["azure", "vultr"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"timeout": 0},
        {"probe_timeout": -1},
        {"connect_timeout": 3.0, "probe_timeout": 2.0},
        {"enabled_providers": frozenset({ProviderID.UNKNOWN})},
    ],
)
def test_invalid_options_rejected(kwargs):
    with pytest.raises(ValueError):
        DetectorOptions(**kwargs)


def test_detect_cloud_provider_uses_default_detector(monkeypatch):
    from cloudprovider import detect_cloud_provider
    from cloudprovider.providers import detector as detector_module

    fake = Detector(transport=signature_transport(ProviderID.SOFTLAYER))
    monkeypatch.setattr(detector_module, "_default_detector", fake)

    assert detector_module.get_default_detector() is fake
    assert detect_cloud_provider() == "softlayer"


@pytest.mark.asyncio
async def test_detect_cloud_provider_async(monkeypatch):
    from cloudprovider import detect_cloud_provider_async
    from cloudprovider.providers import detector as detector_module

    monkeypatch.setattr(
        detector_module, "_default_detector", Detector(transport=FakeTransport())
    )
    assert await detect_cloud_provider_async() == "unknown"
