"""Registry of probes in precedence order."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from cloudprovider.providers.base import Probe, ProviderID

# When several probes match, the earliest provider here wins.
PRECEDENCE: tuple[ProviderID, ...] = (
    ProviderID.AWS,
    ProviderID.AZURE,
    ProviderID.DIGITALOCEAN,
    ProviderID.GCE,
    ProviderID.LINODE,
    ProviderID.SCALEWAY,
    ProviderID.SOFTLAYER,
    ProviderID.VULTR,
)

SUPPORTED_PROVIDERS = frozenset(PRECEDENCE)


def priority(provider: ProviderID) -> int:
    """Lower numbers win ties."""

    return PRECEDENCE.index(provider)


class ProbeRegistry:
    """Holds at most one probe per provider."""

    def __init__(self, probes: Iterable[Probe] = ()):
        self._probes: Dict[ProviderID, Probe] = {}
        for probe in probes:
            self.register(probe)

    def register(self, probe: Probe) -> None:
        if probe.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Cannot register a probe for '{probe.provider.value}'")
        self._probes[probe.provider] = probe

    def get(self, provider: ProviderID) -> Optional[Probe]:
        return self._probes.get(provider)

    def providers(self) -> List[ProviderID]:
        return [provider for provider in PRECEDENCE if provider in self._probes]

    def ordered(self, enabled: Optional[Iterable[ProviderID]] = None) -> List[Probe]:
        """Return registered probes in precedence order, optionally filtered."""

        wanted = set(enabled) if enabled is not None else None
        return [
            self._probes[provider]
            for provider in self.providers()
            if wanted is None or provider in wanted
        ]


def default_registry() -> ProbeRegistry:
    """Build a registry with the built-in probe for every provider."""

    from cloudprovider.providers.aws import AWSProbe
    from cloudprovider.providers.azure import AzureProbe
    from cloudprovider.providers.digitalocean import DigitalOceanProbe
    from cloudprovider.providers.gce import GCEProbe
    from cloudprovider.providers.linode import LinodeProbe
    from cloudprovider.providers.scaleway import ScalewayProbe
    from cloudprovider.providers.softlayer import SoftlayerProbe
    from cloudprovider.providers.vultr import VultrProbe

    return ProbeRegistry(
        [
            AWSProbe(),
            AzureProbe(),
            DigitalOceanProbe(),
            GCEProbe(),
            LinodeProbe(),
            ScalewayProbe(),
            SoftlayerProbe(),
            VultrProbe(),
        ]
    )
