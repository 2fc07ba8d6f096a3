"""Detect which cloud provider a host is running on."""

from cloudprovider.providers import (
    DetectionOutcome,
    Detector,
    DetectorOptions,
    ProviderID,
    detect_cloud_provider,
    detect_cloud_provider_async,
)

__version__ = "0.1.0"

__all__ = [
    "DetectionOutcome",
    "Detector",
    "DetectorOptions",
    "ProviderID",
    "detect_cloud_provider",
    "detect_cloud_provider_async",
]
