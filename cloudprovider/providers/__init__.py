"""Cloud provider probes and the detector that combines them."""

from .base import (
    DetectionOutcome,
    DetectionStatus,
    HttpProbe,
    Probe,
    ProbeResult,
    ProviderID,
)
from .detector import (
    Detector,
    DetectorOptions,
    detect_cloud_provider,
    detect_cloud_provider_async,
    get_default_detector,
)
from .registry import PRECEDENCE, ProbeRegistry, default_registry
from .transport import HttpResponse, NetworkTransport, Transport

__all__ = [
    "DetectionOutcome",
    "DetectionStatus",
    "Detector",
    "DetectorOptions",
    "HttpProbe",
    "HttpResponse",
    "NetworkTransport",
    "PRECEDENCE",
    "Probe",
    "ProbeRegistry",
    "ProbeResult",
    "ProviderID",
    "Transport",
    "default_registry",
    "detect_cloud_provider",
    "detect_cloud_provider_async",
    "get_default_detector",
]
