"""Shared detection errors."""


class ProviderNotFoundError(ValueError):
    """Raised when a provider name is not one of the supported providers."""


class DetectionError(RuntimeError):
    """Base class for failures of a detection call as a whole."""


class DeadlineExceededError(DetectionError):
    """Raised when the detection deadline has already passed on entry."""


class ProbeError(RuntimeError):
    """Base class for failures recorded against a single probe."""


class TransportError(ProbeError):
    """The HTTP or DNS client failed in an unexpected way."""


class EndpointUnreachableError(TransportError):
    """Connection refused, timed out, or the name did not resolve."""


class ProbeTimeoutError(ProbeError):
    """The probe did not finish before its deadline."""


class MalformedResponseError(ProbeError):
    """The endpoint answered, but not with the provider's identity."""

    def __init__(self, message: str, evidence: str = ""):
        super().__init__(message)
        self.evidence = evidence
