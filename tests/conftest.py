"""Shared fixtures: an in-memory transport and per-provider signatures."""

import asyncio
import json
from typing import Dict, List, Optional, Tuple

import pytest

from cloudprovider.providers.base import ProviderID
from cloudprovider.providers.errors import EndpointUnreachableError
from cloudprovider.providers.transport import HttpResponse

HANG = object()

PUBLIC_ADDRESS = "203.0.113.10"


class FakeTransport:
    """Serves canned HTTP responses and PTR answers.

    Unknown URLs are refused and unknown addresses are NXDOMAIN. A route or
    PTR entry set to ``HANG`` never answers.
    """

    def __init__(
        self,
        routes: Optional[Dict[Tuple[str, str], object]] = None,
        ptr: Optional[Dict[str, object]] = None,
        addresses: Optional[List[str]] = None,
    ):
        self.routes = dict(routes or {})
        self.ptr = dict(ptr or {})
        self.addresses = [PUBLIC_ADDRESS] if addresses is None else list(addresses)
        self.requests: List[Tuple[str, str, Dict[str, str]]] = []

    async def request(self, method, url, headers=None):
        self.requests.append((method, url, dict(headers or {})))
        answer = self.routes.get((method, url))
        if answer is HANG:
            await asyncio.Event().wait()
        if answer is None:
            raise EndpointUnreachableError(f"{method} {url}: connection refused")
        return HttpResponse(url=url, **answer)

    async def reverse_lookup(self, address):
        answer = self.ptr.get(address)
        if answer is HANG:
            await asyncio.Event().wait()
        if answer is None:
            raise EndpointUnreachableError(f"PTR {address}: NXDOMAIN")
        return list(answer)

    async def public_addresses(self):
        return list(self.addresses)

    def merge(self, other: "FakeTransport") -> "FakeTransport":
        return FakeTransport(
            routes={**self.routes, **other.routes},
            ptr={**self.ptr, **other.ptr},
            addresses=self.addresses,
        )


def _ok(body, headers=None):
    if not isinstance(body, str):
        body = json.dumps(body)
    return {"status": 200, "headers": headers or {}, "body": body}


SIGNATURES = {
    ProviderID.AWS: {
        "routes": {
            ("PUT", "http://169.254.169.254/latest/api/token"): _ok(
                "AQAEAexampletoken=="
            ),
            (
                "GET",
                "http://169.254.169.254/latest/dynamic/instance-identity/document",
            ): _ok(
                {
                    "accountId": "123456789012",
                    "instanceId": "i-0abcdef1234567890",
                    "region": "us-east-1",
                },
                {"Metadata-Token": "AQAEAexampletoken=="},
            ),
        }
    },
    ProviderID.AZURE: {
        "routes": {
            (
                "GET",
                "http://169.254.169.254/metadata/instance?api-version=2021-02-01",
            ): _ok(
                {
                    "compute": {
                        "azEnvironment": "AzurePublicCloud",
                        "vmId": "02aab8a4-74ef-476e-8182-f6d2ba4166a6",
                    }
                }
            ),
        }
    },
    ProviderID.DIGITALOCEAN: {
        "routes": {
            ("GET", "http://169.254.169.254/metadata/v1.json"): _ok(
                {"droplet_id": 2756294, "hostname": "sample-droplet"}
            ),
        }
    },
    ProviderID.GCE: {
        "routes": {
            ("GET", "http://169.254.169.254/computeMetadata/v1/instance/id"): _ok(
                "4520031799277581759", {"Metadata-Flavor": "Google"}
            ),
        }
    },
    ProviderID.LINODE: {"ptr": {PUBLIC_ADDRESS: ["li1234-10.members.linode.com."]}},
    ProviderID.SCALEWAY: {
        "routes": {
            ("GET", "http://169.254.42.42/conf?format=json"): _ok(
                {
                    "id": "7a6a3c59-7cfb-4b4e-a4e6-2e9f8f1a0f43",
                    "commercial_type": "DEV1-S",
                    "hostname": "scw-node",
                }
            ),
        }
    },
    ProviderID.SOFTLAYER: {
        "routes": {
            (
                "GET",
                "https://api.service.softlayer.com/rest/v3/"
                "SoftLayer_Resource_Metadata/getGlobalIdentifier.json",
            ): _ok('"2b1c9e3d-5f6a-4b7c-8d9e-0f1a2b3c4d5e"'),
        }
    },
    ProviderID.VULTR: {
        "routes": {
            ("GET", "http://169.254.169.254/v1.json"): _ok(
                {"instanceid": "a747bfz6385", "hostname": "vultr-guest"}
            ),
        }
    },
}


def signature_transport(*providers: ProviderID) -> FakeTransport:
    """A transport where only the given providers' endpoints answer."""

    transport = FakeTransport()
    for provider in providers:
        transport = transport.merge(FakeTransport(**SIGNATURES[provider]))
    return transport


@pytest.fixture
def unreachable_transport():
    return FakeTransport()


@pytest.fixture
def hanging_transport():
    routes = {}
    for signature in SIGNATURES.values():
        routes.update({route: HANG for route in signature.get("routes", {})})
    return FakeTransport(routes=routes, ptr={PUBLIC_ADDRESS: HANG})
