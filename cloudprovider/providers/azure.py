"""Microsoft Azure detection through the instance metadata service."""

from __future__ import annotations

from typing import Optional

from cloudprovider.providers.base import (
    HttpProbe,
    ProviderID,
    json_object,
    non_empty_string,
)
from cloudprovider.providers.transport import HttpResponse


class AzureProbe(HttpProbe):
    provider = ProviderID.AZURE
    url = "http://169.254.169.254/metadata/instance?api-version=2021-02-01"
    # IMDS rejects requests without this header.
    headers = {"Metadata": "true"}

    def inspect(self, response: HttpResponse) -> Optional[str]:
        compute = json_object(response).get("compute")
        if not isinstance(compute, dict):
            return None
        return non_empty_string(compute.get("vmId"))
