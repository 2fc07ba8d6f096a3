"""Vultr detection through the instance metadata document."""

from __future__ import annotations

from typing import Optional

from cloudprovider.providers.base import (
    HttpProbe,
    ProviderID,
    json_object,
    non_empty_string,
)
from cloudprovider.providers.transport import HttpResponse


class VultrProbe(HttpProbe):
    provider = ProviderID.VULTR
    url = "http://169.254.169.254/v1.json"

    def inspect(self, response: HttpResponse) -> Optional[str]:
        return non_empty_string(json_object(response).get("instanceid"))
