"""Scaleway detection through the instance metadata API."""

from __future__ import annotations

from typing import Optional

from cloudprovider.providers.base import (
    HttpProbe,
    ProviderID,
    json_object,
    non_empty_string,
)
from cloudprovider.providers.transport import HttpResponse


class ScalewayProbe(HttpProbe):
    provider = ProviderID.SCALEWAY
    url = "http://169.254.42.42/conf?format=json"

    def inspect(self, response: HttpResponse) -> Optional[str]:
        conf = json_object(response)
        if "commercial_type" not in conf:
            return None
        return non_empty_string(conf.get("id"))
