"""DigitalOcean detection through the droplet metadata document."""

from __future__ import annotations

from typing import Optional

from cloudprovider.providers.base import HttpProbe, ProviderID, json_object
from cloudprovider.providers.transport import HttpResponse


class DigitalOceanProbe(HttpProbe):
    provider = ProviderID.DIGITALOCEAN
    url = "http://169.254.169.254/metadata/v1.json"

    def inspect(self, response: HttpResponse) -> Optional[str]:
        droplet_id = json_object(response).get("droplet_id")
        # bool is an int subclass
        if isinstance(droplet_id, int) and not isinstance(droplet_id, bool):
            return str(droplet_id)
        return None
