"""Google Compute Engine detection through the instance metadata server.

The metadata server is queried by address rather than through
``metadata.google.internal`` so that hosts outside GCE never wait on DNS.
"""

from __future__ import annotations

from typing import Optional

from cloudprovider.providers.base import HttpProbe, ProviderID
from cloudprovider.providers.transport import HttpResponse

FLAVOR_HEADER = "Metadata-Flavor"
FLAVOR = "Google"


class GCEProbe(HttpProbe):
    provider = ProviderID.GCE
    url = "http://169.254.169.254/computeMetadata/v1/instance/id"
    headers = {FLAVOR_HEADER: FLAVOR}

    def inspect(self, response: HttpResponse) -> Optional[str]:
        if response.header(FLAVOR_HEADER) != FLAVOR:
            return None
        instance_id = response.body.strip()
        if not instance_id.isdigit():
            return None
        return instance_id
