"""IBM Softlayer detection through the resource metadata API.

``api.service.softlayer.com`` only answers on the Softlayer private
network, so a reply carrying a global identifier places the host there.
"""

from __future__ import annotations

import re
from typing import Optional

from cloudprovider.providers.base import HttpProbe, ProviderID
from cloudprovider.providers.transport import HttpResponse

_GUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


class SoftlayerProbe(HttpProbe):
    provider = ProviderID.SOFTLAYER
    url = (
        "https://api.service.softlayer.com/rest/v3/"
        "SoftLayer_Resource_Metadata/getGlobalIdentifier.json"
    )

    def inspect(self, response: HttpResponse) -> Optional[str]:
        identifier = response.json()
        if isinstance(identifier, str) and _GUID_RE.match(identifier):
            return identifier
        return None
