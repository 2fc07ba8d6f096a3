"""Amazon EC2 detection through the instance identity document.

See https://docs.aws.amazon.com/AWSEC2/latest/UserGuide/instance-identity-documents.html
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from cloudprovider.providers.base import (
    HttpProbe,
    ProviderID,
    json_object,
    non_empty_string,
)
from cloudprovider.providers.errors import EndpointUnreachableError, ProbeError
from cloudprovider.providers.transport import HttpResponse, Transport

logger = logging.getLogger("cloudprovider.probe.aws")

TOKEN_URL = "http://169.254.169.254/latest/api/token"
TOKEN_TTL_HEADER = "X-aws-ec2-metadata-token-ttl-seconds"
TOKEN_HEADER = "X-aws-ec2-metadata-token"
TOKEN_TTL_SECONDS = "60"


class AWSProbe(HttpProbe):
    provider = ProviderID.AWS
    url = "http://169.254.169.254/latest/dynamic/instance-identity/document"

    async def check(self, transport: Transport) -> str:
        headers: Dict[str, str] = {}
        token = await self._session_token(transport)
        if token:
            headers[TOKEN_HEADER] = token
        response = await transport.request("GET", self.url, headers)
        return self.evaluate(response)

    async def _session_token(self, transport: Transport) -> Optional[str]:
        """Fetch an IMDSv2 token; None means fall back to IMDSv1."""

        try:
            response = await transport.request(
                "PUT", TOKEN_URL, {TOKEN_TTL_HEADER: TOKEN_TTL_SECONDS}
            )
        except EndpointUnreachableError:
            raise
        except ProbeError as exc:
            logger.debug("IMDSv2 token request failed, using IMDSv1: %s", exc)
            return None
        if response.status != 200:
            logger.debug("IMDSv2 token request answered HTTP %s", response.status)
            return None
        return non_empty_string(response.body)

    def inspect(self, response: HttpResponse) -> Optional[str]:
        document = json_object(response)
        instance_id = non_empty_string(document.get("instanceId"))
        if not instance_id:
            return None
        region = non_empty_string(document.get("region"))
        return f"{instance_id} ({region})" if region else instance_id
