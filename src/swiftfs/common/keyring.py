"""Keystone v3 token document and service catalog lookup."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from swiftfs.common.exceptions import EndpointNotFoundError
from swiftfs.common.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Endpoint:
    id: str = ""
    interface: str = ""
    region: str = ""
    url: str = ""


@dataclass(frozen=True)
class CatalogEntry:
    id: str = ""
    type: str = ""
    endpoints: List[Endpoint] = field(default_factory=list)


@dataclass(frozen=True)
class Keyring:
    """Authentication token plus the service catalog it was issued with."""

    auth_token: str
    catalog: List[CatalogEntry] = field(default_factory=list)
    expires_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Keyring":
        """Build a keyring from a token document.

        Expected shape:
            {
                "X-Auth-Token": "gAAAA...",
                "token": {
                    "expires_at": "2014-09-16T06:50:09+02:00",
                    "catalog": [
                        {"id": "...", "type": "object-store",
                         "endpoints": [{"region": "GRA1", "url": "https://...", ...}]}
                    ]
                }
            }
        """
        token = data.get("token", {})
        catalog = [
            CatalogEntry(
                id=item.get("id", ""),
                type=item.get("type", ""),
                endpoints=[
                    Endpoint(
                        id=ep.get("id", ""),
                        interface=ep.get("interface", ""),
                        region=ep.get("region", ""),
                        url=ep.get("url", ""),
                    )
                    for ep in item.get("endpoints", [])
                ],
            )
            for item in token.get("catalog", [])
        ]
        return cls(
            auth_token=data.get("X-Auth-Token", ""),
            catalog=catalog,
            expires_at=token.get("expires_at", ""),
        )

    @classmethod
    def from_file(cls, path: str) -> "Keyring":
        """Load a keyring from a JSON file."""
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def get_endpoint_url(self, service_type: str, region: str) -> str:
        """Return the URL of the first endpoint matching service type and region."""
        for item in self.catalog:
            if item.type != service_type:
                continue
            for endpoint in item.endpoints:
                if endpoint.region == region and endpoint.url:
                    logger.debug(
                        "Resolved %s endpoint for %s: %s", service_type, region, endpoint.url
                    )
                    return endpoint.url
        raise EndpointNotFoundError(
            "No endpoint found for this region & type",
            details={"service_type": service_type, "region": region},
        )
