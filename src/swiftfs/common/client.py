"""Swift HTTP gateway: one authenticated endpoint, raw request/response."""

import json
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, Iterable, Iterator, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

from swiftfs.common.config import StorageConfig
from swiftfs.common.exceptions import TransportError
from swiftfs.common.keyring import Keyring
from swiftfs.common.logger import get_logger

logger = get_logger(__name__)


def escape_path(path: str) -> str:
    """Percent-encode every segment of a slash separated path."""
    return "/".join(urllib.parse.quote(part, safe="") for part in path.split("/"))


@dataclass
class Response:
    """Status, headers and either a buffered body or a streamed one."""

    status_code: int
    reason: str = ""
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""
    raw: Optional[requests.Response] = None

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers)

    def check(self, expected: Iterable[int], method: str = "", resource: str = "") -> "Response":
        """Raise TransportError unless the status code is one of expected."""
        if self.status_code in expected:
            return self
        self.close()
        raise TransportError(
            f"{self.status_code} - {self.reason}",
            details={
                "status_code": self.status_code,
                "reason": self.reason,
                "method": method,
                "resource": resource,
            },
        )

    def json(self) -> Any:
        if not self.body:
            return []
        return json.loads(self.body)

    def iter_content(self, chunk_size: int) -> Iterator[bytes]:
        if self.raw is not None:
            yield from self.raw.iter_content(chunk_size=chunk_size)
            return
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def close(self) -> None:
        if self.raw is not None:
            self.raw.close()


class SwiftClient:
    """Issues requests against one object storage endpoint."""

    def __init__(
        self,
        endpoint: str,
        auth_token: str,
        config: Optional[StorageConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.auth_token = auth_token
        self.config = config or StorageConfig()
        self.session = session or self._create_session(self.config.max_slots)

    @staticmethod
    def _create_session(pool_size: int) -> requests.Session:
        session = requests.Session()
        # Every worker of the largest batch holds one connection.
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    @classmethod
    def from_keyring(
        cls, keyring: Keyring, region: str, config: Optional[StorageConfig] = None
    ) -> "SwiftClient":
        """Create a client for the object-store endpoint of a region."""
        config = config or StorageConfig()
        endpoint = keyring.get_endpoint_url(config.service_type, region)
        return cls(endpoint, keyring.auth_token, config=config)

    def call(
        self,
        method: str,
        resource: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[BinaryIO] = None,
        stream: bool = False,
    ) -> Response:
        """Send one request and return its response.

        With stream=True the body is left unread and exposed through
        Response.iter_content; the caller must close the response.
        """
        if resource.startswith("/"):
            resource = resource[1:]
        url = f"{self.endpoint}/{resource}"

        request_headers = {
            "X-Auth-Token": self.auth_token,
            "User-Agent": self.config.user_agent,
        }
        if headers:
            request_headers.update(headers)

        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(
                method,
                url,
                headers=request_headers,
                params=params,
                data=payload,
                stream=stream,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            raise TransportError(
                f"{method} {resource} failed: {e}",
                details={"method": method, "resource": resource},
            ) from e

        if stream:
            return Response(
                status_code=resp.status_code,
                reason=resp.reason,
                headers=resp.headers,
                raw=resp,
            )
        return Response(
            status_code=resp.status_code,
            reason=resp.reason,
            headers=resp.headers,
            body=resp.content,
        )
