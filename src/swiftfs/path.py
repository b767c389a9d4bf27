"""Hierarchical view over a flat object store namespace.

A Swift account holds containers, containers hold objects, and object keys
may contain "/" but the store has no directories. RemotePath classifies a
path as the account root, a container, an object or a virtual folder (a key
prefix with objects under it but no object of its own), and lists one level
of children at a time.
"""

import enum
import posixpath
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from swiftfs.common.client import escape_path
from swiftfs.common.exceptions import (
    ClassificationError,
    PathNotFoundError,
    UnsupportedPathKindError,
)
from swiftfs.common.logger import get_logger

logger = get_logger(__name__)

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

# Content type given to children that stand for a key prefix
VIRTUAL_FOLDER_CONTENT_TYPE = "vfolder"

# Zero-byte objects of this type are treated as directory placeholders.
# Heuristic: a genuine empty binary file is listed as a folder too.
PLACEHOLDER_CONTENT_TYPE = "application/octet-stream"

HTTP_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"
LISTING_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


class PathKind(enum.Enum):
    ROOT = "root"
    CONTAINER = "container"
    OBJECT = "object"
    VIRTUAL_FOLDER = "vfolder"


def parse_http_date(value: Optional[str]) -> datetime:
    """Parse a Last-Modified header, ZERO_TIME when missing or malformed."""
    if not value:
        return ZERO_TIME
    try:
        return datetime.strptime(value, HTTP_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return ZERO_TIME


def parse_listing_date(value: Optional[str]) -> datetime:
    """Parse a listing last_modified field, ZERO_TIME when missing or malformed."""
    if not value:
        return ZERO_TIME
    for fmt in (LISTING_DATE_FORMAT, "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return ZERO_TIME


def clean_path(raw_path: str) -> str:
    """Normalize to a single leading slash and no trailing slash."""
    if raw_path.endswith("/"):
        raw_path = raw_path[:-1]
    if not raw_path.startswith("/"):
        raw_path = "/" + raw_path
    return posixpath.normpath(re.sub(r"/+", "/", raw_path))


@dataclass(frozen=True)
class ListingEntry:
    """One record of a container listing."""

    name: str
    hash: str = ""
    bytes: int = 0
    content_type: str = ""
    last_modified: datetime = ZERO_TIME

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListingEntry":
        return cls(
            name=data.get("name", ""),
            hash=data.get("hash", ""),
            bytes=int(data.get("bytes", 0)),
            content_type=data.get("content_type", ""),
            last_modified=parse_listing_date(data.get("last_modified")),
        )


@dataclass(frozen=True)
class ContainerEntry:
    """One record of an account listing."""

    name: str
    count: int = 0
    bytes: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContainerEntry":
        return cls(
            name=data.get("name", ""),
            count=int(data.get("count", 0)),
            bytes=int(data.get("bytes", 0)),
        )


def iter_listing(client, resource: str, prefix: str = "") -> Iterator[Dict[str, Any]]:
    """Yield raw JSON records of an account or container listing.

    Follows marker pagination until a short page comes back. A 404 raises
    PathNotFoundError.
    """
    page_size = client.config.listing_page_size
    params: Dict[str, Any] = {"format": "json", "limit": page_size}
    if prefix:
        params["prefix"] = prefix

    while True:
        resp = client.call("GET", resource, params=params)
        if resp.status_code == 404:
            raise PathNotFoundError("/" + resource)
        resp.check((200, 203, 204), method="GET", resource=resource)
        page = resp.json()
        yield from page
        if len(page) < page_size:
            return
        params["marker"] = page[-1]["name"]


class RemotePath:
    """A path into the object store, classified lazily.

    name is the cleaned absolute path ("/", "/container", "/container/key").
    kind stays None until classify() succeeds and never changes afterwards.
    """

    def __init__(self, client, raw_path: str, kind: Optional[PathKind] = None):
        self.client = client
        self.name = clean_path(raw_path)
        self._kind = kind
        self.etag = ""
        self.content_type = ""
        self.size = 0
        self.child_count = 0
        self.last_modified = ZERO_TIME

    def __repr__(self) -> str:
        kind = self._kind.value if self._kind else "unresolved"
        return f"RemotePath({self.name!r}, {kind})"

    @property
    def kind(self) -> Optional[PathKind]:
        return self._kind

    def _set_kind(self, kind: PathKind) -> PathKind:
        if self._kind is None:
            self._kind = kind
        return self._kind

    @property
    def container(self) -> str:
        """Container component, empty for the root."""
        return self.name.split("/")[1]

    @property
    def prefix(self) -> str:
        """Object key prefix used in listing queries, "a/b/" for /container/a/b."""
        container = self.container
        if len(self.name) > len(container) + 1:
            return self.name[len(container) + 2:] + "/"
        return ""

    @property
    def key(self) -> str:
        """Object key without the container, empty for root and containers."""
        return self.prefix[:-1]

    @property
    def basename(self) -> str:
        return posixpath.basename(self.name)

    def classify(self) -> PathKind:
        """Return the kind of this path, probing the store on first use."""
        if self._kind is not None:
            return self._kind

        resource = escape_path(self.name)
        resp = self.client.call("HEAD", resource)
        resp.check((200, 204, 404), method="HEAD", resource=resource)

        if resp.status_code == 404:
            return self._classify_missing()

        headers = resp.headers
        if "X-Account-Container-Count" in headers:
            self.child_count = int(headers["X-Account-Container-Count"])
            self.size = int(headers.get("X-Account-Bytes-Used", 0))
            return self._set_kind(PathKind.ROOT)

        if "X-Container-Bytes-Used" in headers or "X-Container-Object-Count" in headers:
            self.child_count = int(headers.get("X-Container-Object-Count", 0))
            self.size = int(headers.get("X-Container-Bytes-Used", 0))
            return self._set_kind(PathKind.CONTAINER)

        if "Etag" in headers:
            self._load_object_headers(headers)
            return self._set_kind(PathKind.OBJECT)

        raise ClassificationError(
            f"{self.name}: unrecognized path type",
            details={"path": self.name, "headers": dict(headers)},
        )

    def _classify_missing(self) -> PathKind:
        # No object of its own; may still be a prefix other objects live under.
        container, prefix = self.container, self.prefix
        if not container or not prefix:
            raise PathNotFoundError(self.name)

        resp = self.client.call(
            "GET",
            escape_path(container),
            params={"format": "json", "prefix": prefix, "limit": 1},
        )
        if resp.status_code == 404:
            raise PathNotFoundError(self.name)
        resp.check((200, 203, 204), method="GET", resource=container)

        for record in resp.json():
            if record.get("name", "").startswith(prefix):
                return self._set_kind(PathKind.VIRTUAL_FOLDER)
        raise PathNotFoundError(self.name)

    def _load_object_headers(self, headers) -> None:
        self.etag = headers.get("Etag", "").strip('"')
        self.size = int(headers.get("Content-Length", 0) or 0)
        self.content_type = headers.get("Content-Type", "")
        self.last_modified = parse_http_date(headers.get("Last-Modified"))

    def list_children(self) -> List["RemotePath"]:
        """List one hierarchy level under this path."""
        kind = self.classify()

        if kind == PathKind.ROOT:
            return self._list_containers()
        if kind in (PathKind.CONTAINER, PathKind.VIRTUAL_FOLDER):
            return self._list_folder()
        if kind == PathKind.OBJECT:
            return [self._stat_object()]
        raise UnsupportedPathKindError(kind)

    def _child(self, name: str, kind: PathKind) -> "RemotePath":
        base = "" if self.name == "/" else self.name
        return RemotePath(self.client, f"{base}/{name}", kind=kind)

    def _list_containers(self) -> List["RemotePath"]:
        children = []
        for record in iter_listing(self.client, ""):
            entry = ContainerEntry.from_dict(record)
            child = self._child(entry.name, PathKind.CONTAINER)
            child.size = entry.bytes
            child.child_count = entry.count
            children.append(child)
        return children

    def _list_folder(self) -> List["RemotePath"]:
        prefix = self.prefix
        children: Dict[str, RemotePath] = {}

        for record in iter_listing(self.client, escape_path(self.container), prefix):
            entry = ListingEntry.from_dict(record)
            if not entry.name.startswith(prefix):
                continue
            name = entry.name[len(prefix):]
            name, sep, _ = name.partition("/")
            if not name:
                continue

            if name in children:
                children[name] = self._merged_folder(children[name], entry)
                continue

            is_folder = bool(sep) or (
                entry.bytes == 0 and entry.content_type == PLACEHOLDER_CONTENT_TYPE
            )
            child = self._child(
                name, PathKind.VIRTUAL_FOLDER if is_folder else PathKind.OBJECT
            )
            child.size = entry.bytes
            child.last_modified = entry.last_modified
            if is_folder:
                child.content_type = VIRTUAL_FOLDER_CONTENT_TYPE
            else:
                child.content_type = entry.content_type
                child.etag = entry.hash
            children[name] = child

        return list(children.values())

    def _merged_folder(self, seen: "RemotePath", entry: ListingEntry) -> "RemotePath":
        """Fold another listing entry into a child, which becomes a folder."""
        if seen.kind == PathKind.VIRTUAL_FOLDER:
            folder = seen
        else:
            folder = RemotePath(self.client, seen.name, kind=PathKind.VIRTUAL_FOLDER)
            folder.size = seen.size
            folder.last_modified = seen.last_modified
            folder.content_type = VIRTUAL_FOLDER_CONTENT_TYPE
        folder.size += entry.bytes
        return folder

    def _stat_object(self) -> "RemotePath":
        resource = escape_path(self.name)
        resp = self.client.call("HEAD", resource)
        resp.check((200, 203), method="HEAD", resource=resource)
        child = RemotePath(self.client, self.name, kind=PathKind.OBJECT)
        child._load_object_headers(resp.headers)
        return child

    def list_objects(self) -> List[ListingEntry]:
        """Every object of the owning container whose key starts with prefix."""
        prefix = self.prefix
        entries = []
        for record in iter_listing(self.client, escape_path(self.container), prefix):
            entry = ListingEntry.from_dict(record)
            if entry.name.startswith(prefix):
                entries.append(entry)
        logger.debug("Found %d objects under %s", len(entries), self.name)
        return entries
