"""Shared fixtures for object storage tests."""

import hashlib
import json
import os
import sys
import threading
import urllib.parse

import pytest

# Add package source to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from swiftfs.common.client import Response  # noqa: E402
from swiftfs.common.config import StorageConfig  # noqa: E402
from swiftfs.storage import ObjectStorage  # noqa: E402

LAST_MODIFIED_HEADER = "Mon, 27 Oct 2014 16:35:40 GMT"
LAST_MODIFIED_LISTING = "2014-10-27T16:35:40.140480"


@pytest.fixture(autouse=True)
def swiftfs_env(monkeypatch):
    """Set object storage environment variables for testing."""
    monkeypatch.setenv("SWIFTFS_REGION", "GRA1")
    monkeypatch.setenv("SWIFTFS_KEYRING", "/tmp/keyring.json")
    monkeypatch.setenv("SWIFTFS_UPLOAD_SLOTS", "3")
    monkeypatch.setenv("SWIFTFS_DOWNLOAD_SLOTS", "4")
    monkeypatch.setenv("SWIFTFS_DELETE_SLOTS", "8")
    monkeypatch.setenv("SWIFTFS_LOG_LEVEL", "DEBUG")


class FakeSwift:
    """In-memory Swift account answering SwiftClient.call().

    containers: {container: {key: {"body", "content_type"}}}
    calls: every (method, "/container/key") seen, keys unquoted.
    failures: {(method, "/container/key"): status} forced responses.
    """

    def __init__(self, page_size: int = 10000):
        self.config = StorageConfig(listing_page_size=page_size)
        self.containers = {}
        self.calls = []
        self.failures = {}
        self._lock = threading.Lock()

    # Helpers for arranging state

    def add_object(self, container, key, body=b"", content_type="text/plain"):
        if isinstance(body, str):
            body = body.encode()
        self.containers.setdefault(container, {})[key] = {
            "body": body,
            "content_type": content_type,
        }

    def count(self, method, path=None):
        return sum(
            1 for m, p in self.calls if m == method and (path is None or p == path)
        )

    # Gateway contract

    def call(self, method, resource, headers=None, params=None, payload=None, stream=False):
        if resource.startswith("/"):
            resource = resource[1:]
        container, _, key = resource.partition("/")
        container = urllib.parse.unquote(container)
        key = urllib.parse.unquote(key)
        path = "/" + container + ("/" + key if key else "")
        if not container:
            path = "/"

        with self._lock:
            self.calls.append((method, path))
            if (method, path) in self.failures:
                return Response(status_code=self.failures[(method, path)], reason="Forced")
            if not container:
                return self._account(method, params or {})
            if not key:
                return self._container(method, container, params or {})
            return self._object(method, container, key, headers or {}, payload)

    def _account(self, method, params):
        if method == "HEAD":
            return Response(
                status_code=204,
                reason="No Content",
                headers={
                    "X-Account-Container-Count": str(len(self.containers)),
                    "X-Account-Bytes-Used": "0",
                },
            )
        if method == "GET":
            records = [
                {
                    "name": name,
                    "count": len(objects),
                    "bytes": sum(len(o["body"]) for o in objects.values()),
                }
                for name, objects in sorted(self.containers.items())
            ]
            return self._page(records, params)
        return Response(status_code=405, reason="Method Not Allowed")

    def _container(self, method, container, params):
        objects = self.containers.get(container)
        if method == "PUT":
            if objects is not None:
                return Response(status_code=202, reason="Accepted")
            self.containers[container] = {}
            return Response(status_code=201, reason="Created")
        if objects is None:
            return Response(status_code=404, reason="Not Found")
        if method == "HEAD":
            return Response(
                status_code=204,
                reason="No Content",
                headers={
                    "X-Container-Object-Count": str(len(objects)),
                    "X-Container-Bytes-Used": str(
                        sum(len(o["body"]) for o in objects.values())
                    ),
                },
            )
        if method == "GET":
            prefix = params.get("prefix", "")
            records = [
                {
                    "name": key,
                    "hash": hashlib.md5(o["body"]).hexdigest(),
                    "bytes": len(o["body"]),
                    "content_type": o["content_type"],
                    "last_modified": LAST_MODIFIED_LISTING,
                }
                for key, o in sorted(objects.items())
                if key.startswith(prefix)
            ]
            return self._page(records, params)
        if method == "DELETE":
            if objects:
                return Response(status_code=409, reason="Conflict")
            del self.containers[container]
            return Response(status_code=204, reason="No Content")
        return Response(status_code=405, reason="Method Not Allowed")

    def _object(self, method, container, key, headers, payload):
        objects = self.containers.get(container)
        if objects is None:
            return Response(status_code=404, reason="Not Found")
        if method == "PUT":
            body = payload.read() if payload is not None else b""
            objects[key] = {
                "body": body,
                "content_type": headers.get("Content-Type", "application/octet-stream"),
            }
            return Response(status_code=201, reason="Created")
        obj = objects.get(key)
        if obj is None:
            return Response(status_code=404, reason="Not Found")
        if method == "HEAD":
            return Response(
                status_code=200,
                reason="OK",
                headers={
                    "Etag": hashlib.md5(obj["body"]).hexdigest(),
                    "Content-Length": str(len(obj["body"])),
                    "Content-Type": obj["content_type"],
                    "Last-Modified": LAST_MODIFIED_HEADER,
                },
            )
        if method == "GET":
            return Response(status_code=200, reason="OK", body=obj["body"])
        if method == "DELETE":
            del objects[key]
            return Response(status_code=204, reason="No Content")
        return Response(status_code=405, reason="Method Not Allowed")

    @staticmethod
    def _page(records, params):
        marker = params.get("marker")
        if marker is not None:
            records = [r for r in records if r["name"] > marker]
        records = records[: int(params.get("limit", 10000))]
        if not records:
            return Response(status_code=204, reason="No Content")
        return Response(status_code=200, reason="OK", body=json.dumps(records).encode())


@pytest.fixture
def fake_swift():
    """Create an empty in-memory Swift account."""
    return FakeSwift()


@pytest.fixture
def populated_swift(fake_swift):
    """Account with one container holding a small tree."""
    fake_swift.add_object("photos", "2014/paris/eiffel.jpg", b"x" * 100, "image/jpeg")
    fake_swift.add_object("photos", "2014/paris/louvre.jpg", b"y" * 50, "image/jpeg")
    fake_swift.add_object("photos", "2014/readme.txt", b"hello")
    fake_swift.add_object("photos", "2015/", b"", "application/octet-stream")
    fake_swift.add_object("photos", "cover.png", b"png", "image/png")
    fake_swift.add_object("backups", "db.sql", b"dump")
    fake_swift.calls.clear()
    return fake_swift


@pytest.fixture
def storage(fake_swift):
    """ObjectStorage bound to the fake account."""
    return ObjectStorage(fake_swift, StorageConfig(upload_slots=3, download_slots=3, delete_slots=4))


@pytest.fixture
def local_tree(tmp_path):
    """Local tree src/{a.txt, sub/b.txt}."""
    src = tmp_path / "src"
    (src / "sub").mkdir(parents=True)
    (src / "a.txt").write_text("alpha")
    (src / "sub" / "b.txt").write_text("bravo")
    return src


@pytest.fixture
def paged_swift():
    """In-memory account returning listings two records at a time."""
    return FakeSwift(page_size=2)
