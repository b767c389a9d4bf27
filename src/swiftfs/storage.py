"""High-level object storage operations: containers, recursive put/get/delete."""

import hashlib
import logging
import os
from typing import List, Optional

from swiftfs.batch import JobKind, TransferBatch, TransferJob
from swiftfs.common.client import SwiftClient, escape_path
from swiftfs.common.config import StorageConfig
from swiftfs.common.exceptions import (
    LocalCopyError,
    MissingContainerError,
    PathNotFoundError,
    UnsafePathError,
    UnsupportedOperationError,
    UnsupportedPathKindError,
)
from swiftfs.common.keyring import Keyring
from swiftfs.common.logger import get_logger, log_with_context
from swiftfs.path import ContainerEntry, PathKind, RemotePath, iter_listing

logger = get_logger(__name__)


def file_md5(path: str, chunk_size: int = 1024 * 1024) -> str:
    """Hex md5 of a local file, the value Swift reports as Etag."""
    h = hashlib.md5()  # nosec - content comparison, not security
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def _has_container(path: str) -> bool:
    return path not in ("", "/")


def _check_inside(key: str, local: str, local_root: str) -> None:
    """Raise UnsafePathError when key maps to a file outside local_root."""
    resolved = os.path.realpath(local)
    if os.path.commonpath([resolved, local_root]) != local_root:
        raise UnsafePathError(key, local_root)


class ObjectStorage:
    """Filesystem-like operations over one Swift account."""

    def __init__(self, client, config: Optional[StorageConfig] = None):
        self.client = client
        self.config = config or getattr(client, "config", None) or StorageConfig()

    @classmethod
    def from_env(cls) -> "ObjectStorage":
        """Build from SWIFTFS_KEYRING and SWIFTFS_REGION."""
        config = StorageConfig.from_env()
        keyring = Keyring.from_file(config.keyring_path)
        return cls(SwiftClient.from_keyring(keyring, config.region, config), config)

    # Containers

    def add_container(self, container: str) -> bool:
        """Create a container unless it already exists. Returns True if created."""
        resource = escape_path(container)
        resp = self.client.call("HEAD", resource)
        resp.check((200, 204, 404), method="HEAD", resource=resource)
        if resp.status_code != 404:
            return False

        resp = self.client.call("PUT", resource)
        resp.check((201, 202), method="PUT", resource=resource)
        logger.info("Created container %s", container)
        return True

    def list_containers(self) -> List[ContainerEntry]:
        return [ContainerEntry.from_dict(r) for r in iter_listing(self.client, "")]

    # Single objects

    def download_object(self, src: str, dest: str) -> None:
        """Stream object src into the local file dest."""
        parent = os.path.dirname(dest)
        if parent:
            os.makedirs(parent, mode=0o700, exist_ok=True)

        resource = escape_path(src)
        resp = self.client.call("GET", resource, stream=True)
        resp.check((200,), method="GET", resource=resource)
        try:
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(self.config.download_chunk_size):
                    f.write(chunk)
        finally:
            resp.close()
        logger.debug("Downloaded %s -> %s", src, dest)

    def put_file(self, src: str, dest: str) -> bool:
        """Upload local file src to remote path dest.

        Skipped when an object with the same md5 already sits at dest.
        Returns True if the file was sent.
        """
        remote = self._object_path(dest)
        self.add_container(remote.container)
        return self._upload(src, remote)

    def _object_path(self, dest: str) -> RemotePath:
        remote = RemotePath(self.client, dest)
        if not remote.container or not remote.key:
            raise MissingContainerError(
                "You must specify a container and an object name",
                details={"path": dest},
            )
        return remote

    def _upload(self, src: str, remote: RemotePath) -> bool:
        resource = escape_path(remote.name)
        size = os.path.getsize(src)
        etag = file_md5(src, self.config.hash_chunk_size)

        resp = self.client.call("HEAD", resource)
        resp.check((200, 204, 404), method="HEAD", resource=resource)
        if resp.status_code != 404 and resp.headers.get("Etag", "").strip('"') == etag:
            logger.debug("Skipping %s, %s already up to date", src, remote.name)
            return False

        headers = {"Content-Length": str(size), "Etag": etag}
        with open(src, "rb") as body:
            resp = self.client.call("PUT", resource, headers=headers, payload=body)
        resp.check((200, 201), method="PUT", resource=resource)
        logger.debug("Uploaded %s -> %s (%d bytes)", src, remote.name, size)
        return True

    def delete_object(self, path: str) -> None:
        # Not normalized: "dir/" placeholder keys keep their trailing slash.
        resource = escape_path(path if path.startswith("/") else "/" + path)
        resp = self.client.call("DELETE", resource)
        resp.check((204,), method="DELETE", resource=resource)

    # Recursive operations

    def put(self, src_path: str, dest_path: str) -> None:
        """Recursively upload the local tree src_path under dest_path.

        "dir" lands as dest_path/dir/..., "dir/" puts its content directly
        under dest_path.
        """
        flatten = src_path.endswith(os.sep)
        src_path = os.path.abspath(src_path)
        if dest_path.endswith("/"):
            dest_path = dest_path[:-1]
        if not _has_container(dest_path):
            raise MissingContainerError()
        if not os.path.exists(src_path):
            raise PathNotFoundError(src_path)

        base = RemotePath(self.client, dest_path)
        if os.path.isfile(src_path):
            files = [src_path]
            root = os.path.dirname(src_path)
        else:
            files = [
                os.path.join(dirpath, filename)
                for dirpath, _, filenames in os.walk(src_path)
                for filename in sorted(filenames)
            ]
            root = src_path if flatten else os.path.dirname(src_path)

        jobs = []
        for local in files:
            relative = os.path.relpath(local, root).replace(os.sep, "/")
            jobs.append(TransferJob(JobKind.UPLOAD, local, f"{base.name}/{relative}"))

        log_with_context(
            logger,
            logging.INFO,
            "Uploading tree",
            source=src_path,
            destination=base.name,
            files=len(jobs),
        )
        self.add_container(base.container)
        batch = TransferBatch(
            lambda job: self._upload(job.source, RemotePath(self.client, job.destination)),
            self.config.upload_slots,
            name="upload",
        )
        batch.run(jobs)

    def download_path(self, src_path: str, dest_path: str) -> None:
        """Recursively download remote src_path into the local directory dest_path.

        Like put(), a trailing slash on src_path drops the top-level name.
        """
        if not _has_container(src_path):
            raise MissingContainerError()
        if not os.path.exists(dest_path):
            raise PathNotFoundError(dest_path)

        flatten = src_path.endswith("/")
        dest_root = dest_path.rstrip(os.sep) or os.sep
        remote = RemotePath(self.client, src_path)
        kind = remote.classify()

        if kind == PathKind.OBJECT:
            jobs = [
                TransferJob(
                    JobKind.DOWNLOAD,
                    remote.name,
                    os.path.join(dest_root, remote.basename),
                )
            ]
        elif kind in (PathKind.CONTAINER, PathKind.VIRTUAL_FOLDER):
            prefix = remote.prefix
            top = "" if flatten else remote.basename
            local_root = os.path.realpath(os.path.join(dest_root, top))
            placeholders = []
            jobs = []
            for entry in remote.list_objects():
                relative = entry.name[len(prefix):]
                local = os.path.join(dest_root, top, *relative.split("/"))
                _check_inside(entry.name, local, local_root)
                if not relative or relative.endswith("/"):
                    placeholders.append(local)
                    continue
                jobs.append(
                    TransferJob(
                        JobKind.DOWNLOAD, f"/{remote.container}/{entry.name}", local
                    )
                )
            for directory in placeholders:
                os.makedirs(directory, mode=0o700, exist_ok=True)
        else:
            raise UnsupportedPathKindError(kind)

        log_with_context(
            logger,
            logging.INFO,
            "Downloading tree",
            source=remote.name,
            destination=dest_root,
            objects=len(jobs),
        )
        batch = TransferBatch(
            lambda job: self.download_object(job.source, job.destination),
            self.config.download_slots,
            name="download",
        )
        batch.run(jobs)

    def delete_path(self, path: str) -> None:
        """Delete an object, a virtual folder, or a container and its objects.

        "container/" empties the container but keeps it; "container" removes
        it once every object is gone.
        """
        keep_container = path.endswith("/")
        remote = RemotePath(self.client, path)
        kind = remote.classify()
        container_to_remove = ""

        if kind == PathKind.OBJECT:
            targets = [remote.name]
        elif kind == PathKind.CONTAINER:
            targets = [f"{remote.name}/{o.name}" for o in remote.list_objects()]
            if not keep_container:
                container_to_remove = remote.name
        elif kind == PathKind.VIRTUAL_FOLDER:
            objects = remote.list_objects()
            if not objects:
                raise PathNotFoundError(remote.name)
            targets = [f"/{remote.container}/{o.name}" for o in objects]
        else:
            raise UnsupportedPathKindError(kind)

        log_with_context(
            logger,
            logging.INFO,
            "Deleting path",
            path=remote.name,
            objects=len(targets),
            remove_container=bool(container_to_remove),
        )
        batch = TransferBatch(
            lambda job: self.delete_object(job.source),
            self.config.delete_slots,
            name="delete",
        )
        batch.run(TransferJob(JobKind.DELETE, target) for target in targets)

        if container_to_remove:
            self.delete_object(container_to_remove)
            logger.info("Deleted container %s", container_to_remove)

    def copy(self, src_path: str, dest_path: str) -> None:
        """Copy between the local filesystem and the store, either way."""
        src_is_local = os.path.exists(src_path)
        dest_is_local = os.path.exists(dest_path)

        if src_is_local and not dest_is_local:
            self.put(src_path, dest_path)
        elif not src_is_local and dest_is_local:
            self.download_path(src_path, dest_path)
        elif not src_is_local and not dest_is_local:
            raise UnsupportedOperationError(
                "Remote to remote copy is not supported",
                details={"source": src_path, "destination": dest_path},
            )
        else:
            raise LocalCopyError(
                "Local copies are not allowed, use cp",
                details={"source": src_path, "destination": dest_path},
            )
