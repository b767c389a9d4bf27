"""Custom exception hierarchy for object storage operations."""


class StorageError(Exception):
    """Base exception for all object storage operations."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PathNotFoundError(StorageError):
    """Local or remote path does not exist."""

    def __init__(self, path: str, details: dict | None = None):
        super().__init__(f"{path}: No such file or directory", details=details)
        self.path = path


class UnsupportedPathKindError(StorageError):
    """Operation requested on a path kind it cannot handle."""

    def __init__(self, kind, details: dict | None = None):
        super().__init__(f"{getattr(kind, 'value', kind)}: Unsupported path type", details=details)
        self.kind = kind


class MissingContainerError(StorageError):
    """Remote path has no container component."""

    def __init__(self, message: str = "You must specify a container", details: dict | None = None):
        super().__init__(message, details=details)


class UnsupportedOperationError(StorageError):
    """Operation is not implemented, e.g. remote to remote copy."""
    pass


class LocalCopyError(UnsupportedOperationError):
    """Both sides of a copy are local - use cp instead."""
    pass


class TransportError(StorageError):
    """Unexpected status code or network failure talking to the store."""
    pass


class ClassificationError(StorageError):
    """Store reported the path exists but its headers match no known kind."""
    pass


class EndpointNotFoundError(StorageError):
    """No endpoint in the token catalog for this region and service type."""
    pass


class UnsafePathError(StorageError):
    """Remote key would be written outside the local destination directory."""

    def __init__(self, key: str, destination: str, details: dict | None = None):
        super().__init__(
            f"{key}: Refusing to write outside {destination}",
            details=details or {"key": key, "destination": destination},
        )
        self.key = key
        self.destination = destination
