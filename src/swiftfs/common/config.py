"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class StorageConfig:
    """Object storage client configuration from environment variables."""

    # Authentication
    region: str = ""
    keyring_path: str = ""
    service_type: str = "object-store"

    # Worker slots per bulk operation
    upload_slots: int = 5
    download_slots: int = 5
    delete_slots: int = 10

    # HTTP
    request_timeout: float = 60.0
    user_agent: str = "swiftfs"

    # Listing and streaming
    listing_page_size: int = 10000  # Swift's default container listing limit
    download_chunk_size: int = 1024 * 1024  # 1 MB
    hash_chunk_size: int = 1024 * 1024  # 1 MB

    @property
    def max_slots(self) -> int:
        return max(self.upload_slots, self.download_slots, self.delete_slots)

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Load configuration from environment variables."""
        return cls(
            region=os.environ.get("SWIFTFS_REGION", ""),
            keyring_path=os.environ.get("SWIFTFS_KEYRING", ""),
            service_type=os.environ.get("SWIFTFS_SERVICE_TYPE", "object-store"),
            upload_slots=int(os.environ.get("SWIFTFS_UPLOAD_SLOTS", "5")),
            download_slots=int(os.environ.get("SWIFTFS_DOWNLOAD_SLOTS", "5")),
            delete_slots=int(os.environ.get("SWIFTFS_DELETE_SLOTS", "10")),
            request_timeout=float(os.environ.get("SWIFTFS_REQUEST_TIMEOUT", "60.0")),
            user_agent=os.environ.get("SWIFTFS_USER_AGENT", "swiftfs"),
            listing_page_size=int(
                os.environ.get("SWIFTFS_LISTING_PAGE_SIZE", "10000")
            ),
            download_chunk_size=int(
                os.environ.get("SWIFTFS_DOWNLOAD_CHUNK_SIZE", str(1024 * 1024))
            ),
            hash_chunk_size=int(
                os.environ.get("SWIFTFS_HASH_CHUNK_SIZE", str(1024 * 1024))
            ),
        )
