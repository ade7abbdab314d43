"""Image blob storage package."""

from tally.services.blobs.receipts import InvalidImageError, prepare_receipt_image
from tally.services.blobs.store import (
    BlobNotFoundError,
    BlobStoreError,
    BlobStoreInterface,
    FileSystemBlobStore,
    InMemoryBlobStore,
    content_key,
)

__all__ = [
    "BlobNotFoundError",
    "BlobStoreError",
    "BlobStoreInterface",
    "FileSystemBlobStore",
    "InMemoryBlobStore",
    "InvalidImageError",
    "content_key",
    "prepare_receipt_image",
]
