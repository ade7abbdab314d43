"""Services package."""

from tally.services.blobs import (
    BlobNotFoundError,
    BlobStoreError,
    BlobStoreInterface,
    FileSystemBlobStore,
    InMemoryBlobStore,
    InvalidImageError,
    prepare_receipt_image,
)
from tally.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    SQLAlchemyLedgerStorage,
    StorageError,
)

__all__ = [
    # Blob services
    "BlobNotFoundError",
    "BlobStoreError",
    "BlobStoreInterface",
    "FileSystemBlobStore",
    "InMemoryBlobStore",
    "InvalidImageError",
    "prepare_receipt_image",
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "SQLAlchemyLedgerStorage",
    "StorageError",
]
