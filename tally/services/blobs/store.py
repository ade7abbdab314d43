"""
Out-of-line Image Storage

Receipt photos and settlement proofs can be several megabytes. They are
kept out of the ledger records: a transaction only stores the key of its
image, and the bytes live in a blob store.

DESIGN DECISION: Keys are content addresses (SHA-256 of the bytes).
Storing the same photo twice yields the same key and one copy on disk.
"""

import hashlib
from abc import ABC, abstractmethod
from pathlib import Path


class BlobStoreError(Exception):
    """Base exception for blob storage errors."""
    pass


class BlobNotFoundError(BlobStoreError):
    """No blob is stored under the requested key."""
    pass


def content_key(data: bytes) -> str:
    """Content address used as the blob key."""
    return hashlib.sha256(data).hexdigest()


class BlobStoreInterface(ABC):
    """Abstract keyed byte storage."""

    @abstractmethod
    def put(self, data: bytes) -> str:
        """Store bytes and return their key."""
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """
        Load the bytes stored under key.

        Raises:
            BlobNotFoundError: If nothing is stored under key
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a blob. Returns False if it did not exist."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass


class InMemoryBlobStore(BlobStoreInterface):
    """Dictionary-backed blob store for tests."""

    def __init__(self):
        self._blobs: dict[str, bytes] = {}

    def put(self, data: bytes) -> str:
        key = content_key(data)
        self._blobs[key] = data
        return key

    def get(self, key: str) -> bytes:
        try:
            return self._blobs[key]
        except KeyError:
            raise BlobNotFoundError(f"Blob not found: {key}")

    def delete(self, key: str) -> bool:
        return self._blobs.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        return key in self._blobs


class FileSystemBlobStore(BlobStoreInterface):
    """
    Blobs as files under a root directory.

    Layout: <root>/<first two hex chars of key>/<key>
    so no single directory grows too large.
    """

    def __init__(self, root_dir: Path):
        self._root = Path(root_dir)

    def _path_for(self, key: str) -> Path:
        if len(key) != 64 or any(c not in "0123456789abcdef" for c in key):
            raise BlobNotFoundError(f"Malformed blob key: {key}")
        return self._root / key[:2] / key

    def put(self, data: bytes) -> str:
        key = content_key(data)
        path = self._path_for(key)
        if path.exists():
            return key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError as e:
            raise BlobStoreError(f"Failed to write blob {key}: {e}") from e
        return key

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFoundError(f"Blob not found: {key}")
        except OSError as e:
            raise BlobStoreError(f"Failed to read blob {key}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob {key}: {e}") from e

    def exists(self, key: str) -> bool:
        try:
            return self._path_for(key).exists()
        except BlobNotFoundError:
            return False
