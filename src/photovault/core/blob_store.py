"""
Blob store for encrypted photo payloads

Structure Map for reference:
==============================
 - <storage_dir>/
      - {uuid4}.enc          (nonce || ciphertext || tag)
      - .tmp-{random}        (in-flight write, hard-linked into place)
==============================
For reference:
> Identifiers are generated here on write and are never supplied by the caller.
> The identifier is the file name; no metadata sidecar exists since the nonce
  travels inside the blob.
> Writes go to a temp file in the same directory and are hard-linked into place,
  so a reader never observes a partially written blob.
> The directory is created lazily on the first write.

"""

import logging
import os
import re
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import BlobNotFoundError, StorageIOError
from .hashing import calculate_sha256, calculate_sha256_bytes

logger = logging.getLogger(__name__)

BLOB_SUFFIX = ".enc"
TEMP_PREFIX = ".tmp-"
_ID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\.enc$")


def new_identifier() -> str:
    return f"{uuid.uuid4()}{BLOB_SUFFIX}"


def is_valid_identifier(blob_id: str) -> bool:
    return isinstance(blob_id, str) and bool(_ID_PATTERN.match(blob_id))


class BlobStore:
    """Filesystem blob store: one file per content identifier."""

    def __init__(self, root_path: Optional[str] = None):
        self.root = (
            Path(root_path).expanduser()
            if root_path
            else Path.home() / ".photovault" / "EncryptedPhotos"
        )

    def ensure_root(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"cannot create storage directory: {e}") from e
        return self.root

    def path_for(self, blob_id: str) -> Path:
        # Unknown shapes map to no file at all, which also rules out path traversal.
        if not is_valid_identifier(blob_id):
            raise BlobNotFoundError(f"Blob {blob_id!r} not found")
        return self.root / blob_id

    def put(self, payload: bytes) -> str:
        """Write ``payload`` under a fresh identifier and return the identifier."""
        root = self.ensure_root()
        blob_id = new_identifier()
        destination = root / blob_id

        tmp_path = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=root)
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            # link fails if the target exists, so a blob is never overwritten;
            # the temp name is removed in the finally block
            os.link(tmp_path, destination)
        except FileExistsError as e:
            raise StorageIOError(f"identifier collision for {blob_id}") from e
        except OSError as e:
            raise StorageIOError(f"failed to write blob {blob_id}: {e}") from e
        finally:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning("Could not remove temp file %s: %s", tmp_path.name, e)

        logger.debug("Stored blob %s (%d bytes)", blob_id, len(payload))
        return blob_id

    def get(self, blob_id: str) -> bytes:
        path = self.path_for(blob_id)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob {blob_id} not found") from e
        except OSError as e:
            raise StorageIOError(f"failed to read blob {blob_id}: {e}") from e

    def delete(self, blob_id: str) -> None:
        path = self.path_for(blob_id)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob {blob_id} not found") from e
        except OSError as e:
            raise StorageIOError(f"failed to delete blob {blob_id}: {e}") from e
        logger.debug("Deleted blob %s", blob_id)

    def exists(self, blob_id: str) -> bool:
        if not is_valid_identifier(blob_id):
            return False
        return (self.root / blob_id).is_file()

    def list_ids(self) -> List[str]:
        """Identifiers currently on disk, sorted; in-flight temp files are skipped."""
        if not self.root.exists():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_file() and is_valid_identifier(p.name))

    def checksum(self, blob_id: str) -> str:
        """SHA-256 of the stored (encrypted) file, for integrity audits."""
        path = self.path_for(blob_id)
        try:
            return calculate_sha256(path)
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob {blob_id} not found") from e
        except OSError as e:
            raise StorageIOError(f"failed to read blob {blob_id}: {e}") from e


class MemoryBlobStore:
    """Dict-backed blob store with the same contract, for tests and previews."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._mutex = threading.Lock()

    def put(self, payload: bytes) -> str:
        blob_id = new_identifier()
        with self._mutex:
            if blob_id in self._blobs:
                raise StorageIOError(f"identifier collision for {blob_id}")
            self._blobs[blob_id] = bytes(payload)
        return blob_id

    def get(self, blob_id: str) -> bytes:
        with self._mutex:
            try:
                return self._blobs[blob_id]
            except KeyError as e:
                raise BlobNotFoundError(f"Blob {blob_id!r} not found") from e

    def delete(self, blob_id: str) -> None:
        with self._mutex:
            if self._blobs.pop(blob_id, None) is None:
                raise BlobNotFoundError(f"Blob {blob_id!r} not found")

    def exists(self, blob_id: str) -> bool:
        with self._mutex:
            return blob_id in self._blobs

    def list_ids(self) -> List[str]:
        with self._mutex:
            return sorted(self._blobs)

    def checksum(self, blob_id: str) -> str:
        return calculate_sha256_bytes(self.get(blob_id))
