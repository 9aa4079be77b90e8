"""
Photo pipeline: the write path resize -> compress -> encrypt -> store and the
read path load -> decrypt -> decode, for single photos and batches.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from PIL import Image

from ..config import PhotoVaultConfig
from ..security.cipher import CipherEngine
from ..security.vault import KeyVault
from .exceptions import BlobNotFoundError, StorageFailedError, StorageIOError
from .imaging import ImageInput, ImageProcessor, decode_image

logger = logging.getLogger(__name__)

# how often a blocked batch re-checks its cancel event, in seconds
_POLL_INTERVAL = 0.05


@dataclass
class PhotoResult:
    """Outcome of one item in a batch, at its original input index."""

    index: int
    value: Any = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


@dataclass
class BatchResult:
    """Per-item results in input order plus the first error observed."""

    items: List[PhotoResult] = field(default_factory=list)
    first_error: Optional[BaseException] = None

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> PhotoResult:
        return self.items[index]

    @property
    def succeeded(self) -> bool:
        return all(item.ok for item in self.items)

    @property
    def cancelled(self) -> bool:
        return any(item.cancelled for item in self.items)

    def values(self) -> List[Any]:
        """Values in input order; None where the item failed or was cancelled."""
        return [item.value if item.ok else None for item in self.items]

    def successful(self) -> List[PhotoResult]:
        return [item for item in self.items if item.ok]

    def raise_first_error(self) -> None:
        if self.first_error is not None:
            raise self.first_error


class PhotoPipeline:
    """Orchestrates the key vault, cipher engine and blob store for photos.

    All collaborators are injected so tests can use in-memory doubles.
    When no executor is given, a thread pool of ``config.max_workers`` is
    created on first use and shut down by :meth:`close`.
    """

    def __init__(
        self,
        vault: KeyVault,
        cipher: CipherEngine,
        store,
        processor: Optional[ImageProcessor] = None,
        config: Optional[PhotoVaultConfig] = None,
        executor: Optional[Executor] = None,
    ):
        self.config = config or PhotoVaultConfig()
        self.vault = vault
        self.cipher = cipher
        self.store = store
        self.processor = processor or ImageProcessor(self.config)
        self._executor = executor
        self._owns_executor = executor is None
        self._executor_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Executor lifecycle
    # ------------------------------------------------------------------

    def _get_executor(self) -> Executor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.max_workers,
                    thread_name_prefix="photovault",
                )
            return self._executor

    def close(self) -> None:
        """Wait for in-flight work and release an internally created pool."""
        with self._executor_lock:
            if self._owns_executor and self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self) -> "PhotoPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Single photo operations
    # ------------------------------------------------------------------

    def store_photo(self, image: ImageInput) -> str:
        """Resize, compress, encrypt and persist ``image``; return its identifier.

        Nothing reaches the blob store unless encryption succeeded. Retrying a
        failed call is safe: each call writes a brand new identifier.
        """
        jpeg = self.processor.prepare(image)
        key = self.vault.get_or_create_key()
        blob = self.cipher.encrypt(jpeg, key)
        try:
            blob_id = self.store.put(blob)
        except StorageIOError as e:
            raise StorageFailedError(f"failed to persist photo: {e}") from e
        logger.info("Stored photo %s (%d bytes compressed)", blob_id, len(jpeg))
        return blob_id

    def load_photo_bytes(self, blob_id: str) -> bytes:
        """Return the decrypted, still-encoded photo bytes."""
        blob = self.store.get(blob_id)
        key = self.vault.get_or_create_key()
        return self.cipher.decrypt(blob, key)

    def load_photo(self, blob_id: str) -> Image.Image:
        """Fetch, decrypt and decode a stored photo."""
        return decode_image(self.load_photo_bytes(blob_id))

    def delete_photo(self, blob_id: str, strict: bool = False) -> bool:
        """Remove a stored photo.

        By default this is best-effort cleanup: a missing blob or an I/O
        failure is logged and reported as ``False``. With ``strict=True``
        the error propagates.
        """
        try:
            self.store.delete(blob_id)
        except BlobNotFoundError:
            if strict:
                raise
            logger.info("Photo %s was already deleted", blob_id)
            return False
        except StorageIOError as e:
            if strict:
                raise
            logger.warning("Failed to delete photo %s: %s", blob_id, e)
            return False
        logger.info("Deleted photo %s", blob_id)
        return True

    def delete_photos(self, blob_ids: Iterable[str]) -> int:
        """Cascade delete for a parent record; returns how many blobs were removed."""
        return sum(1 for blob_id in blob_ids if self.delete_photo(blob_id))

    def photo_digest(self, blob_id: str) -> str:
        """SHA-256 of the decrypted photo bytes, for integrity records."""
        return self.cipher.digest(self.load_photo_bytes(blob_id))

    def verify_photo(self, blob_id: str, expected_digest: str) -> bool:
        return self.cipher.verify_digest(self.load_photo_bytes(blob_id), expected_digest)

    # ------------------------------------------------------------------
    # Non-blocking and batch operations
    # ------------------------------------------------------------------

    def submit_store(self, image: ImageInput) -> "Future[str]":
        return self._get_executor().submit(self.store_photo, image)

    def submit_load(self, blob_id: str) -> "Future[Image.Image]":
        return self._get_executor().submit(self.load_photo, blob_id)

    def store_photos(
        self,
        images: Iterable[ImageInput],
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Store several photos concurrently; results follow input order."""
        return self._run_batch(self.store_photo, list(images), cancel_event)

    def load_photos(
        self,
        blob_ids: Iterable[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Load several photos concurrently; results follow input order."""
        return self._run_batch(self.load_photo, list(blob_ids), cancel_event)

    def _run_batch(
        self,
        fn: Callable[[Any], Any],
        inputs: List[Any],
        cancel_event: Optional[threading.Event],
    ) -> BatchResult:
        # Each future is tagged with its input index and lands in that slot,
        # whatever order the workers finish in.
        batch = BatchResult(items=[PhotoResult(index=i) for i in range(len(inputs))])
        if not inputs:
            return batch

        executor = self._get_executor()
        futures = {executor.submit(fn, item): i for i, item in enumerate(inputs)}
        pending = set(futures)
        stopping = False

        while pending:
            done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
            for fut in done:
                slot = batch.items[futures[fut]]
                if fut.cancelled():
                    slot.cancelled = True
                    continue
                exc = fut.exception()
                if exc is None:
                    slot.value = fut.result()
                    continue
                slot.error = exc
                if batch.first_error is None:
                    batch.first_error = exc
                    logger.warning("Batch item %d failed: %s", slot.index, exc)

            if stopping:
                continue
            if batch.first_error is not None or (cancel_event is not None and cancel_event.is_set()):
                stopping = True
                # only queued items are cancelled; running ones finish their write
                for fut in list(pending):
                    if fut.cancel():
                        batch.items[futures[fut]].cancelled = True
                        pending.discard(fut)

        stored = sum(1 for item in batch.items if item.ok)
        logger.debug("Batch finished: %d/%d succeeded", stored, len(inputs))
        return batch
