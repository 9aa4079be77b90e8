"""Key vault owning the single long-lived photo encryption key.

The key is generated lazily on first use, persisted in a secret store
(see :mod:`photovault.security.keystore`) and cached in memory afterwards.
First-use creation is serialized with a lock so concurrent callers converge
on one persisted key; once cached, reads do not take the lock.

Deleting the key makes every blob encrypted under it permanently
unrecoverable. Nothing in the normal photo flow calls :meth:`KeyVault.delete_key`.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Optional, Protocol

from ..core.exceptions import KeyStoreIOError, KeyStoreUnavailableError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
DEFAULT_KEY_NAME = "com.photovault.encryptionKey"


class SecretStore(Protocol):
    def get(self, name: str) -> Optional[bytes]: ...

    def set(self, name: str, value: bytes) -> None: ...

    def delete(self, name: str) -> None: ...


def generate_key() -> bytes:
    """Return 32 cryptographically random bytes (AES-256 key)."""
    return os.urandom(KEY_SIZE)


class KeyVault:
    """Get-or-create access to the photo key, backed by a secret store.

    Args:
        store: secret store with get/set/delete by name
        key_name: entry name of the key inside the store
        authorizer: optional zero-argument callable consulted before the key
            is released (e.g. a biometric prompt); a falsy result denies access
    """

    def __init__(
        self,
        store: SecretStore,
        key_name: str = DEFAULT_KEY_NAME,
        authorizer: Optional[Callable[[], bool]] = None,
    ):
        self.store = store
        self.key_name = key_name
        self.authorizer = authorizer
        self._key: Optional[bytes] = None
        self._create_lock = threading.Lock()

    def _authorize(self) -> None:
        if self.authorizer is None:
            return
        if not self.authorizer():
            raise KeyStoreUnavailableError("key access was not authorized")

    def _read_store(self) -> Optional[bytes]:
        try:
            existing = self.store.get(self.key_name)
        except (KeyStoreUnavailableError, KeyStoreIOError):
            raise
        except Exception as e:
            raise KeyStoreIOError(f"failed to read encryption key: {e}") from e
        if existing is not None and len(existing) != KEY_SIZE:
            raise KeyStoreIOError(
                f"stored encryption key has invalid length ({len(existing)} bytes)"
            )
        return existing

    def _write_store(self, key: bytes) -> None:
        try:
            self.store.set(self.key_name, key)
        except (KeyStoreUnavailableError, KeyStoreIOError):
            raise
        except Exception as e:
            raise KeyStoreIOError(f"failed to persist encryption key: {e}") from e

    def get_or_create_key(self) -> bytes:
        """Return the persisted key, generating and storing it on first use."""
        self._authorize()

        key = self._key
        if key is not None:
            return key

        with self._create_lock:
            # another caller may have finished creation while we waited
            if self._key is not None:
                return self._key

            existing = self._read_store()
            if existing is not None:
                self._key = existing
                return existing

            new_key = generate_key()
            self._write_store(new_key)
            logger.info("Generated new photo encryption key %r", self.key_name)
            self._key = new_key
            return new_key

    def delete_key(self) -> None:
        """Irreversibly remove the persisted key and forget the cached copy."""
        with self._create_lock:
            self.lock()
            try:
                self.store.delete(self.key_name)
            except (KeyStoreUnavailableError, KeyStoreIOError):
                raise
            except Exception as e:
                raise KeyStoreIOError(f"failed to delete encryption key: {e}") from e
        logger.warning("Deleted photo encryption key %r; existing photos are unrecoverable", self.key_name)

    def lock(self) -> None:
        """Drop the cached key from memory; the next access re-reads the store."""
        self._key = None
