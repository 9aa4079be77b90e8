"""Secret stores for the photo encryption key.

A secret store is a tiny get/set/delete-by-name API for small binary values.
`KeyringSecretStore` wraps the `keyring` package so the key lands in the
platform keystore (Keychain, Windows Credential Locker, Secret Service,
KWallet), which only releases secrets while the user session is unlocked.
`MemorySecretStore` keeps values in process memory and is used by tests and
by callers that bring their own protected storage.

Values are base64-encoded before they reach keyring to keep them
string-friendly.
"""
import base64
import binascii
import logging
import threading
from typing import Dict, Optional

try:
    import keyring
    from keyring.errors import KeyringError, KeyringLocked, NoKeyringError, PasswordDeleteError
except Exception:
    keyring = None

from ..core.exceptions import KeyStoreIOError, KeyStoreUnavailableError

logger = logging.getLogger(__name__)


def _require_keyring():
    if keyring is None:
        raise KeyStoreUnavailableError("keyring package is not available; install keyring to use the OS keystore")


# Backends that keep the photo key in a plain file, in memory only, or nowhere.
INSECURE_BACKEND_TOKENS = ("Plaintext", "Uncrypted", "Simple", "File", "Fail", "Null")
# Platform keystores that only release secrets while the user session is unlocked.
PLATFORM_BACKEND_TOKENS = ("Keychain", "WinVault", "Windows", "SecretService", "KWallet")


def _backend_names(backend) -> list:
    # keyring's ChainerBackend delegates to several backends; judge each of them
    inner = getattr(backend, "backends", None)
    if backend.__class__.__name__ == "ChainerBackend" and inner:
        return [b.__class__.__name__ for b in inner]
    return [backend.__class__.__name__]


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) for the keyring backend that would hold the photo key.

    A backend is refused when any backend it delegates to stores the key
    unprotected, or when keyring itself ranks it unusable (priority <= 0).
    """
    if keyring is None:
        return False, "keyring package is not installed"

    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    names = _backend_names(backend)
    label = "+".join(names)
    priority = getattr(backend, "priority", None)

    flagged = [n for n in names if any(tok in n for tok in INSECURE_BACKEND_TOKENS)]
    if flagged:
        return False, f"insecure backend detected: {', '.join(flagged)}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={label})"

    if all(any(tok in n for tok in PLATFORM_BACKEND_TOKENS) for n in names):
        return True, f"backend looks acceptable: {label} (priority={priority})"

    return True, f"unknown backend '{label}', treat with caution (priority={priority})"


class KeyringSecretStore:
    """Binary secret storage on top of the OS keyring under a single service name."""

    def __init__(self, service: str, allow_insecure: bool = False):
        self.service = service
        self.allow_insecure = allow_insecure
        self._checked = False

    def _ensure_backend(self) -> None:
        _require_keyring()
        if self._checked:
            return
        secure, msg = assess_keyring_backend()
        if not secure:
            if not self.allow_insecure:
                raise KeyStoreUnavailableError(
                    f"refusing to use keyring backend: {msg}; "
                    "pass allow_insecure=True to override if you understand the risk"
                )
            logger.warning("Using keyring backend flagged as insecure: %s", msg)
        self._checked = True

    def get(self, name: str) -> Optional[bytes]:
        """Return the stored bytes for ``name`` or None when nothing is stored."""
        self._ensure_backend()
        try:
            secret = keyring.get_password(self.service, name)
        except (KeyringLocked, NoKeyringError) as e:
            raise KeyStoreUnavailableError(f"keyring is locked or unavailable: {e}") from e
        except (KeyringError, OSError) as e:
            raise KeyStoreIOError(f"failed to read secret {name!r}: {e}") from e
        if secret is None:
            return None
        try:
            return base64.b64decode(secret, validate=True)
        except (binascii.Error, ValueError) as e:
            raise KeyStoreIOError(f"secret {name!r} is not valid base64") from e

    def set(self, name: str, value: bytes) -> None:
        self._ensure_backend()
        secret = base64.b64encode(value).decode("ascii")
        try:
            keyring.set_password(self.service, name, secret)
        except (KeyringLocked, NoKeyringError) as e:
            raise KeyStoreUnavailableError(f"keyring is locked or unavailable: {e}") from e
        except (KeyringError, OSError) as e:
            raise KeyStoreIOError(f"failed to write secret {name!r}: {e}") from e

    def delete(self, name: str) -> None:
        """Remove ``name``; a missing entry is not an error."""
        self._ensure_backend()
        try:
            keyring.delete_password(self.service, name)
        except PasswordDeleteError:
            logger.debug("No secret %r to delete in service %r", name, self.service)
        except (KeyringLocked, NoKeyringError) as e:
            raise KeyStoreUnavailableError(f"keyring is locked or unavailable: {e}") from e
        except (KeyringError, OSError) as e:
            raise KeyStoreIOError(f"failed to delete secret {name!r}: {e}") from e


class MemorySecretStore:
    """In-process secret store; ``locked=True`` behaves like a locked device."""

    def __init__(self, locked: bool = False):
        self.locked = locked
        self._values: Dict[str, bytes] = {}
        self._mutex = threading.Lock()

    def _check_unlocked(self) -> None:
        if self.locked:
            raise KeyStoreUnavailableError("secret store is locked")

    def get(self, name: str) -> Optional[bytes]:
        self._check_unlocked()
        with self._mutex:
            return self._values.get(name)

    def set(self, name: str, value: bytes) -> None:
        self._check_unlocked()
        with self._mutex:
            self._values[name] = bytes(value)

    def delete(self, name: str) -> None:
        self._check_unlocked()
        with self._mutex:
            self._values.pop(name, None)
