"""Security helpers: secret stores, the photo key vault and the AEAD cipher engine.

This package provides:
- OS keyring backed (and in-memory) secret storage for binary keys
- A get-or-create key vault serializing first-use key generation
- AES-256-GCM encryption with the nonce carried inside each blob
"""

from .keystore import KeyringSecretStore, MemorySecretStore, assess_keyring_backend
from .vault import KeyVault, generate_key
from .cipher import CipherEngine

__all__ = [
    "KeyringSecretStore",
    "MemorySecretStore",
    "assess_keyring_backend",
    "KeyVault",
    "generate_key",
    "CipherEngine",
]
