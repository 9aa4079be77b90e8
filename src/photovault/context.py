"""Small helper to wire the PhotoVault object graph for an application."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from photovault.config import PhotoVaultConfig
from photovault.core.blob_store import BlobStore
from photovault.core.imaging import ImageProcessor
from photovault.core.pipeline import PhotoPipeline
from photovault.security.cipher import CipherEngine
from photovault.security.keystore import KeyringSecretStore
from photovault.security.vault import KeyVault, SecretStore


@dataclass
class AppContext:
    """Container for the runtime objects the UI layer needs."""

    config: PhotoVaultConfig
    vault: KeyVault
    cipher: CipherEngine
    store: BlobStore
    pipeline: PhotoPipeline


def build_context(
    config: Optional[PhotoVaultConfig] = None,
    secret_store: Optional[SecretStore] = None,
    authorizer: Optional[Callable[[], bool]] = None,
) -> AppContext:
    """
    Build one vault, cipher engine, blob store and pipeline.

    - Without an explicit ``config`` the settings come from ``PHOTOVAULT_*``
      environment variables (see :meth:`PhotoVaultConfig.from_env`).
    - Without an explicit ``secret_store`` the key lives in the OS keyring
      under ``config.keyring_service``.
    - ``authorizer`` is consulted before the key is released, e.g. a
      biometric prompt supplied by the UI.

    Nothing touches the disk or the keyring until the first photo operation.
    """
    config = (config or PhotoVaultConfig.from_env()).validate()
    if secret_store is None:
        secret_store = KeyringSecretStore(
            config.keyring_service, allow_insecure=config.allow_insecure_keyring
        )

    vault = KeyVault(secret_store, key_name=config.key_name, authorizer=authorizer)
    cipher = CipherEngine()
    store = BlobStore(str(config.storage_dir))
    pipeline = PhotoPipeline(
        vault=vault,
        cipher=cipher,
        store=store,
        processor=ImageProcessor(config),
        config=config,
    )
    return AppContext(config=config, vault=vault, cipher=cipher, store=store, pipeline=pipeline)
