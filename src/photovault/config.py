"""
Configuration settings for the PhotoVault pipeline.

Defaults mirror the mobile app's photo handling: photos are capped at
1920px on the long side and recompressed as JPEG until they fit in 1 MiB.
Every field can be overridden through ``PHOTOVAULT_*`` environment variables
via :meth:`PhotoVaultConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

# ----------------------------------------------------------------------
# Image limits
# ----------------------------------------------------------------------
MAX_DIMENSION = 1920
TARGET_BYTES = 1024 * 1024  # 1 MiB after compression
MIN_QUALITY = 0.1
QUALITY_STEP = 0.1
MAX_INPUT_BYTES = 50 * 1024 * 1024  # encoded input accepted by store_photo
MAX_INPUT_PIXELS = 100_000_000

# ----------------------------------------------------------------------
# Key storage
# ----------------------------------------------------------------------
KEYRING_SERVICE = "com.photovault.app"
KEY_NAME = "com.photovault.encryptionKey"

ENV_PREFIX = "PHOTOVAULT_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_storage_dir() -> Path:
    return Path.home() / ".photovault" / "EncryptedPhotos"


@dataclass
class PhotoVaultConfig:
    """Runtime settings for the vault, blob store and pipeline."""

    storage_dir: Path = field(default_factory=_default_storage_dir)
    max_dimension: int = MAX_DIMENSION
    target_bytes: int = TARGET_BYTES
    min_quality: float = MIN_QUALITY
    quality_step: float = QUALITY_STEP
    max_input_bytes: int = MAX_INPUT_BYTES
    max_input_pixels: int = MAX_INPUT_PIXELS
    max_workers: int = 4
    keyring_service: str = KEYRING_SERVICE
    key_name: str = KEY_NAME
    allow_insecure_keyring: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        self.storage_dir = Path(self.storage_dir).expanduser()
        self.log_level = str(self.log_level).strip().upper()

    def validate(self) -> "PhotoVaultConfig":
        if self.max_dimension <= 0:
            raise ValueError("max_dimension must be positive")
        if self.target_bytes <= 0:
            raise ValueError("target_bytes must be positive")
        if not 0.0 < self.min_quality <= 1.0:
            raise ValueError("min_quality must be in (0, 1]")
        if not 0.0 < self.quality_step <= 1.0:
            raise ValueError("quality_step must be in (0, 1]")
        if self.max_input_bytes <= 0 or self.max_input_pixels <= 0:
            raise ValueError("input limits must be positive")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"unknown log_level {self.log_level!r}")
        return self

    @classmethod
    def from_env(cls, environ=None) -> "PhotoVaultConfig":
        """Build a config from ``PHOTOVAULT_<FIELD>`` variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.name == "storage_dir":
                overrides[f.name] = Path(raw)
            elif f.name == "allow_insecure_keyring":
                overrides[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif f.type in ("int", int):
                overrides[f.name] = int(raw)
            elif f.type in ("float", float):
                overrides[f.name] = float(raw)
            else:
                overrides[f.name] = raw
        return cls(**overrides).validate()
