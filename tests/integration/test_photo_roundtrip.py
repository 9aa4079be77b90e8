"""
End-to-end photo flow on a real directory.

This exercises the wiring the application uses:

- build_context with an in-memory secret store and a tmp storage directory
- store a photo whose full-quality JPEG exceeds the size ceiling
- read it back, decrypt and decode it
- cascade-delete the record's photos
"""

import os
from pathlib import Path

from PIL import Image

from photovault.config import PhotoVaultConfig
from photovault.context import build_context
from photovault.core.exceptions import AuthenticationFailedError
from photovault.security.keystore import MemorySecretStore


def _noisy_photo(width, height):
    return Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))


def test_store_load_delete_on_disk(tmp_path: Path) -> None:
    storage_dir = tmp_path / "EncryptedPhotos"
    cfg = PhotoVaultConfig(storage_dir=storage_dir, target_bytes=200 * 1024, max_dimension=1024)
    secrets = MemorySecretStore()
    ctx = build_context(config=cfg, secret_store=secrets)

    with ctx.pipeline as pipeline:
        photo = _noisy_photo(1600, 1200)
        blob_id = pipeline.store_photo(photo)

        # one encrypted file named by its identifier, nothing else
        assert [p.name for p in storage_dir.iterdir()] == [blob_id]
        on_disk = (storage_dir / blob_id).read_bytes()
        assert not on_disk.startswith(b"\xff\xd8")

        # compression terminated and produced a decodable image
        img = pipeline.load_photo(blob_id)
        assert img.size == (1024, 768)

        assert pipeline.delete_photos([blob_id]) == 1
        assert pipeline.delete_photos([blob_id]) == 0
        assert list(storage_dir.iterdir()) == []


def test_batch_store_on_disk_keeps_order(tmp_path: Path) -> None:
    cfg = PhotoVaultConfig(storage_dir=tmp_path / "photos", max_workers=3)
    ctx = build_context(config=cfg, secret_store=MemorySecretStore())

    sizes = [(300, 200), (40, 30), (120, 90)]
    with ctx.pipeline as pipeline:
        batch = pipeline.store_photos([Image.new("RGB", s, "white") for s in sizes])
        assert batch.succeeded
        loaded = pipeline.load_photos(batch.values())

    assert [img.size for img in loaded.values()] == sizes
    assert sorted(batch.values()) == ctx.store.list_ids()


def test_key_persists_across_contexts(tmp_path: Path) -> None:
    """A second app start with the same secret store reads existing photos."""
    cfg = PhotoVaultConfig(storage_dir=tmp_path / "photos")
    secrets = MemorySecretStore()

    first = build_context(config=cfg, secret_store=secrets)
    blob_id = first.pipeline.store_photo(Image.new("RGB", (32, 32), "red"))
    first.pipeline.close()

    second = build_context(config=cfg, secret_store=secrets)
    assert second.pipeline.load_photo(blob_id).size == (32, 32)

    second.vault.delete_key()
    try:
        second.pipeline.load_photo(blob_id)
        assert False, "photo should be unreadable after key deletion"
    except AuthenticationFailedError:
        pass
