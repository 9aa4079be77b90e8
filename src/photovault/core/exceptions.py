"""
Exceptions for the PhotoVault pipeline
Everything derives from PhotoVaultError so the UI layer has a single catch-all.

Each class carries a ``user_message`` that is safe to show to the user:
it never contains key material, ciphertext or filesystem paths.
"""


class PhotoVaultError(Exception):
    # general container for errors
    user_message = "Something went wrong while handling the photo."


class KeyStoreUnavailableError(PhotoVaultError):
    # raised when the secret store is locked or not reachable
    user_message = "Secure storage is unavailable. Unlock the device and try again."


class KeyStoreIOError(PhotoVaultError):
    # raised when reading or writing the secret store fails
    user_message = "The encryption key could not be read or saved."


class EncryptionFailedError(PhotoVaultError):
    # raised when the AEAD primitive refuses to encrypt
    user_message = "The photo could not be encrypted."


class AuthenticationFailedError(PhotoVaultError):
    # raised on tag mismatch, truncated blob or wrong key
    user_message = "The photo could not be decrypted. It may be damaged."


class StorageIOError(PhotoVaultError):
    # raised if the blob directory can't be read or written
    user_message = "The photo could not be read from or written to storage."


class StorageFailedError(StorageIOError):
    # raised by the pipeline when persisting an encrypted photo fails
    user_message = "The photo could not be saved."


class BlobNotFoundError(StorageIOError):
    # raised when an identifier has no backing file
    user_message = "The photo file was not found."


class CompressionFailedError(PhotoVaultError):
    # raised when the image can't be encoded
    user_message = "The photo could not be compressed."


class ImageTooLargeError(CompressionFailedError):
    # raised when input exceeds the configured byte or pixel ceiling
    user_message = "The photo is too large to be stored."


class InvalidImageDataError(PhotoVaultError):
    # raised when bytes don't decode into an image
    user_message = "The photo data is not a valid image."
