"""Blob storage seam for signature images."""

from src.app.storage.signatures import (
    LocalSignatureStore,
    SignatureStore,
    decode_signature_image,
    signature_key,
)

__all__ = [
    "LocalSignatureStore",
    "SignatureStore",
    "decode_signature_image",
    "signature_key",
]
