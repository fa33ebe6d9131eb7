"""Signature image storage.

The workflow only needs one capability from file storage: store a blob and
get back a retrievable URL. SignatureStore is that seam; LocalSignatureStore
writes to a directory that is served (or synced) under a public base URL.

Storage keys follow ``{tenant_id}/{contract_id}/{party}-{token}.{ext}``. Only
raster formats are accepted; the files are served from the API's own origin.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)

_EXTENSIONS: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


def decode_signature_image(payload: str) -> tuple[bytes, str]:
    """Decode a signature image sent as a data URL or raw base64.

    Args:
        payload: ``data:image/png;base64,...`` or bare base64 (assumed PNG).

    Returns:
        Tuple of (raw bytes, mime type).

    Raises:
        ValueError: If the payload is not valid base64 or the mime type is
            not an image.
    """
    mime_type = "image/png"
    data = payload.strip()
    match = _DATA_URL_PATTERN.match(data)
    if match:
        mime_type = match.group("mime").lower()
        data = match.group("data")

    if mime_type not in _EXTENSIONS:
        raise ValueError(f"Unsupported signature image type: {mime_type}")

    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Signature image is not valid base64") from exc

    if not raw:
        raise ValueError("Signature image is empty")
    return raw, mime_type


def signature_key(
    tenant_id: str,
    contract_id: str,
    party: str,
    mime_type: str,
    token: str | None = None,
) -> str:
    """Build a storage key for one signing attempt by one party.

    Each attempt gets its own ``token`` (random by default), so a signing
    request that loses the version race never overwrites the blob the
    winning request recorded.
    """
    ext = _EXTENSIONS.get(mime_type, "bin")
    token = token or uuid.uuid4().hex
    return f"{tenant_id}/{contract_id}/{party}-{token}.{ext}"


class SignatureStore(ABC):
    """Store signature blobs and return a URL they can be retrieved from."""

    @abstractmethod
    async def put(self, key: str, data: bytes, mime_type: str) -> str:
        """Store ``data`` under ``key``.

        Returns:
            Retrievable URL for the stored blob.

        Raises:
            ValueError: If the payload is empty or too large.
            OSError: If the underlying storage fails.
        """
        ...


class LocalSignatureStore(SignatureStore):
    """Filesystem-backed signature store.

    Args:
        root: Directory blobs are written under.
        base_url: Public URL prefix that maps onto ``root``.
        max_bytes: Largest accepted payload.
    """

    def __init__(self, root: str | Path, base_url: str, max_bytes: int = 2 * 1024 * 1024) -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")
        self._max_bytes = max_bytes

    def _path_for(self, key: str) -> Path:
        normalized = key.replace("\\", "/").strip("/")
        if not normalized or ".." in normalized.split("/"):
            raise ValueError(f"Invalid storage key: {key}")
        return self._root / normalized

    async def put(self, key: str, data: bytes, mime_type: str) -> str:
        if not data:
            raise ValueError("Cannot store an empty signature")
        if len(data) > self._max_bytes:
            raise ValueError(
                f"Signature exceeds {self._max_bytes} bytes ({len(data)} bytes)"
            )

        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        url = f"{self._base_url}/{key.strip('/')}"
        logger.info("signature.stored", key=key, size_bytes=len(data), mime_type=mime_type)
        return url
