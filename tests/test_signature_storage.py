"""Tests for signature image decoding and the filesystem signature store."""

from __future__ import annotations

import base64

import pytest

from src.app.storage.signatures import (
    LocalSignatureStore,
    decode_signature_image,
    signature_key,
)


class TestDecodeSignatureImage:
    def test_data_url(self) -> None:
        payload = "data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode()
        assert decode_signature_image(payload) == (b"jpeg-bytes", "image/jpeg")

    def test_bare_base64_is_png(self) -> None:
        payload = base64.b64encode(b"png-bytes").decode()
        assert decode_signature_image(payload) == (b"png-bytes", "image/png")

    def test_rejects_non_image(self) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            decode_signature_image("data:application/pdf;base64,aGVsbG8=")

    def test_rejects_invalid_base64(self) -> None:
        with pytest.raises(ValueError, match="base64"):
            decode_signature_image("not base64 at all!")


def test_signature_key() -> None:
    assert signature_key("t1", "c1", "agent", "image/webp", token="abc") == "t1/c1/agent-abc.webp"
    assert signature_key("t1", "c1", "team", "image/unknown", token="abc") == "t1/c1/team-abc.bin"


def test_signature_key_is_unique_per_attempt() -> None:
    first = signature_key("t1", "c1", "agent", "image/png")
    second = signature_key("t1", "c1", "agent", "image/png")

    assert first != second
    assert first.startswith("t1/c1/agent-") and first.endswith(".png")


def test_svg_signatures_are_refused() -> None:
    payload = "data:image/svg+xml;base64," + base64.b64encode(b"<svg onload='x()'/>").decode()
    with pytest.raises(ValueError, match="Unsupported"):
        decode_signature_image(payload)


@pytest.mark.asyncio
async def test_local_store_writes_file(tmp_path) -> None:
    store = LocalSignatureStore(tmp_path, "/files/signatures/")
    url = await store.put("t1/c1/agent.png", b"signature", "image/png")

    assert url == "/files/signatures/t1/c1/agent.png"
    assert (tmp_path / "t1" / "c1" / "agent.png").read_bytes() == b"signature"


@pytest.mark.asyncio
async def test_local_store_rejects_oversize(tmp_path) -> None:
    store = LocalSignatureStore(tmp_path, "/files", max_bytes=4)
    with pytest.raises(ValueError, match="exceeds"):
        await store.put("t1/c1/agent.png", b"too large", "image/png")


@pytest.mark.asyncio
async def test_local_store_rejects_empty_and_traversal(tmp_path) -> None:
    store = LocalSignatureStore(tmp_path, "/files")
    with pytest.raises(ValueError):
        await store.put("t1/c1/agent.png", b"", "image/png")
    with pytest.raises(ValueError, match="Invalid storage key"):
        await store.put("../outside.png", b"data", "image/png")
