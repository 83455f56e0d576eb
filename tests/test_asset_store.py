"""Tests for AssetStore."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from topupshop.asset_store import sanitize_filename, validate_upload
from topupshop.errors import AssetNotFoundError, ValidationError
from topupshop.models import AssetTier

from conftest import BASE_URL, PNG_BYTES


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TestStore:
    def test_store_returns_tiered_identifier(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PRIVATE, "receipt.png")
        assert asset.id.startswith("private/")
        assert asset.id.endswith("-receipt.png")
        assert asset.tier is AssetTier.PRIVATE
        assert asset.content_type == "image/png"

    def test_same_filename_never_collides(self, asset_store):
        ids = {
            asset_store.store(PNG_BYTES, "image/png", AssetTier.PUBLIC, "banner.png").id
            for _ in range(20)
        }
        assert len(ids) == 20

    def test_timestamps_strictly_increase(self, asset_store):
        first = asset_store.store(PNG_BYTES, "image/png", AssetTier.PUBLIC, "a.png")
        second = asset_store.store(PNG_BYTES, "image/png", AssetTier.PUBLIC, "a.png")
        stamp = lambda a: int(a.id.split("/")[1].split("-")[0])
        assert stamp(second) > stamp(first)

    def test_unsafe_characters_are_replaced(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PUBLIC, "my receipt (1).png")
        assert asset.id.endswith("-my_receipt__1_.png")

    def test_extension_added_from_content_type(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/webp", AssetTier.PUBLIC, "blob")
        assert asset.id.endswith("-blob.webp")

    def test_open_returns_bytes_and_type(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PUBLIC, "logo.png")
        data, content_type = asset_store.open(asset.id)
        assert data == PNG_BYTES
        assert content_type == "image/png"


class TestResolve:
    def test_public_url_is_permanent(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PUBLIC, "banner.png")
        resolved = asset_store.resolve(asset.id)
        assert resolved.expires_at is None
        assert resolved.url == f"{BASE_URL}/assets/{asset.id}"

    def test_private_url_expires_in_seven_days(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PRIVATE, "receipt.png")
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        resolved = asset_store.resolve(asset.id, now=now)

        assert resolved.expires_at == now + timedelta(days=7)
        query = _query(resolved.url)
        assert int(query["expires"]) == int(resolved.expires_at.timestamp())
        assert query["signature"]

    def test_private_url_verifies_until_expiry(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PRIVATE, "receipt.png")
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        query = _query(asset_store.resolve(asset.id, now=now).url)
        expires, signature = int(query["expires"]), query["signature"]

        assert asset_store.verify(asset.id, expires, signature, now=now + timedelta(days=6))
        assert not asset_store.verify(asset.id, expires, signature, now=now + timedelta(days=8))

    def test_resolving_again_signs_again(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PRIVATE, "receipt.png")
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        first = asset_store.resolve(asset.id, now=now)
        later = asset_store.resolve(asset.id, now=now + timedelta(days=10))
        assert later.expires_at > first.expires_at
        assert later.url != first.url

    def test_tampered_signature_rejected(self, asset_store):
        asset = asset_store.store(PNG_BYTES, "image/png", AssetTier.PRIVATE, "receipt.png")
        query = _query(asset_store.resolve(asset.id).url)
        assert not asset_store.verify(asset.id, int(query["expires"]), "0" * 64)
        assert not asset_store.verify(asset.id, None, query["signature"])

    def test_unknown_asset_raises(self, asset_store):
        with pytest.raises(AssetNotFoundError):
            asset_store.resolve("private/123-missing.png")

    @pytest.mark.parametrize("identifier", ["secret/1-a.png", "public/../kv.json", "public/"])
    def test_malformed_identifier_raises(self, asset_store, identifier):
        with pytest.raises(AssetNotFoundError):
            asset_store.open(identifier)


class TestValidateUpload:
    def test_accepts_allowed_image(self):
        validate_upload(1024, "image/jpeg")

    def test_rejects_oversized(self):
        with pytest.raises(ValidationError, match="too large"):
            validate_upload(5 * 1024 * 1024 + 1, "image/png")

    def test_rejects_other_types(self):
        with pytest.raises(ValidationError, match="Unsupported content type"):
            validate_upload(10, "application/pdf")

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            validate_upload(0, "image/png")


def test_sanitize_filename():
    assert sanitize_filename("a b/c.png") == "a_b_c.png"
    assert sanitize_filename("") == "upload"
