"""Two-tier binary asset storage for receipts and banners."""

import hashlib
import hmac
import mimetypes
import re
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import urlencode

from .errors import AssetNotFoundError, UploadError, ValidationError
from .log import get_logger
from .models import Asset, AssetTier, ResolvedAsset

log = get_logger("asset_store")

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
SIGNED_URL_TTL = timedelta(days=7)

ALLOWED_CONTENT_TYPES = {"image/png", "image/jpeg", "image/jpg", "image/webp"}

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
}

mimetypes.add_type("image/webp", ".webp")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_NAME_RE = re.compile(r"^\d+-[a-zA-Z0-9._-]+$")


def validate_upload(
    size: int,
    content_type: str | None,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> None:
    """
    Check the upload preconditions before handing bytes to the store.

    Raises:
        ValidationError: If the file is empty, too large or not an allowed image type.
    """
    if size == 0:
        raise ValidationError("No file uploaded", "file")
    if size > max_bytes:
        raise ValidationError(
            f"File too large ({size} bytes). Max {max_bytes // (1024 * 1024)}MB.", "file"
        )
    if content_type not in ALLOWED_CONTENT_TYPES:
        allowed = ", ".join(sorted(ALLOWED_CONTENT_TYPES))
        raise ValidationError(f"Unsupported content type {content_type!r} (allowed: {allowed})", "file")


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [a-zA-Z0-9.-] with an underscore."""
    return _UNSAFE_CHARS.sub("_", filename) or "upload"


class AssetStore:
    """
    Stores uploaded files under a private and a public tier.

    Private assets are only reachable through HMAC-signed URLs that expire
    after a fixed window; public assets get a permanent URL. Stored files
    are never overwritten.
    """

    _clock_lock = threading.Lock()
    _last_stamp = 0

    def __init__(
        self,
        root: Path,
        base_url: str,
        signing_secret: str,
        signed_url_ttl: timedelta = SIGNED_URL_TTL,
    ):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self._secret = signing_secret.encode("utf-8")
        self.signed_url_ttl = signed_url_ttl

    @classmethod
    def _next_stamp(cls) -> int:
        """Millisecond timestamp that strictly increases across calls."""
        with cls._clock_lock:
            stamp = max(int(time.time() * 1000), cls._last_stamp + 1)
            cls._last_stamp = stamp
            return stamp

    def _tier_dir(self, tier: AssetTier) -> Path:
        return self.root / tier.value

    def _split(self, identifier: str) -> tuple[AssetTier, str]:
        """Parse 'tier/name' and reject anything that could escape the tier dir."""
        tier_name, _, name = identifier.partition("/")
        try:
            tier = AssetTier(tier_name)
        except ValueError:
            raise AssetNotFoundError(identifier)
        if not _NAME_RE.match(name) or ".." in name:
            raise AssetNotFoundError(identifier)
        return tier, name

    def store(
        self,
        data: bytes,
        content_type: str,
        tier: AssetTier,
        filename: str = "upload",
    ) -> Asset:
        """
        Write a new asset.

        Args:
            data: File content.
            content_type: MIME type reported by the uploader.
            tier: PRIVATE for receipts, PUBLIC for banners, logos and QR codes.
            filename: Original file name; sanitized and prefixed with a timestamp.

        Returns:
            The stored Asset; its id is 'tier/name'.

        Raises:
            UploadError: If the file can't be written.
        """
        name = f"{self._next_stamp()}-{sanitize_filename(filename)}"
        ext = _EXTENSIONS.get(content_type)
        if ext and mimetypes.guess_type(name)[0] not in ALLOWED_CONTENT_TYPES:
            name += ext

        target_dir = self._tier_dir(tier)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(target_dir / name, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise UploadError(f"asset {name} already exists") from e
        except OSError as e:
            raise UploadError(str(e)) from e

        asset = Asset(id=f"{tier.value}/{name}", content_type=content_type, tier=tier)
        log.info("stored {} asset {} ({} bytes)", tier.value, asset.id, len(data))
        return asset

    def _signature(self, identifier: str, expires: int) -> str:
        message = f"{identifier}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def resolve(self, identifier: str, now: datetime | None = None) -> ResolvedAsset:
        """
        Return a URL for an asset.

        Public assets get a permanent URL. Private assets are signed again on
        every call and the URL stops working once expires_at has passed.

        Raises:
            AssetNotFoundError: If the identifier doesn't name a stored asset.
        """
        tier, name = self._split(identifier)
        if not (self._tier_dir(tier) / name).is_file():
            raise AssetNotFoundError(identifier)

        url = f"{self.base_url}/assets/{identifier}"
        if tier is AssetTier.PUBLIC:
            return ResolvedAsset(url=url)

        now = now or datetime.now(timezone.utc)
        expires_at = now + self.signed_url_ttl
        expires = int(expires_at.timestamp())
        query = urlencode({"expires": expires, "signature": self._signature(identifier, expires)})
        return ResolvedAsset(url=f"{url}?{query}", expires_at=expires_at)

    def verify(
        self,
        identifier: str,
        expires: int | None,
        signature: str | None,
        now: datetime | None = None,
    ) -> bool:
        """Check that a private asset URL is authentic and not expired."""
        if expires is None or not signature:
            return False
        now = now or datetime.now(timezone.utc)
        if expires <= now.timestamp():
            return False
        return hmac.compare_digest(self._signature(identifier, expires), signature)

    def open(self, identifier: str) -> tuple[bytes, str]:
        """
        Read an asset's bytes.

        Returns:
            (data, content_type)

        Raises:
            AssetNotFoundError: If the asset doesn't exist.
        """
        tier, name = self._split(identifier)
        path = self._tier_dir(tier) / name
        if not path.is_file():
            raise AssetNotFoundError(identifier)
        content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        return path.read_bytes(), content_type
