"""Write-once cache of rendered QR images, keyed by qrcodeId."""

import logging

from auth.session import KeyValueStore

logger = logging.getLogger(__name__)


class QRImageCache:
    """Rendered images live for one "browser session" (ttl_seconds).

    A key is written at most once, so concurrent readers never see it
    change under them.
    """

    KEY_PREFIX = "wxacode_"

    def __init__(self, store: KeyValueStore, ttl_seconds: int = 1800):
        self._store = store
        self._ttl = ttl_seconds

    def key(self, qrcode_id: str) -> str:
        return f"{self.KEY_PREFIX}{qrcode_id}"

    def get(self, qrcode_id: str) -> str | None:
        return self._store.get(self.key(qrcode_id))

    def put(self, qrcode_id: str, image_base64: str) -> bool:
        """Store image unless already cached. Returns True if written."""
        written = self._store.set_if_absent(self.key(qrcode_id), image_base64, self._ttl)
        if not written:
            logger.debug(f"Image for {qrcode_id} already cached")
        return written
