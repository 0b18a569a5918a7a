"""Obtain a fresh QR login session and its scannable image."""

import logging

from auth.config import QRLoginConfig
from auth.exceptions import QRGenerateError, QRRenderError
from auth.image_cache import QRImageCache
from auth.types import LoginSession, QRStatus
from clients.user_center_client import UserCenterClient, UserCenterError
from utils.timezone import from_epoch_millis

logger = logging.getLogger(__name__)


class QRSessionInitiator:
    """Generate a session, then render (or reuse) its image.

    Rendering is the expensive call, so images are cached per qrcodeId and
    a repeated qrcodeId never triggers a second render.
    """

    def __init__(self, client: UserCenterClient, cache: QRImageCache, config: QRLoginConfig):
        self._client = client
        self._cache = cache
        self._config = config

    def create_session(
        self,
        app_id: str | None = None,
        target_page: str | None = None,
        image_width: int | None = None,
        environment: str | None = None,
    ) -> LoginSession:
        """Create a PENDING LoginSession.

        Arguments left as None fall back to config.

        Raises:
            QRGenerateError: generate call failed or returned no qrcodeId
            QRRenderError: image render failed or returned no image
        """
        config = self._config
        app_id = app_id or config.app_id

        try:
            generated = self._client.generate_qr(
                app_id,
                scene=config.scene,
                timeout=config.generate_timeout_seconds,
            )
        except UserCenterError as e:
            raise QRGenerateError(e.message) from e

        qrcode_id = str(generated["qrcodeId"])
        image = self._cache.get(qrcode_id)

        if image is None:
            try:
                rendered = self._client.render_wxacode(
                    app_id,
                    qrcode_id,
                    page=target_page or config.target_page,
                    width=image_width or config.image_width,
                    env_version=environment or config.env_version,
                    timeout=config.render_timeout_seconds,
                )
            except UserCenterError as e:
                raise QRRenderError(e.message) from e
            image = rendered["imageBase64"]
            self._cache.put(qrcode_id, image)
        else:
            logger.debug(f"Reusing cached image for {qrcode_id}")

        expire_at = generated.get("expireAt")
        return LoginSession(
            qrcode_id=qrcode_id,
            expire_at=from_epoch_millis(expire_at) if expire_at else None,
            qr_image=image,
            status=QRStatus.PENDING,
        )
