"""Sign-in configuration."""

import os
from typing import Literal

from pydantic import BaseModel, Field

EnvVersion = Literal["release", "trial", "develop"]


class QRLoginConfig(BaseModel):
    """
    QR sign-in and user center configuration.

    Durations are in seconds. Defaults match what the production front-end
    used against the user center.
    """

    # User center
    user_center_url: str = Field(
        default="http://localhost:8080",
        description="Origin of the user center (identity provider)",
    )

    # Mini-program code
    app_id: str = Field(
        default="wxe6d828ae0245ab9c",
        description="Mini-program app id the QR code opens",
    )
    env_version: EnvVersion = Field(
        default="trial",
        description="Mini-program channel the code targets",
    )
    target_page: str = Field(
        default="pages/auth/login/login",
        description="Deep-link page encoded into the code",
    )
    image_width: int = Field(default=430, ge=280, le=1280)
    scene: str | None = Field(
        default=None,
        description="Opaque scene string forwarded to generate",
    )

    # Polling
    poll_interval_seconds: float = Field(default=2.0, gt=0, le=60)
    poll_timeout_seconds: float = Field(
        default=300.0,
        description="Absolute ceiling for one attempt, from the first tick",
        gt=0,
        le=3600,
    )

    # Request timeouts
    generate_timeout_seconds: float = Field(default=8.0, gt=0, le=60)
    render_timeout_seconds: float = Field(default=10.0, gt=0, le=60)
    check_timeout_seconds: float = Field(default=8.0, gt=0, le=60)
    request_timeout_seconds: float = Field(default=8.0, gt=0, le=60)

    # Storage
    image_cache_ttl_seconds: int = Field(
        default=1800,
        description="How long rendered images stay cached per qrcodeId",
        ge=60,
    )
    valkey_url: str | None = Field(
        default=None,
        description="Persist session and image cache in Valkey when set",
    )
    storage_prefix: str = Field(default="almond:")

    @classmethod
    def from_env(cls) -> "QRLoginConfig":
        """
        Build config from ALMOND_* environment variables.

        Unset variables keep their defaults. Invalid values raise
        pydantic.ValidationError (fail fast at startup).
        """
        env_map = {
            "user_center_url": "ALMOND_USER_CENTER_URL",
            "app_id": "ALMOND_WXA_APP_ID",
            "env_version": "ALMOND_WXA_ENV",
            "target_page": "ALMOND_WXA_PAGE",
            "valkey_url": "ALMOND_VALKEY_URL",
            "poll_interval_seconds": "ALMOND_POLL_INTERVAL_SECONDS",
            "poll_timeout_seconds": "ALMOND_POLL_TIMEOUT_SECONDS",
        }
        values = {}
        for field, var in env_map.items():
            value = os.getenv(var)
            if value:
                values[field] = value
        return cls(**values)
