"""Pydantic models for the sign-in domain."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QRStatus(Enum):
    """Where a QR login session stands, as far as the provider reports."""

    PENDING = "pending"
    SCANNED = "scanned"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"


# Numeric status codes returned by the check endpoint
QR_STATUS_PENDING_CODE = 0
QR_STATUS_CONFIRMED_CODE = 2
QR_STATUS_SCANNED_CODE = 3


class UserSummary(BaseModel):
    """User info the provider attaches to a confirmed QR session or login."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | int | None = None
    nickname: str | None = None
    email: str | None = None
    avatar_url: str | None = Field(default=None, alias="avatarUrl")
    avatar: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")


class Credential(BaseModel):
    """A usable credential. Consumed exactly once by the adopter."""

    token: str
    refresh_token: str = ""
    user_summary: UserSummary


class QRCheckResult(BaseModel):
    """One answer from the check endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status_code: int = Field(alias="status")
    token: str | None = None
    user_info: UserSummary | None = Field(default=None, alias="userInfo")

    @property
    def status(self) -> QRStatus:
        """Map the numeric code. Code 2 only counts as confirmed with a token."""
        if self.status_code == QR_STATUS_CONFIRMED_CODE and self.token:
            return QRStatus.CONFIRMED
        if self.status_code == QR_STATUS_SCANNED_CODE:
            return QRStatus.SCANNED
        return QRStatus.PENDING

    def credential(self) -> Credential | None:
        """Credential carried by a confirmed result, else None."""
        if self.status is not QRStatus.CONFIRMED:
            return None
        return Credential(
            token=self.token,
            refresh_token="",
            user_summary=self.user_info or UserSummary(),
        )


class LoginSession(BaseModel):
    """One QR login attempt."""

    qrcode_id: str = Field(..., description="Opaque provider-issued identifier")
    expire_at: datetime | None = Field(
        default=None, description="Provider-declared expiry (informational)"
    )
    qr_image: str = Field(..., description="Base64-encoded PNG")
    status: QRStatus = QRStatus.PENDING
    credential: Credential | None = None


class User(BaseModel):
    """The signed-in user as the application shows it."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    email: str = ""
    avatar_url: str | None = None
    created_at: datetime


class Session(BaseModel):
    """Application-wide authenticated identity."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., description="Bearer token (opaque string)")
    refresh_token: str = ""
    user: User


class PollState(Enum):
    """Poller state machine."""

    PENDING = "pending"
    SCANNED_AWAITING_CONFIRM = "scanned_awaiting_confirm"
    DONE = "done"
    DONE_TIMEOUT = "done_timeout"
    DONE_CANCELLED = "done_cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PollState.DONE, PollState.DONE_TIMEOUT, PollState.DONE_CANCELLED)


class PollOutcome(BaseModel):
    """Terminal result of one poll run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: PollState
    result: Any | None = None
    ticks: int
    elapsed_seconds: float
