"""Sign-in: QR handshake, session store and account flows."""

from auth.exceptions import (
    AuthError,
    QRGenerateError,
    QRRenderError,
    AdoptionError,
    NotAuthenticatedError,
)
from auth.types import (
    QRStatus,
    UserSummary,
    Credential,
    QRCheckResult,
    LoginSession,
    User,
    Session,
    PollState,
    PollOutcome,
)
from auth.config import QRLoginConfig
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionStore
from auth.image_cache import QRImageCache
from auth.initiator import QRSessionInitiator
from auth.poller import Poller
from auth.adopter import SessionAdopter
from auth.qr_login import QRLoginService, LoginAttempt
from auth.service import AuthService
from auth.messages import FriendlyError, friendly_error, retry_suggestion
