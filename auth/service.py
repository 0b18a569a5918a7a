"""Authentication service - e-mail sign-in, registration, logout and profile."""

import logging

from auth.adopter import SessionAdopter, normalize_user
from auth.config import QRLoginConfig
from auth.exceptions import NotAuthenticatedError
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionStore
from auth.types import Session, User, UserSummary
from clients.user_center_client import UserCenterClient, UserCenterError

logger = logging.getLogger(__name__)


class AuthService:
    """Orchestrates the non-QR account flows against the user center.

    Handles:
    - Password login and registration (adopted like a QR credential)
    - Verification code requests
    - Logout
    - Profile updates (nickname/avatar) without changing identity
    """

    def __init__(
        self,
        client: UserCenterClient,
        adopter: SessionAdopter,
        store: SessionStore,
        config: QRLoginConfig,
        security_logger: SecurityLogger,
    ):
        self._client = client
        self._adopter = adopter
        self._store = store
        self._config = config
        self._security_logger = security_logger

    def login(self, email: str, password: str) -> Session:
        """Password login.

        Raises:
            UserCenterError: Rejected credentials or transport failure.
            AdoptionError: Response user has no id.
        """
        email = email.lower().strip()
        try:
            payload = self._client.email_login(
                email, password, timeout=self._config.request_timeout_seconds
            )
        except UserCenterError as e:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED, details={"email": email, "error": e.message}
            )
            raise
        return self._adopter.adopt_auth_response(payload)

    def register(self, nickname: str, email: str, password: str, code: str) -> Session:
        """Register and sign in with the returned credential."""
        email = email.lower().strip()
        payload = self._client.email_register(
            nickname, email, password, code, timeout=self._config.request_timeout_seconds
        )
        return self._adopter.adopt_auth_response(payload)

    def send_verification_code(self, email: str, scene: int = 1) -> None:
        self._client.send_email_code(
            email.lower().strip(), scene=scene, timeout=self._config.request_timeout_seconds
        )

    def logout(self) -> None:
        """Clear the session. Safe to call when signed out."""
        user = self._store.get_user()
        self._store.clear()
        self._security_logger.log(
            SecurityEvent.SESSION_CLEARED, user_id=user.id if user else None
        )

    def update_profile(self, nickname: str | None = None, avatar_url: str | None = None) -> User:
        """Update nickname and/or avatar, then refresh the stored user.

        Raises:
            NotAuthenticatedError: Signed out.
            UserCenterError: Update rejected.
        """
        session = self._store.get_state()
        if session is None:
            raise NotAuthenticatedError()

        current = session.user
        payload = {
            "nickname": nickname if nickname is not None else current.display_name,
            "email": current.email,
            "avatarUrl": avatar_url if avatar_url is not None else (current.avatar_url or ""),
        }
        data = self._client.update_user(
            session.token, payload, timeout=self._config.request_timeout_seconds
        )

        summary = UserSummary.model_validate(data)
        if summary.id is None:
            summary.id = current.id
        if summary.email is None:
            summary.email = current.email
        if summary.nickname is None:
            summary.nickname = current.display_name
        if summary.avatar_url is None and summary.avatar is None:
            summary.avatar_url = current.avatar_url
        user = normalize_user(summary, previous=current)
        self._store.update_user(user)
        self._security_logger.log(SecurityEvent.PROFILE_UPDATED, user_id=user.id)
        return user
