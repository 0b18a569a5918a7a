"""Turn a provider credential into the application's Session."""

import logging
import re

from pydantic import ValidationError

from auth.exceptions import AdoptionError
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionStore
from auth.types import Credential, Session, User, UserSummary
from clients.user_center_client import MalformedResponseError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "用户"

# Backticks, quotes and whitespace the user center sometimes leaves in URLs
_AVATAR_JUNK = re.compile(r"[`\"'\s]")


def clean_avatar_url(url: str | None) -> str | None:
    if not url:
        return None
    return _AVATAR_JUNK.sub("", url) or None


def normalize_user(summary: UserSummary, previous: User | None = None) -> User:
    """Build a User from a provider summary.

    Missing nickname, e-mail and avatar fall back to defaults. created_at
    comes from the summary, else from ``previous`` when it is the same
    user, else now; re-normalizing identical data is therefore stable.

    Raises:
        AdoptionError: summary has no id
    """
    if summary.id is None or str(summary.id).strip() == "":
        raise AdoptionError("User info is missing an id")

    user_id = str(summary.id)

    if summary.created_at is not None:
        created_at = summary.created_at
    elif previous is not None and previous.id == user_id:
        created_at = previous.created_at
    else:
        created_at = now_utc()

    return User(
        id=user_id,
        display_name=summary.nickname or DEFAULT_DISPLAY_NAME,
        email=summary.email or "",
        avatar_url=clean_avatar_url(summary.avatar_url or summary.avatar),
        created_at=created_at,
    )


class SessionAdopter:
    """Commit credentials to the SessionStore.

    Used for every way of signing in: QR confirmation, password login,
    registration. Adopting the same credential twice stores identical data
    twice; listeners hear about both writes.
    """

    def __init__(self, store: SessionStore, security_logger: SecurityLogger):
        self._store = store
        self._security_logger = security_logger

    def adopt(self, credential: Credential) -> Session:
        """Build, persist and broadcast a Session.

        Raises:
            AdoptionError: token or user id missing; the current Session is
                left untouched
        """
        if not credential.token:
            self._security_logger.log(
                SecurityEvent.SESSION_ADOPTION_FAILED, details={"reason": "missing token"}
            )
            raise AdoptionError("Credential is missing a token")

        try:
            user = normalize_user(credential.user_summary, previous=self._store.get_user())
        except AdoptionError:
            self._security_logger.log(
                SecurityEvent.SESSION_ADOPTION_FAILED, details={"reason": "missing user id"}
            )
            raise

        session = Session(
            token=credential.token,
            refresh_token=credential.refresh_token or "",
            user=user,
        )
        self._store.set_state(session)
        self._security_logger.log(SecurityEvent.SESSION_ADOPTED, user_id=user.id)
        logger.info(f"Session adopted for user {user.id}")
        return session

    def adopt_auth_response(self, payload: dict | None) -> Session:
        """Adopt a login/register response ``{token, userInfo, refreshToken?}``.

        Raises:
            MalformedResponseError: token or userInfo absent
            AdoptionError: userInfo without an id
        """
        if not isinstance(payload, dict) or not payload.get("token") or not payload.get("userInfo"):
            logger.error(f"Invalid auth response format: {payload!r}")
            raise MalformedResponseError("登录响应格式错误")

        try:
            summary = UserSummary.model_validate(payload["userInfo"])
        except ValidationError as e:
            raise AdoptionError(f"Malformed user info: {e}") from e

        return self.adopt(
            Credential(
                token=payload["token"],
                refresh_token=payload.get("refreshToken") or "",
                user_summary=summary,
            )
        )
