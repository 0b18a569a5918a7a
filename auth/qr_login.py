"""QR sign-in orchestration: initiator -> poller -> adopter.

At most one attempt is active per service. Starting a new attempt always
cancels the previous one first, and every way an attempt can end early
(user cancel, page teardown, another flow signing in) goes through
LoginAttempt.cancel().
"""

import logging
import threading
from typing import Callable

from auth.adopter import SessionAdopter
from auth.config import QRLoginConfig
from auth.exceptions import AuthError, QRGenerateError, QRRenderError
from auth.initiator import QRSessionInitiator
from auth.poller import Poller
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionStore
from auth.types import (
    LoginSession,
    PollOutcome,
    PollState,
    QRCheckResult,
    QRStatus,
    Session,
)
from clients.user_center_client import UserCenterClient
from utils.timezone import to_epoch_millis

logger = logging.getLogger(__name__)

# What the front-end should prompt for in each poll state
_PROMPTS = {
    PollState.PENDING: "scan",
    PollState.SCANNED_AWAITING_CONFIRM: "confirm",
    PollState.DONE: "success",
    PollState.DONE_TIMEOUT: "expired",
    PollState.DONE_CANCELLED: "cancelled",
}


class LoginAttempt:
    """One displayed QR code and the poller watching it."""

    def __init__(self, login_session: LoginSession, poller: Poller):
        self.login_session = login_session
        self.poller = poller
        self.session: Session | None = None
        self.error: AuthError | None = None
        self._done = threading.Event()

    @property
    def qrcode_id(self) -> str:
        return self.login_session.qrcode_id

    @property
    def state(self) -> PollState:
        return self.poller.state

    @property
    def outcome(self) -> PollOutcome | None:
        return self.poller.outcome

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> None:
        """Idempotent; covers both explicit cancel and teardown."""
        self.poller.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the outcome has been handled. Returns False on timeout."""
        return self._done.wait(timeout)

    def view(self) -> dict:
        """Display-ready snapshot for the front-end."""
        expire_at = self.login_session.expire_at
        data = {
            "qrcodeId": self.qrcode_id,
            "expireAt": to_epoch_millis(expire_at) if expire_at else None,
            "state": self.state.value,
            "status": self.login_session.status.value,
            "prompt": _PROMPTS[self.state],
            "ticks": self.poller.ticks,
        }
        if self.error is not None:
            data["error"] = str(self.error)
        if self.session is not None:
            data["userId"] = self.session.user.id
        return data

    def mark_done(self) -> None:
        self._done.set()


class QRLoginService:
    """Start, track and cancel QR sign-in attempts."""

    def __init__(
        self,
        initiator: QRSessionInitiator,
        client: UserCenterClient,
        adopter: SessionAdopter,
        store: SessionStore,
        config: QRLoginConfig,
        security_logger: SecurityLogger,
        poller_factory: Callable[..., Poller] = Poller,
    ):
        self._initiator = initiator
        self._client = client
        self._adopter = adopter
        self._store = store
        self._config = config
        self._security_logger = security_logger
        self._poller_factory = poller_factory
        self._lock = threading.Lock()
        self._current: LoginAttempt | None = None

    @property
    def current(self) -> LoginAttempt | None:
        return self._current

    def get_attempt(self, qrcode_id: str) -> LoginAttempt | None:
        attempt = self._current
        if attempt is not None and attempt.qrcode_id == qrcode_id:
            return attempt
        return None

    def start(self, background: bool = True) -> LoginAttempt:
        """Cancel any active attempt, create a session and start polling it.

        With ``background=False`` the poll runs in the calling thread and
        this returns once the attempt has finished.

        Raises:
            QRGenerateError, QRRenderError: no session to poll; nothing started
        """
        self.cancel()

        try:
            login_session = self._initiator.create_session()
        except (QRGenerateError, QRRenderError) as e:
            self._security_logger.log(
                SecurityEvent.QR_GENERATE_FAILED, details={"error": str(e)}
            )
            raise

        self._security_logger.log(SecurityEvent.QR_GENERATED, qrcode_id=login_session.qrcode_id)

        attempt_ref: list[LoginAttempt] = []
        poller = self._poller_factory(
            check=lambda: self._check(login_session.qrcode_id),
            is_success=lambda result: result.status is QRStatus.CONFIRMED,
            is_progress=lambda result: result.status is QRStatus.SCANNED,
            interval_seconds=self._config.poll_interval_seconds,
            timeout_seconds=self._config.poll_timeout_seconds,
            should_cancel=self._store.is_authenticated,
            on_state_change=lambda state: self._on_state_change(attempt_ref[0], state),
            name=f"qr-poll-{login_session.qrcode_id}",
        )
        attempt = LoginAttempt(login_session, poller)
        attempt_ref.append(attempt)

        # Whatever this replaces is cancelled, even an attempt started concurrently
        with self._lock:
            previous = self._current
            self._current = attempt
        if previous is not None:
            previous.cancel()

        if background:
            poller.start(on_complete=lambda outcome: self._complete(attempt, outcome))
        else:
            self._complete(attempt, poller.run())
        return attempt

    def cancel(self) -> None:
        """Cancel the active attempt, if any. Safe to call repeatedly."""
        with self._lock:
            attempt = self._current
        if attempt is not None and not attempt.finished:
            attempt.cancel()

    def _check(self, qrcode_id: str) -> QRCheckResult:
        data = self._client.check_qr(qrcode_id, timeout=self._config.check_timeout_seconds)
        return QRCheckResult.model_validate(data)

    def _on_state_change(self, attempt: LoginAttempt, state: PollState) -> None:
        qrcode_id = attempt.qrcode_id
        if state is PollState.SCANNED_AWAITING_CONFIRM:
            attempt.login_session.status = QRStatus.SCANNED
            self._security_logger.log(SecurityEvent.QR_SCANNED, qrcode_id=qrcode_id)
        elif state is PollState.DONE_TIMEOUT:
            attempt.login_session.status = QRStatus.EXPIRED
            self._security_logger.log(SecurityEvent.QR_TIMEOUT, qrcode_id=qrcode_id)
        elif state is PollState.DONE_CANCELLED:
            self._security_logger.log(SecurityEvent.QR_CANCELLED, qrcode_id=qrcode_id)
        if state.is_terminal and state is not PollState.DONE:
            attempt.mark_done()

    def _complete(self, attempt: LoginAttempt, outcome: PollOutcome) -> None:
        """Consume the terminal outcome; adopts at most once per attempt."""
        try:
            if outcome.state is not PollState.DONE:
                return

            result: QRCheckResult = outcome.result
            credential = result.credential()
            attempt.login_session.status = QRStatus.CONFIRMED
            attempt.login_session.credential = credential
            self._security_logger.log(SecurityEvent.QR_CONFIRMED, qrcode_id=attempt.qrcode_id)

            try:
                attempt.session = self._adopter.adopt(credential)
            except AuthError as e:
                logger.error(f"QR credential for {attempt.qrcode_id} not adopted: {e}")
                attempt.error = e
        finally:
            attempt.mark_done()
