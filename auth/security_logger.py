"""Security event logging for the sign-in audit trail.

Events go to the ``almond.security`` logger as structured records. The most
recent ones are also kept in memory for the diagnostics route and tests.
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Any

from utils.timezone import now_utc

logger = logging.getLogger("almond.security")


class SecurityEvent(Enum):
    """Sign-in security event types."""

    QR_GENERATED = "qr_generated"
    QR_GENERATE_FAILED = "qr_generate_failed"
    QR_SCANNED = "qr_scanned"
    QR_CONFIRMED = "qr_confirmed"
    QR_TIMEOUT = "qr_timeout"
    QR_CANCELLED = "qr_cancelled"
    SESSION_ADOPTED = "session_adopted"
    SESSION_ADOPTION_FAILED = "session_adoption_failed"
    SESSION_RESTORED = "session_restored"
    SESSION_CLEARED = "session_cleared"
    LOGIN_FAILED = "login_failed"
    PROFILE_UPDATED = "profile_updated"


class SecurityLogger:
    """Append-only security event log with a bounded in-memory tail."""

    def __init__(self, max_events: int = 500):
        self._events: deque[dict[str, Any]] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def log(
        self,
        event: SecurityEvent,
        user_id: str | None = None,
        qrcode_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a security event."""
        record = {
            "event_type": event.value,
            "user_id": user_id,
            "qrcode_id": qrcode_id,
            "details": details,
            "created_at": now_utc(),
        }
        with self._lock:
            self._events.append(record)

        logger.info(
            "%s user_id=%s qrcode_id=%s details=%s",
            event.value,
            user_id,
            qrcode_id,
            details,
        )

    def get_recent_events(
        self,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Most recent events first, optionally filtered by type."""
        with self._lock:
            events = list(self._events)

        if event_type is not None:
            events = [e for e in events if e["event_type"] == event_type.value]

        events.reverse()
        return events[:limit]
