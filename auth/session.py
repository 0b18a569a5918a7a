"""Authenticated session store.

One SessionStore per process, built by the app factory and injected
wherever the session is read or written. The persisted copy lives in a
key/value store (ValkeyClient or MemoryStore) under fixed keys; presence of
both token and user is what "authenticated" means.
"""

import logging
import threading
from typing import Callable, Protocol

from pydantic import ValidationError

from auth.exceptions import NotAuthenticatedError
from auth.types import Session, User

logger = logging.getLogger(__name__)

Listener = Callable[[Session | None], None]


class KeyValueStore(Protocol):
    """Surface shared by ValkeyClient and MemoryStore."""

    def get(self, key: str) -> str | None: ...

    def set_if_absent(self, key: str, value: str, expire_seconds: int | None = None) -> bool: ...

    def set_many(self, values: dict[str, str], delete: tuple[str, ...] = ()) -> None: ...

    def delete_many(self, *keys: str) -> int: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


class SessionStore:
    """Observable holder of the current Session.

    Mutation is last-writer-wins: set_state persists the new value, swaps
    it in, then notifies every listener synchronously in registration order.
    UI-facing code only reads and subscribes.
    """

    TOKEN_KEY = "almond_token"
    USER_KEY = "almond_user"
    REFRESH_TOKEN_KEY = "almond_refresh_token"

    def __init__(self, storage: KeyValueStore):
        self._storage = storage
        self._state: Session | None = None
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    def get_state(self) -> Session | None:
        return self._state

    def get_token(self) -> str | None:
        state = self._state
        return state.token if state else None

    def get_user(self) -> User | None:
        state = self._state
        return state.user if state else None

    def is_authenticated(self) -> bool:
        state = self._state
        return bool(state and state.token and state.user)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener. Returns a callable that unsubscribes it (safe to call twice)."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def set_state(self, session: Session) -> None:
        """Persist and swap in session, then notify listeners.

        If persistence raises, the in-memory value is unchanged and no
        listener is called.
        """
        with self._lock:
            self._persist(session)
            self._state = session
            self._notify(session)

    def update_user(self, user: User) -> Session:
        """Replace the current user, keeping token and refresh token.

        Raises:
            NotAuthenticatedError: No current session.
        """
        with self._lock:
            current = self._state
            if current is None:
                raise NotAuthenticatedError()
            updated = current.model_copy(update={"user": user})
            self.set_state(updated)
            return updated

    def clear(self) -> None:
        """Drop the session (logout). Safe to call when already empty."""
        with self._lock:
            self._storage.delete_many(self.TOKEN_KEY, self.USER_KEY, self.REFRESH_TOKEN_KEY)
            self._state = None
            self._notify(None)

    def restore(self) -> Session | None:
        """Load the persisted session at startup.

        A user record that does not parse is treated as corrupt: storage is
        cleared and the store stays empty. Listeners are not notified;
        nobody has subscribed yet at startup.
        """
        token = self._storage.get(self.TOKEN_KEY)
        user_data = self._storage.get(self.USER_KEY)
        if not token or not user_data:
            return None

        try:
            user = User.model_validate_json(user_data)
        except ValidationError as e:
            logger.error(f"Failed to parse persisted user, clearing storage: {e}")
            self._storage.delete_many(self.TOKEN_KEY, self.USER_KEY, self.REFRESH_TOKEN_KEY)
            return None

        session = Session(
            token=token,
            refresh_token=self._storage.get(self.REFRESH_TOKEN_KEY) or "",
            user=user,
        )
        with self._lock:
            self._state = session
        logger.info(f"Session restored for user {user.id}")
        return session

    def _persist(self, session: Session) -> None:
        values = {
            self.TOKEN_KEY: session.token,
            self.USER_KEY: session.user.model_dump_json(),
        }
        delete: tuple[str, ...] = ()
        if session.refresh_token:
            values[self.REFRESH_TOKEN_KEY] = session.refresh_token
        else:
            delete = (self.REFRESH_TOKEN_KEY,)
        self._storage.set_many(values, delete=delete)

    def _notify(self, session: Session | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.exception(
                    "Session listener %s failed",
                    getattr(listener, "__name__", repr(listener)),
                )
