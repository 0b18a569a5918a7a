"""
Valkey (Redis-compatible) client for the persisted session and QR image cache.

Simple wrapper around redis-py. Connection URL from ALMOND_VALKEY_URL.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0", prefix="almond:")
        client.set_if_absent("wxacode_q1", image, expire_seconds=1800)
        value = client.get("almond_token")  # Returns None if missing

    Every key is namespaced with ``prefix`` so several deployments can
    share one Valkey instance.
    """

    def __init__(self, url: str, prefix: str = ""):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)
            prefix: Namespace prepended to every key

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._prefix = prefix
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """
        Get value by key.

        Returns None if key doesn't exist (not an error).
        Raises on connection failure.
        """
        return self._client.get(self._key(key))

    def set_if_absent(self, key: str, value: str, expire_seconds: int | None = None) -> bool:
        """
        Set key only if it does not exist yet.

        Returns True if the value was written, False if the key was already set.
        """
        return bool(self._client.set(self._key(key), value, nx=True, ex=expire_seconds))

    def set_many(self, values: dict[str, str], delete: tuple[str, ...] = ()) -> None:
        """
        Set several keys and delete others in one MULTI/EXEC transaction.

        Readers never observe a partial write, and a failed transaction
        leaves every key as it was.
        """
        with self._client.pipeline(transaction=True) as pipe:
            for key, value in values.items():
                pipe.set(self._key(key), value)
            if delete:
                pipe.delete(*(self._key(k) for k in delete))
            pipe.execute()

    def delete_many(self, *keys: str) -> int:
        """Delete several keys at once. Returns how many existed."""
        if not keys:
            return 0
        return self._client.delete(*(self._key(k) for k in keys))

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
