"""
Valkey (Redis-compatible) client for dashboard sessions and login throttling.

Simple wrapper around redis-py. Every key is namespaced so the dashboard can
share a Valkey instance with other services.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import json
import logging
import os

import redis

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "agenda"


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.set_json("session:abc", {...}, expire_seconds=3600)
        data = client.get_json("session:abc")  # None if missing
    """

    def __init__(self, url: str, namespace: str = DEFAULT_NAMESPACE):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)
            namespace: Prefix prepended to every key

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._namespace = namespace
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info(f"ValkeyClient connected (namespace={namespace})")

    @classmethod
    def from_env(cls) -> "ValkeyClient":
        """
        Connect using VALKEY_URL.

        Raises:
            ValueError: If VALKEY_URL is not set
        """
        url = os.getenv("VALKEY_URL")
        if not url:
            raise ValueError("VALKEY_URL environment variable is required")
        return cls(url, namespace=os.getenv("VALKEY_NAMESPACE", DEFAULT_NAMESPACE))

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """Get value by key. None if the key doesn't exist."""
        return self._client.get(self._key(key))

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        """
        Set key to value, optionally with expiration.

        Args:
            key: Key to set
            value: Value to store
            expire_seconds: TTL in seconds (None for no expiration)
        """
        if expire_seconds is not None:
            self._client.setex(self._key(key), expire_seconds, value)
        else:
            self._client.set(self._key(key), value)

    def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns True if key existed and was deleted, False if key didn't exist.
        """
        return self._client.delete(self._key(key)) > 0

    def ttl(self, key: str) -> int:
        """
        Get remaining TTL in seconds.

        Returns:
            -2 if key doesn't exist
            -1 if key has no expiration
            Positive int: remaining seconds
        """
        return self._client.ttl(self._key(key))

    def expire(self, key: str, seconds: int) -> bool:
        """Set TTL on an existing key. False if the key doesn't exist."""
        return bool(self._client.expire(self._key(key), seconds))

    def incr(self, key: str) -> int:
        """
        Increment key by 1.

        Creates key with value 1 if it doesn't exist.
        Returns the new value.
        """
        return self._client.incr(self._key(key))

    def set_json(self, key: str, value: dict | list, expire_seconds: int | None = None) -> None:
        """Set key to JSON-serialized value."""
        self.set(key, json.dumps(value), expire_seconds)

    def get_json(self, key: str) -> dict | list | None:
        """
        Get and deserialize JSON value.

        Returns None if key doesn't exist.
        Raises ValueError if value is not valid JSON.
        """
        value = self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in key '{key}': {e}")

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
