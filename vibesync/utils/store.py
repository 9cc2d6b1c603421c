"""
Session storage for VibeSync.
A session record is stored as one opaque blob keyed by its code.
There is no compare-and-swap: callers read the whole record, change it, and
write the whole record back, so concurrent writers can lose updates.
"""

import json
import logging
from time import time

import redis
from flask_caching.backends import SimpleCache

from vibesync.utils.errors import StorageError

logger = logging.getLogger(__name__)

SESSION_PREFIX = "vibesync:session:"


def session_key(code):
    """Storage key for a session code (codes are case-insensitive)"""
    return f"{SESSION_PREFIX}{code.strip().upper()}"


class SessionStore:
    """Contract shared by every session backend"""

    default_ttl = None

    def get(self, code):
        raise NotImplementedError

    def set(self, code, session, ttl=None):
        raise NotImplementedError

    def delete(self, code):
        raise NotImplementedError


class SessionCache(SimpleCache):
    """SimpleCache that only ever drops expired records.

    Past the threshold the stock cache also evicts the oldest live entries;
    here the threshold only triggers a sweep of expired ones.
    """

    def _prune(self):
        if self._over_threshold():
            self._remove_expired(time())


class MemorySessionStore(SessionStore):
    """In-process store for single-instance deployments and tests.

    A record is gone once it is older than its timeout or deleted, never
    because the store is full. Values are pickled, so every get returns a copy.
    """

    def __init__(self, default_ttl=86400, threshold=1000):
        self.default_ttl = default_ttl
        self.cache = SessionCache(threshold=threshold, default_timeout=default_ttl)

    def get(self, code):
        if not code:
            return None
        return self.cache.get(session_key(code))

    def set(self, code, session, ttl=None):
        if not self.cache.set(session_key(code), session, timeout=ttl or self.default_ttl):
            raise StorageError("Failed to save session - storage error")

    def delete(self, code):
        if not code:
            return False
        return bool(self.cache.delete(session_key(code)))


class RedisSessionStore(SessionStore):
    """Networked store for multi-instance deployments; Redis enforces the TTL"""

    def __init__(self, client, default_ttl=86400):
        self.client = client
        self.default_ttl = default_ttl

    def get(self, code):
        if not code:
            return None
        try:
            raw = self.client.get(session_key(code))
        except redis.RedisError as e:
            logger.error(f"Redis get failed for {session_key(code)}: {e}")
            raise StorageError("Session storage unavailable") from e

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Corrupt session record at {session_key(code)}: {e}")
            raise StorageError("Session record unreadable") from e

    def set(self, code, session, ttl=None):
        try:
            self.client.setex(session_key(code), ttl or self.default_ttl, json.dumps(session))
        except redis.RedisError as e:
            logger.error(f"Redis set failed for {session_key(code)}: {e}")
            raise StorageError("Failed to save session - storage error") from e

    def delete(self, code):
        if not code:
            return False
        try:
            return self.client.delete(session_key(code)) > 0
        except redis.RedisError as e:
            logger.error(f"Redis delete failed for {session_key(code)}: {e}")
            raise StorageError("Session storage unavailable") from e
