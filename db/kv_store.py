"""
Namespaced single-key store on top of the kv_entries table.

The identity services only ever need get/put/delete on one key at a time,
plus a conditional insert for registration. Expiry is handled here: an entry
past its expires_at is reported as absent and removed by the read that sees it.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError

from db.session_manager import session_scope
from models.kv_entry import KvEntry
from models.timestamps import utcnow

logger = logging.getLogger(__name__)

# Namespaces used by the services
USERS_NAMESPACE = 'users'
TOKEN_BLACKLIST_NAMESPACE = 'token_blacklist'
PASSWORD_RESET_NAMESPACE = 'password_reset'
DIRECTORY_NAMESPACE = 'directory'


class KeyValueStore:
    """
    Single-key get/put/delete with optional TTL, scoped to one namespace.

    Every method runs in its own transaction, so each call has at most one
    observable effect on the store.
    """

    def __init__(self, namespace: str, clock: Callable[[], datetime] = utcnow):
        self.namespace = namespace
        self._clock = clock

    def _expiry(self, now: datetime, ttl_seconds: Optional[int]) -> Optional[datetime]:
        if ttl_seconds is None:
            return None
        return now + timedelta(seconds=ttl_seconds)

    def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None if absent or expired."""
        with session_scope() as session:
            entry = session.get(KvEntry, (self.namespace, key))
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                session.delete(entry)
                return None
            return entry.value

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Write value under key, replacing any previous value."""
        now = self._clock()
        with session_scope() as session:
            session.merge(KvEntry(
                namespace=self.namespace,
                key=key,
                value=value,
                created_at=now,
                expires_at=self._expiry(now, ttl_seconds),
            ))

    def put_if_absent(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """
        Write value under key only if no live entry exists.

        The primary key constraint makes this safe against a concurrent writer:
        whichever insert commits second fails and this method returns False.

        Returns:
            bool: True if the value was written, False if the key was taken
        """
        now = self._clock()
        try:
            with session_scope() as session:
                existing = session.get(KvEntry, (self.namespace, key))
                if existing is not None:
                    if not existing.is_expired(now):
                        return False
                    session.delete(existing)
                    session.flush()
                session.add(KvEntry(
                    namespace=self.namespace,
                    key=key,
                    value=value,
                    created_at=now,
                    expires_at=self._expiry(now, ttl_seconds),
                ))
        except IntegrityError:
            logger.info("Conditional write lost a race in namespace %s", self.namespace)
            return False
        return True

    def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        with session_scope() as session:
            entry = session.get(KvEntry, (self.namespace, key))
            if entry is not None:
                session.delete(entry)

    def __repr__(self) -> str:
        return f"<KeyValueStore(namespace='{self.namespace}')>"
