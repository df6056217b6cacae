"""
Key-value entry model for database operations.

This module defines the KvEntry model, the single table behind every store in
the identity service. Each row is addressed by (namespace, key) and may carry
an expiry; expired rows are treated as absent by the store.
"""

from datetime import datetime
from typing import Optional
from db.database import db
from models.timestamps import utcnow, ensure_aware


class KvEntry(db.Model):
    """
    One value stored under a namespaced key.

    Attributes:
        namespace (str): Logical store name ('users', 'token_blacklist', ...)
        key (str): Unique key within the namespace
        value (str): Serialized JSON payload
        created_at (datetime): Timestamp of the last write
        expires_at (datetime, optional): When the entry stops being visible
    """
    __tablename__ = 'kv_entries'

    namespace = db.Column(db.String(64), primary_key=True)
    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True once the entry's TTL has elapsed."""
        if self.expires_at is None:
            return False
        now = now or utcnow()
        return ensure_aware(self.expires_at) <= now

    def __repr__(self) -> str:
        expiry = self.expires_at.isoformat() if self.expires_at else "never"
        return f"<KvEntry(namespace='{self.namespace}', key='{self.key[:12]}...', expires={expiry})>"
