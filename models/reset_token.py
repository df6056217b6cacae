"""
Password reset token model.

Reset tokens are random, single-use and short-lived. They are stored under
their own value in the password_reset namespace.
"""

import json
from datetime import datetime
from typing import NamedTuple, Optional

from models.timestamps import parse_iso, to_iso, utcnow


class ResetToken(NamedTuple):
    """A pending password reset for one email."""
    token: str
    email: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def to_json(self) -> str:
        return json.dumps({
            'token': self.token,
            'email': self.email,
            'createdAt': to_iso(self.created_at),
            'expiresAt': to_iso(self.expires_at),
        })

    @classmethod
    def from_json(cls, raw: str) -> 'ResetToken':
        data = json.loads(raw)
        return cls(
            token=data['token'],
            email=data['email'],
            created_at=parse_iso(data['createdAt']),
            expires_at=parse_iso(data['expiresAt']),
        )

    def __repr__(self) -> str:
        return f"<ResetToken(token='{self.token[:6]}...', email='{self.email}', expires='{to_iso(self.expires_at)}')>"
