"""
User record stored by the credential store.

A user record holds two independent password artifacts: an Argon2id hash used
for authentication and a reversible secret envelope from which the original
password can be recovered server-side. Records are keyed by email.
"""

import base64
import binascii
import json
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional

from models.timestamps import parse_iso, to_iso


def _decode_envelope(raw: Any) -> Optional[bytes]:
    """Decode a stored envelope, accepting base64 text or a legacy list of byte values."""
    if raw is None:
        return None
    if isinstance(raw, list):
        try:
            return bytes(raw)
        except (TypeError, ValueError):
            return None
    if isinstance(raw, str):
        try:
            return base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError):
            return None
    return None


class UserRecord(NamedTuple):
    """
    Immutable view of one account.

    Attributes:
        uuid: Opaque account identifier, assigned once at registration
        email: Normalized email, the record's key
        password_hash: Argon2id hash of the password
        secret_envelope: salt(16) | iv(12) | ciphertext of the password, or None
        created_at: Registration timestamp
        password_reset_at: Timestamp of the last password reset
    """
    uuid: str
    email: str
    password_hash: str
    secret_envelope: Optional[bytes]
    created_at: Optional[datetime] = None
    password_reset_at: Optional[datetime] = None

    def to_json(self) -> str:
        payload: Dict[str, Any] = {
            'uuid': self.uuid,
            'email': self.email,
            'passwordHash': self.password_hash,
            'secretEnvelope': (
                base64.b64encode(self.secret_envelope).decode('ascii')
                if self.secret_envelope is not None else None
            ),
            'createdAt': to_iso(self.created_at),
        }
        if self.password_reset_at is not None:
            payload['passwordResetAt'] = to_iso(self.password_reset_at)
        return json.dumps(payload)

    @classmethod
    def from_json(cls, email: str, raw: str) -> 'UserRecord':
        """
        Build a record from its stored JSON.

        Older records used 'password' for the hash and 'encryptedPassword'
        (an array of byte values) for the envelope; both are still read.
        """
        data = json.loads(raw)
        password_hash = data.get('passwordHash') or data.get('password') or ''
        envelope_raw = data.get('secretEnvelope', data.get('encryptedPassword'))
        return cls(
            uuid=data['uuid'],
            email=data.get('email') or email,
            password_hash=password_hash,
            secret_envelope=_decode_envelope(envelope_raw),
            created_at=parse_iso(data.get('createdAt')),
            password_reset_at=parse_iso(data.get('passwordResetAt')),
        )

    def __repr__(self) -> str:
        has_envelope = "sealed" if self.secret_envelope else "no-envelope"
        return f"<UserRecord(uuid='{self.uuid}', email='{self.email}', {has_envelope})>"
