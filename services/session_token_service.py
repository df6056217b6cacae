"""
Session token service.

Session tokens are HS256 JWTs carrying the account uuid and email. They are
not stored; the only server-side state is the revocation blacklist, whose
entries expire through the store's TTL.

Token lifecycle: Issued -> Valid until expiry, or Revoked, or Expired.
Revoked and Expired are terminal.
"""

import json
import logging
import uuid as uuid_lib
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional, Tuple

import jwt

from db.kv_store import KeyValueStore
from models.timestamps import to_iso, utcnow
from utils.audit_logger import audit_logger
from utils.crypto_utils import fingerprint_token
from utils.error_handling import AuthenticationError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(days=90)
DEFAULT_BLACKLIST_TTL_SECONDS = 24 * 60 * 60


class SessionClaims(NamedTuple):
    """Verified claims of a session token."""
    uuid: str
    email: str
    issued_at: datetime
    expires_at: datetime


class SessionTokenService:
    """
    Issues, verifies, refreshes and revokes session tokens.

    Methods:
        issue: Sign a new token for an account
        verify: Check signature and expiry, returning claims or None
        is_revoked: Check the blacklist
        authenticate: verify + is_revoked, raising on failure
        refresh: Revoke a valid token and issue its replacement
        revoke: Blacklist a token
    """

    def __init__(
        self,
        signing_key: bytes,
        blacklist: KeyValueStore,
        token_ttl: timedelta = DEFAULT_TOKEN_TTL,
        blacklist_ttl_seconds: int = DEFAULT_BLACKLIST_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.signing_key = signing_key
        self.blacklist = blacklist
        self.token_ttl = token_ttl
        self.blacklist_ttl_seconds = blacklist_ttl_seconds
        self._clock = clock

    def issue(self, uuid: str, email: str) -> str:
        """
        Build and sign a claim set with a fixed expiry.

        Each token gets a random jti, so two tokens issued for the same account
        in the same second are still different strings.
        """
        now = self._clock()
        payload = {
            'uuid': uuid,
            'email': email,
            'iat': now,
            'exp': now + self.token_ttl,
            'jti': uuid_lib.uuid4().hex,
        }
        return jwt.encode(payload, self.signing_key, algorithm=JWT_ALGORITHM)

    def verify(self, token: Optional[str]) -> Optional[SessionClaims]:
        """
        Check a token's signature and expiry.

        Expiry is judged against the service clock rather than wall time, so
        issue and verify agree on what "now" is.

        Returns:
            SessionClaims on success, None on any failure (including malformed
            claims). Never raises.
        """
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token,
                self.signing_key,
                algorithms=[JWT_ALGORITHM],
                options={'require': ['exp', 'iat'], 'verify_exp': False, 'verify_iat': False},
            )
        except jwt.InvalidTokenError as e:
            logger.debug("Session token failed verification: %s", type(e).__name__)
            return None

        uuid = payload.get('uuid')
        email = payload.get('email')
        if not isinstance(uuid, str) or not isinstance(email, str) or not uuid or not email:
            return None
        try:
            issued_at = datetime.fromtimestamp(payload['iat'], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload['exp'], tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return None
        if expires_at <= self._clock():
            logger.debug("Session token failed verification: expired")
            return None
        return SessionClaims(uuid=uuid, email=email, issued_at=issued_at, expires_at=expires_at)

    def is_revoked(self, token: str) -> bool:
        """Return True while a blacklist entry for token exists."""
        return self.blacklist.get(fingerprint_token(token)) is not None

    def revoke(self, token: str, reason: str = 'revoked') -> None:
        """
        Add a token to the blacklist. Revoking twice is harmless.

        The entry lives for the configured blacklist TTL, extended to the
        token's own remaining lifetime when that is longer, so a revoked token
        can never become valid again.
        """
        if not token:
            return
        ttl_seconds = self.blacklist_ttl_seconds
        claims = self.verify(token)
        if claims is not None:
            remaining = int((claims.expires_at - self._clock()).total_seconds()) + 1
            ttl_seconds = max(ttl_seconds, remaining)
        entry = json.dumps({'reason': reason, 'revokedAt': to_iso(self._clock())})
        self.blacklist.put(fingerprint_token(token), entry, ttl_seconds=ttl_seconds)
        audit_logger.log_token_revoked(claims.uuid if claims else None, reason)

    def authenticate(self, token: Optional[str]) -> SessionClaims:
        """
        Return the claims of a usable token.

        Raises:
            AuthenticationError: Token missing, revoked, or failing verify
        """
        if not token:
            raise AuthenticationError('No session token provided')
        if self.is_revoked(token):
            audit_logger.log_token_rejected('revoked')
            raise AuthenticationError('Session token has been revoked')
        claims = self.verify(token)
        if claims is None:
            audit_logger.log_token_rejected('invalid')
            raise AuthenticationError('Session token is invalid or expired')
        return claims

    def refresh(self, token: Optional[str]) -> Tuple[str, SessionClaims]:
        """
        Exchange a usable token for a new one bound to the same account.

        The old token is blacklisted before the new one is issued. uuid and
        email are taken from the verified old token, never from request input.

        Returns:
            (new_token, claims of the old token)

        Raises:
            AuthenticationError: Token missing, revoked, or failing verify
        """
        claims = self.authenticate(token)
        self.revoke(token, reason='refreshed')
        return self.issue(claims.uuid, claims.email), claims
