# Password reset service for reset token issue and consumption

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from db.kv_store import KeyValueStore
from models.reset_token import ResetToken
from models.timestamps import utcnow
from models.user_record import UserRecord
from services.credential_store import CredentialStore
from utils.crypto_utils import generate_reset_token
from utils.error_handling import ResourceNotFoundError, TokenExpiredError, ValidationError
from utils.security_utils import validate_password

logger = logging.getLogger(__name__)

DEFAULT_RESET_TTL = timedelta(hours=24)
# Rows outlive expires_at by this much so consume_reset can report them as expired
RESET_ROW_GRACE = timedelta(hours=1)


class PasswordResetService:
    """
    Service for password reset tokens.
    Issues short-lived single-use tokens and rotates credentials when one is consumed.
    """

    def __init__(
        self,
        store: KeyValueStore,
        credentials: CredentialStore,
        token_ttl: timedelta = DEFAULT_RESET_TTL,
        password_min_length: int = 12,
        password_max_length: int = 128,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.credentials = credentials
        self.token_ttl = token_ttl
        self.password_min_length = password_min_length
        self.password_max_length = password_max_length
        self._clock = clock

    def request_reset(self, email: str) -> Optional[ResetToken]:
        """
        Create a reset token for email.
        Returns None when no account exists; callers must answer both cases identically.
        """
        if self.credentials.find(email) is None:
            logger.info("Password reset requested for unknown email")
            return None

        now = self._clock()
        reset = ResetToken(
            token=generate_reset_token(),
            email=email,
            created_at=now,
            expires_at=now + self.token_ttl,
        )
        row_ttl = self.token_ttl + RESET_ROW_GRACE
        self.store.put(reset.token, reset.to_json(), ttl_seconds=int(row_ttl.total_seconds()))
        return reset

    def consume_reset(self, token: str, new_password: str) -> UserRecord:
        """
        Rotate the password of the account a reset token belongs to.
        The token is deleted before the rotation, so it can never be used twice.
        """
        valid, error = validate_password(
            new_password,
            min_length=self.password_min_length,
            max_length=self.password_max_length,
        )
        if not valid:
            raise ValidationError(error)

        raw = self.store.get(token) if token else None
        if raw is None:
            raise ResourceNotFoundError('Reset token is invalid or has already been used')

        reset = ResetToken.from_json(raw)
        if reset.is_expired(self._clock()):
            self.store.delete(token)
            raise TokenExpiredError('Reset token has expired')

        self.store.delete(token)
        return self.credentials.rotate_password(reset.email, new_password)
