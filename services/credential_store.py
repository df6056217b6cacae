"""
Credential store for user records.

This module provides the CredentialStore class which owns the per-email user
record: the Argon2id password hash used for authentication and the secret
envelope from which the plaintext password is recovered for the client's
local key derivation. Every mutation is a single put of a complete record.
"""

import logging
import uuid as uuid_lib
from datetime import datetime
from typing import Callable, Optional, Sequence

from db.kv_store import KeyValueStore
from models.timestamps import utcnow
from models.user_record import UserRecord
from services.auth_service import hash_password, verify_password
from utils.audit_logger import audit_logger
from utils.crypto_utils import SecretEnvelopeCipher
from utils.error_handling import (
    AuthenticationError,
    DecryptionError,
    InternalError,
    ResourceConflictError,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Service class for user credential records.

    Methods:
        register: Create a record for a new email
        authenticate: Verify email and password, return the record
        recover_secret: Open the envelope, repairing it from a known password if needed
        reseal: Replace the envelope with one sealed under the current passphrase
        rotate_password: Replace both hash and envelope
        delete: Remove the record
    """

    def __init__(
        self,
        store: KeyValueStore,
        cipher: SecretEnvelopeCipher,
        envelope_passphrase: str,
        legacy_passphrases: Sequence[str] = (),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cipher = cipher
        self.envelope_passphrase = envelope_passphrase
        self.legacy_passphrases = tuple(legacy_passphrases)
        self._clock = clock

    def find(self, email: str) -> Optional[UserRecord]:
        """Return the record for email, or None."""
        raw = self.store.get(email)
        if raw is None:
            return None
        return UserRecord.from_json(email, raw)

    def get(self, email: str) -> UserRecord:
        """Return the record for email or raise ResourceNotFoundError."""
        record = self.find(email)
        if record is None:
            raise ResourceNotFoundError('User not found')
        return record

    def _save(self, record: UserRecord) -> None:
        self.store.put(record.email, record.to_json())

    def register(self, email: str, password: str) -> UserRecord:
        """
        Create a new user record.

        The existence check is a cheap early exit; the conditional write is
        what actually guarantees one record per email when two registrations
        race.

        Raises:
            ResourceConflictError: If a record already exists for email
        """
        if self.store.get(email) is not None:
            raise ResourceConflictError('User already exists')

        record = UserRecord(
            uuid=str(uuid_lib.uuid4()),
            email=email,
            password_hash=hash_password(password),
            secret_envelope=self.cipher.seal(password, self.envelope_passphrase),
            created_at=self._clock(),
        )
        if not self.store.put_if_absent(email, record.to_json()):
            raise ResourceConflictError('User already exists')

        logger.info("Registered account %s", record.uuid)
        return record

    def authenticate(self, email: str, password: str) -> UserRecord:
        """
        Verify credentials and return the stored record.

        Raises:
            AuthenticationError: Unknown email or wrong password
        """
        record = self.find(email)
        if record is None or not verify_password(password, record.password_hash):
            raise AuthenticationError('Invalid credentials')
        return record

    def _open_envelope(self, record: UserRecord) -> tuple:
        """
        Try the current passphrase, then any legacy passphrases.

        Returns:
            (plaintext, used_legacy_passphrase)

        Raises:
            DecryptionError: If no passphrase opens the envelope
        """
        if record.secret_envelope is None:
            raise DecryptionError('No envelope stored')
        try:
            return self.cipher.open(record.secret_envelope, self.envelope_passphrase), False
        except DecryptionError:
            if not self.legacy_passphrases:
                raise
        for passphrase in self.legacy_passphrases:
            try:
                return self.cipher.open(record.secret_envelope, passphrase), True
            except DecryptionError:
                continue
        raise DecryptionError('Envelope did not open with any configured passphrase')

    def recover_secret(self, record: UserRecord, fallback_plaintext: Optional[str] = None) -> Optional[str]:
        """
        Recover the plaintext password from the record's envelope.

        When the envelope is absent or does not open and fallback_plaintext is
        given (the password just verified at login), the envelope is re-sealed
        from it and the record is saved. The undecryptable old value is
        discarded, never returned. An envelope opened with a legacy passphrase
        is re-sealed under the current one the same way.

        Without a fallback an unusable envelope yields None.

        Raises:
            InternalError: If the repair itself fails
        """
        try:
            plaintext, used_legacy = self._open_envelope(record)
        except DecryptionError as e:
            if fallback_plaintext is None:
                audit_logger.log_envelope_unrecoverable(record.uuid, record.email, reason=e.message)
                return None
            audit_logger.log_envelope_self_heal(record.uuid, record.email, reason=e.message)
            self._reseal_or_fail(record, fallback_plaintext)
            return fallback_plaintext

        if not isinstance(plaintext, str):
            if fallback_plaintext is None:
                audit_logger.log_envelope_unrecoverable(record.uuid, record.email, reason='unexpected payload type')
                return None
            audit_logger.log_envelope_self_heal(record.uuid, record.email, reason='unexpected payload type')
            self._reseal_or_fail(record, fallback_plaintext)
            return fallback_plaintext

        if used_legacy:
            logger.info("Re-sealing legacy envelope for account %s", record.uuid)
            self._reseal_or_fail(record, plaintext)
        return plaintext

    def _reseal_or_fail(self, record: UserRecord, plaintext: str) -> UserRecord:
        try:
            return self.reseal(record, plaintext)
        except Exception as e:
            logger.error("Re-sealing envelope for account %s failed", record.uuid, exc_info=e)
            raise InternalError('Failed to repair stored secret') from e

    def reseal(self, record: UserRecord, plaintext: str) -> UserRecord:
        """Seal plaintext under the current passphrase and save the record."""
        updated = record._replace(
            secret_envelope=self.cipher.seal(plaintext, self.envelope_passphrase)
        )
        self._save(updated)
        return updated

    def rotate_password(self, email: str, new_password: str) -> UserRecord:
        """
        Replace the password hash and envelope for email.

        The uuid is carried over unchanged.

        Raises:
            ResourceNotFoundError: If no record exists for email
        """
        record = self.get(email)
        updated = record._replace(
            password_hash=hash_password(new_password),
            secret_envelope=self.cipher.seal(new_password, self.envelope_passphrase),
            password_reset_at=self._clock(),
        )
        self._save(updated)
        return updated

    def delete(self, email: str) -> None:
        """Delete the record for email. Missing records are ignored."""
        self.store.delete(email)
