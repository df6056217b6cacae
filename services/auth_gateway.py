"""
Auth gateway.

Composes the credential store, session tokens, password resets and
directory associations into the operations served over HTTP. Each operation
validates its input, delegates to the services and maps every failure to the
standard error shape; nothing raised by a service crosses this boundary.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional

from db.kv_store import (
    DIRECTORY_NAMESPACE,
    PASSWORD_RESET_NAMESPACE,
    TOKEN_BLACKLIST_NAMESPACE,
    USERS_NAMESPACE,
    KeyValueStore,
)
from models.user_record import UserRecord
from services.credential_store import CredentialStore
from services.directory_association_service import DirectoryAssociationStore
from services.password_reset_service import PasswordResetService
from services.session_token_service import SessionClaims, SessionTokenService
from utils.audit_logger import AuditEventType, audit_logger
from utils.crypto_utils import (
    SecretEnvelopeCipher,
    derive_envelope_passphrase,
    derive_token_signing_key,
)
from utils.error_handling import (
    AuthenticationError,
    AuthorizationError,
    IdentityServiceError,
    ResourceNotFoundError,
    ValidationError,
    create_error_response,
    create_success_response,
)
from utils.security_utils import (
    normalize_email,
    validate_directory_path,
    validate_email,
    validate_password,
)

logger = logging.getLogger(__name__)

ResetLinkSender = Callable[[str, str], None]

RESET_REQUESTED_MESSAGE = 'If an account exists for that email, a reset link has been sent'


class GatewayResponse(NamedTuple):
    """
    Result of a gateway operation.

    session_token is set when the transport should store a new session;
    clear_session asks it to drop the current one.
    """
    body: Dict[str, Any]
    status_code: int
    session_token: Optional[str] = None
    clear_session: bool = False


def _success(data=None, message='Operation successful', status_code=200, **kwargs) -> GatewayResponse:
    body, status = create_success_response(data, message, status_code)
    return GatewayResponse(body, status, **kwargs)


def _failure(error: Exception, user_id: Optional[str] = None, email: Optional[str] = None,
             clear_session: bool = False) -> GatewayResponse:
    body, status = create_error_response(error, user_id=user_id, email=email)
    return GatewayResponse(body, status, clear_session=clear_session)


def _identity(record: UserRecord, password: Optional[str] = None, include_password: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {'uuid': record.uuid, 'email': record.email}
    if include_password:
        data['password'] = password
    return data


class AuthGateway:
    """
    Request-facing operations of the identity service.

    Methods:
        register, login, logout, delete_account: account lifecycle
        refresh, invalidate, auto_login: session lifecycle
        migrate_user: re-seal a stored secret under the current passphrase
        request_reset, reset_password: password recovery
        associate_directory, get_directory, current_directory, remove_directory:
            last-used directory of the caller's own account
    """

    def __init__(
        self,
        credentials: CredentialStore,
        tokens: SessionTokenService,
        resets: PasswordResetService,
        directories: DirectoryAssociationStore,
        reset_link_sender: Optional[ResetLinkSender] = None,
        password_min_length: int = 12,
        password_max_length: int = 128,
        email_max_length: int = 254,
        directory_path_max_length: int = 4096,
    ):
        self.credentials = credentials
        self.tokens = tokens
        self.resets = resets
        self.directories = directories
        self.reset_link_sender = reset_link_sender
        self.password_min_length = password_min_length
        self.password_max_length = password_max_length
        self.email_max_length = email_max_length
        self.directory_path_max_length = directory_path_max_length

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'AuthGateway':
        """
        Build a gateway and its services from a Flask config mapping.

        The token signing key and the envelope passphrase are both derived
        from SECRET_KEY; the raw root secret is only tried as a legacy
        envelope passphrase when ENVELOPE_ACCEPT_ROOT_SECRET is set.
        """
        root_secret = config['SECRET_KEY']
        cipher = SecretEnvelopeCipher(iterations=config.get('ENVELOPE_PBKDF2_ITERATIONS', 250000))
        legacy = [root_secret] if config.get('ENVELOPE_ACCEPT_ROOT_SECRET', True) else []

        credentials = CredentialStore(
            KeyValueStore(USERS_NAMESPACE),
            cipher,
            envelope_passphrase=derive_envelope_passphrase(root_secret),
            legacy_passphrases=legacy,
        )
        tokens = SessionTokenService(
            derive_token_signing_key(root_secret),
            KeyValueStore(TOKEN_BLACKLIST_NAMESPACE),
            token_ttl=timedelta(days=config.get('SESSION_TOKEN_TTL_DAYS', 90)),
            blacklist_ttl_seconds=config.get('TOKEN_BLACKLIST_TTL_SECONDS', 86400),
        )
        password_min_length = config.get('PASSWORD_MIN_LENGTH', 12)
        password_max_length = config.get('PASSWORD_MAX_LENGTH', 128)
        resets = PasswordResetService(
            KeyValueStore(PASSWORD_RESET_NAMESPACE),
            credentials,
            token_ttl=timedelta(seconds=config.get('RESET_TOKEN_TTL_SECONDS', 86400)),
            password_min_length=password_min_length,
            password_max_length=password_max_length,
        )
        directories = DirectoryAssociationStore(KeyValueStore(DIRECTORY_NAMESPACE))

        return cls(
            credentials,
            tokens,
            resets,
            directories,
            reset_link_sender=config.get('RESET_LINK_SENDER'),
            password_min_length=password_min_length,
            password_max_length=password_max_length,
            email_max_length=config.get('EMAIL_MAX_LENGTH', 254),
            directory_path_max_length=config.get('DIRECTORY_PATH_MAX_LENGTH', 4096),
        )

    # --- input validation ---

    def _clean_email(self, email: Any) -> str:
        if not isinstance(email, str) or not email.strip():
            raise ValidationError('Email is required')
        email = normalize_email(email)
        valid, error = validate_email(email, max_length=self.email_max_length)
        if not valid:
            raise ValidationError(error)
        return email

    def _check_password(self, password: Any) -> str:
        valid, error = validate_password(
            password,
            min_length=self.password_min_length,
            max_length=self.password_max_length,
        )
        if not valid:
            raise ValidationError(error)
        return password

    def _require_credentials(self, email: Any, password: Any):
        if not email or not password or not isinstance(password, str):
            raise ValidationError('Email and password are required')
        return self._clean_email(email), password

    def _session_owner(self, claims: SessionClaims) -> UserRecord:
        """Return the record behind a verified token, which must still exist."""
        record = self.credentials.find(claims.email)
        if record is None:
            raise ResourceNotFoundError('User not found')
        if record.uuid != claims.uuid:
            raise AuthenticationError('Session token does not match the account')
        return record

    # --- account lifecycle ---

    def register(self, email: Any, password: Any) -> GatewayResponse:
        try:
            email, password = self._require_credentials(email, password)
            self._check_password(password)
            record = self.credentials.register(email, password)
            token = self.tokens.issue(record.uuid, record.email)
        except IdentityServiceError as e:
            audit_logger.log_event(
                AuditEventType.REGISTRATION,
                status='failure',
                email=email if isinstance(email, str) else None,
                message=f'Registration failed: {e.error_code}',
            )
            return _failure(e)
        except Exception as e:
            return _failure(e)

        audit_logger.log_registration(record.uuid, record.email)
        return _success(_identity(record), 'User registered', 201, session_token=token)

    def login(self, email: Any, password: Any) -> GatewayResponse:
        try:
            email, password = self._require_credentials(email, password)
            try:
                record = self.credentials.authenticate(email, password)
            except AuthenticationError:
                audit_logger.log_login(email, False, reason='invalid credentials')
                raise
            secret = self.credentials.recover_secret(record, fallback_plaintext=password)
            token = self.tokens.issue(record.uuid, record.email)
        except Exception as e:
            return _failure(e, email=email if isinstance(email, str) else None)

        audit_logger.log_login(record.email, True, user_id=record.uuid)
        return _success(
            _identity(record, secret, include_password=True),
            'Login successful',
            session_token=token,
        )

    def logout(self, token: Optional[str]) -> GatewayResponse:
        """Revoke the presented token, if any. Always succeeds."""
        try:
            claims = self.tokens.verify(token) if token else None
            if token:
                self.tokens.revoke(token, reason='logout')
        except Exception as e:
            return _failure(e, clear_session=True)

        audit_logger.log_event(
            AuditEventType.LOGOUT,
            user_id=claims.uuid if claims else None,
            message='User logged out',
        )
        return _success(message='Logged out', clear_session=True)

    def delete_account(self, token: Optional[str]) -> GatewayResponse:
        """Delete the caller's record and directory association, then revoke the token."""
        claims = None
        try:
            claims = self.tokens.authenticate(token)
            self.credentials.delete(claims.email)
            self.directories.remove(claims.uuid)
            self.tokens.revoke(token, reason='account deleted')
        except Exception as e:
            return _failure(e, user_id=claims.uuid if claims else None)

        audit_logger.log_event(
            AuditEventType.ACCOUNT_DELETED,
            user_id=claims.uuid,
            email=claims.email,
            message='Account deleted',
        )
        return _success(message='Account deleted', clear_session=True)

    # --- session lifecycle ---

    def refresh(self, token: Optional[str]) -> GatewayResponse:
        """
        Exchange a usable session token for a new one.

        The account must still exist. The response carries the new token in
        the body as well as the transport, plus the recovered secret.
        """
        claims = None
        try:
            claims = self.tokens.authenticate(token)
            record = self._session_owner(claims)
            new_token, _ = self.tokens.refresh(token)
            secret = self.credentials.recover_secret(record)
        except Exception as e:
            return _failure(e, user_id=claims.uuid if claims else None)

        audit_logger.log_event(
            AuditEventType.TOKEN_REFRESH,
            user_id=record.uuid,
            email=record.email,
            message='Session token refreshed',
        )
        data = _identity(record, secret, include_password=True)
        data['token'] = new_token
        return _success(data, 'Token refreshed', session_token=new_token)

    def invalidate(self, token: Optional[str]) -> GatewayResponse:
        """Blacklist the presented token without touching the account."""
        try:
            if token:
                self.tokens.revoke(token, reason='invalidated')
        except Exception as e:
            return _failure(e, clear_session=True)
        return _success(message='Token invalidated', clear_session=True)

    def auto_login(self, token: Optional[str]) -> GatewayResponse:
        """
        Restore a session from its token alone.

        There is no plaintext to repair from here, so an envelope that does
        not open yields password None rather than an error.
        """
        claims = None
        try:
            claims = self.tokens.authenticate(token)
            record = self._session_owner(claims)
            secret = self.credentials.recover_secret(record)
        except Exception as e:
            return _failure(e, user_id=claims.uuid if claims else None)

        audit_logger.log_event(
            AuditEventType.AUTO_LOGIN,
            user_id=record.uuid,
            email=record.email,
            message='Session restored',
            secret_recovered=secret is not None,
        )
        return _success(_identity(record, secret, include_password=True), 'Session restored')

    def migrate_user(self, email: Any, password: Any) -> GatewayResponse:
        """Re-seal an account's secret under the current envelope passphrase."""
        try:
            email, password = self._require_credentials(email, password)
            record = self.credentials.authenticate(email, password)
            self.credentials.reseal(record, password)
        except Exception as e:
            return _failure(e, email=email if isinstance(email, str) else None)

        audit_logger.log_event(
            AuditEventType.ENVELOPE_MIGRATED,
            user_id=record.uuid,
            email=record.email,
            message='Stored secret re-sealed',
        )
        return _success(_identity(record), 'User migrated')

    # --- password recovery ---

    def request_reset(self, email: Any) -> GatewayResponse:
        """
        Start a password reset.

        Known and unknown emails get the same response. The token only ever
        leaves through the reset link sender.
        """
        try:
            email = self._clean_email(email)
            reset = self.resets.request_reset(email)
            if reset is not None:
                if self.reset_link_sender is not None:
                    self.reset_link_sender(reset.email, reset.token)
                else:
                    logger.warning("No reset link sender configured; reset token was not delivered")
        except Exception as e:
            return _failure(e)

        audit_logger.log_event(
            AuditEventType.PASSWORD_RESET_REQUESTED,
            email=email,
            message='Password reset requested',
        )
        return _success(message=RESET_REQUESTED_MESSAGE)

    def reset_password(self, token: Any, new_password: Any) -> GatewayResponse:
        try:
            if not token or not isinstance(token, str):
                raise ValidationError('Reset token is required')
            record = self.resets.consume_reset(token, new_password)
            session_token = self.tokens.issue(record.uuid, record.email)
        except IdentityServiceError as e:
            audit_logger.log_event(
                AuditEventType.PASSWORD_RESET_FAILED,
                status='failure',
                message=f'Password reset failed: {e.error_code}',
            )
            return _failure(e)
        except Exception as e:
            return _failure(e)

        audit_logger.log_event(
            AuditEventType.PASSWORD_RESET_COMPLETED,
            user_id=record.uuid,
            email=record.email,
            message='Password reset completed',
        )
        return _success(
            _identity(record, new_password, include_password=True),
            'Password reset successful',
            session_token=session_token,
        )

    # --- directory associations ---

    def associate_directory(self, token: Optional[str], directory_path: Any) -> GatewayResponse:
        claims = None
        try:
            claims = self.tokens.authenticate(token)
            valid, error = validate_directory_path(directory_path, max_length=self.directory_path_max_length)
            if not valid:
                raise ValidationError(error)
            association = self.directories.associate(claims.uuid, directory_path)
        except Exception as e:
            return _failure(e, user_id=claims.uuid if claims else None)

        audit_logger.log_event(
            AuditEventType.DIRECTORY_ASSOCIATED,
            user_id=claims.uuid,
            message='Directory associated',
        )
        return _success(association.to_response(), 'Directory associated')

    def get_directory(self, token: Optional[str], account_uuid: str) -> GatewayResponse:
        """
        Return the association for account_uuid.

        The ownership check runs before the lookup, so a foreign uuid is
        Forbidden whether or not it has an association.
        """
        claims = None
        try:
            claims = self.tokens.authenticate(token)
            if account_uuid != claims.uuid:
                audit_logger.log_event(
                    AuditEventType.DIRECTORY_FORBIDDEN,
                    status='failure',
                    user_id=claims.uuid,
                    message='Directory lookup for another account refused',
                )
                raise AuthorizationError('Cannot access another account\'s directory')
            association = self.directories.get(account_uuid)
        except Exception as e:
            return _failure(e, user_id=claims.uuid if claims else None)
        return _success(association.to_response(), 'Directory found')

    def current_directory(self, token: Optional[str]) -> GatewayResponse:
        claims = None
        try:
            claims = self.tokens.authenticate(token)
            association = self.directories.get(claims.uuid)
        except Exception as e:
            return _failure(e, user_id=claims.uuid if claims else None)
        return _success(association.to_response(), 'Directory found')

    def remove_directory(self, token: Optional[str]) -> GatewayResponse:
        claims = None
        try:
            claims = self.tokens.authenticate(token)
            self.directories.remove(claims.uuid)
        except Exception as e:
            return _failure(e, user_id=claims.uuid if claims else None)

        audit_logger.log_event(
            AuditEventType.DIRECTORY_REMOVED,
            user_id=claims.uuid,
            message='Directory association removed',
        )
        return _success(message='Directory association removed')
