"""
Audit logging for security-critical operations.

This module provides structured logging for identity events including
registration, authentication, token lifecycle, password resets, secret
envelope repair and directory associations. Logs are formatted as JSON for
easy parsing by security monitoring tools.

Never pass passwords, recovered secrets, session tokens or reset tokens to
this logger.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from flask import request, has_request_context
from config import Config


# Define audit event types
class AuditEventType:
    """Enumeration of audit event types."""
    # Account events
    REGISTRATION = "user.registration"
    LOGIN_SUCCESS = "user.login.success"
    LOGIN_FAILURE = "user.login.failure"
    LOGOUT = "user.logout"
    ACCOUNT_DELETED = "user.deleted"
    AUTO_LOGIN = "user.autologin"

    # Session token events
    TOKEN_REFRESH = "token.refresh"
    TOKEN_REVOKED = "token.revoked"
    TOKEN_REJECTED = "token.rejected"

    # Password reset events
    PASSWORD_RESET_REQUESTED = "password_reset.requested"
    PASSWORD_RESET_COMPLETED = "password_reset.completed"
    PASSWORD_RESET_FAILED = "password_reset.failed"

    # Secret envelope events
    ENVELOPE_SELF_HEAL = "envelope.self_heal"
    ENVELOPE_UNRECOVERABLE = "envelope.unrecoverable"
    ENVELOPE_MIGRATED = "envelope.migrated"

    # Directory association events
    DIRECTORY_ASSOCIATED = "directory.associated"
    DIRECTORY_REMOVED = "directory.removed"
    DIRECTORY_FORBIDDEN = "directory.forbidden"

    # Security events
    RATE_LIMIT_HIT = "security.rate_limit"


class AuditLogger:
    """
    Centralized audit logger for security events.

    Logs are structured JSON with consistent fields:
    - timestamp: ISO8601 timestamp
    - event_type: Type of event (see AuditEventType)
    - user_id: Account uuid if known
    - email: Email if known
    - ip_address: Client IP address
    - user_agent: Client user agent
    - data: Event-specific data
    - status: success/failure
    - message: Human-readable message
    """

    def __init__(self):
        """Initialize the audit logger."""
        self.logger = logging.getLogger('audit')
        self.logger.setLevel(getattr(logging, Config.LOG_LEVEL, logging.INFO))

        if not self.logger.handlers:
            # Configure handler based on config
            if Config.AUDIT_LOG_FILE:
                handler = logging.FileHandler(Config.AUDIT_LOG_FILE)
            else:
                handler = logging.StreamHandler(sys.stdout)

            # Use JSON formatter if configured
            if Config.LOG_FORMAT == 'json':
                formatter = JSONFormatter()
            else:
                formatter = logging.Formatter(
                    '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                )

            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def _get_request_context(self) -> Dict[str, Any]:
        """Extract request context information."""
        context = {}

        if has_request_context():
            context['ip_address'] = request.remote_addr
            context['user_agent'] = request.headers.get('User-Agent', 'Unknown')
            context['method'] = request.method
            context['path'] = request.path
            context['endpoint'] = request.endpoint

        return context

    def log_event(
        self,
        event_type: str,
        status: str = 'success',
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        message: Optional[str] = None,
        **data
    ):
        """
        Log an audit event.

        Args:
            event_type: Type of event (use AuditEventType constants)
            status: 'success' or 'failure'
            user_id: Account uuid if applicable
            email: Email if known
            message: Human-readable message
            **data: Additional event-specific data
        """
        event = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'event_type': event_type,
            'status': status,
        }

        # Add request context
        event.update(self._get_request_context())

        # Add user info
        if user_id:
            event['user_id'] = user_id
        if email:
            event['email'] = email

        # Add message
        if message:
            event['message'] = message

        # Add additional data
        if data:
            event['data'] = data

        # Log at appropriate level
        if status == 'failure' or event_type.startswith('error.'):
            self.logger.warning(json.dumps(event, default=str))
        else:
            self.logger.info(json.dumps(event, default=str))

    # Convenience methods for common events

    def log_registration(self, user_id: str, email: str):
        """Log user registration."""
        self.log_event(
            AuditEventType.REGISTRATION,
            user_id=user_id,
            email=email,
            message=f'New user registered: {email}'
        )

    def log_login(self, email: str, success: bool, user_id: Optional[str] = None, reason: Optional[str] = None):
        """Log a login attempt."""
        self.log_event(
            AuditEventType.LOGIN_SUCCESS if success else AuditEventType.LOGIN_FAILURE,
            status='success' if success else 'failure',
            user_id=user_id,
            email=email,
            message=f'Login {"succeeded" if success else "failed"} for {email}',
            reason=reason
        )

    def log_token_revoked(self, user_id: Optional[str], reason: str):
        """Log a session token being added to the blacklist."""
        self.log_event(
            AuditEventType.TOKEN_REVOKED,
            user_id=user_id,
            message=f'Session token revoked: {reason}',
            reason=reason
        )

    def log_token_rejected(self, reason: str):
        """Log a session token that failed verification."""
        self.log_event(
            AuditEventType.TOKEN_REJECTED,
            status='failure',
            message=f'Session token rejected: {reason}',
            reason=reason
        )

    def log_envelope_self_heal(self, user_id: str, email: str, reason: str):
        """Log the replacement of an unusable secret envelope."""
        self.log_event(
            AuditEventType.ENVELOPE_SELF_HEAL,
            status='failure',
            user_id=user_id,
            email=email,
            message='Stored secret envelope was unusable and has been re-sealed',
            reason=reason
        )

    def log_envelope_unrecoverable(self, user_id: str, email: str, reason: str):
        """Log a secret envelope that could not be opened and could not be repaired."""
        self.log_event(
            AuditEventType.ENVELOPE_UNRECOVERABLE,
            status='failure',
            user_id=user_id,
            email=email,
            message='Stored secret envelope could not be opened',
            reason=reason
        )

    def log_rate_limit_hit(self, limit_type: str, email: Optional[str] = None):
        """Log rate limit violation."""
        self.log_event(
            AuditEventType.RATE_LIMIT_HIT,
            status='failure',
            email=email,
            message=f'Rate limit exceeded: {limit_type}',
            limit_type=limit_type
        )

    def log_error(self, error_type: str, message: str, **details):
        """Log error event."""
        event_type = f"error.{error_type}"
        self.log_event(
            event_type,
            status='failure',
            message=message,
            **details
        )


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
        }

        # If the message is already JSON (from audit logger), parse it
        try:
            message_data = json.loads(record.getMessage())
            log_data.update(message_data)
        except (json.JSONDecodeError, ValueError, TypeError):
            # Not JSON, just use the message
            log_data['message'] = record.getMessage()

        # Add exception info if present
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


# Global audit logger instance
audit_logger = AuditLogger()
