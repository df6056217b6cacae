"""
Standardized error handling utilities for the identity service.

This module provides consistent error response formatting, custom exception
classes, and error logging. Every failure leaving the service has the shape
{"status": "error", "code": ..., "message": ...}.
"""

from typing import Optional, Tuple, Dict, Any
import logging

logger = logging.getLogger(__name__)


# Custom exception classes for domain-specific errors
class IdentityServiceError(Exception):
    """Base exception for all identity service errors."""

    def __init__(self, message: str, error_code: str = 'INTERNAL_ERROR', status_code: int = 500):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(IdentityServiceError):
    """Exception raised for malformed or weak input."""

    def __init__(self, message: str, error_code: str = 'VALIDATION_FAILED'):
        super().__init__(message, error_code, 400)


class AuthenticationError(IdentityServiceError):
    """Exception raised for bad credentials or an invalid, expired or revoked token."""

    def __init__(self, message: str, error_code: str = 'AUTHENTICATION_FAILED'):
        super().__init__(message, error_code, 401)


class TokenExpiredError(AuthenticationError):
    """Exception raised when a single-use token is presented after its expiry."""

    def __init__(self, message: str = 'Token has expired', error_code: str = 'EXPIRED'):
        super().__init__(message, error_code)


class AuthorizationError(IdentityServiceError):
    """Exception raised when a caller acts on an account that is not its own."""

    def __init__(self, message: str, error_code: str = 'FORBIDDEN'):
        super().__init__(message, error_code, 403)


class ResourceNotFoundError(IdentityServiceError):
    """Exception raised when a requested resource is not found."""

    def __init__(self, message: str, error_code: str = 'RESOURCE_NOT_FOUND'):
        super().__init__(message, error_code, 404)


class ResourceConflictError(IdentityServiceError):
    """Exception raised when a resource already exists."""

    def __init__(self, message: str, error_code: str = 'RESOURCE_CONFLICT'):
        super().__init__(message, error_code, 409)


class DecryptionError(IdentityServiceError):
    """Exception raised when a secret envelope cannot be opened."""

    def __init__(self, message: str, error_code: str = 'DECRYPTION_FAILURE'):
        super().__init__(message, error_code, 500)


class InternalError(IdentityServiceError):
    """Exception raised for unexpected store or crypto failures."""

    def __init__(self, message: str, error_code: str = 'INTERNAL_ERROR'):
        super().__init__(message, error_code, 500)


class RateLimitError(IdentityServiceError):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, message: str = 'Rate limit exceeded', error_code: str = 'RATE_LIMIT_EXCEEDED'):
        super().__init__(message, error_code, 429)


GENERIC_INTERNAL_MESSAGE = 'An internal error occurred. Please try again later.'


def create_error_response(
    error: Exception,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
) -> Tuple[Dict[str, Any], int]:
    """
    Create a standardized error response with logging.

    Args:
        error: The exception that occurred
        user_id: Optional account uuid for logging
        email: Optional email for logging

    Returns:
        Tuple of (response dict, status code)
    """
    from utils.audit_logger import audit_logger

    # Handle custom IdentityServiceError exceptions
    if isinstance(error, IdentityServiceError):
        status_code = error.status_code
        error_code = error.error_code
        message = error.message

        # Server-side failures never expose their internal message
        if status_code >= 500:
            audit_logger.log_error(
                'application',
                message=message,
                user_id=user_id,
                email=email,
                error_code=error_code
            )
            message = GENERIC_INTERNAL_MESSAGE
            error_code = 'INTERNAL_ERROR'

    # Handle unexpected exceptions
    else:
        status_code = 500
        error_code = 'INTERNAL_ERROR'
        message = GENERIC_INTERNAL_MESSAGE

        logger.error("Unexpected error while handling request", exc_info=error)
        audit_logger.log_error(
            'application',
            message=f'Unexpected error: {type(error).__name__}',
            user_id=user_id,
            email=email,
            error_code=error_code,
        )

    response = {
        'status': 'error',
        'code': error_code,
        'message': message,
    }
    return response, status_code


def create_success_response(
    data: Optional[Dict[str, Any]] = None,
    message: str = 'Operation successful',
    status_code: int = 200
) -> Tuple[Dict[str, Any], int]:
    """
    Create a standardized success response.

    Args:
        data: Optional data payload
        message: Success message
        status_code: HTTP status code (default 200)

    Returns:
        Tuple of (response dict, status code)
    """
    response = {
        'status': 'success',
        'message': message
    }

    if data is not None:
        response['data'] = data

    return response, status_code
