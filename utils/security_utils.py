"""
Security utilities for the identity service.

This module provides input validation, rate limiting and security headers.
"""

import re
import functools
from typing import Optional, Tuple
from flask import request, jsonify, current_app
import time
from collections import defaultdict, deque

from config import Config
from utils.audit_logger import audit_logger
from utils.error_handling import RateLimitError, create_error_response


class RateLimiter:
    """Simple in-memory rate limiter for API endpoints."""

    def __init__(self, max_requests: int = 10, window_seconds: int = 60):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum requests allowed per window
            window_seconds: Time window in seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests = defaultdict(deque)
        self._last_sweep = time.time()

    def is_allowed(self, identifier: str) -> bool:
        """
        Check if request is allowed for given identifier.

        Args:
            identifier: Unique identifier (e.g., IP address)

        Returns:
            True if request is allowed, False otherwise
        """
        now = time.time()
        window_start = now - self.window_seconds

        if now - self._last_sweep >= self.window_seconds:
            self._sweep(window_start)
            self._last_sweep = now

        # Clean old requests
        timestamps = self.requests[identifier]
        while timestamps and timestamps[0] < window_start:
            timestamps.popleft()

        # Check if under limit
        if len(timestamps) < self.max_requests:
            timestamps.append(now)
            return True

        return False

    def _sweep(self, window_start: float) -> None:
        """Forget identifiers with no requests inside the current window."""
        stale = [key for key, timestamps in self.requests.items()
                 if not timestamps or timestamps[-1] < window_start]
        for key in stale:
            del self.requests[key]


auth_rate_limiter = RateLimiter(
    max_requests=Config.RATE_LIMIT_AUTH_REQUESTS,
    window_seconds=Config.RATE_LIMIT_AUTH_WINDOW
)


def rate_limit_auth(f):
    """Rate limiting decorator for authentication endpoints."""
    @functools.wraps(f)
    def decorated_function(*args, **kwargs):
        # Skip rate limiting in testing mode or when disabled
        if current_app.config.get('TESTING') or not current_app.config.get('RATE_LIMIT_ENABLED', True):
            return f(*args, **kwargs)

        client_ip = request.environ.get('HTTP_X_FORWARDED_FOR', request.environ.get('REMOTE_ADDR', 'unknown'))

        if not auth_rate_limiter.is_allowed(client_ip):
            audit_logger.log_rate_limit_hit('auth')
            body, status = create_error_response(
                RateLimitError('Rate limit exceeded. Please try again later.')
            )
            return jsonify(body), status

        return f(*args, **kwargs)
    return decorated_function


def normalize_email(email: str) -> str:
    """Normalize an email for use as a store key."""
    return email.strip().lower()


def validate_email(email: str, max_length: int = Config.EMAIL_MAX_LENGTH) -> Tuple[bool, Optional[str]]:
    """
    Validate email address format.

    Args:
        email: Email address to validate
        max_length: Maximum accepted length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email is required"

    if len(email) > max_length:
        return False, "Email address is too long"

    if not re.match(Config.EMAIL_PATTERN, email):
        return False, "Invalid email address format"

    return True, None


def validate_password(
    password: str,
    min_length: int = Config.PASSWORD_MIN_LENGTH,
    max_length: int = Config.PASSWORD_MAX_LENGTH,
) -> Tuple[bool, Optional[str]]:
    """
    Validate password against the minimum-strength policy.

    The policy requires at least min_length characters, one letter and one digit.

    Args:
        password: Password to validate
        min_length: Minimum length
        max_length: Maximum length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password or not isinstance(password, str):
        return False, "Password is required"

    if len(password) < min_length:
        return False, f"Password must be at least {min_length} characters long"

    if len(password) > max_length:
        return False, f"Password must be no more than {max_length} characters long"

    checks = [
        (re.search(r'[a-zA-Z]', password), "Password must contain at least one letter"),
        (re.search(r'\d', password), "Password must contain at least one digit"),
    ]

    for check, message in checks:
        if not check:
            return False, message

    return True, None


def validate_directory_path(
    directory_path: str,
    max_length: int = Config.DIRECTORY_PATH_MAX_LENGTH,
) -> Tuple[bool, Optional[str]]:
    """
    Validate a local directory path supplied by the client.

    Args:
        directory_path: Path to validate
        max_length: Maximum accepted length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not directory_path or not isinstance(directory_path, str) or not directory_path.strip():
        return False, "Directory path is required"

    if len(directory_path) > max_length:
        return False, f"Directory path must be no more than {max_length} characters long"

    if '\x00' in directory_path:
        return False, "Directory path contains invalid characters"

    return True, None


def add_security_headers(response):
    """
    Add security headers to Flask response.

    Args:
        response: Flask response object

    Returns:
        Response object with security headers added
    """
    if not current_app.config.get('SECURITY_HEADERS_ENABLED', True):
        return response

    # Prevent clickjacking
    response.headers['X-Frame-Options'] = 'DENY'

    # Prevent MIME type sniffing
    response.headers['X-Content-Type-Options'] = 'nosniff'

    # Strict transport security (HTTPS only)
    hsts_max_age = current_app.config.get('HSTS_MAX_AGE', 31536000)
    response.headers['Strict-Transport-Security'] = f'max-age={hsts_max_age}; includeSubDomains'

    # Content security policy
    response.headers['Content-Security-Policy'] = current_app.config.get(
        'CSP_POLICY', "default-src 'none'; frame-ancestors 'none'"
    )

    # Referrer policy
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

    # Auth responses must not be cached
    response.headers['Cache-Control'] = 'no-store'

    return response
