"""
Session token transport.

Browser clients carry the session token in an HTTP-only, same-site cookie.
Other clients may send it as an Authorization bearer token instead.
"""

from typing import Optional

from flask import current_app, jsonify, request

BEARER_PREFIX = 'Bearer '


def read_session_token() -> Optional[str]:
    """Return the session token from the cookie, or the bearer header as a fallback."""
    token = request.cookies.get(current_app.config.get('SESSION_COOKIE_NAME', 'token'))
    if token:
        return token
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):].strip() or None
    return None


def _cookie_secure() -> bool:
    return current_app.config.get('SITE_URL', '').startswith('https://')


def set_session_cookie(response, token: str):
    max_age = current_app.config.get('SESSION_TOKEN_TTL_DAYS', 90) * 24 * 60 * 60
    response.set_cookie(
        current_app.config.get('SESSION_COOKIE_NAME', 'token'),
        token,
        max_age=max_age,
        path='/',
        secure=_cookie_secure(),
        httponly=True,
        samesite='Strict',
    )
    return response


def clear_session_cookie(response):
    response.delete_cookie(
        current_app.config.get('SESSION_COOKIE_NAME', 'token'),
        path='/',
        secure=_cookie_secure(),
        httponly=True,
        samesite='Strict',
    )
    return response


def send_gateway_response(result):
    """Turn a GatewayResponse into a Flask response, applying its session changes."""
    response = jsonify(result.body)
    response.status_code = result.status_code
    if result.session_token:
        set_session_cookie(response, result.session_token)
    elif result.clear_session:
        clear_session_cookie(response)
    return response
