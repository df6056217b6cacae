# Session routes: token refresh, invalidation, auto-login and envelope migration

from flask import Blueprint

session_bp = Blueprint('session', __name__, url_prefix='/api')

from routes import get_gateway, json_required, read_json
from utils.security_utils import rate_limit_auth
from utils.session_cookie import read_session_token, send_gateway_response


@session_bp.route('/refresh-token', methods=['POST'])
def refresh_token():
    """
    Exchange the current session token for a new one.

    The old token is revoked first. The new token is set as the cookie and
    also returned in the body.
    """
    return send_gateway_response(get_gateway().refresh(read_session_token()))


@session_bp.route('/refresh-token/invalidate', methods=['POST'])
def invalidate_token():
    return send_gateway_response(get_gateway().invalidate(read_session_token()))


@session_bp.route('/autologin', methods=['GET'])
def auto_login():
    return send_gateway_response(get_gateway().auto_login(read_session_token()))


@session_bp.route('/migration/migrate-user', methods=['POST'])
@rate_limit_auth
def migrate_user():
    data = read_json()
    if data is None:
        return json_required()
    result = get_gateway().migrate_user(data.get('email'), data.get('password'))
    return send_gateway_response(result)
