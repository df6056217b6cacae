# Password reset routes

from flask import Blueprint

password_bp = Blueprint('password', __name__, url_prefix='/api/password')

from routes import get_gateway, json_required, read_json
from utils.security_utils import rate_limit_auth
from utils.session_cookie import send_gateway_response


@password_bp.route('/request-reset', methods=['POST'])
@rate_limit_auth
def request_reset():
    """
    Start a password reset.

    Answers 200 with the same body whether or not the email has an account.
    """
    data = read_json()
    if data is None:
        return json_required()
    return send_gateway_response(get_gateway().request_reset(data.get('email')))


@password_bp.route('/reset-password', methods=['POST'])
@rate_limit_auth
def reset_password():
    """
    Consume a reset token and set a new password.

    Body: {"token": ..., "newPassword": ...}
    Returns {uuid, email, password} and sets a fresh session cookie.
    """
    data = read_json()
    if data is None:
        return json_required()
    result = get_gateway().reset_password(data.get('token'), data.get('newPassword'))
    return send_gateway_response(result)
