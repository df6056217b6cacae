# Account routes: registration, login, logout and deletion

from flask import Blueprint

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

from routes import get_gateway, json_required, read_json
from utils.security_utils import rate_limit_auth
from utils.session_cookie import read_session_token, send_gateway_response


@auth_bp.route('/register', methods=['POST'])
@rate_limit_auth
def register():
    """
    Create an account and start a session.

    Body: {"email": ..., "password": ...}
    Returns 201 with {uuid, email} and sets the session cookie.
    """
    data = read_json()
    if data is None:
        return json_required()
    result = get_gateway().register(data.get('email'), data.get('password'))
    return send_gateway_response(result)


@auth_bp.route('/login', methods=['POST'])
@rate_limit_auth
def login():
    """
    Authenticate and start a session.

    Returns {uuid, email, password}; password is the recovered secret the
    client derives its local document key from.
    """
    data = read_json()
    if data is None:
        return json_required()
    result = get_gateway().login(data.get('email'), data.get('password'))
    return send_gateway_response(result)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    return send_gateway_response(get_gateway().logout(read_session_token()))


@auth_bp.route('/account', methods=['DELETE'])
def delete_account():
    return send_gateway_response(get_gateway().delete_account(read_session_token()))
