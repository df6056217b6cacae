# Directory association routes

from flask import Blueprint

directory_bp = Blueprint('directory', __name__, url_prefix='/api/directory')

from routes import get_gateway, json_required, read_json
from utils.session_cookie import read_session_token, send_gateway_response


@directory_bp.route('/associate', methods=['POST'])
def associate():
    """Remember directoryPath as the caller's last-used directory."""
    data = read_json()
    if data is None:
        return json_required()
    result = get_gateway().associate_directory(read_session_token(), data.get('directoryPath'))
    return send_gateway_response(result)


@directory_bp.route('/get/<account_uuid>', methods=['GET'])
def get_directory(account_uuid):
    """Only the account in the session token may be looked up; any other uuid is 403."""
    return send_gateway_response(get_gateway().get_directory(read_session_token(), account_uuid))


@directory_bp.route('/current', methods=['GET'])
def current_directory():
    return send_gateway_response(get_gateway().current_directory(read_session_token()))


@directory_bp.route('/remove', methods=['DELETE'])
def remove_directory():
    return send_gateway_response(get_gateway().remove_directory(read_session_token()))
