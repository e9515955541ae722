# utils.py
from functools import wraps

from flask import current_app, jsonify, request, session

from .errors import ValidationError


def get_user_ip():
    """Client IP, honouring a proxy's X-Forwarded-For."""
    if request.headers.getlist("X-Forwarded-For"):
        return request.headers.getlist("X-Forwarded-For")[0]
    return request.remote_addr


def current_actor():
    return session.get('user_code')


# --- Decorators ---
def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_actor():
            return jsonify({'success': False, 'message': 'Authentication required.'}), 401
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Only members of the admin department pass."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_code = current_actor()
        if not user_code:
            return jsonify({'success': False, 'message': 'Authentication required.'}), 401
        member_service = current_app.member_service
        if not member_service.is_admin(member_service.get_member(user_code)):
            current_app.logger.warning(f"Admin route {request.path} denied for {user_code} ({get_user_ip()})")
            return jsonify({'success': False, 'message': 'Administrator access required.'}), 403
        return f(*args, **kwargs)
    return decorated_function


# --- Request parsing ---
def parse_int(value, name, default=None):
    """Integer request parameter; blank means ``default``."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer. Received: {value}")


def api_response(data=None, message='', status=200):
    return jsonify({'success': True, 'message': message, 'data': data}), status
