from functools import wraps

from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from errors import AuthenticationError, AuthorizationError


def current_buyer_token():
    """Opaque buyer token taken from the JWT subject."""
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    if not identity:
        raise AuthenticationError()
    return str(identity)


def is_admin():
    verify_jwt_in_request(optional=True)
    return bool(get_jwt().get("is_admin"))


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_buyer_token()
        if not is_admin():
            raise AuthorizationError("Admin access required")
        return fn(*args, **kwargs)

    return wrapper
