# -*- coding: utf-8 -*-
from functools import wraps
from flask_login import current_user
from .errors import Forbidden, Unauthorized

def roles_required(*roles):
    """
    Not logged in -> 401 UNAUTHENTICATED.
    Role not in ``roles`` -> 403 FORBIDDEN.
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                raise Unauthorized("Authentication required")
            if current_user.role not in roles:
                raise Forbidden("Insufficient permissions")
            return f(*args, **kwargs)
        return wrapper
    return decorator

def api_login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            raise Unauthorized("Authentication required")
        return f(*args, **kwargs)
    return wrapper
