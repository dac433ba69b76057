from functools import wraps

import jwt
from flask import current_app, g, jsonify, request

from config.settings import settings


def _token_from_request():
    token = request.headers.get('x-auth-token')
    if token:
        return token
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):]
    return None


def require_auth(view):
    """
    Verify the caller's HS256 token before running the view.

    Tokens are issued by the account service; the decoded payload is kept
    on g.identity as-is and only used to authorize the request.
    """
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_app.config.get('AUTH_REQUIRED', True):
            g.identity = None
            return view(*args, **kwargs)

        token = _token_from_request()
        if not token:
            return jsonify({"error": "Authentication required", "code": "NO_TOKEN"}), 401

        secret = current_app.config.get('SECRET_KEY') or settings.SECRET_KEY
        try:
            payload = jwt.decode(token, secret, algorithms=['HS256'])
        except jwt.ExpiredSignatureError:
            return jsonify({"error": "Token expired - please login again", "code": "TOKEN_EXPIRED"}), 401
        except jwt.InvalidTokenError:
            return jsonify({"error": "Invalid token", "code": "INVALID_TOKEN"}), 401

        g.identity = payload
        return view(*args, **kwargs)

    return wrapper
