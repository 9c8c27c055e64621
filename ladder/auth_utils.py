from datetime import datetime, timedelta, timezone
from functools import wraps
from flask import request, jsonify, current_app
import jwt


def _identity_secret():
    return current_app.config.get('IDENTITY_TOKEN_SECRET') or current_app.config['SECRET_KEY']


def generate_identity_token(identity_id, display_name, expires_in_hours=24):
    """Issue a token in the identity provider's format (local dev and tests)."""
    payload = {
        'sub': str(identity_id),
        'name': display_name,
        'exp': datetime.now(timezone.utc) + timedelta(hours=expires_in_hours),
    }
    audience = current_app.config.get('IDENTITY_TOKEN_AUDIENCE')
    if audience:
        payload['aud'] = audience
    return jwt.encode(payload, _identity_secret(), algorithm='HS256')


def _normalize_bearer_token(raw_token):
    token = str(raw_token or '').strip()
    if token.startswith('Bearer '):
        token = token.split(' ', 1)[1].strip()
    return token


def _decode_identity(token):
    normalized = _normalize_bearer_token(token)
    if not normalized:
        return None, 'Authentication required'
    audience = current_app.config.get('IDENTITY_TOKEN_AUDIENCE') or None
    try:
        payload = jwt.decode(
            normalized, _identity_secret(), algorithms=['HS256'],
            audience=audience,
            options={'verify_aud': bool(audience)},
        )
    except jwt.ExpiredSignatureError:
        return None, 'Token expired'
    except jwt.InvalidTokenError:
        return None, 'Invalid token'

    identity_id = str(payload.get('sub') or '').strip()
    display_name = str(payload.get('name') or '').strip()
    if not identity_id or not display_name:
        return None, 'Token is missing identity claims'
    return {'id': identity_id, 'display_name': display_name}, None


def get_identity_from_token(token):
    """Resolve ``{id, display_name}`` from a raw bearer token value."""
    identity, _ = _decode_identity(token)
    return identity


def identity_required(f):
    """Decorator to require a verified identity on a route."""
    @wraps(f)
    def decorated(*args, **kwargs):
        identity, error = _decode_identity(request.headers.get('Authorization', ''))
        if error:
            return jsonify({'error': error}), 401
        request.current_identity = identity
        return f(*args, **kwargs)
    return decorated
