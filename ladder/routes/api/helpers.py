"""Ladder API — shared request helpers."""
from flask import current_app, request

from ladder.app import get_ladder_service

_DEFAULT_MATCH_LIMIT = 10
_MAX_MATCH_LIMIT = 100


def _ladder():
    return get_ladder_service(current_app)


def _json_payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _parse_int(raw_value):
    try:
        value = int(raw_value)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _parse_limit(raw_value):
    limit = _parse_int(raw_value) or _DEFAULT_MATCH_LIMIT
    return min(limit, _MAX_MATCH_LIMIT)


def _acting_player():
    """Ladder player behind the verified identity on this request."""
    return _ladder().player_for_identity(request.current_identity)
