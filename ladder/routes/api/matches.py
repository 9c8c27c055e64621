"""Match history routes."""
from flask import request, jsonify

from ladder.routes.api import api_bp
from ladder.routes.api.helpers import _ladder, _parse_limit


@api_bp.route('/matches', methods=['GET'])
def recent_matches():
    matches = _ladder().recent_matches(limit=_parse_limit(request.args.get('limit')))
    return jsonify({'matches': [match.to_dict() for match in matches]})
