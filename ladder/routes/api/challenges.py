"""Challenge routes — create, respond, record results."""
from flask import request, jsonify

from ladder.auth_utils import identity_required
from ladder.errors import InvalidPlayer, InvalidScore
from ladder.routes.api import api_bp
from ladder.routes.api.helpers import _acting_player, _json_payload, _ladder, _parse_int


@api_bp.route('/challenges', methods=['GET'])
def list_challenges():
    status = str(request.args.get('status') or '').strip().lower() or None
    player_id = _parse_int(request.args.get('player_id'))
    challenges = _ladder().list_challenges(status=status, player_id=player_id)
    return jsonify({'challenges': [challenge.to_dict() for challenge in challenges]})


@api_bp.route('/challenges/<int:challenge_id>', methods=['GET'])
def get_challenge(challenge_id):
    return jsonify({'challenge': _ladder().get_challenge(challenge_id).to_dict()})


@api_bp.route('/challenges', methods=['POST'])
@identity_required
def create_challenge():
    """Challenge a player ranked above you."""
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    challenged_id = _parse_int(data.get('challenged_id'))
    if not challenged_id:
        raise InvalidPlayer('challenged_id is required')

    challenger = _acting_player()
    challenge = _ladder().create_challenge(challenger.id, challenged_id)
    return jsonify({'challenge': challenge.to_dict()}), 201


@api_bp.route('/challenges/<int:challenge_id>/respond', methods=['POST'])
@identity_required
def respond_to_challenge(challenge_id):
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    responder = _acting_player()
    challenge = _ladder().respond(challenge_id, data.get('decision'), responder_id=responder.id)
    return jsonify({'challenge': challenge.to_dict()})


@api_bp.route('/challenges/<int:challenge_id>/result', methods=['POST'])
@identity_required
def record_result(challenge_id):
    """Record a walkover or per-game scores (challenger score first)."""
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    if 'games' not in data and 'is_walkover' not in data:
        raise InvalidScore('Provide games or is_walkover')
    recorder = _acting_player()
    match = _ladder().record_match(challenge_id, data, recorder_id=recorder.id)
    return jsonify({'match': match.to_dict()}), 201
