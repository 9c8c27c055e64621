"""Ladder standings, membership and player routes."""
from flask import request, jsonify

from ladder.auth_utils import identity_required
from ladder.errors import InvalidPlayer, NotAuthorized
from ladder.routes.api import api_bp
from ladder.routes.api.helpers import _acting_player, _json_payload, _ladder


@api_bp.route('/ladder', methods=['GET'])
def get_ladder():
    service = _ladder()
    return jsonify({
        'players': [player.to_dict() for player in service.standings()],
        'summary': service.ladder_summary(),
    })


@api_bp.route('/ladder/join', methods=['POST'])
@identity_required
def join_ladder():
    """Join at the bottom of the ladder under the identity's display name."""
    data = _json_payload() or {}
    player = _ladder().join(
        request.current_identity['display_name'],
        email=data.get('email'),
    )
    return jsonify({'player': player.to_dict()}), 201


@api_bp.route('/ladder/players/<int:player_id>/deactivate', methods=['POST'])
@identity_required
def deactivate_player(player_id):
    if _acting_player().id != player_id:
        raise NotAuthorized('You can only remove yourself from the ladder')
    player = _ladder().deactivate(player_id)
    return jsonify({'player': player.to_dict()})


@api_bp.route('/players/<int:player_id>', methods=['GET'])
def get_player(player_id):
    service = _ladder()
    player = service.find_by_id(player_id)
    if not player:
        raise InvalidPlayer(f'Player {player_id} not found')
    return jsonify({
        'player': player.to_dict(),
        'stats': service.player_stats(player.id),
        'status': service.player_status(player.id) if player.is_active else None,
    })


@api_bp.route('/players/lookup', methods=['GET'])
def lookup_player():
    name = str(request.args.get('name') or '').strip()
    player = _ladder().find_by_name(name)
    if not player:
        raise InvalidPlayer(f'No active player named {name}')
    return jsonify({'player': player.to_dict()})


@api_bp.route('/players/<int:player_id>/challengeable', methods=['GET'])
def get_challengeable_players(player_id):
    players = _ladder().challengeable_players(player_id)
    return jsonify({'players': [player.to_dict() for player in players]})
