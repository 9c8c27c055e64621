"""Player registry: ladder membership and positions."""
import logging

from ladder.app import db
from ladder.errors import DuplicateName, InvalidName, InvalidPlayer
from ladder.models import Player
from ladder.services.positions import closed_gap_positions, ensure_contiguous
from ladder.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 120


def _normalize_name(raw_name):
    return ' '.join(str(raw_name or '').split())


def name_key(raw_name):
    """Unicode-aware case-insensitive key for player names."""
    return _normalize_name(raw_name).casefold()


class PlayerRegistry:
    def __init__(self, clock=utcnow_naive):
        self.clock = clock

    def active_players(self):
        return Player.query.filter_by(is_active=True).order_by(Player.position.asc()).all()

    def players_by_id(self, player_ids):
        ids = set(player_ids)
        if not ids:
            return {}
        return {p.id: p for p in Player.query.filter(Player.id.in_(ids)).all()}

    def find_by_id(self, player_id):
        try:
            return db.session.get(Player, int(player_id))
        except (TypeError, ValueError):
            return None

    def find_by_name(self, name):
        """Case-insensitive lookup among active players."""
        key = name_key(name)
        if not key:
            return None
        return Player.query.filter(
            Player.is_active.is_(True),
            Player.name_key == key,
        ).first()

    def get_active(self, player_id):
        player = self.find_by_id(player_id)
        if not player or not player.is_active:
            raise InvalidPlayer(f'Player {player_id} is not on the ladder')
        return player

    def join(self, name, email=None):
        clean_name = _normalize_name(name)
        if len(clean_name) < MIN_NAME_LENGTH:
            raise InvalidName(f'Name must be at least {MIN_NAME_LENGTH} characters long')
        if len(clean_name) > MAX_NAME_LENGTH:
            raise InvalidName(f'Name must be at most {MAX_NAME_LENGTH} characters long')
        if self.find_by_name(clean_name):
            raise DuplicateName(f'A player named {clean_name} is already on the ladder')

        position = Player.query.filter_by(is_active=True).count() + 1
        player = Player(
            name=clean_name,
            name_key=name_key(clean_name),
            email=str(email or '').strip(),
            position=position,
            participation_points=0,
            wins=0,
            losses=0,
            join_date=self.clock(),
            is_active=True,
        )
        db.session.add(player)
        db.session.flush()
        logger.info('Player %s (%s) joined the ladder at position %s', player.id, clean_name, position)
        return player

    def positions(self):
        return {p.id: p.position for p in self.active_players()}

    def apply_positions(self, new_positions):
        """Write a full ``{player_id: position}`` map for the active ladder."""
        ensure_contiguous(new_positions)
        for player in self.active_players():
            if player.id not in new_positions:
                raise InvalidPlayer(f'Player {player.id} missing from position update')
            player.position = new_positions[player.id]
        db.session.flush()

    def verify_positions(self):
        return ensure_contiguous(self.positions())

    def deactivate(self, player_id):
        player = self.get_active(player_id)
        remaining = closed_gap_positions(self.positions(), player.id)
        player.is_active = False
        player.position = None
        db.session.flush()
        self.apply_positions(remaining)
        logger.info('Player %s (%s) left the ladder', player.id, player.name)
        return player
