import json
from ladder.app import db
from ladder.time_utils import utcnow_naive

STATUS_PENDING = 'pending'
STATUS_ACCEPTED = 'accepted'
STATUS_DECLINED = 'declined'
STATUS_EXPIRED = 'expired'
STATUS_EXPIRED_UNPLAYED = 'expired_unplayed'
STATUS_COMPLETED = 'completed'

ACTIVE_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED)
TERMINAL_STATUSES = (
    STATUS_DECLINED, STATUS_EXPIRED, STATUS_EXPIRED_UNPLAYED, STATUS_COMPLETED,
)
CHALLENGE_STATUSES = ACTIVE_STATUSES + TERMINAL_STATUSES


def _safe_json(raw_value, fallback=None):
    if fallback is None:
        fallback = {}
    if not raw_value:
        return fallback
    try:
        return json.loads(raw_value)
    except (TypeError, ValueError):
        return fallback


def _iso(value):
    return value.isoformat() if value else None


class Player(db.Model):
    """A ranked ladder participant. Never deleted, only deactivated."""
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    name_key = db.Column(db.String(240), nullable=False, index=True)  # casefolded name
    email = db.Column(db.String(200), default='')
    position = db.Column(db.Integer, nullable=True)  # None once deactivated
    participation_points = db.Column(db.Integer, default=0, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    losses = db.Column(db.Integer, default=0, nullable=False)
    join_date = db.Column(db.DateTime, default=lambda: utcnow_naive())
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        db.Index('ix_player_active_position', 'is_active', 'position'),
    )

    def to_recipient(self):
        return {'player_id': self.id, 'name': self.name, 'email': self.email or ''}

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name, 'email': self.email,
            'position': self.position,
            'participation_points': self.participation_points,
            'wins': self.wins, 'losses': self.losses,
            'join_date': _iso(self.join_date),
            'is_active': self.is_active,
        }


class Challenge(db.Model):
    """A request by a lower-ranked player to play a higher-ranked one."""
    id = db.Column(db.Integer, primary_key=True)
    challenger_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    challenged_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False)
    # pending, accepted, declined, expired, expired_unplayed, completed
    created_date = db.Column(db.DateTime, nullable=False)
    expiry_date = db.Column(db.DateTime, nullable=False)
    responded_at = db.Column(db.DateTime, nullable=True)
    closed_at = db.Column(db.DateTime, nullable=True)
    # Notification markers, set once the matching event was handed to the sink
    created_notified_at = db.Column(db.DateTime, nullable=True)
    week_reminder_sent_at = db.Column(db.DateTime, nullable=True)
    final_week_reminder_sent_at = db.Column(db.DateTime, nullable=True)
    final_deadline_sent_at = db.Column(db.DateTime, nullable=True)
    expiry_notified_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.Index('ix_challenge_status', 'status'),
        db.Index('ix_challenge_challenger_status', 'challenger_id', 'status'),
        db.Index('ix_challenge_challenged_status', 'challenged_id', 'status'),
    )

    challenger = db.relationship('Player', foreign_keys=[challenger_id])
    challenged = db.relationship('Player', foreign_keys=[challenged_id])

    @property
    def is_active(self):
        return self.status in ACTIVE_STATUSES

    def involves(self, player_id):
        return player_id in (self.challenger_id, self.challenged_id)

    def to_dict(self):
        return {
            'id': self.id,
            'challenger_id': self.challenger_id,
            'challenged_id': self.challenged_id,
            'status': self.status,
            'created_date': _iso(self.created_date),
            'expiry_date': _iso(self.expiry_date),
            'responded_at': _iso(self.responded_at),
            'closed_at': _iso(self.closed_at),
            'email_notifications': {
                'challenge_created': _iso(self.created_notified_at),
                'week_reminder': _iso(self.week_reminder_sent_at),
                'final_week_reminder': _iso(self.final_week_reminder_sent_at),
                'final_deadline': _iso(self.final_deadline_sent_at),
                'expiry': _iso(self.expiry_notified_at),
            },
            'challenger': self.challenger.to_dict() if self.challenger else None,
            'challenged': self.challenged.to_dict() if self.challenged else None,
        }


class Match(db.Model):
    """Immutable result of a played (or walked-over) challenge."""
    id = db.Column(db.Integer, primary_key=True)
    challenge_id = db.Column(db.Integer, db.ForeignKey('challenge.id'), nullable=False, unique=True)
    challenger_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    challenged_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    winner_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    loser_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    challenger_games = db.Column(db.Integer, nullable=False)
    challenged_games = db.Column(db.Integer, nullable=False)
    game_scores = db.Column(db.Text, default='[]')  # JSON [[challenger, challenged], ...]
    is_walkover = db.Column(db.Boolean, default=False, nullable=False)
    has_suspicious_score = db.Column(db.Boolean, default=False, nullable=False)
    winner_position_before = db.Column(db.Integer, nullable=False)
    loser_position_before = db.Column(db.Integer, nullable=False)
    winner_position_after = db.Column(db.Integer, nullable=False)
    loser_position_after = db.Column(db.Integer, nullable=False)
    played_at = db.Column(db.DateTime, nullable=False)

    __table_args__ = (
        db.Index('ix_match_played_at', 'played_at'),
    )

    challenge = db.relationship('Challenge', backref=db.backref('match', uselist=False))
    winner = db.relationship('Player', foreign_keys=[winner_id])
    loser = db.relationship('Player', foreign_keys=[loser_id])

    @property
    def games(self):
        return [tuple(pair) for pair in _safe_json(self.game_scores, fallback=[])]

    def to_dict(self):
        return {
            'id': self.id,
            'challenge_id': self.challenge_id,
            'challenger_id': self.challenger_id,
            'challenged_id': self.challenged_id,
            'winner_id': self.winner_id,
            'loser_id': self.loser_id,
            'match_score': f'{self.challenger_games}-{self.challenged_games}',
            'challenger_games': self.challenger_games,
            'challenged_games': self.challenged_games,
            'games': [list(pair) for pair in self.games],
            'is_walkover': self.is_walkover,
            'has_suspicious_score': self.has_suspicious_score,
            'positions_before': {
                'winner': self.winner_position_before,
                'loser': self.loser_position_before,
            },
            'positions_after': {
                'winner': self.winner_position_after,
                'loser': self.loser_position_after,
            },
            'played_at': _iso(self.played_at),
            'winner': self.winner.to_dict() if self.winner else None,
            'loser': self.loser.to_dict() if self.loser else None,
        }


# ── Notifications ─────────────────────────────────────────────────────

class Notification(db.Model):
    """Outbox row for an emitted ladder event, consumed by an external mailer."""
    id = db.Column(db.Integer, primary_key=True)
    notif_type = db.Column(db.String(50), nullable=False)
    challenge_id = db.Column(db.Integer, db.ForeignKey('challenge.id'), nullable=True)
    recipients = db.Column(db.Text, default='[]')
    payload = db.Column(db.Text, default='{}')
    status = db.Column(db.String(20), default='queued')  # queued, sent, failed
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
    sent_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.Index('ix_notification_status_created', 'status', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id, 'notif_type': self.notif_type,
            'challenge_id': self.challenge_id,
            'recipients': _safe_json(self.recipients, fallback=[]),
            'payload': _safe_json(self.payload),
            'status': self.status,
            'created_at': _iso(self.created_at),
            'sent_at': _iso(self.sent_at),
        }
