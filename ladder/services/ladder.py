"""
Ladder service: the one object every caller goes through.

Holds the registry, challenge lifecycle and match recorder for a ladder and
runs each mutation under a shared lock inside one database transaction, so
concurrent requests and the background expiry sweep are serialized and a
rejected operation never leaves partial state behind.

Notification delivery happens after the state change is committed. A failed
delivery is logged and its marker stays empty, so the next sweep plans the
same event again.
"""
import logging
import threading
from contextlib import contextmanager

from sqlalchemy import and_, or_

from ladder.app import db
from ladder.errors import InvalidPlayer, PlayerBusy
from ladder.models import ACTIVE_STATUSES, STATUS_EXPIRED, STATUS_EXPIRED_UNPLAYED, Challenge
from ladder.services.challenges import ChallengeLifecycle
from ladder.services.matches import MatchRecorder
from ladder.services.notifications import plan_notifications
from ladder.services.registry import PlayerRegistry
from ladder.services.rules import LadderRules
from ladder.services.sinks import OutboxNotificationSink
from ladder.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

PLAYER_JOINED = 'player_joined'
PLAYER_DEACTIVATED = 'player_deactivated'
CHALLENGE_CREATED = 'challenge_created'
CHALLENGE_RESPONDED = 'challenge_responded'
MATCH_RECORDED = 'match_recorded'
CHALLENGES_EXPIRED = 'challenges_expired'


class LadderService:
    def __init__(self, rules=None, sink=None, clock=utcnow_naive):
        self.rules = rules or LadderRules()
        self.sink = sink or OutboxNotificationSink()
        self.clock = clock
        self.registry = PlayerRegistry(clock=clock)
        self.challenges = ChallengeLifecycle(self.registry, self.rules, clock=clock)
        self.matches = MatchRecorder(self.registry, self.challenges, self.rules, clock=clock)
        self._lock = threading.RLock()
        self._subscribers = []

    # ── Transactions and observers ────────────────────────────────────

    @contextmanager
    def _transaction(self):
        with self._lock:
            try:
                yield
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

    def subscribe(self, callback):
        """Register ``callback(event_name, payload)``; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def _publish(self, event_name, payload):
        for callback in list(self._subscribers):
            try:
                callback(event_name, payload)
            except Exception:
                logger.exception('Ladder subscriber %r failed on %s', callback, event_name)

    # ── Player registry ───────────────────────────────────────────────

    def join(self, name, email=None):
        with self._lock:
            with self._transaction():
                player = self.registry.join(name, email=email)
            self._publish(PLAYER_JOINED, {'player': player.to_dict()})
        return player

    def find_by_id(self, player_id):
        return self.registry.find_by_id(player_id)

    def find_by_name(self, name):
        return self.registry.find_by_name(name)

    def player_for_identity(self, identity):
        """Resolve the acting player from an ``{id, display_name}`` identity."""
        player = self.registry.find_by_name((identity or {}).get('display_name'))
        if not player:
            raise InvalidPlayer('You need to join the ladder first')
        return player

    def standings(self):
        return self.registry.active_players()

    def deactivate(self, player_id):
        with self._lock:
            with self._transaction():
                player = self.registry.get_active(player_id)
                if self.challenges.is_busy(player.id):
                    raise PlayerBusy(f'{player.name} has an active challenge and cannot leave the ladder')
                self.registry.deactivate(player.id)
            self._publish(PLAYER_DEACTIVATED, {'player': player.to_dict()})
        return player

    # ── Challenge lifecycle ───────────────────────────────────────────

    def create_challenge(self, challenger_id, challenged_id):
        with self._lock:
            with self._transaction():
                challenge = self.challenges.create(challenger_id, challenged_id)
            self._deliver_due([challenge])
            self._publish(CHALLENGE_CREATED, {'challenge': challenge.to_dict()})
        return challenge

    def respond(self, challenge_id, decision, responder_id=None):
        with self._lock:
            with self._transaction():
                challenge = self.challenges.respond(challenge_id, decision, responder_id=responder_id)
            self._publish(CHALLENGE_RESPONDED, {'challenge': challenge.to_dict()})
        return challenge

    def get_challenge(self, challenge_id):
        return self.challenges.get(challenge_id)

    def list_challenges(self, status=None, player_id=None):
        return self.challenges.list_challenges(status=status, player_id=player_id)

    def challengeable_players(self, player_id):
        return self.challenges.challengeable_players(player_id)

    def player_status(self, player_id):
        return self.challenges.player_status(player_id)

    def sweep_expirations(self, now=None):
        """Expire overdue challenges, then send every notification that is due.

        Safe to call repeatedly with the same ``now``: transitions only apply
        to active challenges and each event is sent once per challenge.

        Returns:
            Dict with the ``transitions`` applied and the ``notifications``
            delivered (as event dicts).
        """
        now = now or self.clock()
        with self._lock:
            with self._transaction():
                changed = self.challenges.expire_due(now)
                transitions = [
                    {'challenge_id': c.id, 'from': old_status, 'to': c.status}
                    for c, old_status in changed
                ]

            candidates = Challenge.query.filter(or_(
                Challenge.status.in_(ACTIVE_STATUSES),
                and_(
                    Challenge.status.in_((STATUS_EXPIRED, STATUS_EXPIRED_UNPLAYED)),
                    Challenge.expiry_notified_at.is_(None),
                ),
            )).order_by(Challenge.id.asc()).all()
            delivered = self._deliver_due(candidates, now=now)

            if transitions:
                self._publish(CHALLENGES_EXPIRED, {'transitions': transitions})
        return {'transitions': transitions, 'notifications': delivered}

    # ── Matches ───────────────────────────────────────────────────────

    def record_match(self, challenge_id, result, recorder_id=None):
        with self._lock:
            with self._transaction():
                match = self.matches.record(challenge_id, result, recorder_id=recorder_id)
                self.registry.verify_positions()
            self._publish(MATCH_RECORDED, {'match': match.to_dict()})
        return match

    def recent_matches(self, limit=10):
        return self.matches.recent_matches(limit=limit)

    def player_stats(self, player_id):
        player = self.registry.find_by_id(player_id)
        if not player:
            raise InvalidPlayer(f'Player {player_id} not found')
        return self.matches.player_stats(player.id)

    def ladder_summary(self):
        return self.matches.ladder_summary(len(self.challenges.active_challenges()))

    # ── Notifications ─────────────────────────────────────────────────

    def _deliver_due(self, challenges, now=None):
        now = now or self.clock()
        with self._lock:
            player_ids = set()
            for challenge in challenges:
                player_ids.update((challenge.challenger_id, challenge.challenged_id))
            players = self.registry.players_by_id(player_ids)
            events = plan_notifications(challenges, players, now, self.rules)
            by_id = {challenge.id: challenge for challenge in challenges}

            delivered = []
            for event in events:
                try:
                    self.sink.deliver(event)
                except Exception:
                    logger.warning(
                        'Could not deliver %s for challenge %s; will retry on the next sweep',
                        event.type, event.challenge_id, exc_info=True,
                    )
                    continue
                setattr(by_id[event.challenge_id], event.marker_field, now)
                delivered.append(event.to_dict())
                logger.info('Sent %s for challenge %s', event.type, event.challenge_id)

            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        return delivered
