"""Challenge lifecycle: creation rules, responses and time-based expiry.

    pending  -> accepted | declined | expired
    accepted -> completed (match recorded) | expired_unplayed

declined, expired, expired_unplayed and completed are terminal. A player may
be part of at most one pending or accepted challenge at a time.
"""
import logging

from sqlalchemy import or_

from ladder.app import db
from ladder.errors import (
    DuplicatePending, InvalidDecision, InvalidDirection, InvalidState,
    NotAuthorized, NotFound, PlayerBusy,
)
from ladder.models import (
    ACTIVE_STATUSES, CHALLENGE_STATUSES, STATUS_ACCEPTED, STATUS_COMPLETED,
    STATUS_DECLINED, STATUS_EXPIRED, STATUS_EXPIRED_UNPLAYED, STATUS_PENDING,
    Challenge,
)
from ladder.services.rules import LadderRules
from ladder.time_utils import days_remaining, utcnow_naive

logger = logging.getLogger(__name__)

RESPONSE_DECISIONS = {STATUS_ACCEPTED, STATUS_DECLINED}


def due_transition(challenge, now, rules):
    """Status a challenge must move to at ``now``, or None."""
    if challenge.status == STATUS_PENDING and challenge.expiry_date < now:
        return STATUS_EXPIRED
    if (challenge.status == STATUS_ACCEPTED
            and challenge.expiry_date + rules.unplayed_grace < now):
        return STATUS_EXPIRED_UNPLAYED
    return None


class ChallengeLifecycle:
    def __init__(self, registry, rules=None, clock=utcnow_naive):
        self.registry = registry
        self.rules = rules or LadderRules()
        self.clock = clock

    # ── Queries ───────────────────────────────────────────────────────

    def get(self, challenge_id):
        try:
            challenge = db.session.get(Challenge, int(challenge_id))
        except (TypeError, ValueError):
            challenge = None
        if not challenge:
            raise NotFound(f'Challenge {challenge_id} not found')
        return challenge

    def list_challenges(self, status=None, player_id=None):
        query = Challenge.query
        if status:
            statuses = [status] if isinstance(status, str) else list(status)
            unknown = set(statuses) - set(CHALLENGE_STATUSES)
            if unknown:
                raise InvalidState(f'Unknown challenge status: {", ".join(sorted(unknown))}')
            query = query.filter(Challenge.status.in_(statuses))
        if player_id is not None:
            query = query.filter(or_(
                Challenge.challenger_id == player_id,
                Challenge.challenged_id == player_id,
            ))
        return query.order_by(Challenge.created_date.desc(), Challenge.id.desc()).all()

    def active_challenges(self, player_id=None):
        return self.list_challenges(status=ACTIVE_STATUSES, player_id=player_id)

    def active_challenge_for(self, player_id):
        active = self.active_challenges(player_id=player_id)
        return active[0] if active else None

    def is_busy(self, player_id):
        return self.active_challenge_for(player_id) is not None

    def challengeable_players(self, player_id):
        """Active players ranked above ``player_id`` who are free to be challenged."""
        player = self.registry.get_active(player_id)
        if self.is_busy(player.id):
            return []
        busy_ids = set()
        for challenge in self.active_challenges():
            busy_ids.update((challenge.challenger_id, challenge.challenged_id))
        return [
            other for other in self.registry.active_players()
            if other.position < player.position and other.id not in busy_ids
        ]

    def player_status(self, player_id):
        player = self.registry.get_active(player_id)
        challenge = self.active_challenge_for(player.id)
        if challenge is None:
            return {
                'status': 'available',
                'challenge_id': None,
                'days_remaining': None,
                'can_challenge': True,
                'can_be_challenged': True,
            }
        return {
            'status': 'in_active_match' if challenge.status == STATUS_ACCEPTED else 'challenge_pending',
            'challenge_id': challenge.id,
            'days_remaining': max(0, days_remaining(challenge.expiry_date, self.clock())),
            'can_challenge': False,
            'can_be_challenged': False,
        }

    # ── Mutations (callers own the transaction) ───────────────────────

    def create(self, challenger_id, challenged_id):
        challenger = self.registry.get_active(challenger_id)
        challenged = self.registry.get_active(challenged_id)

        if challenger.position <= challenged.position:
            raise InvalidDirection('You can only challenge players above you on the ladder')

        existing = Challenge.query.filter_by(
            challenger_id=challenger.id,
            challenged_id=challenged.id,
            status=STATUS_PENDING,
        ).first()
        if existing:
            raise DuplicatePending(
                f'A pending challenge from {challenger.name} to {challenged.name} already exists'
            )

        if self.is_busy(challenger.id):
            raise PlayerBusy(
                'You already have an active challenge. Complete it before creating a new one.'
            )
        if self.is_busy(challenged.id):
            raise PlayerBusy(f'{challenged.name} already has an active challenge and cannot be challenged')

        now = self.clock()
        challenge = Challenge(
            challenger_id=challenger.id,
            challenged_id=challenged.id,
            status=STATUS_PENDING,
            created_date=now,
            expiry_date=now + self.rules.challenge_deadline,
        )
        db.session.add(challenge)
        db.session.flush()
        logger.info(
            'Challenge %s created: %s (#%s) -> %s (#%s)',
            challenge.id, challenger.name, challenger.position,
            challenged.name, challenged.position,
        )
        return challenge

    def respond(self, challenge_id, decision, responder_id=None):
        """Accept or decline a pending challenge.

        ``responder_id`` is the already-authenticated acting player; when
        given it must be the challenged player.
        """
        challenge = self.get(challenge_id)
        decision = str(decision or '').strip().lower()
        if decision not in RESPONSE_DECISIONS:
            raise InvalidDecision("Decision must be 'accepted' or 'declined'")
        if challenge.status != STATUS_PENDING:
            raise InvalidState(f'Challenge {challenge.id} is {challenge.status}, not pending')
        if responder_id is not None and int(responder_id) != challenge.challenged_id:
            raise NotAuthorized('Only the challenged player can respond to this challenge')

        now = self.clock()
        if challenge.expiry_date < now:
            raise InvalidState(f'Challenge {challenge.id} has expired')

        challenge.status = decision
        challenge.responded_at = now
        if decision == STATUS_DECLINED:
            challenge.closed_at = now
        db.session.flush()
        logger.info('Challenge %s %s', challenge.id, decision)
        return challenge

    def complete(self, challenge):
        challenge.status = STATUS_COMPLETED
        challenge.closed_at = self.clock()
        db.session.flush()
        return challenge

    def expire_due(self, now):
        """Apply every due expiry transition; return ``[(challenge, old_status)]``."""
        changed = []
        for challenge in self.active_challenges():
            new_status = due_transition(challenge, now, self.rules)
            if new_status is None:
                continue
            old_status = challenge.status
            challenge.status = new_status
            challenge.closed_at = now
            changed.append((challenge, old_status))
            logger.info('Challenge %s %s -> %s', challenge.id, old_status, new_status)
        if changed:
            db.session.flush()
        return changed
