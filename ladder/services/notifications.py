"""
Notification planning for the challenge lifecycle.

``plan_notifications`` is a pure function of (challenges, players, now): it
decides which events are due and never delivers anything. Each event type
maps to a marker column on ``Challenge``; an event is planned only while its
marker is empty, so once delivery succeeds and the marker is set the event
is never planned again.

Schedule, measured from the challenge's ``created_date``:
- challenge_created: immediately, to the challenged player (pending only).
- week_reminder: day 7 while still pending, to the challenged player.
- final_week_reminder: day 14 while accepted, to both players.
- final_deadline: accepted and past ``expiry_date`` but inside the grace
  window, to both players.
- challenge_expired / challenge_expired_unplayed: once the challenge has
  moved to that status, to both players.
"""
from dataclasses import dataclass, field

from ladder.models import (
    STATUS_ACCEPTED, STATUS_EXPIRED, STATUS_EXPIRED_UNPLAYED, STATUS_PENDING,
)
from ladder.services.rules import LadderRules
from ladder.time_utils import days_remaining

CHALLENGE_CREATED = 'challenge_created'
WEEK_REMINDER = 'week_reminder'
FINAL_WEEK_REMINDER = 'final_week_reminder'
FINAL_DEADLINE = 'final_deadline'
CHALLENGE_EXPIRED = 'challenge_expired'
CHALLENGE_EXPIRED_UNPLAYED = 'challenge_expired_unplayed'

MARKER_FIELDS = {
    CHALLENGE_CREATED: 'created_notified_at',
    WEEK_REMINDER: 'week_reminder_sent_at',
    FINAL_WEEK_REMINDER: 'final_week_reminder_sent_at',
    FINAL_DEADLINE: 'final_deadline_sent_at',
    CHALLENGE_EXPIRED: 'expiry_notified_at',
    CHALLENGE_EXPIRED_UNPLAYED: 'expiry_notified_at',
}


@dataclass(frozen=True)
class NotificationEvent:
    type: str
    challenge_id: int
    recipients: tuple = ()
    payload: dict = field(default_factory=dict)

    @property
    def marker_field(self):
        return MARKER_FIELDS[self.type]

    def to_dict(self):
        return {
            'type': self.type,
            'challenge_id': self.challenge_id,
            'recipients': [dict(r) for r in self.recipients],
            'payload': dict(self.payload),
        }


def _payload(challenge, challenger, challenged, now, **extra):
    payload = {
        'challenger_name': challenger.name,
        'challenger_position': challenger.position,
        'challenged_name': challenged.name,
        'challenged_position': challenged.position,
        'status': challenge.status,
        'created_date': challenge.created_date.isoformat(),
        'expiry_date': challenge.expiry_date.isoformat(),
        'days_remaining': max(0, days_remaining(challenge.expiry_date, now)),
    }
    payload.update(extra)
    return payload


def _due_events(challenge, now, rules):
    age = now - challenge.created_date
    if challenge.status == STATUS_PENDING:
        if challenge.created_notified_at is None:
            yield CHALLENGE_CREATED
        if (age >= rules.pending_reminder_after
                and now <= challenge.expiry_date
                and challenge.week_reminder_sent_at is None):
            yield WEEK_REMINDER
    elif challenge.status == STATUS_ACCEPTED:
        grace_deadline = challenge.expiry_date + rules.unplayed_grace
        if challenge.expiry_date < now <= grace_deadline:
            if challenge.final_deadline_sent_at is None:
                yield FINAL_DEADLINE
        elif (now <= challenge.expiry_date
                and age >= rules.final_week_reminder_after
                and challenge.final_week_reminder_sent_at is None):
            yield FINAL_WEEK_REMINDER
    elif challenge.status == STATUS_EXPIRED:
        if challenge.expiry_notified_at is None:
            yield CHALLENGE_EXPIRED
    elif challenge.status == STATUS_EXPIRED_UNPLAYED:
        if challenge.expiry_notified_at is None:
            yield CHALLENGE_EXPIRED_UNPLAYED


def build_event(event_type, challenge, challenger, challenged, now, rules=None):
    rules = rules or LadderRules()
    if event_type in (CHALLENGE_CREATED, WEEK_REMINDER):
        recipients = (challenged.to_recipient(),)
    else:
        recipients = (challenger.to_recipient(), challenged.to_recipient())

    extra = {}
    if event_type == FINAL_DEADLINE:
        extra['grace_deadline'] = (challenge.expiry_date + rules.unplayed_grace).isoformat()
    return NotificationEvent(
        type=event_type,
        challenge_id=challenge.id,
        recipients=recipients,
        payload=_payload(challenge, challenger, challenged, now, **extra),
    )


def plan_notifications(challenges, players_by_id, now, rules=None):
    """Return the NotificationEvents due at ``now``, in challenge order."""
    rules = rules or LadderRules()
    events = []
    for challenge in challenges:
        challenger = players_by_id.get(challenge.challenger_id)
        challenged = players_by_id.get(challenge.challenged_id)
        if challenger is None or challenged is None:
            continue
        for event_type in _due_events(challenge, now, rules):
            events.append(build_event(event_type, challenge, challenger, challenged, now, rules))
    return events
