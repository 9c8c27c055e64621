"""Ladder policy constants, built once from Flask config."""
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class LadderRules:
    challenge_deadline_days: int = 21
    unplayed_grace_hours: int = 24
    pending_reminder_days: int = 7
    final_week_reminder_days: int = 14
    participation_points_cap: int = 3
    suspicious_game_score: int = 20

    @property
    def challenge_deadline(self):
        return timedelta(days=self.challenge_deadline_days)

    @property
    def unplayed_grace(self):
        return timedelta(hours=self.unplayed_grace_hours)

    @property
    def pending_reminder_after(self):
        return timedelta(days=self.pending_reminder_days)

    @property
    def final_week_reminder_after(self):
        return timedelta(days=self.final_week_reminder_days)

    @classmethod
    def from_config(cls, config):
        return cls(
            challenge_deadline_days=int(config.get('CHALLENGE_DEADLINE_DAYS', 21)),
            unplayed_grace_hours=int(config.get('UNPLAYED_GRACE_HOURS', 24)),
            pending_reminder_days=int(config.get('PENDING_REMINDER_DAYS', 7)),
            final_week_reminder_days=int(config.get('FINAL_WEEK_REMINDER_DAYS', 14)),
            participation_points_cap=int(config.get('PARTICIPATION_POINTS_CAP', 3)),
            suspicious_game_score=int(config.get('SUSPICIOUS_GAME_SCORE', 20)),
        )
