"""Match recording, ladder position updates and statistics."""
import json
import logging

from ladder.app import db
from ladder.errors import InvalidScore, InvalidState, NotAuthorized
from ladder.models import STATUS_ACCEPTED, STATUS_PENDING, Match, Player
from ladder.services.challenges import due_transition
from ladder.services.positions import shifted_positions
from ladder.services.rules import LadderRules
from ladder.services.scoring import evaluate_match, walkover_outcome
from ladder.time_utils import utcnow_naive

logger = logging.getLogger(__name__)


def _coerce_bool(raw_value):
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, (int, float)):
        return raw_value == 1
    if raw_value is None:
        return False
    return str(raw_value).strip().lower() in {'1', 'true', 'yes', 'on'}


def outcome_from_result(result, rules=None):
    """Turn ``{'is_walkover': True}``, ``{'games': [...]}`` or a bare game list into a MatchOutcome."""
    rules = rules or LadderRules()
    if isinstance(result, dict):
        if _coerce_bool(result.get('is_walkover')):
            return walkover_outcome()
        games = result.get('games')
    else:
        games = result
    if games is None:
        raise InvalidScore('Provide game scores or mark the match as a walkover')
    return evaluate_match(games, suspicious_threshold=rules.suspicious_game_score)


def _rate(won, lost):
    total = won + lost
    return round(won / total * 100, 1) if total else 0.0


class MatchRecorder:
    def __init__(self, registry, lifecycle, rules=None, clock=utcnow_naive):
        self.registry = registry
        self.lifecycle = lifecycle
        self.rules = rules or LadderRules()
        self.clock = clock

    def record(self, challenge_id, result, recorder_id=None):
        """Record the result of an accepted challenge and update the ladder.

        Args:
            challenge_id: The accepted challenge being played.
            result: ``{'is_walkover': True}`` (challenger wins) or game scores
                listed challenger-first.
            recorder_id: Acting player, when known; must be a participant.

        Returns:
            The new Match.
        """
        challenge = self.lifecycle.get(challenge_id)
        if challenge.status != STATUS_ACCEPTED:
            if challenge.status == STATUS_PENDING:
                raise InvalidState(f'Challenge {challenge.id} has not been accepted yet')
            raise InvalidState(f'Challenge {challenge.id} is {challenge.status} and cannot be recorded')
        if recorder_id is not None and not challenge.involves(int(recorder_id)):
            raise NotAuthorized('Only the two players in this challenge can record its result')
        if due_transition(challenge, self.clock(), self.rules) is not None:
            raise InvalidState(f'Challenge {challenge.id} is past its deadline and can no longer be recorded')

        outcome = outcome_from_result(result, self.rules)

        challenger = self.registry.get_active(challenge.challenger_id)
        challenged = self.registry.get_active(challenge.challenged_id)
        winner, loser = (challenger, challenged) if outcome.challenger_won else (challenged, challenger)

        before = self.registry.positions()
        after = shifted_positions(before, winner.id, loser.id)
        self.registry.apply_positions(after)

        cap = self.rules.participation_points_cap
        winner.wins += 1
        loser.losses += 1
        for player in (winner, loser):
            player.participation_points = min((player.participation_points or 0) + 1, cap)

        now = self.clock()
        match = Match(
            challenge_id=challenge.id,
            challenger_id=challenger.id,
            challenged_id=challenged.id,
            winner_id=winner.id,
            loser_id=loser.id,
            challenger_games=outcome.challenger_games,
            challenged_games=outcome.challenged_games,
            game_scores=json.dumps([list(game) for game in outcome.games]),
            is_walkover=outcome.is_walkover,
            has_suspicious_score=outcome.has_suspicious_score,
            winner_position_before=before[winner.id],
            loser_position_before=before[loser.id],
            winner_position_after=after[winner.id],
            loser_position_after=after[loser.id],
            played_at=now,
        )
        db.session.add(match)
        self.lifecycle.complete(challenge)
        db.session.flush()

        if outcome.has_suspicious_score:
            logger.warning(
                'Match %s for challenge %s has unusual game scores %s; accepted for review',
                match.id, challenge.id,
                [outcome.games[index] for index in outcome.suspicious_games],
            )
        logger.info(
            'Match %s recorded: %s beat %s %s-%s%s; positions %s->%s and %s->%s',
            match.id, winner.name, loser.name,
            max(outcome.challenger_games, outcome.challenged_games),
            min(outcome.challenger_games, outcome.challenged_games),
            ' (walkover)' if outcome.is_walkover else '',
            before[winner.id], after[winner.id], before[loser.id], after[loser.id],
        )
        return match

    # ── Statistics ────────────────────────────────────────────────────

    def recent_matches(self, limit=10):
        return Match.query.order_by(Match.played_at.desc(), Match.id.desc()).limit(limit).all()

    def matches_for(self, player_id):
        return Match.query.filter(
            (Match.winner_id == player_id) | (Match.loser_id == player_id)
        ).order_by(Match.played_at.asc()).all()

    def player_stats(self, player_id):
        wins = losses = games_won = games_lost = points_for = points_against = 0
        matches = self.matches_for(player_id)
        for match in matches:
            if match.winner_id == player_id:
                wins += 1
            else:
                losses += 1
            if match.is_walkover:
                continue
            as_challenger = match.challenger_id == player_id
            for challenger_points, challenged_points in match.games:
                mine, theirs = (
                    (challenger_points, challenged_points) if as_challenger
                    else (challenged_points, challenger_points)
                )
                points_for += mine
                points_against += theirs
                if mine > theirs:
                    games_won += 1
                else:
                    games_lost += 1
        return {
            'matches': len(matches),
            'wins': wins,
            'losses': losses,
            'win_rate': _rate(wins, losses),
            'games_won': games_won,
            'games_lost': games_lost,
            'game_win_rate': _rate(games_won, games_lost),
            'points_for': points_for,
            'points_against': points_against,
            'points_diff': points_for - points_against,
        }

    def ladder_summary(self, active_challenge_count):
        leader = Player.query.filter_by(is_active=True, position=1).first()
        return {
            'total_players': Player.query.filter_by(is_active=True).count(),
            'active_challenges': active_challenge_count,
            'matches_played': Match.query.count(),
            'current_leader': leader.name if leader else None,
        }
