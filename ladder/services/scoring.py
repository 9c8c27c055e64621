"""
Squash scoring rules for ladder matches.

- A game is played to 11 points (point-a-rally).
- Once the loser reaches 9, the winner must lead by 2 (11-10 is not over,
  12-10 is). Below 9 any 11+ score ends the game.
- A match is best of five: the first player to win 3 games takes it, and no
  games may be listed after that point.
- Game scores above 20 happen in long tie-breaks but are unusual, so they are
  accepted and flagged for review rather than rejected.

Scores are always given challenger-first: ``(challenger_points, challenged_points)``.
"""
from dataclasses import dataclass, field

from ladder.errors import ExcessGames, IncompleteMatch, InvalidScore, TiedGame

GAME_POINTS = 11
WIN_BY_TWO_FROM = 9
GAMES_TO_WIN = 3
DEFAULT_SUSPICIOUS_SCORE = 20


@dataclass(frozen=True)
class MatchOutcome:
    challenger_games: int
    challenged_games: int
    games: tuple = ()
    is_walkover: bool = False
    suspicious_games: tuple = field(default_factory=tuple)

    @property
    def challenger_won(self):
        return self.challenger_games > self.challenged_games

    @property
    def has_suspicious_score(self):
        return bool(self.suspicious_games)


def _coerce_points(raw):
    if isinstance(raw, bool):
        raise InvalidScore('Scores must be whole numbers')
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InvalidScore('Scores must be whole numbers') from None
    if isinstance(raw, float) and raw != value:
        raise InvalidScore('Scores must be whole numbers')
    if value < 0:
        raise InvalidScore('Scores cannot be negative')
    return value


def validate_game_score(score_a, score_b):
    """Validate one game and return it as an ``(int, int)`` pair.

    Raises TiedGame for equal scores and InvalidScore for anything that is
    not a finished squash game.
    """
    a = _coerce_points(score_a)
    b = _coerce_points(score_b)
    if a == b:
        raise TiedGame(f'Game score {a}-{b} is tied; a game must have a winner')

    winner, loser = max(a, b), min(a, b)
    if winner < GAME_POINTS:
        raise InvalidScore(f'Game score {a}-{b}: winner must score at least {GAME_POINTS} points')
    if loser >= WIN_BY_TWO_FROM and winner - loser < 2:
        raise InvalidScore(
            f'Game score {a}-{b}: must win by 2 once the opponent has {WIN_BY_TWO_FROM} points'
        )
    return a, b


def is_valid_game_score(score_a, score_b):
    try:
        validate_game_score(score_a, score_b)
    except InvalidScore:
        return False
    return True


def is_suspicious_game(score, threshold=DEFAULT_SUSPICIOUS_SCORE):
    return max(score) > threshold


def _parse_game(raw_game):
    if isinstance(raw_game, dict):
        return raw_game.get('challenger'), raw_game.get('challenged')
    if isinstance(raw_game, (list, tuple)) and len(raw_game) == 2:
        return raw_game[0], raw_game[1]
    raise InvalidScore('Each game must be a pair of scores')


def evaluate_match(raw_games, suspicious_threshold=DEFAULT_SUSPICIOUS_SCORE):
    """Validate a best-of-five game list and return the MatchOutcome.

    Args:
        raw_games: Sequence of ``(challenger, challenged)`` pairs, or dicts
            with ``challenger``/``challenged`` keys, in playing order.
        suspicious_threshold: Game scores above this are flagged.
    """
    if raw_games is None or isinstance(raw_games, (str, bytes)):
        raise InvalidScore('Game scores must be a list')

    games = [validate_game_score(*_parse_game(raw)) for raw in raw_games]

    challenger_games = 0
    challenged_games = 0
    for index, (a, b) in enumerate(games):
        if challenger_games == GAMES_TO_WIN or challenged_games == GAMES_TO_WIN:
            raise ExcessGames(
                f'Too many games: the match was decided after game {index}'
            )
        if a > b:
            challenger_games += 1
        else:
            challenged_games += 1

    if max(challenger_games, challenged_games) < GAMES_TO_WIN:
        raise IncompleteMatch(
            f'Match is incomplete ({challenger_games}-{challenged_games}); '
            f'first to {GAMES_TO_WIN} games wins'
        )

    suspicious = tuple(
        index for index, score in enumerate(games)
        if is_suspicious_game(score, suspicious_threshold)
    )
    return MatchOutcome(
        challenger_games=challenger_games,
        challenged_games=challenged_games,
        games=tuple(games),
        suspicious_games=suspicious,
    )


def walkover_outcome():
    """Walkover: the challenger wins 3-0 without games being played."""
    return MatchOutcome(challenger_games=GAMES_TO_WIN, challenged_games=0, is_walkover=True)
