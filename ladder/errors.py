"""Ladder error taxonomy.

Every rejected operation raises one of these before any state is committed.
The Flask error handler turns them into ``{'error': ..., 'code': ...}``
responses using ``status_code``.
"""


class LadderError(Exception):
    code = 'ladder_error'
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class InvalidPlayer(LadderError):
    code = 'invalid_player'
    status_code = 404


class InvalidName(LadderError):
    code = 'invalid_name'


class DuplicateName(LadderError):
    code = 'duplicate_name'
    status_code = 409


class InvalidDirection(LadderError):
    code = 'invalid_direction'


class PlayerBusy(LadderError):
    code = 'player_busy'
    status_code = 409


class DuplicatePending(LadderError):
    code = 'duplicate_pending'
    status_code = 409


class NotFound(LadderError):
    code = 'not_found'
    status_code = 404


class InvalidState(LadderError):
    code = 'invalid_state'
    status_code = 409


class InvalidDecision(LadderError):
    code = 'invalid_decision'


class NotAuthorized(LadderError):
    code = 'not_authorized'
    status_code = 403


class InvalidScore(LadderError):
    code = 'invalid_score'


class TiedGame(InvalidScore):
    code = 'tied_game'


class IncompleteMatch(InvalidScore):
    code = 'incomplete_match'


class ExcessGames(InvalidScore):
    code = 'excess_games'


class NotificationDeliveryError(Exception):
    """Raised by a notification sink when an event could not be handed off."""
