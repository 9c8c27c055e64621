"""Ladder position arithmetic.

Positions are 1-based and contiguous among active players. Functions here
work on plain ``{player_id: position}`` mappings so they can be checked
without a database.
"""


class PositionInvariantError(RuntimeError):
    """Positions stopped being a contiguous 1..N permutation."""


def shifted_positions(positions, winner_id, loser_id):
    """Apply a match result and return the new ``{player_id: position}`` map.

    A winner already ranked above the loser leaves the ladder as it is.
    Otherwise the winner takes the loser's slot and everyone from that slot
    down to the winner's old slot, the loser included, drops one place.
    """
    winner_old = positions[winner_id]
    loser_old = positions[loser_id]
    if winner_old < loser_old:
        return dict(positions)
    top, bottom = loser_old, winner_old

    updated = {}
    for player_id, position in positions.items():
        if player_id == winner_id:
            updated[player_id] = top
        elif player_id == loser_id:
            updated[player_id] = loser_old + 1
        elif top <= position < bottom:
            updated[player_id] = position + 1
        else:
            updated[player_id] = position
    return updated


def closed_gap_positions(positions, removed_id):
    """Drop ``removed_id`` and move everyone below it up one place."""
    removed_position = positions[removed_id]
    return {
        player_id: position - 1 if position > removed_position else position
        for player_id, position in positions.items()
        if player_id != removed_id
    }


def is_contiguous(positions):
    return sorted(positions.values()) == list(range(1, len(positions) + 1))


def ensure_contiguous(positions):
    if not is_contiguous(positions):
        raise PositionInvariantError(
            f'Ladder positions are not a contiguous ranking: {sorted(positions.values())}'
        )
    return positions
