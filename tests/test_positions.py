"""Tests for the ladder position-shift arithmetic."""
import random

import pytest

from ladder.services.positions import (
    PositionInvariantError,
    closed_gap_positions,
    ensure_contiguous,
    is_contiguous,
    shifted_positions,
)


def _ladder(size):
    return {f'p{n}': n for n in range(1, size + 1)}


def test_lower_ranked_winner_takes_top_slot_and_pushes_everyone_between():
    positions = _ladder(5)
    updated = shifted_positions(positions, winner_id='p4', loser_id='p1')
    assert updated == {'p4': 1, 'p1': 2, 'p2': 3, 'p3': 4, 'p5': 5}


def test_scenario_three_beats_one():
    updated = shifted_positions({'P1': 1, 'P2': 2, 'P3': 3}, winner_id='P3', loser_id='P1')
    assert updated == {'P3': 1, 'P1': 2, 'P2': 3}


def test_higher_ranked_winner_keeps_positions():
    positions = _ladder(4)
    updated = shifted_positions(positions, winner_id='p1', loser_id='p3')
    assert updated == positions


def test_adjacent_players_swap():
    updated = shifted_positions(_ladder(3), winner_id='p3', loser_id='p2')
    assert updated == {'p1': 1, 'p2': 3, 'p3': 2}


def test_random_results_keep_ladder_contiguous():
    rng = random.Random(42)
    positions = _ladder(12)
    for _ in range(200):
        winner, loser = rng.sample(sorted(positions), 2)
        positions = shifted_positions(positions, winner, loser)
        assert is_contiguous(positions)
        assert positions[winner] < positions[loser]


def test_closed_gap_moves_players_below_up():
    updated = closed_gap_positions(_ladder(4), 'p2')
    assert updated == {'p1': 1, 'p3': 2, 'p4': 3}


def test_ensure_contiguous_rejects_gaps_and_duplicates():
    with pytest.raises(PositionInvariantError):
        ensure_contiguous({'a': 1, 'b': 3})
    with pytest.raises(PositionInvariantError):
        ensure_contiguous({'a': 1, 'b': 1})
    assert ensure_contiguous({}) == {}


def test_higher_ranked_winner_against_distant_challenger_changes_nothing():
    positions = _ladder(6)
    updated = shifted_positions(positions, winner_id='p2', loser_id='p5')
    assert updated == positions
    assert updated is not positions
