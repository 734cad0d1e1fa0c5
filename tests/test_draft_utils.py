"""Tests for the snake sequencer."""
import pytest

from draft_server.draft_errors import InvalidPickNumber
from draft_server.draft_utils import (
    calculate_rounds,
    generate_snake_order,
    participant_at,
    pick_in_round,
    pick_numbers_for_position,
    position_in_round,
    snake_round,
)

ORDER = {1: "A", 2: "B", 3: "C", 4: "D"}


def test_four_team_two_round_scenario():
    picks = [participant_at(p, 4, ORDER) for p in range(1, 9)]
    assert picks == ["A", "B", "C", "D", "D", "C", "B", "A"]


def test_round_and_pick_in_round():
    assert [snake_round(p, 4) for p in (1, 4, 5, 8, 9)] == [1, 1, 2, 2, 3]
    assert [pick_in_round(p, 4) for p in (1, 4, 5, 8, 9)] == [1, 4, 1, 4, 1]


@pytest.mark.parametrize("n_teams", [1, 2, 3, 4, 7, 12])
@pytest.mark.parametrize("n_rounds", [1, 2, 5])
def test_each_round_is_a_bijection_onto_slots(n_teams, n_rounds):
    for rnd in range(1, n_rounds + 1):
        first = (rnd - 1) * n_teams + 1
        positions = [position_in_round(p, n_teams) for p in range(first, first + n_teams)]
        assert sorted(positions) == list(range(1, n_teams + 1))


@pytest.mark.parametrize("n_teams", [1, 2, 5, 10])
def test_snake_symmetry_law(n_teams):
    order = {pos: f"team-{pos}" for pos in range(1, n_teams + 1)}
    for rnd in range(1, 6):
        for s in range(1, n_teams + 1):
            this_round = participant_at((rnd - 1) * n_teams + s, n_teams, order)
            next_round = participant_at(rnd * n_teams + (n_teams - s + 1), n_teams, order)
            assert this_round == next_round


def test_last_pick_of_a_round_picks_first_in_the_next():
    assert participant_at(4, 4, ORDER) == participant_at(5, 4, ORDER) == "D"
    assert participant_at(8, 4, ORDER) == participant_at(9, 4, ORDER) == "A"


@pytest.mark.parametrize("bad", [0, -1, -40])
def test_pick_numbers_below_one_are_rejected(bad):
    with pytest.raises(InvalidPickNumber):
        participant_at(bad, 4, ORDER)


def test_single_team_always_picks():
    assert {participant_at(p, 1, {1: "solo"}) for p in range(1, 10)} == {"solo"}


def test_generate_snake_order():
    assert generate_snake_order(4, 3) == [1, 2, 3, 4, 4, 3, 2, 1, 1, 2, 3, 4]


def test_pick_numbers_for_position():
    assert pick_numbers_for_position(1, 4, 3) == [1, 8, 9]
    assert pick_numbers_for_position(4, 4, 3) == [4, 5, 12]
    for pos in range(1, 5):
        for n in pick_numbers_for_position(pos, 4, 3):
            assert position_in_round(n, 4) == pos


def test_calculate_rounds():
    starters = {"QB": 1, "RB": 2, "WR": 2, "TE": 1, "FLEX": 1, "K": 1, "DEF": 1}
    assert calculate_rounds(starters, 7) == 16
