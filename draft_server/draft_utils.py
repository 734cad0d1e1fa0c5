"""
draft_utils.py
==============

Snake-draft sequencing helpers.  Every function here is pure: given an
absolute pick number and the number of teams, the round, the slot position
and the drafting participant can be recomputed at any time without any
stored state.  Clients, the server and audit tools therefore all derive the
same on-the-clock participant from ``current_pick`` alone.

Pick numbers and slot positions are 1-based throughout.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

from draft_server.draft_errors import InvalidPickNumber


def _check_pick(pick_number: int, n_teams: int) -> None:
    if n_teams < 1:
        raise ValueError(f"n_teams must be >= 1, got {n_teams}")
    if pick_number < 1:
        raise InvalidPickNumber(f"pick number must be >= 1, got {pick_number}")


def snake_round(pick_number: int, n_teams: int) -> int:
    """Return the 1-based round containing ``pick_number`` (``ceil(p / N)``)."""
    _check_pick(pick_number, n_teams)
    return (pick_number + n_teams - 1) // n_teams


def pick_in_round(pick_number: int, n_teams: int) -> int:
    """Return the 1-based index of ``pick_number`` within its round."""
    _check_pick(pick_number, n_teams)
    return ((pick_number - 1) % n_teams) + 1


def position_in_round(pick_number: int, n_teams: int) -> int:
    """Return the draft slot position that owns ``pick_number``.

    Odd rounds run 1..N and even rounds run N..1, so the team that picks
    last in round k picks first in round k+1.

    Parameters
    ----------
    pick_number : int
        Absolute 1-based pick number.
    n_teams : int
        Number of teams (slot positions) in the draft.

    Returns
    -------
    int
        Slot position in ``[1, n_teams]``.

    Raises
    ------
    InvalidPickNumber
        If ``pick_number`` is less than 1.
    """
    rnd = snake_round(pick_number, n_teams)
    idx = pick_in_round(pick_number, n_teams)
    if rnd % 2 == 1:
        return idx
    return n_teams - idx + 1


def participant_at(pick_number: int, n_teams: int, draft_order: Mapping[int, str]) -> str:
    """Return the participant id that owns ``pick_number``.

    ``draft_order`` maps slot position (1..N) to participant id.
    """
    position = position_in_round(pick_number, n_teams)
    try:
        return draft_order[position]
    except KeyError:
        raise InvalidPickNumber(
            f"draft order has no participant at slot {position} (pick {pick_number})"
        ) from None


def total_picks(n_teams: int, n_rounds: int) -> int:
    return n_teams * n_rounds


def generate_snake_order(n_teams: int, n_rounds: int) -> List[int]:
    """Generate the slot position for every pick of a snake draft.

    With four teams and three rounds the result is
    ``[1, 2, 3, 4,  4, 3, 2, 1,  1, 2, 3, 4]``; entry ``i`` is the slot that
    makes pick number ``i + 1``.

    Parameters
    ----------
    n_teams : int
        Number of teams in the league.
    n_rounds : int
        Number of rounds in the draft.

    Returns
    -------
    List[int]
        A list of length ``n_teams * n_rounds``.
    """
    return [position_in_round(p, n_teams) for p in range(1, total_picks(n_teams, n_rounds) + 1)]


def pick_numbers_for_position(position: int, n_teams: int, n_rounds: int) -> List[int]:
    """Return every absolute pick number owned by slot ``position``."""
    if not (1 <= position <= n_teams):
        raise ValueError(f"position must be in [1, {n_teams}], got {position}")
    picks: List[int] = []
    for rnd in range(1, n_rounds + 1):
        offset = position if rnd % 2 == 1 else n_teams - position + 1
        picks.append((rnd - 1) * n_teams + offset)
    return picks


def calculate_rounds(starter_requirements: Dict[str, int], bench_spots: int) -> int:
    """Compute the number of rounds needed to fill a roster.

    Parameters
    ----------
    starter_requirements : Dict[str, int]
        Mapping of slot codes (including ``FLEX``) to required starters.
    bench_spots : int
        Number of bench slots.

    Returns
    -------
    int
        Players each team drafts to fill every starter and bench slot.
    """
    return sum(starter_requirements.values()) + bench_spots
