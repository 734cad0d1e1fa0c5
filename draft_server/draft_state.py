"""
draft_state.py
==============

This module defines ``DraftSnapshot``, a read-only view of one draft as it
was committed at a single instant: the draft record, its order and its
pick ledger.  Everything a caller may want to know about "where the draft
is" is derived here from those three pieces, never stored separately:

- the on-the-clock participant comes from ``current_pick`` and the order
  via the snake sequencer;
- the set of drafted players comes from the ledger;
- the remaining time on the clock comes from ``clock_started_at`` and
  ``timer_seconds``.

Snapshots are cheap to rebuild and are thrown away after each request.

Usage
-----

```python
draft, order, picks = store.load_snapshot(draft_id)
snap = DraftSnapshot(draft, order, picks)
snap.on_the_clock()            # participant id or None
snap.remaining_seconds(now)    # float or None
```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Set

from draft_server.draft_models import Draft, DraftOrder, DraftStatus, Pick
from draft_server.draft_utils import participant_at, pick_numbers_for_position, position_in_round, snake_round


@dataclass
class DraftStateView:
    """What observers see of a draft at one instant (see ``DraftSnapshot.view``)."""

    draft_id: str
    status: DraftStatus
    current_pick: int
    current_round: Optional[int]
    total_picks: int
    on_the_clock_participant_id: Optional[str]
    remaining_seconds: Optional[float]
    timer_seconds: Optional[int]
    picks: List[Pick] = field(default_factory=list)


class DraftSnapshot:
    """Derived state of a draft at one committed point of its ledger.

    Parameters
    ----------
    draft : Draft
        The draft record.
    order : DraftOrder
        Slot position to participant mapping.
    picks : Sequence[Pick]
        The ledger, ordered by pick number.
    """

    def __init__(self, draft: Draft, order: DraftOrder, picks: Sequence[Pick]) -> None:
        self.draft = draft
        self.order = order
        self.picks: List[Pick] = sorted(picks, key=lambda p: p.pick_number)

    @property
    def current_pick(self) -> int:
        return self.draft.current_pick

    @property
    def n_teams(self) -> int:
        return self.draft.number_of_teams

    @property
    def n_rounds(self) -> int:
        return self.draft.number_of_rounds

    def is_draft_over(self) -> bool:
        """Return True if all picks in the draft have been made."""
        return self.draft.current_pick > self.draft.total_picks

    def current_round(self) -> Optional[int]:
        if self.is_draft_over():
            return None
        return snake_round(self.current_pick, self.n_teams)

    def on_the_clock(self) -> Optional[str]:
        """Return the participant whose turn it is, or None if no pick is open."""
        if self.draft.status != DraftStatus.IN_PROGRESS or self.is_draft_over():
            return None
        return participant_at(self.current_pick, self.n_teams, self.order.slots)

    def remaining_seconds(self, now: datetime) -> Optional[float]:
        """Seconds left for the on-the-clock participant; negative once expired.

        Returns None when the draft has no timer or no clock is running.
        """
        if self.draft.timer_seconds is None or self.draft.clock_started_at is None:
            return None
        if self.draft.status != DraftStatus.IN_PROGRESS:
            return None
        elapsed = (now - self.draft.clock_started_at).total_seconds()
        return float(self.draft.timer_seconds) - elapsed

    def clock_expired(self, now: datetime) -> bool:
        remaining = self.remaining_seconds(now)
        return remaining is not None and remaining <= 0

    def drafted_player_ids(self) -> Set[str]:
        return {p.player_id for p in self.picks}

    def is_drafted(self, player_id: str) -> bool:
        return any(p.player_id == player_id for p in self.picks)

    def pick_at(self, pick_number: int) -> Optional[Pick]:
        # Ledger numbers are contiguous from 1, so the list index is pick_number - 1.
        if 1 <= pick_number <= len(self.picks):
            pick = self.picks[pick_number - 1]
            if pick.pick_number == pick_number:
                return pick
        return next((p for p in self.picks if p.pick_number == pick_number), None)

    def picks_for_participant(self, participant_id: str) -> List[Pick]:
        return [p for p in self.picks if p.participant_id == participant_id]

    def get_pick_numbers_for_participant(self, participant_id: str) -> List[int]:
        """Return every absolute pick number the participant owns in this draft."""
        position = self.order.position_of(participant_id)
        if position is None:
            return []
        return pick_numbers_for_position(position, self.n_teams, self.n_rounds)

    def upcoming_pick_numbers(self, participant_id: str) -> List[int]:
        return [n for n in self.get_pick_numbers_for_participant(participant_id) if n >= self.current_pick]

    def board(self) -> List[List[Optional[Pick]]]:
        """Return the draft board as ``rounds x slots``.

        Cell ``[r][s]`` holds the pick made in round ``r + 1`` by slot
        ``s + 1`` (``None`` while still open), so each column is one team.
        """
        grid: List[List[Optional[Pick]]] = [[None] * self.n_teams for _ in range(self.n_rounds)]
        for pick in self.picks:
            rnd = snake_round(pick.pick_number, self.n_teams)
            slot = position_in_round(pick.pick_number, self.n_teams)
            grid[rnd - 1][slot - 1] = pick
        return grid

    def view(self, now: datetime) -> DraftStateView:
        remaining = self.remaining_seconds(now)
        return DraftStateView(
            draft_id=self.draft.draft_id,
            status=self.draft.status,
            current_pick=self.current_pick,
            current_round=self.current_round(),
            total_picks=self.draft.total_picks,
            on_the_clock_participant_id=self.on_the_clock(),
            remaining_seconds=max(0.0, remaining) if remaining is not None else None,
            timer_seconds=self.draft.timer_seconds,
            picks=list(self.picks),
        )
