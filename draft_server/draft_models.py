"""
draft_models.py
===============

Core domain objects of the draft engine: players, participants, the draft
order, the draft aggregate and its pick ledger entries, plus the
``TeamRoster`` helper used by need-based autopick.

Value objects that must never change once written (``Player``, ``Pick``,
``Participant``) are frozen dataclasses; the ``Draft`` record is a plain
dataclass that mirrors one row of the ``drafts`` table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from draft_server.draft_errors import IncompleteDraftOrder


class DraftStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Player:
    """Represents a draftable fantasy football player.

    Attributes
    ----------
    player_id : str
        Stable catalog id (e.g., ``"jamarr-chase-wr-cin"``).
    name : str
        The player's full name.
    position : str
        Base position ("QB", "RB", "WR", "TE", "K", "DEF").
    team : str
        NFL team abbreviation; empty when unknown.
    adp : float or None
        Average draft position.  Lower is better; ``None`` sorts last.
    fpts : float
        Projected fantasy points.  Informational only.
    """

    player_id: str
    name: str
    position: str
    team: str = ""
    adp: Optional[float] = None
    fpts: float = 0.0


def adp_sort_key(player: Player) -> Tuple[bool, float, str, str]:
    """Ranking used everywhere players are ordered: ADP asc, nulls last, then name."""
    return (player.adp is None, player.adp if player.adp is not None else 0.0, player.name, player.player_id)


@dataclass(frozen=True)
class Participant:
    participant_id: str
    team_name: str
    user_id: Optional[str] = None
    is_bot: bool = False


@dataclass(frozen=True)
class DraftOrder:
    """Bijective mapping of slot position (1..N) to participant id."""

    slots: Mapping[int, str]

    @classmethod
    def from_participant_ids(cls, participant_ids: Sequence[str]) -> "DraftOrder":
        return cls(slots={i + 1: pid for i, pid in enumerate(participant_ids)})

    def __len__(self) -> int:
        return len(self.slots)

    def participant_ids(self) -> List[str]:
        return [self.slots[pos] for pos in sorted(self.slots)]

    def position_of(self, participant_id: str) -> Optional[int]:
        for pos, pid in self.slots.items():
            if pid == participant_id:
                return pos
        return None

    def validate(self, n_teams: int) -> None:
        """Raise ``IncompleteDraftOrder`` unless positions 1..n_teams each hold one distinct participant."""
        positions = set(self.slots)
        expected = set(range(1, n_teams + 1))
        if positions != expected:
            missing = sorted(expected - positions)
            extra = sorted(positions - expected)
            raise IncompleteDraftOrder(
                f"draft order must cover slots 1..{n_teams}: missing={missing} extra={extra}"
            )
        ids = list(self.slots.values())
        if any(not pid for pid in ids):
            raise IncompleteDraftOrder("draft order has an empty slot")
        if len(set(ids)) != len(ids):
            raise IncompleteDraftOrder("draft order assigns a participant to more than one slot")


@dataclass
class Draft:
    draft_id: str
    league_id: str
    status: DraftStatus
    number_of_rounds: int
    number_of_teams: int
    current_pick: int = 1
    timer_seconds: Optional[int] = None
    clock_started_at: Optional[datetime] = None
    commissioner_user_id: Optional[str] = None
    autopick_strategy: str = "best_available"
    starter_requirements: Dict[str, int] = field(default_factory=dict)
    bench_spots: int = 0
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def total_picks(self) -> int:
        return self.number_of_rounds * self.number_of_teams


@dataclass(frozen=True)
class Pick:
    """One immutable entry of the pick ledger."""

    pick_number: int
    round: int
    participant_id: str
    player_id: str
    picked_at: datetime
    was_autopicked: bool = False


class TeamRoster:
    """Represents a drafting participant's roster and positional needs.

    The roster is initialised with required starter slots for each position
    (e.g., 1 QB, 2 RB, etc.) and a number of bench spots.  Players are
    placed into their base starter slot first, then FLEX (RB/WR/TE), then
    the bench.  Kickers and defenses are not benched.

    Parameters
    ----------
    participant_id : str
        The participant this roster belongs to.
    starter_requirements : Dict[str, int]
        Mapping of slot codes to the number of starters, e.g.
        ``{"QB": 1, "RB": 2, "WR": 2, "TE": 1, "FLEX": 1, "K": 1, "DEF": 1}``.
    bench_spots : int
        Number of bench slots available.
    """

    FLEX_POSITIONS = frozenset({"RB", "WR", "TE"})
    BENCH_POSITIONS = frozenset({"QB", "RB", "WR", "TE"})

    def __init__(self, participant_id: str, starter_requirements: Dict[str, int], bench_spots: int) -> None:
        self.participant_id = participant_id
        self._slots_remaining: Dict[str, int] = dict(starter_requirements)
        self._bench_remaining: int = bench_spots
        self.roster: Dict[str, List[Player]] = {pos: [] for pos in starter_requirements}
        self.roster["BENCH"] = []

    @classmethod
    def from_players(
        cls,
        participant_id: str,
        players: Iterable[Player],
        starter_requirements: Dict[str, int],
        bench_spots: int,
    ) -> "TeamRoster":
        """Rebuild a roster by replaying already-drafted players in pick order."""
        team = cls(participant_id, starter_requirements, bench_spots)
        for p in players:
            team.draft_player(p)
        return team

    def _slot_for(self, player: Player) -> Optional[str]:
        pos = player.position.upper()
        if self._slots_remaining.get(pos, 0) > 0:
            return pos
        if pos in self.FLEX_POSITIONS and self._slots_remaining.get("FLEX", 0) > 0:
            return "FLEX"
        if self._bench_remaining > 0 and pos in self.BENCH_POSITIONS:
            return "BENCH"
        return None

    def can_draft(self, player: Player) -> bool:
        """Return True if a starter, FLEX or bench slot can still take ``player``."""
        return self._slot_for(player) is not None

    def draft_player(self, player: Player) -> bool:
        """Place ``player`` in the first open slot; False if none fits."""
        slot = self._slot_for(player)
        if slot is None:
            return False
        self.roster.setdefault(slot, []).append(player)
        if slot == "BENCH":
            self._bench_remaining -= 1
        else:
            self._slots_remaining[slot] -= 1
        return True

    @property
    def slots_remaining(self) -> Dict[str, int]:
        """Return a copy of the remaining starter slots."""
        return self._slots_remaining.copy()

    @property
    def bench_remaining(self) -> int:
        return self._bench_remaining
