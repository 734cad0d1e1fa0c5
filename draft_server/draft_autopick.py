"""
draft_autopick.py
=================

Autopick policies and the timer/bot controller.

When the on-the-clock participant runs out of time, or when a bot comes on
the clock, the controller picks a player on their behalf through exactly
the same ``DraftManager.submit_pick`` path a human uses (with
``autopicked=True``), pinned to the pick number it observed.  Because of
that pin, any number of concurrent expiry triggers for the same pick force
at most one pick: the first commits, the others see ``PickAlreadyMade`` or
``NotOnClock`` and stop.

Player selection is deterministic for a given set of available players, so
a replay of the same draft produces the same autopicks.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from draft_server.draft_errors import DraftError, NoAvailablePlayers, NotOnClock, PickAlreadyMade
from draft_server.draft_manager import DraftManager
from draft_server.draft_models import DraftStatus, Pick, Player, TeamRoster, adp_sort_key
from draft_server.draft_state import DraftSnapshot

logger = logging.getLogger(__name__)


def position_priority(round_number: int) -> List[str]:
    """Positions a bot looks at first in a given round, most wanted first."""
    if round_number <= 2:
        return ["RB", "WR"]
    if round_number <= 4:
        return ["RB", "WR", "QB"]
    if round_number <= 8:
        return ["WR", "RB", "TE", "QB"]
    if round_number <= 12:
        return ["WR", "RB", "TE", "QB", "K"]
    return ["K", "DEF", "WR", "RB", "TE", "QB"]


def _flex_share(slots_remaining: Dict[str, int]) -> Dict[str, float]:
    """Distribute FLEX capacity across RB/WR/TE equally (soft heuristic)."""
    flex = float(slots_remaining.get("FLEX", 0))
    if flex <= 0:
        return {"RB": 0.0, "WR": 0.0, "TE": 0.0}
    share = flex / 3.0
    return {"RB": share, "WR": share, "TE": share}


def compute_position_need_weights(team: TeamRoster) -> Dict[str, float]:
    """
    Return non-negative weights per position proportional to how much the team still needs it:
      - base need = remaining starter slots for that position
      - plus a share of FLEX capacity for RB/WR/TE
    """
    slots = team.slots_remaining
    need = {pos: max(0.0, float(cnt)) for pos, cnt in slots.items() if pos != "FLEX"}
    flex = _flex_share(slots)
    for pos in ("RB", "WR", "TE"):
        need[pos] = need.get(pos, 0.0) + flex[pos]
    return need


def _best_at(players: Sequence[Player], position: str) -> Optional[Player]:
    return next((p for p in players if p.position == position), None)


def select_best_available(available: Sequence[Player]) -> Player:
    if not available:
        raise NoAvailablePlayers("no players left to autopick")
    return min(available, key=adp_sort_key)


def select_by_roster_need(available: Sequence[Player], team: TeamRoster) -> Player:
    """Best-ADP player at the position the roster needs most.

    Positions with equal need are ordered by their best available player.
    Falls back to the best player the roster can hold, then to the best
    player overall.
    """
    ranked = sorted(available, key=adp_sort_key)
    if not ranked:
        raise NoAvailablePlayers("no players left to autopick")
    fits = [p for p in ranked if team.can_draft(p)]

    weights = compute_position_need_weights(team)
    needed = []
    for pos, weight in weights.items():
        if weight <= 0:
            continue
        best = _best_at(fits, pos)
        if best is not None:
            needed.append((-weight, adp_sort_key(best), best))
    if needed:
        return min(needed, key=lambda t: (t[0], t[1]))[2]
    return fits[0] if fits else ranked[0]


def select_by_round_priority(available: Sequence[Player], round_number: int) -> Player:
    ranked = sorted(available, key=adp_sort_key)
    if not ranked:
        raise NoAvailablePlayers("no players left to autopick")
    for pos in position_priority(round_number):
        best = _best_at(ranked, pos)
        if best is not None:
            return best
    return ranked[0]


def select_autopick_player(
    snap: DraftSnapshot,
    available: Sequence[Player],
    strategy: str,
    roster: Optional[TeamRoster] = None,
) -> Player:
    """Pick for the on-the-clock participant of `snap` under `strategy`.

    `roster` is only consulted by `roster_need`; without one that strategy
    degrades to best available.
    """
    if strategy == "roster_need" and roster is not None:
        return select_by_roster_need(available, roster)
    if strategy == "round_priority":
        return select_by_round_priority(available, snap.current_round() or 1)
    return select_best_available(available)


class AutopickController:
    """Forces picks for expired clocks and bot participants.

    Parameters
    ----------
    manager : DraftManager
        The state machine picks are submitted through.
    """

    def __init__(self, manager: DraftManager) -> None:
        self.manager = manager
        self.store = manager.store

    def select_player(self, snap: DraftSnapshot, participant_id: str) -> Player:
        """Choose the autopick for ``participant_id`` under the draft's strategy."""
        draft = snap.draft
        drafted = snap.drafted_player_ids()
        available = [p for p in self.store.list_eligible_players() if p.player_id not in drafted]
        roster = None
        if draft.autopick_strategy == "roster_need" and draft.starter_requirements:
            own = [self.store.get_player(p.player_id) for p in snap.picks_for_participant(participant_id)]
            roster = TeamRoster.from_players(
                participant_id,
                [p for p in own if p is not None],
                draft.starter_requirements,
                draft.bench_spots,
            )
        return select_autopick_player(snap, available, draft.autopick_strategy, roster)

    def _force_pick(self, snap: DraftSnapshot, reason: str) -> Optional[Pick]:
        participant_id = snap.on_the_clock()
        if participant_id is None:
            return None
        draft_id = snap.draft.draft_id
        try:
            player = self.select_player(snap, participant_id)
            pick = self.manager.submit_pick(
                draft_id,
                participant_id,
                player.player_id,
                autopicked=True,
                expected_pick=snap.current_pick,
            )
        except (NotOnClock, PickAlreadyMade):
            logger.debug("draft %s pick %d: already handled, skipping %s autopick", draft_id, snap.current_pick, reason)
            return None
        except NoAvailablePlayers:
            logger.warning("draft %s pick %d: no available players for %s autopick", draft_id, snap.current_pick, reason)
            return None
        logger.info("draft %s pick %d autopicked (%s) for %s", draft_id, pick.pick_number, reason, participant_id)
        return pick

    def expire_clock(self, draft_id: str, expected_pick: Optional[int] = None) -> Optional[Pick]:
        """Force a pick if the on-the-clock participant's time has run out.

        Safe to call repeatedly and concurrently: returns the forced pick, or
        None when the clock has not expired or another caller already acted.
        With ``expected_pick`` the call only acts on that pick number.
        """
        snap = self.manager.snapshot(draft_id)
        if snap.draft.status != DraftStatus.IN_PROGRESS:
            return None
        if expected_pick is not None and snap.current_pick != expected_pick:
            return None
        if not snap.clock_expired(self.manager.clock()):
            return None
        return self._force_pick(snap, "timer")

    def run_bot_picks(self, draft_id: str) -> List[Pick]:
        """Autopick for consecutive bot participants until a human is on the clock."""
        made: List[Pick] = []
        snap = self.manager.snapshot(draft_id)
        bots = {p.participant_id for p in self.manager.participants(draft_id) if p.is_bot}
        # Each iteration either commits a pick or stops, so this is bounded by the picks left.
        for _ in range(max(0, snap.draft.total_picks - snap.current_pick + 1)):
            on_clock = snap.on_the_clock()
            if on_clock is None or on_clock not in bots:
                break
            pick = self._force_pick(snap, "bot")
            if pick is None:
                break
            made.append(pick)
            snap = self.manager.snapshot(draft_id)
        return made

    def tick(self) -> List[Pick]:
        """One sweep over every in-progress draft: bot turns and expired clocks."""
        made: List[Pick] = []
        for draft_id in self.store.list_draft_ids(DraftStatus.IN_PROGRESS):
            try:
                made.extend(self.run_bot_picks(draft_id))
                forced = self.expire_clock(draft_id)
                if forced is not None:
                    made.append(forced)
                    made.extend(self.run_bot_picks(draft_id))
            except DraftError as e:
                logger.warning("draft %s: autopick sweep failed: %s", draft_id, e)
        return made
