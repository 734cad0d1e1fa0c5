# draft_server/draft_manager.py
"""
The draft state machine.  ``DraftManager`` is the only component allowed to
start drafts and commit picks; everything it knows about a draft is read
back from the ``DraftStore`` on every call, so any number of manager
instances (threads, processes, servers) can drive the same draft.

Picks are committed with a compare-and-set on ``current_pick``: validate
against a snapshot, then let the store apply the pick only if the draft has
not moved since.  A caller that loses the race re-validates against the
fresh ledger and gets ``PickAlreadyMade`` or ``NotOnClock``.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from draft_server import config
from draft_server.data_loader import load_players_as_objects
from draft_server.draft_errors import (
    DraftNotFound,
    IncompleteDraftOrder,
    InvalidState,
    NotAuthorized,
    NotOnClock,
    ParticipantNotFound,
    PickAlreadyMade,
    PlayerNotFound,
    PlayerUnavailable,
    StalePick,
)
from draft_server.draft_models import Draft, DraftOrder, DraftStatus, Participant, Pick, Player
from draft_server.draft_state import DraftSnapshot, DraftStateView
from draft_server.draft_store import DraftStore
from draft_server.draft_utils import calculate_rounds, snake_round

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DraftManager:
    """
    Service facade over the draft store: setup, start, picks, state queries.
    `clock` is injectable so timer behaviour can be driven from tests.
    """

    def __init__(
        self,
        store: DraftStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
        max_retries: int = config.MAX_PICK_RETRIES,
    ):
        self.store = store
        self.clock = clock
        self._rng = rng or random.Random()
        self.max_retries = max_retries

    # ----------------------------
    # Catalog
    # ----------------------------

    def load_catalog(self, data_dir: str) -> int:
        players = load_players_as_objects(data_dir)
        count = self.store.upsert_players(players)
        logger.info("loaded %d players from %s", count, data_dir)
        return count

    # ----------------------------
    # Setup
    # ----------------------------

    def snapshot(self, draft_id: str) -> DraftSnapshot:
        draft, order, picks = self.store.load_snapshot(draft_id)
        return DraftSnapshot(draft, order, picks)

    def _build_order(
        self,
        participant_ids: Sequence[str],
        fixed_position: Optional[Tuple[str, int]] = None,
    ) -> DraftOrder:
        """Shuffle ``participant_ids`` into slots, optionally pinning one participant to a slot."""
        ids = list(participant_ids)
        if fixed_position is None:
            self._rng.shuffle(ids)
            return DraftOrder.from_participant_ids(ids)

        pinned, position = fixed_position
        if pinned not in ids:
            raise IncompleteDraftOrder(f"participant {pinned} is not in this draft")
        if not (1 <= position <= len(ids)):
            raise IncompleteDraftOrder(f"draft position must be in [1, {len(ids)}], got {position}")
        others = [pid for pid in ids if pid != pinned]
        self._rng.shuffle(others)
        others.insert(position - 1, pinned)
        return DraftOrder.from_participant_ids(others)

    def create_draft(
        self,
        league_id: str,
        participants: Sequence[Participant],
        *,
        number_of_rounds: Optional[int] = None,
        timer_seconds: Optional[int] = config.DEFAULT_TIMER_SECONDS,
        commissioner_user_id: Optional[str] = None,
        order: Optional[Sequence[str]] = None,
        fixed_position: Optional[Tuple[str, int]] = None,
        autopick_strategy: str = config.DEFAULT_AUTOPICK_STRATEGY,
        starter_requirements: Optional[Dict[str, int]] = None,
        bench_spots: int = config.DEFAULT_BENCH_SPOTS,
    ) -> Draft:
        """Create a ``scheduled`` draft for ``participants``.

        The order is taken from ``order`` when given, otherwise it is
        randomized (honouring ``fixed_position`` if set).  Without
        ``number_of_rounds`` the draft runs one round per roster slot.
        """
        ids = [p.participant_id for p in participants]
        if len(set(ids)) != len(ids):
            raise IncompleteDraftOrder("participant ids must be unique")
        if len(ids) < 1:
            raise IncompleteDraftOrder("a draft needs at least one participant")
        requirements = dict(starter_requirements or config.DEFAULT_STARTER_REQUIREMENTS)
        if number_of_rounds is None:
            number_of_rounds = calculate_rounds(requirements, bench_spots) or config.DEFAULT_ROUNDS
        if number_of_rounds < 1:
            raise ValueError("number_of_rounds must be >= 1")
        if autopick_strategy not in config.AUTOPICK_STRATEGIES:
            raise ValueError(f"unknown autopick strategy {autopick_strategy!r}")

        if order is not None:
            if sorted(order) != sorted(ids):
                raise IncompleteDraftOrder("draft order must list every participant exactly once")
            draft_order = DraftOrder.from_participant_ids(order)
        else:
            draft_order = self._build_order(ids, fixed_position)
        draft_order.validate(len(ids))

        draft = Draft(
            draft_id=str(uuid.uuid4()),
            league_id=league_id,
            status=DraftStatus.SCHEDULED,
            number_of_rounds=number_of_rounds,
            number_of_teams=len(ids),
            current_pick=1,
            timer_seconds=timer_seconds,
            commissioner_user_id=commissioner_user_id,
            autopick_strategy=autopick_strategy,
            starter_requirements=requirements,
            bench_spots=bench_spots,
            created_at=self.clock(),
        )
        self.store.upsert_participants(league_id, participants)
        self.store.create_draft(draft, draft_order)
        logger.info(
            "draft %s created for league %s: %d teams x %d rounds, timer=%s",
            draft.draft_id, league_id, draft.number_of_teams, number_of_rounds, timer_seconds,
        )
        return draft

    def randomize_draft_order(self, draft_id: str) -> DraftOrder:
        current = self.store.load_draft_order(draft_id)
        order = self._build_order(current.participant_ids())
        self.store.replace_draft_order(draft_id, order)
        logger.info("draft %s order randomized", draft_id)
        return order

    def set_draft_order(self, draft_id: str, participant_ids: Sequence[str]) -> DraftOrder:
        current = self.store.load_draft_order(draft_id)
        if sorted(participant_ids) != sorted(current.participant_ids()):
            raise IncompleteDraftOrder("draft order must list every participant exactly once")
        order = DraftOrder.from_participant_ids(participant_ids)
        self.store.replace_draft_order(draft_id, order)
        logger.info("draft %s order set manually", draft_id)
        return order

    def participants(self, draft_id: str) -> List[Participant]:
        """Participants of a draft in slot order."""
        order = self.store.load_draft_order(draft_id)
        return self.store.list_participants(order.participant_ids())

    # ----------------------------
    # Authorization helpers
    # ----------------------------

    def require_commissioner(self, draft_id: str, user_id: Optional[str]) -> None:
        draft = self.store.load_draft(draft_id)
        if draft is None:
            raise DraftNotFound(f"draft {draft_id} not found")
        if draft.commissioner_user_id and draft.commissioner_user_id != user_id:
            raise NotAuthorized("only the commissioner can manage this draft")

    def require_participant_user(self, draft_id: str, participant_id: str, user_id: Optional[str]) -> None:
        if user_id is None:
            raise NotAuthorized("you must be logged in")
        match = [p for p in self.participants(draft_id) if p.participant_id == participant_id]
        if not match:
            raise NotAuthorized(f"participant {participant_id} is not in this draft")
        if match[0].user_id != user_id:
            raise NotAuthorized("you can only pick for your own team")

    # ----------------------------
    # State machine
    # ----------------------------

    def start_draft(self, draft_id: str) -> DraftStateView:
        snap = self.snapshot(draft_id)
        if snap.draft.status != DraftStatus.SCHEDULED:
            raise InvalidState(f"draft is {snap.draft.status.value}, not scheduled")
        if len(snap.order) != snap.n_teams:
            raise IncompleteDraftOrder(
                f"draft order has {len(snap.order)} participants, expected {snap.n_teams}"
            )
        snap.order.validate(snap.n_teams)

        now = self.clock()
        if not self.store.update_draft_status(
            draft_id, DraftStatus.IN_PROGRESS, 1, expected_status=DraftStatus.SCHEDULED, now=now
        ):
            raise InvalidState("draft was started by another request")
        logger.info("draft %s started", draft_id)
        return self.get_state(draft_id)

    def _validate_pick(self, snap: DraftSnapshot, participant_id: str, player_id: str) -> None:
        if snap.draft.status != DraftStatus.IN_PROGRESS:
            raise InvalidState(f"draft is {snap.draft.status.value}, picks are not accepted")
        on_clock = snap.on_the_clock()
        if on_clock != participant_id:
            raise NotOnClock(f"pick {snap.current_pick} belongs to {on_clock}, not {participant_id}")
        if self.store.get_player(player_id) is None:
            raise PlayerNotFound(f"player {player_id} not found")
        if snap.is_drafted(player_id):
            raise PlayerUnavailable(f"player {player_id} has already been drafted")
        if not self.store.is_eligible(player_id):
            raise PlayerUnavailable(f"player {player_id} is not eligible for this draft")

    def submit_pick(
        self,
        draft_id: str,
        participant_id: str,
        player_id: str,
        *,
        autopicked: bool = False,
        expected_pick: Optional[int] = None,
    ) -> Pick:
        """Commit ``player_id`` for ``participant_id`` at the current pick.

        ``expected_pick`` pins the attempt to one pick number: if the draft
        has already moved past it the call fails with ``PickAlreadyMade``
        instead of being applied to a later pick.

        Raises
        ------
        InvalidState, NotOnClock, PlayerNotFound, PlayerUnavailable, PickAlreadyMade
            Nothing is written in any of these cases.
        """
        for attempt in range(self.max_retries + 1):
            snap = self.snapshot(draft_id)
            if expected_pick is not None and snap.current_pick != expected_pick:
                raise PickAlreadyMade(f"pick {expected_pick} has already been made")
            self._validate_pick(snap, participant_id, player_id)

            now = self.clock()
            pick = Pick(
                pick_number=snap.current_pick,
                round=snake_round(snap.current_pick, snap.n_teams),
                participant_id=participant_id,
                player_id=player_id,
                picked_at=now,
                was_autopicked=autopicked,
            )
            completes = pick.pick_number == snap.draft.total_picks
            try:
                self.store.append_pick(draft_id, pick, completes=completes)
            except StalePick:
                logger.debug(
                    "draft %s: lost race for pick %d (participant %s, attempt %d)",
                    draft_id, pick.pick_number, participant_id, attempt + 1,
                )
                made = self.snapshot(draft_id).pick_at(pick.pick_number)
                if made is not None and made.participant_id == participant_id:
                    raise PickAlreadyMade(f"pick {pick.pick_number} has already been made") from None
                continue

            logger.info(
                "draft %s pick %d (round %d): %s -> %s%s",
                draft_id, pick.pick_number, pick.round, participant_id, player_id,
                " [auto]" if autopicked else "",
            )
            if completes:
                logger.info("draft %s completed after %d picks", draft_id, pick.pick_number)
            return pick

        raise PickAlreadyMade(f"draft {draft_id} kept moving; gave up after {self.max_retries + 1} attempts")

    # ----------------------------
    # Queries
    # ----------------------------

    def get_state(self, draft_id: str) -> DraftStateView:
        return self.snapshot(draft_id).view(self.clock())

    def changes_since(self, draft_id: str, after_pick: int) -> Tuple[DraftStateView, List[Pick]]:
        """State plus the picks committed after ``after_pick``, for polling observers."""
        view = self.get_state(draft_id)
        return view, [p for p in view.picks if p.pick_number > after_pick]

    def draft_board(self, draft_id: str) -> List[List[Optional[Pick]]]:
        return self.snapshot(draft_id).board()

    def upcoming_picks(self, draft_id: str, participant_id: str) -> Dict[str, object]:
        snap = self.snapshot(draft_id)
        if snap.order.position_of(participant_id) is None:
            raise ParticipantNotFound(f"participant {participant_id} is not in this draft")
        upcoming = snap.upcoming_pick_numbers(participant_id) if not snap.is_draft_over() else []
        next_pick = upcoming[0] if upcoming else None
        return {
            "participant_id": participant_id,
            "draft_position": snap.order.position_of(participant_id),
            "pick_numbers": snap.get_pick_numbers_for_participant(participant_id),
            "next_pick": next_pick,
            "picks_until_turn": (next_pick - snap.current_pick) if next_pick is not None else None,
        }

    def search_available_players(
        self,
        draft_id: str,
        *,
        search: Optional[str] = None,
        position: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Player]:
        if self.store.load_draft(draft_id) is None:
            raise DraftNotFound(f"draft {draft_id} not found")
        return self.store.search_available_players(
            draft_id, search=search, position=position, limit=limit, offset=offset
        )

    def is_available(self, draft_id: str, player_id: str) -> bool:
        snap = self.snapshot(draft_id)
        return self.store.is_eligible(player_id) and not snap.is_drafted(player_id)
