"""Pytest configuration and fixtures for tests."""
import random
from datetime import datetime, timedelta, timezone

import pytest

from draft_server.draft_autopick import AutopickController
from draft_server.draft_manager import DraftManager
from draft_server.draft_models import Participant, Player
from draft_server.draft_store import DraftStore


# ── Helpers ──────────────────────────────────────────────────────────

PLAYER_SPECS = [
    ("rb1", "RB", 1.0), ("wr1", "WR", 2.0), ("rb2", "RB", 3.0), ("wr2", "WR", 4.0),
    ("rb3", "RB", 5.0), ("wr3", "WR", 6.0), ("qb1", "QB", 7.0), ("te1", "TE", 8.0),
    ("rb4", "RB", 9.0), ("wr4", "WR", 10.0), ("qb2", "QB", 11.0), ("te2", "TE", 12.0),
    ("rb5", "RB", 13.0), ("wr5", "WR", 14.0), ("qb3", "QB", 15.0), ("te3", "TE", 16.0),
    ("k1", "K", 17.0), ("def1", "DEF", 18.0), ("k2", "K", 19.0), ("def2", "DEF", 20.0),
    # No ADP: ranked after everyone else, then by name.
    ("wr_late_b", "WR", None), ("wr_late_a", "WR", None),
    # Not a draftable position: never listed, never pickable.
    ("ol1", "OL", 0.5),
]


def make_players():
    return [
        Player(player_id=pid, name=f"Player {pid}", position=pos, team="FA", adp=adp, fpts=100.0)
        for pid, pos, adp in PLAYER_SPECS
    ]


def make_participants(ids="ABCD", bots=""):
    return [
        Participant(
            participant_id=pid,
            team_name=f"Team {pid}",
            user_id=None if pid in bots else f"user-{pid.lower()}",
            is_bot=pid in bots,
        )
        for pid in ids
    ]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self):
        self.now = datetime(2025, 9, 1, 18, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    s = DraftStore(tmp_path / "draft.db")
    s.init_db()
    s.upsert_players(make_players())
    return s


@pytest.fixture
def manager(store, clock):
    return DraftManager(store, clock=clock, rng=random.Random(7))


@pytest.fixture
def controller(manager):
    return AutopickController(manager)


@pytest.fixture
def four_team_draft(manager):
    """Scheduled 4-team, 2-round draft with order A, B, C, D and a 30s timer."""
    return manager.create_draft(
        "league-1",
        make_participants(),
        number_of_rounds=2,
        timer_seconds=30,
        commissioner_user_id="user-a",
        order=["A", "B", "C", "D"],
    )


@pytest.fixture
def started_draft(manager, four_team_draft):
    manager.start_draft(four_team_draft.draft_id)
    return four_team_draft
