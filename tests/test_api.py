"""HTTP tests for the FastAPI app, backed by a temporary draft store."""
import pytest
from fastapi.testclient import TestClient

from draft_server.app import app, get_manager

COMMISSIONER = {"X-User-Id": "user-a"}


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


def _participants(ids="ABCD", bots=""):
    return [
        {
            "participant_id": pid,
            "team_name": f"Team {pid}",
            "user_id": None if pid in bots else f"user-{pid.lower()}",
            "is_bot": pid in bots,
        }
        for pid in ids
    ]


def _create(client, **overrides):
    body = {
        "league_id": "league-1",
        "participants": _participants(),
        "number_of_rounds": 2,
        "timer_seconds": 30,
        "order": ["A", "B", "C", "D"],
    }
    body.update(overrides)
    r = client.post("/drafts", json=body, headers=COMMISSIONER)
    assert r.status_code == 201, r.text
    return r.json()


def _start(client, draft_id):
    r = client.post(f"/drafts/{draft_id}/start", headers=COMMISSIONER)
    assert r.status_code == 200, r.text
    return r.json()


def _pick(client, draft_id, participant_id, player_id):
    return client.post(
        f"/drafts/{draft_id}/picks",
        json={"participant_id": participant_id, "player_id": player_id},
        headers={"X-User-Id": f"user-{participant_id.lower()}"},
    )


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_create_and_fetch_draft(client):
    draft = _create(client)
    assert draft["status"] == "scheduled"
    assert draft["number_of_teams"] == 4
    assert [(p["participant_id"], p["position"]) for p in draft["order"]] == [
        ("A", 1), ("B", 2), ("C", 3), ("D", 4),
    ]
    fetched = client.get(f"/drafts/{draft['draft_id']}").json()
    assert fetched == draft


def test_create_validates_bounds(client):
    r = client.post(
        "/drafts",
        json={"league_id": "l", "participants": _participants(), "number_of_rounds": 0},
    )
    assert r.status_code == 422
    r = client.post(
        "/drafts",
        json={"league_id": "l", "participants": _participants(), "timer_seconds": 5},
    )
    assert r.status_code == 422


def test_unknown_draft(client):
    r = client.get("/drafts/nope/state")
    assert r.status_code == 404
    assert r.json()["kind"] == "DraftNotFound"


def test_only_commissioner_starts_or_reorders(client):
    draft_id = _create(client)["draft_id"]
    r = client.post(f"/drafts/{draft_id}/start", headers={"X-User-Id": "user-b"})
    assert r.status_code == 403
    assert r.json()["kind"] == "NotAuthorized"

    r = client.put(
        f"/drafts/{draft_id}/order", json={"participant_ids": ["D", "C", "B", "A"]}, headers=COMMISSIONER
    )
    assert r.status_code == 200
    assert [p["participant_id"] for p in r.json()["order"]] == ["D", "C", "B", "A"]

    state = _start(client, draft_id)
    assert state["status"] == "in_progress"
    assert state["on_the_clock_participant_id"] == "D"
    assert state["remaining_seconds"] == pytest.approx(30.0)

    r = client.post(f"/drafts/{draft_id}/order/randomize", headers=COMMISSIONER)
    assert r.status_code == 409
    assert r.json()["kind"] == "InvalidState"


def test_pick_flow_and_errors(client):
    draft_id = _create(client)["draft_id"]
    _start(client, draft_id)

    r = client.post(
        f"/drafts/{draft_id}/picks",
        json={"participant_id": "A", "player_id": "rb1"},
        headers={"X-User-Id": "user-b"},
    )
    assert r.status_code == 403

    r = _pick(client, draft_id, "B", "rb1")
    assert r.status_code == 409
    assert r.json()["kind"] == "NotOnClock"

    r = _pick(client, draft_id, "A", "rb1")
    assert r.status_code == 201
    assert r.json()["pick_number"] == 1
    assert r.json()["round"] == 1

    r = _pick(client, draft_id, "B", "rb1")
    assert r.status_code == 409
    assert r.json()["kind"] == "PlayerUnavailable"

    r = _pick(client, draft_id, "B", "ghost")
    assert r.status_code == 404
    assert r.json()["kind"] == "PlayerNotFound"

    state = client.get(f"/drafts/{draft_id}/state").json()
    assert state["current_pick"] == 2
    assert state["on_the_clock_participant_id"] == "B"
    assert [p["player_id"] for p in state["picks"]] == ["rb1"]


def test_pick_before_start(client):
    draft_id = _create(client)["draft_id"]
    r = _pick(client, draft_id, "A", "rb1")
    assert r.status_code == 409
    assert r.json()["kind"] == "InvalidState"


def test_available_players(client):
    draft_id = _create(client)["draft_id"]
    _start(client, draft_id)
    _pick(client, draft_id, "A", "rb1")

    players = client.get(f"/drafts/{draft_id}/players", params={"limit": 3}).json()
    assert [p["player_id"] for p in players] == ["wr1", "rb2", "wr2"]

    qbs = client.get(f"/drafts/{draft_id}/players", params={"position": "QB"}).json()
    assert [p["player_id"] for p in qbs] == ["qb1", "qb2", "qb3"]

    assert client.get(f"/drafts/{draft_id}/players", params={"limit": 0}).status_code == 422


def test_times_up_endpoint(client, clock):
    draft_id = _create(client)["draft_id"]
    _start(client, draft_id)

    r = client.post(f"/drafts/{draft_id}/autopick").json()
    assert r["pick"] is None
    assert r["state"]["current_pick"] == 1

    clock.advance(31)
    r = client.post(f"/drafts/{draft_id}/autopick").json()
    assert r["pick"]["player_id"] == "rb1"
    assert r["pick"]["was_autopicked"] is True
    assert r["state"]["on_the_clock_participant_id"] == "B"

    r = client.post(f"/drafts/{draft_id}/autopick").json()
    assert r["pick"] is None
    assert r["state"]["current_pick"] == 2

    clock.advance(31)
    r = client.post(f"/drafts/{draft_id}/autopick", params={"expected_pick": 1}).json()
    assert r["pick"] is None
    assert r["state"]["current_pick"] == 2


def test_bots_pick_after_start(client):
    draft_id = _create(
        client, participants=_participants("ABC", bots="AB"), order=["A", "B", "C"]
    )["draft_id"]
    _start(client, draft_id)

    state = client.get(f"/drafts/{draft_id}/state").json()
    assert [p["participant_id"] for p in state["picks"]] == ["A", "B"]
    assert state["on_the_clock_participant_id"] == "C"

    # C's pick puts C straight back on the clock, then the bots run again.
    assert _pick(client, draft_id, "C", "wr2").status_code == 201
    assert _pick(client, draft_id, "C", "rb3").status_code == 201
    state = client.get(f"/drafts/{draft_id}/state").json()
    assert state["status"] == "completed"
    assert [p["participant_id"] for p in state["picks"]] == ["A", "B", "C", "C", "B", "A"]


def test_board_changes_and_upcoming(client):
    draft_id = _create(client)["draft_id"]
    _start(client, draft_id)
    for pid, player in [("A", "rb1"), ("B", "wr1"), ("C", "rb2"), ("D", "wr2"), ("D", "rb3")]:
        assert _pick(client, draft_id, pid, player).status_code == 201

    board = client.get(f"/drafts/{draft_id}/board").json()
    assert board["rounds"][0][0]["player_id"] == "rb1"
    assert board["rounds"][1][3]["player_id"] == "rb3"
    assert board["rounds"][1][0] is None

    changes = client.get(f"/drafts/{draft_id}/changes", params={"after_pick": 3}).json()
    assert [p["pick_number"] for p in changes["new_picks"]] == [4, 5]
    assert changes["state"]["current_pick"] == 6

    up = client.get(f"/drafts/{draft_id}/participants/A/upcoming").json()
    assert up == {
        "participant_id": "A",
        "draft_position": 1,
        "pick_numbers": [1, 8],
        "next_pick": 8,
        "picks_until_turn": 2,
    }
    assert client.get(f"/drafts/{draft_id}/participants/Z/upcoming").status_code == 404


def test_resent_pick_for_a_turn_slot_is_rejected(client):
    draft_id = _create(client)["draft_id"]
    _start(client, draft_id)
    for pid, player in [("A", "rb1"), ("B", "wr1"), ("C", "rb2")]:
        assert _pick(client, draft_id, pid, player).status_code == 201

    headers = {"X-User-Id": "user-d"}
    url = f"/drafts/{draft_id}/picks"
    r = client.post(url, json={"participant_id": "D", "player_id": "wr2", "expected_pick": 4}, headers=headers)
    assert r.status_code == 201
    assert r.json()["pick_number"] == 4

    r = client.post(url, json={"participant_id": "D", "player_id": "rb3", "expected_pick": 4}, headers=headers)
    assert r.status_code == 409
    assert r.json()["kind"] == "PickAlreadyMade"

    state = client.get(f"/drafts/{draft_id}/state").json()
    assert state["current_pick"] == 5
    assert state["on_the_clock_participant_id"] == "D"


def test_rounds_default_to_roster_size(client):
    body = {"league_id": "league-1", "participants": _participants(), "order": ["A", "B", "C", "D"]}
    r = client.post("/drafts", json=body, headers=COMMISSIONER)
    assert r.status_code == 201
    assert r.json()["number_of_rounds"] == 16


def test_lifespan_starts_and_stops_the_sweep(tmp_path, monkeypatch):
    from draft_server import app as app_module
    from draft_server import config

    monkeypatch.setattr(config, "DB_PATH", tmp_path / "lifespan.db")
    monkeypatch.setattr(config, "AUTOPICK_POLL_SECONDS", 0.01)
    monkeypatch.setattr(app_module, "_manager", None)

    with TestClient(app) as c:
        assert c.get("/health").status_code == 200
        sweeper = app.state.autopick_sweeper
        assert sweeper is not None
        assert not sweeper.done()
    assert sweeper.cancelled()
