"""Tests for loading the player catalog from CSV exports."""
import pandas as pd
import pytest

from draft_server.data_loader import (
    load_catalog_csv,
    load_clean_player_data,
    load_players_as_objects,
    make_player_id,
    normalize_position,
)


@pytest.fixture
def fantasypros_dir(tmp_path):
    pd.DataFrame(
        {"Player": ["Ja'Marr Chase", "Justin Jefferson", "  "], "Team": ["CIN", "MIN", "FA"], "FPTS": [300.5, 280.0, 1.0]}
    ).to_csv(tmp_path / "FantasyPros_Fantasy_Football_Projections_WR.csv", index=False)
    pd.DataFrame(
        {"Player": ["Josh Allen"], "Team": ["BUF"], "FPTS": [390.0]}
    ).to_csv(tmp_path / "FantasyPros_Fantasy_Football_Projections_QB.csv", index=False)
    pd.DataFrame(
        {"Player": ["Ja'Marr Chase"], "Team": ["CIN"], "FPTS": [300.5]}
    ).to_csv(tmp_path / "FantasyPros_Fantasy_Football_Projections_FLX.csv", index=False)
    pd.DataFrame(
        {"Player": ["Ja'Marr Chase", "Josh Allen"], "POS": ["WR1", "QB1"], "AVG": [1.2, 20.4]}
    ).to_csv(tmp_path / "FantasyPros_2025_Overall_ADP_Rankings.csv", index=False)
    return tmp_path


def test_normalize_position():
    assert normalize_position("dst") == "DEF"
    assert normalize_position(" PK ") == "K"
    assert normalize_position("wr") == "WR"
    assert normalize_position(None) == ""


def test_make_player_id():
    assert make_player_id("Ja'Marr Chase", "WR", "CIN") == "jamarr-chase-wr-cin"
    assert make_player_id("A.J. Brown", "WR") == "aj-brown-wr"


def test_load_clean_player_data_merges_projections_and_adp(fantasypros_dir):
    df = load_clean_player_data(str(fantasypros_dir))
    assert list(df.columns) == ["player_id", "Player", "Team", "Position", "FPTS", "ADP"]
    by_id = df.set_index("player_id")
    # FLX duplicates and blank names are dropped.
    assert sorted(by_id.index) == ["jamarr-chase-wr-cin", "josh-allen-qb-buf", "justin-jefferson-wr-min"]
    assert by_id.loc["jamarr-chase-wr-cin", "ADP"] == pytest.approx(1.2)
    assert by_id.loc["josh-allen-qb-buf", "Position"] == "QB"
    assert pd.isna(by_id.loc["justin-jefferson-wr-min", "ADP"])


def test_fill_missing_adp(fantasypros_dir):
    df = load_clean_player_data(str(fantasypros_dir), fill_missing_adp=999.0)
    assert df.set_index("player_id").loc["justin-jefferson-wr-min", "ADP"] == 999.0


def test_players_as_objects_keep_missing_adp_as_none(fantasypros_dir):
    players = {p.player_id: p for p in load_players_as_objects(str(fantasypros_dir))}
    assert players["justin-jefferson-wr-min"].adp is None
    assert players["jamarr-chase-wr-cin"].fpts == pytest.approx(300.5)
    assert players["josh-allen-qb-buf"].team == "BUF"


def test_catalog_csv_takes_precedence(fantasypros_dir):
    pd.DataFrame(
        {
            "player_id": ["p1", "p2"],
            "name": ["Some Kicker", "Some Defense"],
            "position": ["PK", "DST"],
            "team": ["KC", "SF"],
            "adp": [150.0, None],
        }
    ).to_csv(fantasypros_dir / "players.csv", index=False)

    players = load_players_as_objects(str(fantasypros_dir))
    assert [(p.player_id, p.position, p.adp) for p in players] == [("p1", "K", 150.0), ("p2", "DEF", None)]
    assert len(load_catalog_csv(str(fantasypros_dir / "players.csv"))) == 2


def test_empty_directory(tmp_path):
    assert load_players_as_objects(str(tmp_path)) == []


def test_manager_loads_catalog_into_store(manager, fantasypros_dir):
    assert manager.load_catalog(str(fantasypros_dir)) == 3
    player = manager.store.get_player("jamarr-chase-wr-cin")
    assert player.name == "Ja'Marr Chase"
    assert player.adp == pytest.approx(1.2)
    assert manager.store.is_eligible("jamarr-chase-wr-cin")
