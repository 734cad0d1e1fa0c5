"""
data_loader.py
================

This module loads and cleans fantasy football projection and average draft
position (ADP) data to seed the draft engine's player catalog.  It
consolidates multiple projection files, removes empty rows, extracts the
relevant position and ADP fields, assigns each player a stable id, and
returns a clean pandas ``DataFrame`` or a list of
:class:`draft_models.Player` objects.

Two input layouts are supported:

- a directory of FantasyPros exports
  (``FantasyPros_Fantasy_Football_Projections_<POS>.csv`` plus
  ``FantasyPros_2025_Overall_ADP_Rankings.csv``), see
  :func:`load_clean_player_data`;
- a single catalog CSV with ``player_id, name, position, team, adp, fpts``
  columns, see :func:`load_catalog_csv`.

Example
-------

```python
from draft_server.data_loader import load_players_as_objects

players = load_players_as_objects("/path/to/my/data")
store.upsert_players(players)
```
"""

from __future__ import annotations

import glob
import logging
import os
import re
from typing import List

import pandas as pd

from draft_server.draft_models import Player

logger = logging.getLogger(__name__)

ADP_FILENAME = "FantasyPros_2025_Overall_ADP_Rankings.csv"
CATALOG_FILENAME = "players.csv"

# FantasyPros calls team defenses "DST"; the league roster uses "DEF".
_POSITION_ALIASES = {"DST": "DEF", "D/ST": "DEF", "PK": "K"}


def normalize_position(pos: object) -> str:
    p = str(pos or "").strip().upper()
    return _POSITION_ALIASES.get(p, p)


def make_player_id(name: str, position: str, team: str = "") -> str:
    """Build a stable, URL-safe id such as ``"jamarr-chase-wr-cin"``."""
    parts = [name, position, team]
    slug = "-".join(p for p in parts if p)
    slug = re.sub(r"[’'`.]", "", slug.lower())
    return re.sub(r"[^a-z0-9]+", "-", slug).strip("-")


def _read_projection_files(data_dir: str) -> pd.DataFrame:
    """Internal helper to read and concatenate all projection CSV files.

    Looks for files matching ``FantasyPros_Fantasy_Football_Projections_*.csv``
    within ``data_dir``.  The special ``FLX`` file is ignored to prevent
    duplication since the flex position is implicitly covered by the RB, WR
    and TE projections.  A ``Position`` column derived from the filename
    suffix is added to each frame.
    """
    pattern = os.path.join(data_dir, "FantasyPros_Fantasy_Football_Projections_*.csv")
    frames: List[pd.DataFrame] = []

    for path in sorted(glob.glob(pattern)):
        fname = os.path.basename(path)
        if "FLX" in fname.upper():
            continue
        try:
            df = pd.read_csv(path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError):
            logger.warning("skipping unreadable projection file %s", path, exc_info=True)
            continue
        # *_QB.csv -> QB
        df["Position"] = normalize_position(fname.rsplit("_", 1)[-1].split(".")[0])
        frames.append(df)

    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def _clean_projections(df: pd.DataFrame) -> pd.DataFrame:
    """Strip player names, drop nameless rows and all-NaN columns."""
    if df.empty:
        return df.copy()
    df["Player"] = df["Player"].astype(str).str.strip()
    df = df[df["Player"].notna() & (df["Player"] != "") & (df["Player"].str.lower() != "nan")].copy()
    df = df.loc[:, df.notna().any()]
    return df


def _read_and_clean_adp(data_dir: str) -> pd.DataFrame:
    """Read the overall ADP file into ``Player, Position, ADP`` columns.

    ``AVG`` becomes ``ADP`` (numeric, NaN when missing) and the base
    position is extracted from ``POS`` values such as ``WR1``.  A missing or
    unreadable file yields an empty frame.
    """
    empty = pd.DataFrame(columns=["Player", "Position", "ADP"])
    adp_path = os.path.join(data_dir, ADP_FILENAME)
    if not os.path.isfile(adp_path):
        return empty
    try:
        adp_df = pd.read_csv(adp_path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError):
        logger.warning("could not read ADP file %s", adp_path, exc_info=True)
        return empty

    adp_df = adp_df[adp_df["Player"].notna()].copy()
    adp_df["Player"] = adp_df["Player"].astype(str).str.strip()
    if "AVG" in adp_df.columns:
        adp_df = adp_df.rename(columns={"AVG": "ADP"})
    if "ADP" not in adp_df.columns:
        adp_df["ADP"] = pd.NA
    adp_df["ADP"] = pd.to_numeric(adp_df["ADP"], errors="coerce")

    if "POS" in adp_df.columns:
        adp_df["Position"] = (
            adp_df["POS"].astype(str).str.extract(r"([A-Z/]+)")[0].map(normalize_position)
        )
    else:
        adp_df["Position"] = pd.NA
    return adp_df[["Player", "Position", "ADP"]]


def load_clean_player_data(data_dir: str, *, fill_missing_adp: float | None = None) -> pd.DataFrame:
    """Load, clean and merge projection and ADP data into a single DataFrame.

    Projections and ADP are merged on ``Player`` and ``Position``.  The
    result has columns ``['player_id', 'Player', 'Team', 'Position', 'FPTS',
    'ADP']``; rows lacking a name or position are discarded.  Missing ADP
    stays NaN unless ``fill_missing_adp`` is given, so those players rank
    after every player with an ADP.

    Parameters
    ----------
    data_dir : str
        Directory containing the projection and ADP CSV files.
    fill_missing_adp : float or None, optional
        Placeholder for missing ADP values.

    Returns
    -------
    pandas.DataFrame
        One row per distinct player id.
    """
    proj = _clean_projections(_read_projection_files(data_dir))
    adp = _read_and_clean_adp(data_dir)

    if proj.empty:
        # ADP file alone is still a usable catalog.
        merged = adp.copy()
        merged["FPTS"] = 0.0
    elif adp.empty:
        merged = proj.copy()
        merged["ADP"] = pd.NA
    else:
        merged = proj.merge(adp, on=["Player", "Position"], how="left")

    for candidate in list(merged.columns):
        if candidate.lower() in {"fpts", "fantasypoints", "fantasy_points"} and candidate != "FPTS":
            merged = merged.rename(columns={candidate: "FPTS"})
            break
    if "FPTS" not in merged.columns:
        merged["FPTS"] = 0.0
    if "Team" not in merged.columns:
        merged["Team"] = ""

    final = merged[["Player", "Team", "Position", "FPTS", "ADP"]].copy()
    final = final.dropna(subset=["Player", "Position"])
    final["Team"] = final["Team"].fillna("").astype(str).str.strip().str.upper()
    final["FPTS"] = pd.to_numeric(final["FPTS"], errors="coerce").fillna(0.0)
    final["ADP"] = pd.to_numeric(final["ADP"], errors="coerce")
    if fill_missing_adp is not None:
        final["ADP"] = final["ADP"].fillna(fill_missing_adp)

    final["player_id"] = [
        make_player_id(n, p, t) for n, p, t in zip(final["Player"], final["Position"], final["Team"])
    ]
    final = final.drop_duplicates(subset=["player_id"], keep="first")
    return final.reset_index(drop=True)[["player_id", "Player", "Team", "Position", "FPTS", "ADP"]]


def _frame_to_players(df: pd.DataFrame) -> List[Player]:
    players: List[Player] = []
    for _, row in df.iterrows():
        adp = row.get("ADP")
        players.append(
            Player(
                player_id=str(row["player_id"]),
                name=str(row["Player"]),
                position=normalize_position(row["Position"]),
                team=str(row.get("Team", "") or ""),
                adp=None if pd.isna(adp) else float(adp),
                fpts=float(row.get("FPTS", 0.0) or 0.0),
            )
        )
    return players


def load_catalog_csv(path: str) -> pd.DataFrame:
    """Read a prepared catalog CSV into the same frame shape as :func:`load_clean_player_data`."""
    df = pd.read_csv(path)
    df = df.rename(columns={"name": "Player", "team": "Team", "position": "Position", "fpts": "FPTS", "adp": "ADP"})
    if "Team" not in df.columns:
        df["Team"] = ""
    if "FPTS" not in df.columns:
        df["FPTS"] = 0.0
    if "ADP" not in df.columns:
        df["ADP"] = pd.NA
    df = df.dropna(subset=["Player", "Position"]).copy()
    df["Position"] = df["Position"].map(normalize_position)
    df["Team"] = df["Team"].fillna("").astype(str)
    df["ADP"] = pd.to_numeric(df["ADP"], errors="coerce")
    df["FPTS"] = pd.to_numeric(df["FPTS"], errors="coerce").fillna(0.0)
    if "player_id" not in df.columns:
        df["player_id"] = [make_player_id(n, p, t) for n, p, t in zip(df["Player"], df["Position"], df["Team"])]
    df["player_id"] = df["player_id"].astype(str)
    return df.drop_duplicates(subset=["player_id"]).reset_index(drop=True)


def load_players_as_objects(data_dir: str, *, fill_missing_adp: float | None = None) -> List[Player]:
    """Load the player catalog from ``data_dir`` as ``Player`` objects.

    A prepared ``players.csv`` takes precedence; otherwise the FantasyPros
    projection and ADP exports are merged.
    """
    catalog_path = os.path.join(data_dir, CATALOG_FILENAME)
    if os.path.isfile(catalog_path):
        df = load_catalog_csv(catalog_path)
    else:
        df = load_clean_player_data(data_dir, fill_missing_adp=fill_missing_adp)
    return _frame_to_players(df)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Load and clean fantasy football player data.")
    parser.add_argument("data_dir", help="Directory containing projection and ADP CSV files")
    args = parser.parse_args()

    print(load_clean_player_data(args.data_dir).head())
