"""
draft_store.py
==============

SQLite persistence for drafts, draft orders, the pick ledger, participants
and the player catalog.  The database is the single source of truth: no
draft state lives in process memory, so several server processes can share
one database file and a restart loses nothing.

Writes that move a draft forward are conditional updates ("compare and
set") executed inside ``BEGIN IMMEDIATE`` transactions:

- ``append_pick`` bumps ``current_pick`` only if it still equals the pick
  number the caller validated against, and inserts the ledger row in the
  same transaction.  A miss raises :class:`draft_errors.StalePick`.
- ``(draft_id, pick_number)`` and ``(draft_id, player_id)`` are unique in
  ``draft_picks``, so neither a pick number nor a player can ever be
  committed twice, whatever the callers do.

Usage
-----

```python
store = DraftStore("data/draft.db")
store.init_db()
store.upsert_players(players)
draft, order, picks = store.load_snapshot(draft_id)
```
"""

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from draft_server import config
from draft_server.draft_errors import DraftNotFound, InvalidState, PlayerUnavailable, StalePick
from draft_server.draft_models import Draft, DraftOrder, DraftStatus, Participant, Pick, Player

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS players (
    player_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    position TEXT NOT NULL,
    team TEXT NOT NULL DEFAULT '',
    adp REAL,
    fpts REAL NOT NULL DEFAULT 0,
    eligible INTEGER NOT NULL DEFAULT 1
);
CREATE INDEX IF NOT EXISTS idx_players_adp ON players(adp);

CREATE TABLE IF NOT EXISTS participants (
    participant_id TEXT PRIMARY KEY,
    league_id TEXT NOT NULL,
    team_name TEXT NOT NULL,
    user_id TEXT,
    is_bot INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS drafts (
    draft_id TEXT PRIMARY KEY,
    league_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'scheduled',
    number_of_rounds INTEGER NOT NULL,
    number_of_teams INTEGER NOT NULL,
    current_pick INTEGER NOT NULL DEFAULT 1,
    timer_seconds INTEGER,
    clock_started_at TEXT,
    commissioner_user_id TEXT,
    autopick_strategy TEXT NOT NULL DEFAULT 'best_available',
    starter_requirements_json TEXT NOT NULL DEFAULT '{}',
    bench_spots INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_drafts_status ON drafts(status);

CREATE TABLE IF NOT EXISTS draft_order (
    draft_id TEXT NOT NULL REFERENCES drafts(draft_id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    participant_id TEXT NOT NULL REFERENCES participants(participant_id),
    PRIMARY KEY (draft_id, position),
    UNIQUE (draft_id, participant_id)
);

CREATE TABLE IF NOT EXISTS draft_picks (
    draft_id TEXT NOT NULL REFERENCES drafts(draft_id) ON DELETE CASCADE,
    pick_number INTEGER NOT NULL,
    round INTEGER NOT NULL,
    participant_id TEXT NOT NULL REFERENCES participants(participant_id),
    player_id TEXT NOT NULL REFERENCES players(player_id),
    picked_at TEXT NOT NULL,
    was_autopicked INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (draft_id, pick_number),
    UNIQUE (draft_id, player_id)
);
"""


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _escape_like(text: str) -> str:
    """Make ``%`` and ``_`` match literally in a LIKE pattern using ESCAPE '\\'."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_player(row: sqlite3.Row) -> Player:
    return Player(
        player_id=row["player_id"],
        name=row["name"],
        position=row["position"],
        team=row["team"] or "",
        adp=row["adp"],
        fpts=float(row["fpts"] or 0.0),
    )


def _row_to_draft(row: sqlite3.Row) -> Draft:
    return Draft(
        draft_id=row["draft_id"],
        league_id=row["league_id"],
        status=DraftStatus(row["status"]),
        number_of_rounds=int(row["number_of_rounds"]),
        number_of_teams=int(row["number_of_teams"]),
        current_pick=int(row["current_pick"]),
        timer_seconds=row["timer_seconds"],
        clock_started_at=_parse_dt(row["clock_started_at"]),
        commissioner_user_id=row["commissioner_user_id"],
        autopick_strategy=row["autopick_strategy"],
        starter_requirements=json.loads(row["starter_requirements_json"] or "{}"),
        bench_spots=int(row["bench_spots"]),
        created_at=_parse_dt(row["created_at"]),
        started_at=_parse_dt(row["started_at"]),
        completed_at=_parse_dt(row["completed_at"]),
    )


def _row_to_pick(row: sqlite3.Row) -> Pick:
    return Pick(
        pick_number=int(row["pick_number"]),
        round=int(row["round"]),
        participant_id=row["participant_id"],
        player_id=row["player_id"],
        picked_at=_parse_dt(row["picked_at"]),
        was_autopicked=bool(row["was_autopicked"]),
    )


class DraftStore:
    """SQLite-backed repository for the draft engine.

    A fresh connection is opened per operation, so one store instance can be
    shared between request handler threads.
    """

    def __init__(self, db_path: str | Path, *, timeout: float = config.DB_TIMEOUT_SECONDS) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    # ----------------------------
    # Connections
    # ----------------------------

    def _get_conn(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None: transactions are opened explicitly below.
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextlib.contextmanager
    def _transaction(self, mode: str = "IMMEDIATE") -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            conn.execute(f"BEGIN {mode};")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")
        finally:
            conn.close()

    def init_db(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("PRAGMA journal_mode = WAL;")
            conn.executescript(_SCHEMA)
        finally:
            conn.close()
        logger.info("draft store ready at %s", self.db_path)

    # ----------------------------
    # Player catalog
    # ----------------------------

    def upsert_players(self, players: Iterable[Player]) -> int:
        rows = [
            (
                p.player_id,
                p.name,
                p.position.upper(),
                p.team or "",
                p.adp,
                float(p.fpts),
                1 if p.position.upper() in config.POSITIONS else 0,
            )
            for p in players
        ]
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO players (player_id, name, position, team, adp, fpts, eligible)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(player_id) DO UPDATE SET
                    name=excluded.name, position=excluded.position, team=excluded.team,
                    adp=excluded.adp, fpts=excluded.fpts, eligible=excluded.eligible
                """,
                rows,
            )
        return len(rows)

    def get_player(self, player_id: str) -> Optional[Player]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM players WHERE player_id=?;", (player_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_player(row) if row else None

    def is_eligible(self, player_id: str) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT eligible FROM players WHERE player_id=?;", (player_id,)).fetchone()
        finally:
            conn.close()
        return bool(row and row["eligible"])

    def list_eligible_players(self, position: Optional[str] = None) -> List[Player]:
        sql = "SELECT * FROM players WHERE eligible=1"
        params: list = []
        if position:
            sql += " AND position=?"
            params.append(position.upper())
        sql += " ORDER BY adp IS NULL, adp, name, player_id;"
        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [_row_to_player(r) for r in rows]

    def search_available_players(
        self,
        draft_id: str,
        *,
        search: Optional[str] = None,
        position: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Player]:
        """Eligible players not yet in ``draft_id``'s ledger, best ADP first (nulls last), then name."""
        sql = """
            SELECT p.* FROM players p
            WHERE p.eligible=1
              AND NOT EXISTS (
                  SELECT 1 FROM draft_picks dp
                  WHERE dp.draft_id=? AND dp.player_id=p.player_id
              )
        """
        params: list = [draft_id]
        if search:
            sql += " AND lower(p.name) LIKE ? ESCAPE '\\'"
            params.append(f"%{_escape_like(search.strip().lower())}%")
        if position:
            sql += " AND p.position=?"
            params.append(position.upper())
        sql += " ORDER BY p.adp IS NULL, p.adp, p.name, p.player_id LIMIT ? OFFSET ?;"
        params.extend([int(limit), int(offset)])
        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [_row_to_player(r) for r in rows]

    # ----------------------------
    # Participants
    # ----------------------------

    def upsert_participants(self, league_id: str, participants: Sequence[Participant]) -> None:
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO participants (participant_id, league_id, team_name, user_id, is_bot)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(participant_id) DO UPDATE SET
                    team_name=excluded.team_name, user_id=excluded.user_id, is_bot=excluded.is_bot
                """,
                [(p.participant_id, league_id, p.team_name, p.user_id, int(p.is_bot)) for p in participants],
            )

    def list_participants(self, participant_ids: Sequence[str]) -> List[Participant]:
        if not participant_ids:
            return []
        marks = ",".join("?" for _ in participant_ids)
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT * FROM participants WHERE participant_id IN ({marks});",
                list(participant_ids),
            ).fetchall()
        finally:
            conn.close()
        by_id = {
            r["participant_id"]: Participant(
                participant_id=r["participant_id"],
                team_name=r["team_name"],
                user_id=r["user_id"],
                is_bot=bool(r["is_bot"]),
            )
            for r in rows
        }
        return [by_id[pid] for pid in participant_ids if pid in by_id]

    # ----------------------------
    # Drafts and orders
    # ----------------------------

    def create_draft(self, draft: Draft, order: DraftOrder) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO drafts (
                    draft_id, league_id, status, number_of_rounds, number_of_teams, current_pick,
                    timer_seconds, clock_started_at, commissioner_user_id, autopick_strategy,
                    starter_requirements_json, bench_spots, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    draft.draft_id,
                    draft.league_id,
                    draft.status.value,
                    draft.number_of_rounds,
                    draft.number_of_teams,
                    draft.current_pick,
                    draft.timer_seconds,
                    _iso(draft.clock_started_at),
                    draft.commissioner_user_id,
                    draft.autopick_strategy,
                    json.dumps(draft.starter_requirements, sort_keys=True),
                    draft.bench_spots,
                    _iso(draft.created_at),
                ),
            )
            self._write_order(conn, draft.draft_id, order)

    def _write_order(self, conn: sqlite3.Connection, draft_id: str, order: DraftOrder) -> None:
        conn.execute("DELETE FROM draft_order WHERE draft_id=?;", (draft_id,))
        conn.executemany(
            "INSERT INTO draft_order (draft_id, position, participant_id) VALUES (?, ?, ?);",
            [(draft_id, pos, pid) for pos, pid in sorted(order.slots.items())],
        )

    def replace_draft_order(self, draft_id: str, order: DraftOrder) -> None:
        """Replace the order of a draft that is still ``scheduled``."""
        with self._transaction() as conn:
            row = conn.execute("SELECT status FROM drafts WHERE draft_id=?;", (draft_id,)).fetchone()
            if row is None:
                raise DraftNotFound(f"draft {draft_id} not found")
            if row["status"] != DraftStatus.SCHEDULED.value:
                raise InvalidState(f"draft order is fixed once the draft is {row['status']}")
            self._write_order(conn, draft_id, order)

    def load_draft(self, draft_id: str) -> Optional[Draft]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM drafts WHERE draft_id=?;", (draft_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_draft(row) if row else None

    def load_draft_order(self, draft_id: str) -> DraftOrder:
        conn = self._get_conn()
        try:
            return self._read_order(conn, draft_id)
        finally:
            conn.close()

    def _read_order(self, conn: sqlite3.Connection, draft_id: str) -> DraftOrder:
        rows = conn.execute(
            "SELECT position, participant_id FROM draft_order WHERE draft_id=? ORDER BY position;",
            (draft_id,),
        ).fetchall()
        return DraftOrder(slots={int(r["position"]): r["participant_id"] for r in rows})

    def load_picks(self, draft_id: str, *, after_pick: int = 0) -> List[Pick]:
        conn = self._get_conn()
        try:
            return self._read_picks(conn, draft_id, after_pick)
        finally:
            conn.close()

    def _read_picks(self, conn: sqlite3.Connection, draft_id: str, after_pick: int = 0) -> List[Pick]:
        rows = conn.execute(
            "SELECT * FROM draft_picks WHERE draft_id=? AND pick_number>? ORDER BY pick_number;",
            (draft_id, int(after_pick)),
        ).fetchall()
        return [_row_to_pick(r) for r in rows]

    def load_snapshot(self, draft_id: str) -> Tuple[Draft, DraftOrder, List[Pick]]:
        """Read draft, order and ledger from one consistent read transaction."""
        with self._transaction("DEFERRED") as conn:
            row = conn.execute("SELECT * FROM drafts WHERE draft_id=?;", (draft_id,)).fetchone()
            if row is None:
                raise DraftNotFound(f"draft {draft_id} not found")
            return _row_to_draft(row), self._read_order(conn, draft_id), self._read_picks(conn, draft_id)

    def list_draft_ids(self, status: Optional[DraftStatus] = None) -> List[str]:
        conn = self._get_conn()
        try:
            if status is None:
                rows = conn.execute("SELECT draft_id FROM drafts ORDER BY created_at;").fetchall()
            else:
                rows = conn.execute(
                    "SELECT draft_id FROM drafts WHERE status=? ORDER BY created_at;", (status.value,)
                ).fetchall()
        finally:
            conn.close()
        return [r["draft_id"] for r in rows]

    def delete_draft(self, draft_id: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM drafts WHERE draft_id=?;", (draft_id,))

    # ----------------------------
    # State transitions
    # ----------------------------

    def update_draft_status(
        self,
        draft_id: str,
        status: DraftStatus,
        current_pick: int,
        *,
        expected_status: DraftStatus,
        now: datetime,
    ) -> bool:
        """Move a draft to ``status`` if it is still in ``expected_status``.

        Returns False when another caller changed the status first.
        """
        started = _iso(now) if status == DraftStatus.IN_PROGRESS else None
        completed = _iso(now) if status == DraftStatus.COMPLETED else None
        with self._transaction() as conn:
            cur = conn.execute(
                """
                UPDATE drafts SET
                    status=?, current_pick=?, clock_started_at=?,
                    started_at=COALESCE(?, started_at), completed_at=COALESCE(?, completed_at)
                WHERE draft_id=? AND status=?
                """,
                (status.value, current_pick, _iso(now), started, completed, draft_id, expected_status.value),
            )
            return cur.rowcount == 1

    def append_pick(self, draft_id: str, pick: Pick, *, completes: bool) -> None:
        """Commit ``pick`` and advance ``current_pick`` past it, atomically.

        The update only applies while ``current_pick`` still equals
        ``pick.pick_number`` and the draft is in progress; otherwise
        :class:`StalePick` is raised and nothing is written.  When
        ``completes`` is set the draft becomes ``completed`` in the same
        transaction.
        """
        status = DraftStatus.COMPLETED if completes else DraftStatus.IN_PROGRESS
        picked_at = _iso(pick.picked_at)
        with self._transaction() as conn:
            cur = conn.execute(
                """
                UPDATE drafts SET
                    current_pick=current_pick + 1,
                    clock_started_at=?,
                    status=?,
                    completed_at=CASE WHEN ?='completed' THEN ? ELSE completed_at END
                WHERE draft_id=? AND current_pick=? AND status='in_progress'
                """,
                (picked_at, status.value, status.value, picked_at, draft_id, pick.pick_number),
            )
            if cur.rowcount != 1:
                raise StalePick(draft_id, pick.pick_number)
            try:
                conn.execute(
                    """
                    INSERT INTO draft_picks (
                        draft_id, pick_number, round, participant_id, player_id, picked_at, was_autopicked
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        draft_id,
                        pick.pick_number,
                        pick.round,
                        pick.participant_id,
                        pick.player_id,
                        picked_at,
                        int(pick.was_autopicked),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise PlayerUnavailable(f"player {pick.player_id} has already been drafted") from e
