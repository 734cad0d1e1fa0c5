# draft_server/config.py
import os
from pathlib import Path
from typing import Dict, List

# ====== Storage ======
# SQLite file holding drafts, orders, the pick ledger and the player catalog.
DB_PATH = Path(os.getenv("DRAFT_DB_PATH", "data/draft.db"))
# Directory with the FantasyPros projection / ADP CSVs used to seed the catalog.
DATA_DIR = os.getenv("DRAFT_DATA_DIR", "data")
# Seconds SQLite waits on a locked database before giving up.
DB_TIMEOUT_SECONDS: float = float(os.getenv("DRAFT_DB_TIMEOUT", "10"))

# ====== Autopick ======
# Interval of the background clock sweep; 0 disables it (clients then rely on
# POST /drafts/{id}/autopick and POST /drafts/{id}/bots).
AUTOPICK_POLL_SECONDS: float = float(os.getenv("AUTOPICK_POLL_SECONDS", "2"))
# How often submit_pick re-validates after losing the compare-and-set.
MAX_PICK_RETRIES: int = int(os.getenv("MAX_PICK_RETRIES", "3"))

# ====== Server ======
LOG_LEVEL: str = os.getenv("DRAFT_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS: List[str] = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://127.0.0.1:5173,http://localhost:5173,http://localhost:8080",
    ).split(",")
    if o.strip()
]

# ====== League defaults ======
# Used only when the roster shape has no slots at all.
DEFAULT_ROUNDS: int = 15
MIN_ROUNDS, MAX_ROUNDS = 1, 20
DEFAULT_TIMER_SECONDS: int = 120
MIN_TIMER_SECONDS, MAX_TIMER_SECONDS = 30, 600
MIN_TEAMS, MAX_TEAMS = 2, 16

POSITIONS = ("QB", "RB", "WR", "TE", "K", "DEF")
DEFAULT_STARTER_REQUIREMENTS: Dict[str, int] = {
    "QB": 1, "RB": 2, "WR": 2, "TE": 1, "FLEX": 1, "K": 1, "DEF": 1,
}
DEFAULT_BENCH_SPOTS: int = 7

AUTOPICK_STRATEGIES = ("best_available", "roster_need", "round_priority")
DEFAULT_AUTOPICK_STRATEGY: str = os.getenv("DEFAULT_AUTOPICK_STRATEGY", "best_available")
