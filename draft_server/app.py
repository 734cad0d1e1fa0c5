# draft_server/app.py
import asyncio
import contextlib
import logging
import time
import uuid
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from draft_server import config
from draft_server.api_models import (
    AutopickOut, BoardOut, BotPicksOut, ChangesOut, CreateDraftRequest, DraftOut,
    DraftStateOut, ImportOut, ParticipantOut, PickOut, PickRequest, PlayerOut,
    SetOrderRequest, UpcomingOut,
)
from draft_server.draft_autopick import AutopickController
from draft_server.draft_errors import DraftError, DraftNotFound
from draft_server.draft_manager import DraftManager
from draft_server.draft_models import Participant, Pick, Player
from draft_server.draft_state import DraftStateView
from draft_server.draft_store import DraftStore

logger = logging.getLogger("uvicorn.error")

_manager: Optional[DraftManager] = None


def get_manager() -> DraftManager:
    global _manager
    if _manager is None:
        store = DraftStore(config.DB_PATH)
        store.init_db()
        _manager = DraftManager(store)
    return _manager


def get_controller(manager: DraftManager = Depends(get_manager)) -> AutopickController:
    return AutopickController(manager)


def current_user(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None


async def _autopick_sweep(controller: AutopickController, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(controller.tick)
        except Exception:
            logger.exception("autopick sweep crashed; retrying next tick")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    logging.getLogger("draft_server").setLevel(config.LOG_LEVEL)
    sweeper: Optional[asyncio.Task] = None
    if config.AUTOPICK_POLL_SECONDS > 0:
        sweeper = asyncio.create_task(
            _autopick_sweep(AutopickController(get_manager()), config.AUTOPICK_POLL_SECONDS)
        )
        logger.info("autopick sweep every %.1fs", config.AUTOPICK_POLL_SECONDS)
    app.state.autopick_sweeper = sweeper
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper


app = FastAPI(title="Snake Draft Server", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    rid = str(uuid.uuid4())[:8]
    start = time.perf_counter()
    response = None
    try:
        logger.info("REQ %s %s %s", rid, request.method, request.url.path)
        response = await call_next(request)
        return response
    finally:
        dur = time.perf_counter() - start
        logger.info("RES %s %s %.3fs %s", rid, request.url.path, dur, getattr(response, "status_code", "?"))


@app.exception_handler(DraftError)
async def draft_error_handler(request: Request, exc: DraftError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "kind": exc.kind})


# ----------------------------
# Converters
# ----------------------------

def to_pick_out(p: Pick) -> PickOut:
    return PickOut(
        pick_number=p.pick_number,
        round=p.round,
        participant_id=p.participant_id,
        player_id=p.player_id,
        picked_at=p.picked_at,
        was_autopicked=p.was_autopicked,
    )

def to_player_out(p: Player) -> PlayerOut:
    return PlayerOut(
        player_id=p.player_id,
        name=p.name,
        team=p.team or "",
        position=p.position,
        adp=p.adp,
        fpts=float(p.fpts),
    )

def to_state_out(view: DraftStateView) -> DraftStateOut:
    return DraftStateOut(
        draft_id=view.draft_id,
        status=view.status.value,
        current_pick=view.current_pick,
        current_round=view.current_round,
        total_picks=view.total_picks,
        on_the_clock_participant_id=view.on_the_clock_participant_id,
        remaining_seconds=view.remaining_seconds,
        timer_seconds=view.timer_seconds,
        picks=[to_pick_out(p) for p in view.picks],
    )

def to_draft_out(manager: DraftManager, draft_id: str) -> DraftOut:
    draft = manager.store.load_draft(draft_id)
    if draft is None:
        raise DraftNotFound(f"draft {draft_id} not found")
    order = [
        ParticipantOut(
            participant_id=p.participant_id,
            team_name=p.team_name,
            user_id=p.user_id,
            is_bot=p.is_bot,
            position=i + 1,
        )
        for i, p in enumerate(manager.participants(draft_id))
    ]
    return DraftOut(
        draft_id=draft.draft_id,
        league_id=draft.league_id,
        status=draft.status.value,
        number_of_rounds=draft.number_of_rounds,
        number_of_teams=draft.number_of_teams,
        timer_seconds=draft.timer_seconds,
        autopick_strategy=draft.autopick_strategy,
        order=order,
    )


# ----------------------------
# Routes
# ----------------------------

@app.get("/health")
def health():
    return {"ok": True}

@app.post("/players/import", response_model=ImportOut)
def import_players(
    data_dir: Optional[str] = None,
    manager: DraftManager = Depends(get_manager),
):
    return ImportOut(count=manager.load_catalog(data_dir or config.DATA_DIR))

@app.post("/drafts", response_model=DraftOut, status_code=201)
def create_draft(
    req: CreateDraftRequest,
    manager: DraftManager = Depends(get_manager),
    user_id: Optional[str] = Depends(current_user),
):
    participants = [
        Participant(
            participant_id=p.participant_id or str(uuid.uuid4()),
            team_name=p.team_name,
            user_id=p.user_id,
            is_bot=p.is_bot,
        )
        for p in req.participants
    ]
    fixed = (req.fixed_position.participant_id, req.fixed_position.position) if req.fixed_position else None
    draft = manager.create_draft(
        req.league_id,
        participants,
        number_of_rounds=req.number_of_rounds,
        timer_seconds=req.timer_seconds,
        commissioner_user_id=user_id,
        order=req.order,
        fixed_position=fixed,
        autopick_strategy=req.autopick_strategy,
        starter_requirements=req.starter_requirements,
        bench_spots=req.bench_spots,
    )
    return to_draft_out(manager, draft.draft_id)

@app.get("/drafts/{draft_id}", response_model=DraftOut)
def get_draft(draft_id: str, manager: DraftManager = Depends(get_manager)):
    return to_draft_out(manager, draft_id)

@app.post("/drafts/{draft_id}/order/randomize", response_model=DraftOut)
def randomize_order(
    draft_id: str,
    manager: DraftManager = Depends(get_manager),
    user_id: Optional[str] = Depends(current_user),
):
    manager.require_commissioner(draft_id, user_id)
    manager.randomize_draft_order(draft_id)
    return to_draft_out(manager, draft_id)

@app.put("/drafts/{draft_id}/order", response_model=DraftOut)
def set_order(
    draft_id: str,
    req: SetOrderRequest,
    manager: DraftManager = Depends(get_manager),
    user_id: Optional[str] = Depends(current_user),
):
    manager.require_commissioner(draft_id, user_id)
    manager.set_draft_order(draft_id, req.participant_ids)
    return to_draft_out(manager, draft_id)

@app.post("/drafts/{draft_id}/start", response_model=DraftStateOut)
def start_draft(
    draft_id: str,
    background: BackgroundTasks,
    manager: DraftManager = Depends(get_manager),
    controller: AutopickController = Depends(get_controller),
    user_id: Optional[str] = Depends(current_user),
):
    manager.require_commissioner(draft_id, user_id)
    view = manager.start_draft(draft_id)
    background.add_task(controller.run_bot_picks, draft_id)
    return to_state_out(view)

@app.get("/drafts/{draft_id}/state", response_model=DraftStateOut)
def draft_state(draft_id: str, manager: DraftManager = Depends(get_manager)):
    return to_state_out(manager.get_state(draft_id))

@app.post("/drafts/{draft_id}/picks", response_model=PickOut, status_code=201)
def submit_pick(
    draft_id: str,
    req: PickRequest,
    background: BackgroundTasks,
    manager: DraftManager = Depends(get_manager),
    controller: AutopickController = Depends(get_controller),
    user_id: Optional[str] = Depends(current_user),
):
    manager.require_participant_user(draft_id, req.participant_id, user_id)
    pick = manager.submit_pick(
        draft_id, req.participant_id, req.player_id, expected_pick=req.expected_pick
    )
    background.add_task(controller.run_bot_picks, draft_id)
    return to_pick_out(pick)

@app.post("/drafts/{draft_id}/autopick", response_model=AutopickOut)
def times_up(
    draft_id: str,
    expected_pick: Optional[int] = Query(None, ge=1, description="Only act if this pick is still open"),
    manager: DraftManager = Depends(get_manager),
    controller: AutopickController = Depends(get_controller),
):
    """Client-side "time's up" trigger; a no-op unless the clock really expired."""
    pick = controller.expire_clock(draft_id, expected_pick=expected_pick)
    if pick is not None:
        controller.run_bot_picks(draft_id)
    return AutopickOut(
        pick=to_pick_out(pick) if pick else None,
        state=to_state_out(manager.get_state(draft_id)),
    )

@app.post("/drafts/{draft_id}/bots", response_model=BotPicksOut)
def run_bots(
    draft_id: str,
    manager: DraftManager = Depends(get_manager),
    controller: AutopickController = Depends(get_controller),
):
    picks = controller.run_bot_picks(draft_id)
    return BotPicksOut(
        picks=[to_pick_out(p) for p in picks],
        state=to_state_out(manager.get_state(draft_id)),
    )

@app.get("/drafts/{draft_id}/players", response_model=List[PlayerOut])
def search_players(
    draft_id: str,
    q: Optional[str] = Query(None, description="Case-insensitive search on player name"),
    position: Optional[str] = Query(None, description="QB/RB/WR/TE/K/DEF"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    manager: DraftManager = Depends(get_manager),
):
    players = manager.search_available_players(
        draft_id, search=q, position=position, limit=limit, offset=offset
    )
    return [to_player_out(p) for p in players]

@app.get("/drafts/{draft_id}/board", response_model=BoardOut)
def draftboard(draft_id: str, manager: DraftManager = Depends(get_manager)):
    grid = manager.draft_board(draft_id)
    return BoardOut(
        draft_id=draft_id,
        rounds=[[to_pick_out(c) if c else None for c in row] for row in grid],
    )

@app.get("/drafts/{draft_id}/changes", response_model=ChangesOut)
def changes(
    draft_id: str,
    after_pick: int = Query(0, ge=0),
    manager: DraftManager = Depends(get_manager),
):
    view, new_picks = manager.changes_since(draft_id, after_pick)
    return ChangesOut(state=to_state_out(view), new_picks=[to_pick_out(p) for p in new_picks])

@app.get("/drafts/{draft_id}/participants/{participant_id}/upcoming", response_model=UpcomingOut)
def upcoming(draft_id: str, participant_id: str, manager: DraftManager = Depends(get_manager)):
    return UpcomingOut(**manager.upcoming_picks(draft_id, participant_id))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("draft_server.app:app", host="0.0.0.0", port=8000)
