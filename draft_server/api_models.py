from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from draft_server import config

AutopickStrategy = Literal["best_available", "roster_need", "round_priority"]


class ParticipantIn(BaseModel):
    participant_id: Optional[str] = None   # generated when omitted
    team_name: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    is_bot: bool = False

class FixedPositionIn(BaseModel):
    participant_id: str
    position: int = Field(..., ge=1)

class CreateDraftRequest(BaseModel):
    league_id: str = Field(..., min_length=1)
    participants: List[ParticipantIn] = Field(..., min_length=config.MIN_TEAMS, max_length=config.MAX_TEAMS)
    # None -> one round per starter and bench slot
    number_of_rounds: Optional[int] = Field(None, ge=config.MIN_ROUNDS, le=config.MAX_ROUNDS)
    # None -> no pick timer, picks never expire
    timer_seconds: Optional[int] = Field(
        config.DEFAULT_TIMER_SECONDS, ge=config.MIN_TIMER_SECONDS, le=config.MAX_TIMER_SECONDS
    )
    order: Optional[List[str]] = None      # explicit slot order; random when omitted
    fixed_position: Optional[FixedPositionIn] = None
    autopick_strategy: AutopickStrategy = "best_available"
    starter_requirements: Optional[Dict[str, int]] = None
    bench_spots: int = Field(config.DEFAULT_BENCH_SPOTS, ge=0)

class ParticipantOut(BaseModel):
    participant_id: str
    team_name: str
    user_id: Optional[str]
    is_bot: bool
    position: int

class DraftOut(BaseModel):
    draft_id: str
    league_id: str
    status: str
    number_of_rounds: int
    number_of_teams: int
    timer_seconds: Optional[int]
    autopick_strategy: str
    order: List[ParticipantOut]

class SetOrderRequest(BaseModel):
    participant_ids: List[str] = Field(..., min_length=1)

class PickRequest(BaseModel):
    participant_id: str
    player_id: str
    # pick number the client is answering; a resend after it was made gets 409
    expected_pick: Optional[int] = Field(None, ge=1)

class PickOut(BaseModel):
    pick_number: int
    round: int
    participant_id: str
    player_id: str
    picked_at: datetime
    was_autopicked: bool

class DraftStateOut(BaseModel):
    draft_id: str
    status: str
    current_pick: int
    current_round: Optional[int]
    total_picks: int
    on_the_clock_participant_id: Optional[str]
    remaining_seconds: Optional[float]
    timer_seconds: Optional[int]
    picks: List[PickOut]

class PlayerOut(BaseModel):
    player_id: str
    name: str
    team: str
    position: str
    adp: Optional[float]
    fpts: float

class AutopickOut(BaseModel):
    pick: Optional[PickOut]
    state: DraftStateOut

class BotPicksOut(BaseModel):
    picks: List[PickOut]
    state: DraftStateOut

class BoardOut(BaseModel):
    draft_id: str
    # rounds[r][s]: pick made in round r+1 by slot s+1, null while open
    rounds: List[List[Optional[PickOut]]]

class ChangesOut(BaseModel):
    state: DraftStateOut
    new_picks: List[PickOut]

class UpcomingOut(BaseModel):
    participant_id: str
    draft_position: int
    pick_numbers: List[int]
    next_pick: Optional[int]
    picks_until_turn: Optional[int]

class ImportOut(BaseModel):
    count: int
