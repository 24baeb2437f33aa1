from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from ..database import get_session
from ..dependencies import get_match_feed, get_scoring_locks, get_scoring_rules
from ..models.match import Match
from ..services.locks import MatchLockRegistry
from ..services.match_feed import MatchFeedClient, refresh_match_from_feed
from ..services.matches import (
    cancel_match,
    create_match,
    finish_match,
    get_match,
    list_matches,
    start_match,
)
from ..services.scoring import ScoringRules, score_match

router = APIRouter(prefix="/api/matches", tags=["matches"])


class MatchCreate(BaseModel):
    team_a: str = Field(min_length=1)
    team_b: str = Field(min_length=1)
    scheduled_at: Optional[datetime] = None
    tournament: str = ""


class MatchResult(BaseModel):
    score_a: int = Field(ge=0)
    score_b: int = Field(ge=0)


def match_to_dict(match: Match) -> dict:
    return {
        "id": match.id,
        "external_id": match.external_id,
        "team_a": match.team_a,
        "team_b": match.team_b,
        "tournament": match.tournament,
        "scheduled_at": match.scheduled_at,
        "status": match.status,
        "score_a": match.score_a,
        "score_b": match.score_b,
        "winner": match.winner,
        "live_score_a": match.live_score_a,
        "live_score_b": match.live_score_b
    }


@router.get("")
async def read_matches(
    status: Optional[str] = None,
    db: Session = Depends(get_session)
):
    return {"matches": [match_to_dict(m) for m in list_matches(db, status)]}


@router.post("", status_code=201)
async def add_match(
    match_data: MatchCreate,
    db: Session = Depends(get_session)
):
    match = create_match(
        db,
        match_data.team_a,
        match_data.team_b,
        scheduled_at=match_data.scheduled_at,
        tournament=match_data.tournament
    )
    return {"match": match_to_dict(match)}


@router.get("/{match_id}")
async def read_match(
    match_id: int,
    db: Session = Depends(get_session)
):
    return {"match": match_to_dict(get_match(db, match_id))}


@router.post("/{match_id}/start")
async def start(
    match_id: int,
    db: Session = Depends(get_session)
):
    return {"match": match_to_dict(start_match(db, match_id))}


@router.post("/{match_id}/cancel")
async def cancel(
    match_id: int,
    db: Session = Depends(get_session)
):
    return {"match": match_to_dict(cancel_match(db, match_id))}


@router.post("/{match_id}/result")
def record_result(
    match_id: int,
    result: MatchResult,
    db: Session = Depends(get_session),
    rules: ScoringRules = Depends(get_scoring_rules),
    locks: MatchLockRegistry = Depends(get_scoring_locks)
):
    """Finish a match with its final score and score every prediction on it."""
    match = finish_match(db, match_id, result.score_a, result.score_b)
    scoring = score_match(db, match.id, rules, locks)
    return {"match": match_to_dict(match), "scoring": scoring}


@router.post("/{match_id}/calculate-points")
def calculate_points(
    match_id: int,
    db: Session = Depends(get_session),
    rules: ScoringRules = Depends(get_scoring_rules),
    locks: MatchLockRegistry = Depends(get_scoring_locks),
    feed: Optional[MatchFeedClient] = Depends(get_match_feed)
):
    """
    Score (or re-score) a finished match.

    When the match comes from the public feed it is refreshed first, so a
    result published upstream is picked up before scoring.
    """
    match = get_match(db, match_id)
    refresh_match_from_feed(db, match, feed)
    scoring = score_match(db, match_id, rules, locks)
    return {"message": "Points calculated successfully", **scoring}
